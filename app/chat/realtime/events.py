"""
Outbound event payloads.

Every payload the core emits is built here so the socket contract lives
in one place. Keys are camelCase on the wire.

Events:
    presence_changed{userId, online, lastSeen}
    message_sent_ack{clientCorrelationToken, message}
    message_received{message}
    message_status_changed{messageId, messageIds, status, peerId}
    typing_changed{userId, peerId, isTyping}
    message_edited{messageId, content, editedAt}
    message_deleted{messageId, scope}
    history{peerId, messages}
    error{event, error, error_code, clientCorrelationToken}
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable

from chat.models import MessageStatus

if TYPE_CHECKING:
    from datetime import datetime

    from chat.models import Message
    from core.services import ServiceResult


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def status_for_viewer(message: Message, viewer_id) -> str:
    """
    Status label as seen by viewer_id.

    A recipient who disabled read receipts never reveals "read" to the
    sender; the sender sees "delivered" instead.
    """
    status = message.status
    if (
        status == MessageStatus.READ
        and viewer_id == message.sender_id
        and not message.recipient.profile.read_receipts_enabled
    ):
        status = MessageStatus.DELIVERED
    return MessageStatus(status).label


def message_payload(message: Message, viewer_id) -> dict:
    """
    Serialize a message for one viewer.

    The message must have been loaded with sender/recipient profiles
    (MessageStore does this), since no query may run on the event loop.
    """
    payload = {
        "id": message.pk,
        "senderId": message.sender_id,
        "senderName": message.sender.profile.display_name,
        "recipientId": message.recipient_id,
        "kind": message.kind,
        "content": message.content,
        "attachmentUrl": message.attachment_url or None,
        "attachmentName": message.attachment_name or None,
        "status": status_for_viewer(message, viewer_id),
        "createdAt": _iso(message.created_at),
        "isEdited": message.is_edited,
        "editedAt": _iso(message.edited_at),
    }
    if viewer_id == message.sender_id:
        payload["clientCorrelationToken"] = message.client_token or None
    return payload


def presence_changed(user_id, online: bool, last_seen: datetime | None) -> dict:
    return {"userId": user_id, "online": online, "lastSeen": _iso(last_seen)}


def message_sent_ack(client_token: str | None, message: Message) -> dict:
    return {
        "clientCorrelationToken": client_token or None,
        "message": message_payload(message, message.sender_id),
    }


def message_received(message: Message) -> dict:
    return {"message": message_payload(message, message.recipient_id)}


def message_status_changed(message_ids: Iterable[int], status: int, peer_id) -> dict:
    ids = sorted(message_ids)
    return {
        "messageId": ids[-1] if ids else None,
        "messageIds": ids,
        "status": MessageStatus(status).label,
        "peerId": peer_id,
    }


def typing_changed(user_id, peer_id, is_typing: bool) -> dict:
    return {"userId": user_id, "peerId": peer_id, "isTyping": is_typing}


def message_edited(message: Message) -> dict:
    return {
        "messageId": message.pk,
        "content": message.content,
        "editedAt": _iso(message.edited_at),
    }


def message_deleted(message_id, scope: str) -> dict:
    return {"messageId": message_id, "scope": scope}


def history(peer_id, messages: Iterable[Message], viewer_id) -> dict:
    return {
        "peerId": peer_id,
        "messages": [message_payload(message, viewer_id) for message in messages],
    }


def error(event: str, result: ServiceResult, client_token: str | None = None) -> dict:
    payload = {
        "event": event,
        "error": result.error,
        "error_code": result.error_code,
        "clientCorrelationToken": client_token or None,
    }
    if result.errors:
        payload["errors"] = result.errors
    return payload
