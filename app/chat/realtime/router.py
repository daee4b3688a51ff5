"""
Message delivery.

DeliveryRouter is the single path every message takes, whether a person
or the assistant wrote it:

    1. Resolve the recipient once into HumanPeer or AssistantPeer
    2. Refuse if either party blocked the other (BlockedError)
    3. Persist through MessageStore.create, retrying transient failures
    4. message_sent_ack to every connection of the sender, carrying the
       server id and the client's correlation token
    5. Human peer online: message_received to every connection of the
       recipient, then delivered (the sender is told)
       Human peer offline: the message stays "sent" and reaches the
       recipient through their next history fetch
       Assistant peer: delivered at once; the reply is produced in a
       background task and sent back through step 1

Every send() call carries its own idempotency key, so retrying an attempt
that committed but reported a failure never stores a second row.

A resend with a correlation token that was already stored produces a
fresh ack for the stored message. It is pushed again only while it is
still "sent", i.e. the earlier attempt never reached the recipient.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, Union

from chat.constants import DELETE_SCOPES, OUTBOUND_EVENTS, realtime_setting
from chat.exceptions import BlockedError, TransientStoreError
from chat.models import MessageKind, MessageStatus
from chat.realtime import events
from chat.services import MessageStore, RelationshipService
from core.exceptions import ValidationError

if TYPE_CHECKING:
    from ai.services import AssistantResponder
    from chat.models import Message
    from chat.realtime.emitters import Fanout
    from chat.realtime.receipts import ReadReceiptProcessor
    from chat.realtime.registry import ConnectionRegistry
    from chat.realtime.storage import StoreGateway

logger = logging.getLogger(__name__)


# =============================================================================
# Peers
# =============================================================================


@dataclass(frozen=True)
class HumanPeer:
    user_id: int


@dataclass(frozen=True)
class AssistantPeer:
    """The assistant account, answered by an AI responder."""

    user_id: int
    responder: AssistantResponder


Peer = Union[HumanPeer, AssistantPeer]


# =============================================================================
# DeliveryRouter
# =============================================================================


class DeliveryRouter:
    """
    Persists messages and fans them out to live connections.

    Methods:
        resolve_peer: HumanPeer or AssistantPeer for a recipient id
        send: Store and route a message
        acknowledge_fetched: Deliver messages the reader just fetched
        edit: Edit and tell both parties
        delete: Delete for self or everyone and tell those affected
        drain: Wait for pending assistant replies
        close: Cancel pending assistant replies
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        fanout: Fanout,
        store: StoreGateway,
        receipts: ReadReceiptProcessor,
        responder: AssistantResponder | None = None,
        max_retries: int | None = None,
        retry_backoff: float | None = None,
    ):
        self.registry = registry
        self.fanout = fanout
        self.store = store
        self.receipts = receipts
        self.responder = responder
        self.max_retries = int(
            max_retries if max_retries is not None else realtime_setting("STORE_MAX_RETRIES")
        )
        self.retry_backoff = float(
            retry_backoff
            if retry_backoff is not None
            else realtime_setting("STORE_RETRY_BACKOFF_SECONDS")
        )
        self._tasks: set[asyncio.Task] = set()

    async def resolve_peer(self, recipient_id) -> Peer:
        """
        Raises:
            NotFoundError: No such active user
        """
        profile = await self.store.run(RelationshipService.get_peer, recipient_id)
        if profile.is_assistant and self.responder is not None:
            return AssistantPeer(user_id=profile.user_id, responder=self.responder)
        return HumanPeer(user_id=profile.user_id)

    async def send(
        self,
        sender_id,
        recipient_id,
        content: str,
        client_token: str = "",
        kind: str = MessageKind.TEXT,
        attachment_url: str = "",
        attachment_name: str = "",
    ) -> Message:
        """
        Store a message and route it to both parties' connections.

        Raises:
            ValidationError: Empty content, self-addressed, too long
            NotFoundError: Unknown recipient
            BlockedError: Either party blocked the other
            TransientStoreError: Store still unavailable after retries
        """
        if sender_id == recipient_id:
            raise ValidationError(
                "You cannot send a message to yourself",
                error_code="SELF_MESSAGE",
            )

        peer = await self.resolve_peer(recipient_id)
        if await self.store.run(RelationshipService.is_blocked_between, sender_id, peer.user_id):
            logger.info(f"Send {sender_id} -> {peer.user_id} refused: blocked")
            raise BlockedError("Message could not be sent")

        message, created = await self._persist(
            sender_id,
            peer.user_id,
            content,
            client_token=client_token,
            kind=kind,
            attachment_url=attachment_url,
            attachment_name=attachment_name,
            send_key=uuid.uuid4(),
        )

        await self.fanout.to_user(
            sender_id,
            OUTBOUND_EVENTS.MESSAGE_SENT_ACK,
            events.message_sent_ack(client_token, message),
        )
        if not created and message.status != MessageStatus.SENT:
            logger.debug(f"Message {message.pk} re-acknowledged for token {client_token}")
            return message

        if isinstance(peer, AssistantPeer):
            await self._deliver(message, peer.user_id)
            self._spawn(self._answer(message, peer))
            return message

        if self.registry.is_online(peer.user_id):
            pushed = await self.fanout.to_user(
                peer.user_id,
                OUTBOUND_EVENTS.MESSAGE_RECEIVED,
                events.message_received(message),
            )
            if pushed:
                await self._deliver(message, peer.user_id)
        else:
            logger.debug(f"Message {message.pk} stored for offline user {peer.user_id}")

        return message

    async def _persist(self, sender_id, recipient_id, content, **fields) -> tuple[Message, bool]:
        failures = 0
        while True:
            try:
                message, created = await self.store.run(
                    MessageStore.create, sender_id, recipient_id, content, **fields
                )
            except TransientStoreError:
                failures += 1
                if failures > self.max_retries:
                    logger.error(
                        f"Send {sender_id} -> {recipient_id} failed after {failures} attempt(s)"
                    )
                    raise
                logger.warning(
                    f"Send {sender_id} -> {recipient_id} attempt {failures} failed; retrying"
                )
                await asyncio.sleep(self.retry_backoff * failures)
                continue
            return message, created

    async def _deliver(self, message: Message, recipient_id) -> None:
        changed = await self.receipts.mark_delivered_batch(recipient_id, [message.pk])
        if changed:
            message.status = max(message.status, MessageStatus.DELIVERED)

    # -------------------------------------------------------------------------
    # Assistant replies
    # -------------------------------------------------------------------------

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _answer(self, message: Message, peer: AssistantPeer) -> None:
        try:
            prior = await self.store.run(
                MessageStore.history,
                peer.user_id,
                message.sender_id,
                limit=max(peer.responder.history_limit, 1),
                before_id=message.pk,
            )
            text = await peer.responder.reply(
                prior, message.content or message.attachment_name, peer.user_id
            )
            await self.send(
                peer.user_id,
                message.sender_id,
                text,
                client_token=f"reply-{message.pk}",
            )
            await self.receipts.mark_read_batch(peer.user_id, [message.pk])
        except Exception:
            logger.exception(f"Assistant reply to message {message.pk} failed")

    async def drain(self) -> None:
        """Wait until every pending assistant reply has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    # -------------------------------------------------------------------------
    # Fetch, edit, delete
    # -------------------------------------------------------------------------

    async def acknowledge_fetched(self, reader_id, messages: Iterable[Message]) -> list[int]:
        """
        Mark fetched messages addressed to reader_id as delivered.

        History retrieval is the redelivery path for messages stored
        while the reader was offline. Nothing is pushed again; only the
        senders hear about the delivered transition.
        """
        pending = [
            message.pk
            for message in messages
            if message.recipient_id == reader_id and message.status < MessageStatus.DELIVERED
        ]
        if not pending:
            return []
        return await self.receipts.mark_delivered_batch(reader_id, pending)

    async def edit(self, editor_id, message_id, content: str) -> Message:
        """
        Replace the content of the editor's message. A recipient who
        deleted it for themselves is not told.

        Raises:
            ValidationError, NotFoundError, AuthorizationError
        """
        message = await self.store.run(MessageStore.edit, message_id, editor_id, content)
        audience = await self.store.run(MessageStore.viewers, message)
        await self.fanout.to_users(
            audience,
            OUTBOUND_EVENTS.MESSAGE_EDITED,
            events.message_edited(message),
        )
        return message

    async def delete(self, requester_id, message_id, scope: str) -> Message:
        """
        Delete for the requester only ("self") or for both parties
        ("everyone"). Only the requester's own devices hear about a
        delete for self.

        Raises:
            ValidationError: Unknown scope
            NotFoundError, AuthorizationError
        """
        if scope == DELETE_SCOPES.SELF:
            message = await self.store.run(MessageStore.delete_for_self, message_id, requester_id)
            audience = (requester_id,)
        elif scope == DELETE_SCOPES.EVERYONE:
            message = await self.store.run(
                MessageStore.delete_for_everyone, message_id, requester_id
            )
            audience = (message.sender_id, message.recipient_id)
        else:
            raise ValidationError(f"Unknown delete scope: {scope}", error_code="INVALID_SCOPE")

        await self.fanout.to_users(
            audience,
            OUTBOUND_EVENTS.MESSAGE_DELETED,
            events.message_deleted(message.pk, scope),
        )
        return message
