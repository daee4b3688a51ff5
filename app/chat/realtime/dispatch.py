"""
Inbound socket event dispatch.

EventDispatcher maps each inbound event name to a payload serializer and
an async handler. Handlers raise domain exceptions; dispatch() turns them
into a ServiceResult so the consumer only has to forward failures to the
socket.

Client-facing error mapping:
    ValidationError             -> its own code (EMPTY_CONTENT, ...)
    NotFoundError,
    AuthorizationError          -> NOT_ALLOWED (existence is not revealed)
    BlockedError                -> SEND_FAILED (which side blocked is not revealed)
    TransientStoreError         -> SEND_FAILED on send, UNAVAILABLE otherwise
    Unknown event               -> UNKNOWN_EVENT
    Invalid payload             -> VALIDATION_ERROR with field errors
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Awaitable, Callable

from chat.constants import INBOUND_EVENTS, OUTBOUND_EVENTS
from chat.exceptions import AuthorizationError, BlockedError, TransientStoreError
from chat.realtime import events
from chat.serializers import (
    DeleteMessageEventSerializer,
    EditMessageEventSerializer,
    FetchHistoryEventSerializer,
    MarkReadEventSerializer,
    PeerEventSerializer,
    SendMessageEventSerializer,
)
from chat.services import MessageStore, RelationshipService
from core.exceptions import NotFoundError, ValidationError
from core.services import ServiceResult

if TYPE_CHECKING:
    from rest_framework import serializers

    from chat.realtime.emitters import Fanout
    from chat.realtime.receipts import ReadReceiptProcessor
    from chat.realtime.router import DeliveryRouter
    from chat.realtime.storage import StoreGateway
    from chat.realtime.typing import TypingCoordinator

logger = logging.getLogger(__name__)

Handler = Callable[..., Awaitable[ServiceResult]]


@dataclass(frozen=True)
class ConnectionContext:
    """The authenticated connection an inbound event arrived on."""

    user_id: int
    handle: str


class EventDispatcher:
    """
    Dispatch table for inbound socket events.

    Usage:
        result = await dispatcher.dispatch(
            ConnectionContext(user_id=alice.id, handle=channel_name),
            "send_message",
            {"recipientId": bob.id, "content": "Hi", "clientCorrelationToken": "t1"},
        )
        if not result:
            ...  # send an error event to the socket
    """

    def __init__(
        self,
        router: DeliveryRouter,
        typing: TypingCoordinator,
        receipts: ReadReceiptProcessor,
        fanout: Fanout,
        store: StoreGateway,
    ):
        self.router = router
        self.typing = typing
        self.receipts = receipts
        self.fanout = fanout
        self.store = store
        self._handlers: dict[str, tuple[type[serializers.Serializer], Handler]] = {
            INBOUND_EVENTS.SEND_MESSAGE: (SendMessageEventSerializer, self.send_message),
            INBOUND_EVENTS.TYPING_START: (PeerEventSerializer, self.typing_start),
            INBOUND_EVENTS.TYPING_STOP: (PeerEventSerializer, self.typing_stop),
            INBOUND_EVENTS.MARK_READ: (MarkReadEventSerializer, self.mark_read),
            INBOUND_EVENTS.MARK_CONVERSATION_READ: (
                PeerEventSerializer,
                self.mark_conversation_read,
            ),
            INBOUND_EVENTS.EDIT_MESSAGE: (EditMessageEventSerializer, self.edit_message),
            INBOUND_EVENTS.DELETE_MESSAGE: (DeleteMessageEventSerializer, self.delete_message),
            INBOUND_EVENTS.FETCH_HISTORY: (FetchHistoryEventSerializer, self.fetch_history),
        }

    @property
    def event_names(self) -> frozenset[str]:
        return frozenset(self._handlers)

    async def dispatch(self, context: ConnectionContext, event: str, payload) -> ServiceResult:
        """
        Validate the payload and run the handler for event.

        Never raises for expected failures; unexpected exceptions
        propagate to the transport.
        """
        entry = self._handlers.get(event)
        if entry is None:
            logger.debug(f"User {context.user_id} sent unknown event {event!r}")
            return ServiceResult.failure(f"Unknown event: {event}", error_code="UNKNOWN_EVENT")

        serializer_class, handler = entry
        serializer = serializer_class(data=payload if isinstance(payload, dict) else {})
        if not serializer.is_valid():
            return ServiceResult.failure(
                "Invalid payload",
                error_code="VALIDATION_ERROR",
                errors=serializer.errors,
            )

        try:
            return await handler(context, **serializer.validated_data)
        except ValidationError as exc:
            return ServiceResult.from_exception(exc)
        except BlockedError:
            return ServiceResult.failure("Message could not be sent", error_code="SEND_FAILED")
        except (NotFoundError, AuthorizationError):
            return ServiceResult.failure("Operation not allowed", error_code="NOT_ALLOWED")
        except TransientStoreError:
            if event == INBOUND_EVENTS.SEND_MESSAGE:
                return ServiceResult.failure(
                    "Message could not be sent", error_code="SEND_FAILED"
                )
            return ServiceResult.failure(
                "Service temporarily unavailable", error_code="UNAVAILABLE"
            )

    # =========================================================================
    # Handlers
    # =========================================================================

    async def send_message(
        self,
        context: ConnectionContext,
        recipient_id,
        content="",
        client_token="",
        kind="text",
        attachment_url="",
        attachment_name="",
    ) -> ServiceResult:
        message = await self.router.send(
            context.user_id,
            recipient_id,
            content,
            client_token=client_token,
            kind=kind,
            attachment_url=attachment_url,
            attachment_name=attachment_name,
        )
        return ServiceResult.success(
            {"messageId": message.pk, "clientCorrelationToken": client_token or None}
        )

    async def typing_start(self, context: ConnectionContext, peer_id) -> ServiceResult:
        if peer_id == context.user_id:
            raise ValidationError("You cannot type to yourself", error_code="SELF_TYPING")

        if not self.typing.is_typing(context.user_id, peer_id):
            await self.store.run(RelationshipService.get_peer, peer_id)
            if await self.store.run(
                RelationshipService.is_blocked_between, context.user_id, peer_id
            ):
                # Dropped without telling the typist
                return ServiceResult.success()

        await self.typing.start_typing(context.user_id, peer_id, handle=context.handle)
        return ServiceResult.success()

    async def typing_stop(self, context: ConnectionContext, peer_id) -> ServiceResult:
        await self.typing.stop_typing(context.user_id, peer_id)
        return ServiceResult.success()

    async def mark_read(self, context: ConnectionContext, message_ids) -> ServiceResult:
        changed = await self.receipts.mark_read_batch(context.user_id, message_ids)
        return ServiceResult.success({"messageIds": changed})

    async def mark_conversation_read(self, context: ConnectionContext, peer_id) -> ServiceResult:
        changed = await self.receipts.mark_conversation_read(context.user_id, peer_id)
        return ServiceResult.success({"messageIds": changed})

    async def edit_message(self, context: ConnectionContext, message_id, content) -> ServiceResult:
        message = await self.router.edit(context.user_id, message_id, content)
        return ServiceResult.success({"messageId": message.pk})

    async def delete_message(self, context: ConnectionContext, message_id, scope) -> ServiceResult:
        message = await self.router.delete(context.user_id, message_id, scope)
        return ServiceResult.success({"messageId": message.pk, "scope": scope})

    async def fetch_history(
        self, context: ConnectionContext, peer_id, limit, before_id=None
    ) -> ServiceResult:
        messages = await self.store.run(
            MessageStore.history, context.user_id, peer_id, limit=limit, before_id=before_id
        )
        await self.fanout.to_handle(
            context.handle,
            OUTBOUND_EVENTS.HISTORY,
            events.history(peer_id, messages, context.user_id),
        )
        await self.router.acknowledge_fetched(context.user_id, messages)
        return ServiceResult.success({"count": len(messages)})
