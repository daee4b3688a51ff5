"""
Realtime composition root.

RealtimeHub builds the realtime components once per process and wires
them together:

    ConnectionRegistry ──> PresenceTracker ──> TypingCoordinator
            │                    (presence listener)
            └──> Fanout ──> Emitter (channel layer)
    StoreGateway ──> ReadReceiptProcessor ──> DeliveryRouter
    EventDispatcher(router, typing, receipts)

Consumers and views reach it through get_hub(). Tests build their own
hub around a recording emitter and install it with set_hub().
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from channels.layers import get_channel_layer

from ai.services import AssistantResponder
from chat.realtime.dispatch import ConnectionContext, EventDispatcher
from chat.realtime.emitters import ChannelLayerEmitter, Fanout
from chat.realtime.presence import PresenceTracker
from chat.realtime.receipts import ReadReceiptProcessor
from chat.realtime.registry import Connection, ConnectionRegistry
from chat.realtime.router import DeliveryRouter
from chat.realtime.storage import StoreGateway
from chat.realtime.typing import TypingCoordinator

if TYPE_CHECKING:
    from chat.realtime.emitters import Emitter
    from core.services import ServiceResult

logger = logging.getLogger(__name__)


class RealtimeHub:
    """
    Owns every in-memory realtime component of the process.

    Attributes:
        registry: ConnectionRegistry
        presence: PresenceTracker
        typing: TypingCoordinator
        receipts: ReadReceiptProcessor
        router: DeliveryRouter
        dispatcher: EventDispatcher
    """

    def __init__(
        self,
        emitter: Emitter,
        responder: AssistantResponder | None = None,
        *,
        store_timeout: float | None = None,
        typing_timeout: float | None = None,
        presence_grace: float | None = None,
        max_retries: int | None = None,
        retry_backoff: float | None = None,
    ):
        self.registry = ConnectionRegistry()
        self.store = StoreGateway(timeout=store_timeout)
        self.fanout = Fanout(self.registry, emitter)
        self.presence = PresenceTracker(
            self.registry, self.fanout, self.store, grace_seconds=presence_grace
        )
        self.typing = TypingCoordinator(self.fanout, timeout_seconds=typing_timeout)
        self.presence.subscribe(self.typing.on_presence_changed)
        self.receipts = ReadReceiptProcessor(self.fanout, self.store)
        self.router = DeliveryRouter(
            self.registry,
            self.fanout,
            self.store,
            self.receipts,
            responder=responder,
            max_retries=max_retries,
            retry_backoff=retry_backoff,
        )
        self.dispatcher = EventDispatcher(
            self.router, self.typing, self.receipts, self.fanout, self.store
        )

    @classmethod
    def from_settings(cls) -> RealtimeHub:
        """Hub emitting through the default channel layer."""
        return cls(
            ChannelLayerEmitter(get_channel_layer()),
            responder=AssistantResponder.from_settings(),
        )

    async def connect(self, user_id, handle: str) -> Connection:
        """
        Register an authenticated connection.

        Raises:
            UnauthenticatedConnectionError: user_id is None
        """
        connection = Connection(handle=handle, user_id=user_id)
        await self.registry.register(user_id, connection)
        return connection

    async def disconnect(self, handle: str) -> None:
        """Unregister a connection and end the typing signals it started."""
        connection = await self.registry.unregister(handle)
        await self.typing.release_connection(handle)
        if connection is not None:
            logger.debug(f"Connection {handle} of user {connection.user_id} released")

    async def dispatch(self, user_id, handle: str, event: str, payload) -> ServiceResult:
        return await self.dispatcher.dispatch(
            ConnectionContext(user_id=user_id, handle=handle), event, payload
        )

    async def close(self) -> None:
        """Cancel every timer and background task."""
        await self.router.close()
        await self.typing.close()
        await self.presence.close()


_hub: RealtimeHub | None = None


def get_hub() -> RealtimeHub:
    global _hub
    if _hub is None:
        _hub = RealtimeHub.from_settings()
        logger.info("Realtime hub started")
    return _hub


def set_hub(hub: RealtimeHub | None) -> RealtimeHub | None:
    """Install hub as the process hub; returns the previous one."""
    global _hub
    previous, _hub = _hub, hub
    return previous
