"""
Outbound event delivery.

Emitter is the seam between the core and the transport: the core only
ever calls emit(handle, event, payload). ChannelLayerEmitter delivers
through the Channels layer to the consumer that owns the handle;
Fanout addresses every live connection of a user.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

from channels.exceptions import ChannelFull

if TYPE_CHECKING:
    from chat.realtime.registry import ConnectionRegistry

logger = logging.getLogger(__name__)


class Emitter(Protocol):
    """Pushes one event to one connection handle."""

    async def emit(self, handle: str, event: str, payload: dict) -> None:
        ...


class ChannelLayerEmitter:
    """
    Emitter backed by a Channels layer.

    The handle is the consumer's channel name. The consumer's chat_event
    handler forwards the message to the socket as
    {"type": event, "payload": payload}.
    """

    def __init__(self, channel_layer):
        self.channel_layer = channel_layer

    async def emit(self, handle: str, event: str, payload: dict) -> None:
        try:
            await self.channel_layer.send(
                handle,
                {"type": "chat.event", "event": event, "payload": payload},
            )
        except ChannelFull:
            # One slow client must not block delivery to the others
            logger.warning(f"Channel {handle} is full; dropped {event}")


class Fanout:
    """
    Sends an event to every live connection of a user.

    Usage:
        fanout = Fanout(registry, emitter)
        await fanout.to_user(bob_id, "message_received", payload)
    """

    def __init__(self, registry: ConnectionRegistry, emitter: Emitter):
        self.registry = registry
        self.emitter = emitter

    async def to_user(self, user_id, event: str, payload: dict) -> int:
        """Emit to all of the user's connections; returns how many."""
        handles = self.registry.connections_for(user_id)
        for handle in handles:
            await self.emitter.emit(handle, event, payload)
        return len(handles)

    async def to_users(self, user_ids, event: str, payload: dict) -> int:
        count = 0
        for user_id in user_ids:
            count += await self.to_user(user_id, event, payload)
        return count

    async def to_handle(self, handle: str, event: str, payload: dict) -> None:
        await self.emitter.emit(handle, event, payload)
