"""
Typing indicators.

Typing signals are ephemeral (sender, recipient) pairs kept only in
memory. A start broadcasts typing_changed(isTyping=True) to the
recipient's connections and arms an idle timer; every further start for
the same pair re-arms it. When the timer fires, or on an explicit stop,
typing_changed(isTyping=False) is broadcast. Only state changes are
broadcast, so repeated starts cost nothing on the wire.

A dropped connection stops the signals it started. A user going offline
stops every signal they were sending and silently drops the ones
addressed to them.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from chat.constants import OUTBOUND_EVENTS, realtime_setting
from chat.realtime import events

if TYPE_CHECKING:
    from datetime import datetime

    from chat.realtime.emitters import Fanout

logger = logging.getLogger(__name__)


@dataclass
class TypingSignal:
    sender_id: int
    recipient_id: int
    handle: str | None
    task: asyncio.Task


class TypingCoordinator:
    """
    Per-pair typing state with idle expiry.

    Methods:
        start_typing: Begin or refresh a signal
        stop_typing: End a signal
        release_connection: End the signals a connection started
        on_presence_changed: Presence listener; clears a departed user
        is_typing: Whether a signal is active
        close: Cancel every timer without broadcasting
    """

    def __init__(self, fanout: Fanout, timeout_seconds: float | None = None):
        self.fanout = fanout
        self.timeout_seconds = float(
            timeout_seconds
            if timeout_seconds is not None
            else realtime_setting("TYPING_TIMEOUT_SECONDS")
        )
        self._signals: dict[tuple[int, int], TypingSignal] = {}

    def is_typing(self, sender_id, recipient_id) -> bool:
        return (sender_id, recipient_id) in self._signals

    async def start_typing(self, sender_id, recipient_id, handle: str | None = None) -> bool:
        """
        Begin or refresh the signal for (sender, recipient).

        Returns:
            True if a new signal started (and was broadcast)
        """
        key = (sender_id, recipient_id)
        existing = self._signals.get(key)
        task = asyncio.create_task(self._expire(key))
        self._signals[key] = TypingSignal(sender_id, recipient_id, handle, task)

        if existing is not None:
            existing.task.cancel()
            return False

        await self._broadcast(sender_id, recipient_id, True)
        return True

    async def stop_typing(self, sender_id, recipient_id) -> bool:
        """
        End the signal for (sender, recipient).

        Returns:
            True if a signal was active (and the stop was broadcast)
        """
        signal = self._signals.pop((sender_id, recipient_id), None)
        if signal is None:
            return False
        signal.task.cancel()
        await self._broadcast(sender_id, recipient_id, False)
        return True

    async def _expire(self, key: tuple[int, int]) -> None:
        await asyncio.sleep(self.timeout_seconds)
        signal = self._signals.get(key)
        if signal is None or signal.task is not asyncio.current_task():
            return
        del self._signals[key]
        logger.debug(f"Typing {key[0]} -> {key[1]} expired")
        await self._broadcast(signal.sender_id, signal.recipient_id, False)

    async def release_connection(self, handle: str) -> int:
        """Stop every signal started from handle; returns how many."""
        keys = [key for key, signal in self._signals.items() if signal.handle == handle]
        for key in keys:
            await self.stop_typing(*key)
        return len(keys)

    async def on_presence_changed(self, user_id, online: bool, last_seen: datetime | None) -> None:
        if online:
            return
        for key, signal in list(self._signals.items()):
            if signal.sender_id == user_id:
                await self.stop_typing(*key)
            elif signal.recipient_id == user_id and self._signals.get(key) is signal:
                # Nobody left to tell
                del self._signals[key]
                signal.task.cancel()

    async def _broadcast(self, sender_id, recipient_id, is_typing: bool) -> None:
        await self.fanout.to_user(
            recipient_id,
            OUTBOUND_EVENTS.TYPING_CHANGED,
            events.typing_changed(sender_id, recipient_id, is_typing),
        )

    async def close(self) -> None:
        signals = list(self._signals.values())
        self._signals.clear()
        for signal in signals:
            signal.task.cancel()
        if signals:
            await asyncio.gather(*(s.task for s in signals), return_exceptions=True)

    def __len__(self) -> int:
        return len(self._signals)
