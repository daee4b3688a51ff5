"""
Presence tracking.

PresenceTracker turns registry transitions into presence state:

    Offline -> Online   on the first registered connection
    Online  -> Offline  on the last unregistered connection; last-seen is
                        stamped with the current time

Each transition is persisted on Profile (through PresenceService) and
broadcast as presence_changed to the online users allowed to see it:
not blocked by or blocking the subject, restricted to the subject's
contacts for "contacts", nobody for "nobody".

Grace window:
    With PRESENCE_GRACE_SECONDS > 0 the offline transition is deferred.
    A reconnect inside the window cancels it, so a page reload produces
    neither an offline nor a second online event. The default of 0
    makes offline immediate.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Awaitable, Callable

from django.utils import timezone

from chat.constants import OUTBOUND_EVENTS, realtime_setting
from chat.exceptions import TransientStoreError
from chat.realtime import events
from chat.services import PresenceService

if TYPE_CHECKING:
    from chat.realtime.emitters import Fanout
    from chat.realtime.registry import ConnectionRegistry
    from chat.realtime.storage import StoreGateway

logger = logging.getLogger(__name__)

PresenceListener = Callable[[int, bool, "datetime | None"], Awaitable[None]]


@dataclass(frozen=True)
class PresenceView:
    """
    Presence of a subject as one viewer may see it.

    visible=False means the viewer is not allowed to know; online and
    last_seen are then always False/None.
    """

    user_id: int
    visible: bool
    online: bool = False
    last_seen: datetime | None = None


class PresenceTracker:
    """
    Online/offline state machine per user.

    Methods:
        subscribe: Listen to (user_id, online, last_seen) after broadcasts
        is_online: Presence as currently announced
        get_presence: Privacy-aware presence of a subject for a viewer
        get_presence_many: get_presence for a list of subjects
        close: Cancel pending offline timers
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        fanout: Fanout,
        store: StoreGateway,
        grace_seconds: float | None = None,
    ):
        self.registry = registry
        self.fanout = fanout
        self.store = store
        self.grace_seconds = float(
            grace_seconds
            if grace_seconds is not None
            else realtime_setting("PRESENCE_GRACE_SECONDS")
        )
        self._online: set[int] = set()
        self._pending_offline: dict[int, asyncio.Task] = {}
        self._listeners: list[PresenceListener] = []
        registry.subscribe(self._on_transition)

    def subscribe(self, listener: PresenceListener) -> None:
        self._listeners.append(listener)

    def is_online(self, user_id) -> bool:
        return user_id in self._online

    async def _on_transition(self, user_id, online: bool) -> None:
        # Runs under the registry's per-user lock
        if online:
            pending = self._pending_offline.pop(user_id, None)
            if pending is not None:
                pending.cancel()
                logger.debug(f"User {user_id} reconnected within grace window")
            if user_id in self._online:
                return
            await self._go_online(user_id)
            return

        if self.grace_seconds > 0:
            self._pending_offline[user_id] = asyncio.create_task(
                self._offline_after_grace(user_id)
            )
        else:
            await self._go_offline(user_id)

    async def _offline_after_grace(self, user_id) -> None:
        await asyncio.sleep(self.grace_seconds)
        async with self.registry.locks.hold(user_id):
            if self._pending_offline.get(user_id) is not asyncio.current_task():
                return
            del self._pending_offline[user_id]
            if self.registry.is_online(user_id):
                return
            await self._go_offline(user_id)

    async def _go_online(self, user_id) -> None:
        self._online.add(user_id)
        logger.info(f"User {user_id} is online")
        try:
            await self.store.run(PresenceService.mark_online, user_id)
        except TransientStoreError:
            logger.warning(f"Could not persist online state of user {user_id}")
        await self._broadcast(user_id, True, None)

    async def _go_offline(self, user_id) -> None:
        self._online.discard(user_id)
        last_seen = timezone.now()
        logger.info(f"User {user_id} is offline")
        try:
            await self.store.run(PresenceService.mark_offline, user_id, last_seen)
        except TransientStoreError:
            logger.warning(f"Could not persist offline state of user {user_id}")
        await self._broadcast(user_id, False, last_seen)

    async def _broadcast(self, user_id, online: bool, last_seen: datetime | None) -> None:
        try:
            policy = await self.store.run(PresenceService.get_policy, user_id)
        except TransientStoreError:
            # Without the policy nobody may be told; listeners still run
            logger.warning(f"Could not load presence policy of user {user_id}")
        else:
            audience = [
                viewer_id
                for viewer_id in self.registry.online_user_ids()
                if viewer_id != user_id and policy.allows(viewer_id)
            ]
            payload = events.presence_changed(user_id, online, last_seen)
            await self.fanout.to_users(audience, OUTBOUND_EVENTS.PRESENCE_CHANGED, payload)
            logger.debug(
                f"Presence of user {user_id} (online={online}) sent to {len(audience)} user(s)"
            )

        for listener in list(self._listeners):
            await listener(user_id, online, last_seen)

    async def get_presence(self, viewer_id, subject_id) -> PresenceView:
        """
        Presence of subject as viewer_id may see it.

        Live state comes from the registry; last-seen from the persisted
        snapshot.

        Raises:
            NotFoundError: No such subject
        """
        snapshot = await self.store.run(PresenceService.get_snapshot, subject_id)
        if viewer_id != subject_id:
            policy = await self.store.run(PresenceService.get_policy, subject_id)
            if not policy.allows(viewer_id):
                return PresenceView(user_id=subject_id, visible=False)

        online = self.registry.is_online(subject_id)
        return PresenceView(
            user_id=subject_id,
            visible=True,
            online=online,
            last_seen=None if online else snapshot.last_seen,
        )

    async def get_presence_many(self, viewer_id, subject_ids) -> dict[int, PresenceView]:
        """get_presence for several subjects, keyed by subject id."""
        return {
            subject_id: await self.get_presence(viewer_id, subject_id)
            for subject_id in subject_ids
        }

    async def close(self) -> None:
        """Cancel every pending offline timer."""
        pending = list(self._pending_offline.values())
        self._pending_offline.clear()
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
