"""
Connection registry.

Maps a user id to the set of live connection handles of that user
(one per device/tab). The registry is an injected service owned by the
RealtimeHub, never a module-level global.

Transitions:
    The first connection of a user and the removal of the last one are
    announced to subscribers as (user_id, online). Announcements for one
    user are serialized by a per-user lock and strictly alternate
    online/offline, so a listener sees each transition at most once.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import AsyncIterator, Awaitable, Callable, Hashable

from django.utils import timezone

from chat.exceptions import UnauthenticatedConnectionError

logger = logging.getLogger(__name__)

TransitionListener = Callable[[int, bool], Awaitable[None]]


@dataclass(frozen=True)
class Connection:
    """
    A live transport connection.

    Attributes:
        handle: Transport handle (the consumer's channel name)
        user_id: Authenticated owner; None until authentication succeeded
        created_at: When the connection was accepted
    """

    handle: str
    user_id: int | None
    created_at: datetime = field(default_factory=timezone.now)


class KeyedLock:
    """
    One asyncio.Lock per key, dropped when nobody holds or awaits it.

    Usage:
        locks = KeyedLock()
        async with locks.hold(user_id):
            ...
    """

    def __init__(self):
        self._locks: dict[Hashable, asyncio.Lock] = {}
        self._users: dict[Hashable, int] = defaultdict(int)

    @asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] += 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if not self._users[key]:
                del self._users[key]
                self._locks.pop(key, None)

    def __len__(self) -> int:
        return len(self._locks)


class ConnectionRegistry:
    """
    user id -> live connection handles.

    Methods:
        register: Add an authenticated connection (idempotent per handle)
        unregister: Remove a connection by handle
        connections_for: Snapshot of a user's handles
        connection_for: Connection behind a handle
        is_online: Whether a user has any live connection
        online_user_ids: Users with at least one live connection
        subscribe: Listen to online/offline transitions
    """

    def __init__(self):
        self._by_user: dict[int, dict[str, Connection]] = {}
        self._by_handle: dict[str, Connection] = {}
        self._announced_online: set[int] = set()
        self._listeners: list[TransitionListener] = []
        self.locks = KeyedLock()

    def subscribe(self, listener: TransitionListener) -> None:
        """Call listener(user_id, online) on every transition."""
        self._listeners.append(listener)

    async def register(self, user_id, connection: Connection) -> bool:
        """
        Add a connection to the user's set.

        Returns:
            False if this exact handle was already registered

        Raises:
            UnauthenticatedConnectionError: The connection carries no
                authenticated user, or a different one
        """
        if user_id is None or connection.user_id is None or connection.user_id != user_id:
            raise UnauthenticatedConnectionError(
                f"Connection {connection.handle} is not authenticated as user {user_id}"
            )

        existing = self._by_handle.get(connection.handle)
        if existing is not None:
            if existing.user_id != user_id:
                raise UnauthenticatedConnectionError(
                    f"Connection {connection.handle} already belongs to user {existing.user_id}"
                )
            return False

        self._by_user.setdefault(user_id, {})[connection.handle] = connection
        self._by_handle[connection.handle] = connection
        logger.debug(f"Registered {connection.handle} for user {user_id}")

        await self._settle(user_id)
        return True

    async def unregister(self, handle: str) -> Connection | None:
        """
        Remove a connection. The map is updated before any await.

        Returns:
            The removed Connection, or None if the handle was unknown
        """
        connection = self._by_handle.pop(handle, None)
        if connection is None:
            return None

        handles = self._by_user.get(connection.user_id)
        if handles is not None:
            handles.pop(handle, None)
            if not handles:
                del self._by_user[connection.user_id]
        logger.debug(f"Unregistered {handle} for user {connection.user_id}")

        await self._settle(connection.user_id)
        return connection

    async def _settle(self, user_id) -> None:
        """Announce the user's transition if the live set crossed empty."""
        async with self.locks.hold(user_id):
            online = self.is_online(user_id)
            announced = user_id in self._announced_online
            if online == announced:
                return
            if online:
                self._announced_online.add(user_id)
            else:
                self._announced_online.discard(user_id)
            await self._notify(user_id, online)

    async def _notify(self, user_id, online: bool) -> None:
        for listener in list(self._listeners):
            try:
                await listener(user_id, online)
            except Exception:
                # A failing listener must leave the registry consistent
                logger.exception(
                    f"Presence listener failed for user {user_id} (online={online})"
                )

    def connections_for(self, user_id) -> frozenset[str]:
        """Snapshot of the user's live handles (possibly empty)."""
        return frozenset(self._by_user.get(user_id, ()))

    def connection_for(self, handle: str) -> Connection | None:
        return self._by_handle.get(handle)

    def is_online(self, user_id) -> bool:
        return bool(self._by_user.get(user_id))

    def online_user_ids(self) -> frozenset[int]:
        return frozenset(self._by_user)

    def __len__(self) -> int:
        return len(self._by_handle)
