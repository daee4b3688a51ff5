"""
Bounded persistence calls from the event loop.

StoreGateway runs a synchronous service call through
database_sync_to_async and bounds it with asyncio.wait_for. Timeouts and
database unavailability surface as TransientStoreError.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable

from channels.db import database_sync_to_async
from django.db import InterfaceError, OperationalError

from chat.constants import realtime_setting
from chat.exceptions import TransientStoreError

logger = logging.getLogger(__name__)


class StoreGateway:
    """
    Runs persistence calls off the event loop with a timeout.

    Usage:
        store = StoreGateway(timeout=5)
        message, created = await store.run(MessageStore.create, a, b, "hi")
    """

    def __init__(self, timeout: float | None = None):
        self.timeout = (
            timeout if timeout is not None else realtime_setting("STORE_TIMEOUT_SECONDS")
        )

    async def run(self, func: Callable[..., Any], *args, **kwargs) -> Any:
        """
        Call func(*args, **kwargs) on a worker thread.

        Raises:
            TransientStoreError: Timeout or database unavailable
            Anything func raises otherwise
        """
        operation = getattr(func, "__qualname__", repr(func))
        try:
            return await asyncio.wait_for(
                database_sync_to_async(func)(*args, **kwargs), timeout=self.timeout
            )
        except asyncio.TimeoutError as exc:
            logger.warning(f"Store call {operation} timed out after {self.timeout}s")
            raise TransientStoreError(
                "Message store timed out",
                details={"operation": operation},
            ) from exc
        except (OperationalError, InterfaceError) as exc:
            logger.warning(f"Store call {operation} failed: {exc}")
            raise TransientStoreError(
                "Message store unavailable",
                details={"operation": operation},
            ) from exc
