"""Cancellable handles for background loops started in the app lifespan."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Coroutine
    from typing import Any

logger = logging.getLogger(__name__)


class PeriodicTask:
    """Handle for a background asyncio loop.

    ``cancel()`` may be called any number of times; only the first call has an
    effect. ``stop()`` cancels and waits for the loop to unwind so no timer
    outlives application shutdown.
    """

    def __init__(self, name: str, coro: Coroutine[Any, Any, None]) -> None:
        self.name = name
        self._task: asyncio.Task[None] = asyncio.get_running_loop().create_task(coro, name=name)
        self._cancelled = False

    @property
    def running(self) -> bool:
        """Whether the loop is still scheduled."""
        return not self._task.done()

    def cancel(self) -> bool:
        """Request cancellation.

        Returns:
            True if this call cancelled the loop, False if it was already stopped.
        """
        if self._cancelled or self._task.done():
            return False
        self._cancelled = True
        self._task.cancel()
        logger.debug("Periodic task cancelled: %s", self.name)
        return True

    async def stop(self) -> None:
        """Cancel and wait for the loop to finish."""
        self.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
