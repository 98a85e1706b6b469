"""
Expiration timer for the live session.

Holds at most one outstanding asyncio timer. Scheduling always cancels the
previous handle first, so a timer armed for an older session incarnation can
never fire against a newer one. When no event loop is running (plain sync
callers, unit tests) the timer is skipped and expiry is enforced lazily by
the store on every read.
"""

import asyncio
from collections.abc import Callable

from catchup.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class LifecycleManager:
    """Owns the single expiration timer for the current session."""

    def __init__(self):
        self._handle: asyncio.TimerHandle | None = None

    @property
    def is_scheduled(self) -> bool:
        return self._handle is not None and not self._handle.cancelled()

    def schedule(self, delay_seconds: float, callback: Callable[[], None]) -> bool:
        """
        Arm the expiration timer, replacing any pending one.

        Args:
            delay_seconds: Seconds until the callback fires (clamped at 0)
            callback: Synchronous callable run on the event loop

        Returns:
            True if a timer was armed, False if no loop is running
        """
        self.cancel()

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop, expiration enforced lazily")
            return False

        self._handle = loop.call_later(max(delay_seconds, 0.0), self._fire, callback)
        logger.debug("Expiration timer scheduled", delay_seconds=round(delay_seconds, 3))
        return True

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self, callback: Callable[[], None]) -> None:
        self._handle = None
        try:
            callback()
        except Exception as e:
            # Runs outside any request; nobody else would see the failure
            logger.error("Expiration callback failed", error=str(e))
