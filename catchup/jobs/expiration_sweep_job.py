"""
Expiration Sweep Job - safety net for session expiry.

The store arms a precise timer for ``expires_at`` and also checks expiry on
every read. This coarse sweep (hourly by default) covers timer drift and
process suspension, where neither of those may have run.

Usage:
    # In the FastAPI lifespan
    task = asyncio.create_task(start_expiration_sweep_scheduler(store))
    ...
    task.cancel()
"""

import asyncio
from datetime import UTC, datetime

from catchup.infrastructure.observability.logging import get_logger
from catchup.services.session_store import SessionStore

logger = get_logger(__name__)

DEFAULT_SWEEP_INTERVAL_SECONDS = 60 * 60
RETRY_DELAY_SECONDS = 60


class ExpirationSweepJob:
    """Discards the live session once its 24h window has passed."""

    def __init__(self, store: SessionStore):
        self.store = store
        self.is_running = False
        self.runs = 0

    async def run_sweep(self) -> dict:
        """
        Run one sweep.

        Returns:
            dict: {"success": bool, "expired": bool, "duration_seconds": float}
        """
        if self.is_running:
            logger.warning("Expiration sweep already running, skipping")
            return {"success": False, "error": "Already running"}

        self.is_running = True
        start_time = datetime.now(UTC)
        result = {"success": True, "expired": False}

        try:
            result["expired"] = self.store.expire_session()
        except Exception as e:
            logger.error("Unexpected error in expiration sweep", error=str(e))
            result["success"] = False
            result["error"] = str(e)
        finally:
            self.is_running = False
            self.runs += 1

        result["duration_seconds"] = (datetime.now(UTC) - start_time).total_seconds()
        if result["expired"]:
            logger.info("Expiration sweep discarded session", result=result)
        else:
            logger.debug("Expiration sweep completed", result=result)
        return result


async def start_expiration_sweep_scheduler(
    store: SessionStore, interval_seconds: float = DEFAULT_SWEEP_INTERVAL_SECONDS
) -> None:
    """Loop forever, sweeping every ``interval_seconds``, until cancelled."""
    sweep_job = ExpirationSweepJob(store)

    logger.info("Expiration sweep scheduler STARTED", interval_seconds=interval_seconds)

    while True:
        try:
            await asyncio.sleep(interval_seconds)
            await sweep_job.run_sweep()

        except asyncio.CancelledError:
            logger.info("Expiration sweep scheduler cancelled")
            break
        except Exception as e:
            logger.error("Error in expiration sweep scheduler, will retry", error=str(e))
            await asyncio.sleep(RETRY_DELAY_SECONDS)
