# FILE: driftpin/messages/expiry_job.py
"""
Periodic Expiry Sweep for Driftpin.

Runs on schedule to:
1. Delete messages whose lifetime has run out
2. Drop dangling geo-index entries (Redis backend)
3. Report how many live messages remain

Reads already hide expired messages, so the sweep only reclaims space.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from driftpin.messages import service
from driftpin.messages.backend import open_store
from driftpin.messages.store import MessageStore
from driftpin.settings import get_config

logger = logging.getLogger(__name__)


# =============================================================================
# SWEEP CONFIGURATION
# =============================================================================

class ExpiryJobConfig:
    """Configuration for the expiry sweep."""

    interval_minutes: float = 15.0
    max_purge_per_run: int = 1000

    # Wait before retrying after a failed run
    retry_delay_seconds: float = 300.0

    @classmethod
    def from_settings(cls) -> "ExpiryJobConfig":
        sweep = get_config().sweep
        config = cls()
        config.interval_minutes = sweep.interval_minutes
        config.max_purge_per_run = sweep.max_purge_per_run
        return config


DEFAULT_EXPIRY_CONFIG = ExpiryJobConfig()


# =============================================================================
# CORE SWEEP
# =============================================================================

def run_expiry_sweep(
    store: MessageStore,
    config: Optional[ExpiryJobConfig] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Run one expiry sweep against a store.

    Returns:
        Dict with sweep statistics
    """
    config = config or DEFAULT_EXPIRY_CONFIG
    start_time = datetime.now(timezone.utc)

    logger.info("[expiry_job] Starting expiry sweep")

    results: Dict[str, Any] = {
        "started_at": start_time.isoformat(),
        "backend": store.backend_name,
        "purged": 0,
        "remaining": None,
        "errors": [],
    }

    try:
        results["purged"] = service.purge_expired(store, now=now, limit=config.max_purge_per_run)
    except Exception as e:
        logger.error(f"[expiry_job] Purge failed: {e}")
        results["errors"].append(str(e))

    try:
        results["remaining"] = store.count()
    except Exception as e:
        logger.error(f"[expiry_job] Count failed: {e}")
        results["errors"].append(str(e))

    end_time = datetime.now(timezone.utc)
    results["completed_at"] = end_time.isoformat()
    results["duration_seconds"] = (end_time - start_time).total_seconds()

    logger.info(
        f"[expiry_job] Complete: purged={results['purged']}, "
        f"remaining={results['remaining']}, "
        f"duration={results['duration_seconds']:.2f}s"
    )

    return results


# =============================================================================
# SCHEDULED JOB WRAPPER
# =============================================================================

class ExpirySweepScheduler:
    """
    Runs the expiry sweep every `interval_minutes` on the event loop.

    The sweep itself is synchronous store I/O, so each run goes to a worker
    thread. `run_now()` is the single place results are recorded, whether the
    run came from the loop or from a caller.
    """

    def __init__(
        self,
        interval_minutes: Optional[float] = None,
        config: Optional[ExpiryJobConfig] = None,
    ):
        self.config = config or DEFAULT_EXPIRY_CONFIG
        self.interval_minutes = interval_minutes if interval_minutes is not None else self.config.interval_minutes
        self._task: Optional[asyncio.Task] = None
        self._runs = 0
        self._last_run: Optional[datetime] = None
        self._last_result: Optional[Dict[str, Any]] = None

    
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self):
        if self.running:
            logger.warning("[expiry_job] Scheduler already running")
            return
        self._task = asyncio.create_task(self._run_loop())
        logger.info(f"[expiry_job] Scheduler started (interval={self.interval_minutes}m)")

    async def stop(self):
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("[expiry_job] Scheduler stopped")

    async def _run_loop(self):
        while True:
            delay = self.interval_minutes * 60
            try:
                await asyncio.to_thread(self.run_now)
            except Exception as e:
                logger.error(f"[expiry_job] Sweep run failed: {e}")
                delay = self.config.retry_delay_seconds
            await asyncio.sleep(delay)

    def run_now(self) -> Dict[str, Any]:
        """Run one sweep against a fresh store and record it."""
        with open_store() as store:
            result = run_expiry_sweep(store, self.config)
        self._runs += 1
        self._last_run = datetime.now(timezone.utc)
        self._last_result = result
        return result

    def get_status(self) -> Dict[str, Any]:
        return {
            "running": self.running,
            "interval_minutes": self.interval_minutes,
            "runs": self._runs,
            "last_run": self._last_run.isoformat() if self._last_run else None,
            "last_result": self._last_result,
        }


# Global scheduler instance
_scheduler: Optional[ExpirySweepScheduler] = None


def get_scheduler() -> ExpirySweepScheduler:
    """Get or create the global scheduler."""
    global _scheduler
    if _scheduler is None:
        _scheduler = ExpirySweepScheduler(config=ExpiryJobConfig.from_settings())
    return _scheduler


def run_sweep_now() -> Dict[str, Any]:
    """Convenience function to run the sweep immediately."""
    return get_scheduler().run_now()


__all__ = [
    "ExpiryJobConfig",
    "DEFAULT_EXPIRY_CONFIG",
    "run_expiry_sweep",
    "ExpirySweepScheduler",
    "get_scheduler",
    "run_sweep_now",
]
