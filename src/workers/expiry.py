"""
Background Expiry Sweeper
=========================

Runs every ``expiry_interval_seconds`` (default 3600 s, i.e. hourly).

Concurrency safety
------------------
* **Redis distributed lock** ensures only one process runs a sweep at a
  time across multiple API workers.
* The sweep itself is idempotent: overdue permits are re-checked under
  a row lock, so a run that overlaps a still-settling one never expires
  the same permit twice.

Each cycle
----------
1. ``PermitEngine.expire_permits`` -- active permits past ``expires_at``
   become ``expired`` and their orders are disabled.
2. ``PermitEngine.reconcile_order_routing`` -- retry gateway calls that
   failed during earlier activations / expiries.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import redis.asyncio as aioredis

from src.infrastructure.locks import DistributedLock
from src.services.permit_engine import PermitEngine, SweepReport

logger = logging.getLogger(__name__)


class ExpirySweeper:
    def __init__(
        self,
        engine: PermitEngine,
        redis: aioredis.Redis,
        interval_seconds: int = 3600,
        lock_ttl_seconds: int = 300,
    ):
        self.engine = engine
        self.redis = redis
        self.interval = interval_seconds
        self.lock_ttl = lock_ttl_seconds
        self._task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None

    # ── Public API ────────────────────────────────────────────────────

    async def start(self) -> None:
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._loop())
        logger.info("Expiry sweeper started (interval=%ds)", self.interval)

    async def stop(self) -> None:
        if self._stop_event:
            self._stop_event.set()
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        logger.info("Expiry sweeper stopped")

    async def run_cycle(self) -> Optional[SweepReport]:
        """Run one sweep.  Returns None when another worker holds the lock."""
        lock = DistributedLock(self.redis, "expiry_sweep", ttl_seconds=self.lock_ttl)
        if not await lock.acquire():
            logger.debug("Lock held by another worker - skipping sweep")
            return None

        try:
            report = await self.engine.expire_permits()
            if report.upstream_failures:
                logger.warning(
                    "Could not disable orders for permits %s; will retry",
                    report.upstream_failures,
                )
            await self.engine.reconcile_order_routing()
            return report
        finally:
            await lock.release()

    # ── Internals ─────────────────────────────────────────────────────

    async def _loop(self) -> None:
        """Periodic loop: run a sweep then sleep."""
        assert self._stop_event is not None
        while not self._stop_event.is_set():
            try:
                await self.run_cycle()
            except Exception:
                logger.exception("Unhandled error in expiry sweep")
            # Wait for the interval or until stop is signalled
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval)
                break
            except asyncio.TimeoutError:
                pass  # next cycle
