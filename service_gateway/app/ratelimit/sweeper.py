"""
Background eviction of expired quota records.
"""

import asyncio
from typing import Optional

from shared.logging import get_logger

from .fixed_window import FixedWindowRateLimiter


class QuotaSweeper:
    """Periodically drops quota records whose window has already expired."""

    def __init__(self, rate_limiter: FixedWindowRateLimiter, interval_seconds: float = 300):
        self.rate_limiter = rate_limiter
        self.interval_seconds = interval_seconds
        self.logger = get_logger("gateway.quota_sweeper")
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def run_once(self) -> int:
        evicted = self.rate_limiter.sweep()
        if evicted:
            self.logger.info(
                "Swept expired quota records",
                evicted=evicted,
                tracked=len(self.rate_limiter.store),
            )
        return evicted

    async def _run(self):
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                self.run_once()
            except Exception as e:
                self.logger.error("Quota sweep failed", error=str(e), exc_info=True)

    async def start(self):
        if self.running:
            return
        self._task = asyncio.create_task(self._run())
        self.logger.info("Quota sweeper started", interval_seconds=self.interval_seconds)

    async def stop(self):
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        self.logger.info("Quota sweeper stopped")
