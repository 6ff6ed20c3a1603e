"""
Periodic scrape scheduler.
"""

import asyncio
import math
import time
from typing import Callable, Optional

from shared.logging import get_logger

from .orchestrator import CycleOutcome, CycleResult, ScrapeOrchestrator


class ScrapeScheduler:
    """Drives the orchestrator from one background task.

    The first cycle runs as soon as the task starts. Later cycles start on a
    monotonic grid ``start + k * interval``; boundaries that pass while a
    cycle is still running are skipped rather than queued. ``stop()`` lets an
    in-flight cycle finish and commit before the task exits.
    """

    def __init__(
        self,
        orchestrator: ScrapeOrchestrator,
        interval_seconds: float = 60,
        clock: Callable[[], float] = time.monotonic
    ):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be greater than zero")
        self.orchestrator = orchestrator
        self.interval = interval_seconds
        self.logger = get_logger("exporter.scheduler")
        self._clock = clock
        self._stop_event = asyncio.Event()
        self._task: Optional[asyncio.Task] = None
        self.cycles_run = 0
        self.ticks_skipped = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task:
        """Start the background scraping task."""
        if self.running:
            return self._task
        self._stop_event.clear()
        self._task = asyncio.create_task(self.run(), name="scrape-scheduler")
        return self._task

    async def stop(self):
        """Stop scheduling and wait for an in-flight cycle to finish."""
        self._stop_event.set()
        if self._task is None:
            return
        task, self._task = self._task, None
        await task

    async def run_once(self) -> CycleResult:
        """Run a single cycle outside the periodic loop."""
        return await self.orchestrator.run_cycle()

    async def run(self):
        """Scrape immediately, then once per interval until stopped."""
        self.logger.info("Starting metrics scraper", interval_seconds=self.interval)
        origin = self._clock()
        tick = 0

        while not self._stop_event.is_set():
            await self._run_cycle()
            if self._stop_event.is_set():
                break

            tick = self._next_tick(origin, tick)
            delay = max(0.0, origin + tick * self.interval - self._clock())
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
            except asyncio.TimeoutError:
                continue

        self.logger.info("Scraping stopped", cycles_run=self.cycles_run)

    async def _run_cycle(self):
        try:
            result = await self.orchestrator.run_cycle()
        except Exception as e:
            self.logger.error("Scrape cycle raised", error=str(e), exc_info=True)
            return
        if result.outcome == CycleOutcome.SKIPPED:
            return
        self.cycles_run += 1
        self.logger.debug("Scrape cycle finished", outcome=result.outcome.value)

    def _next_tick(self, origin: float, tick: int) -> int:
        """Index of the next grid boundary that is still in the future."""
        elapsed = self._clock() - origin
        upcoming = max(tick + 1, math.ceil(elapsed / self.interval))
        skipped = upcoming - tick - 1
        if skipped:
            self.ticks_skipped += skipped
            self.logger.warning(
                "Scrape overran interval, skipping ticks",
                skipped=skipped,
                interval_seconds=self.interval
            )
        return upcoming
