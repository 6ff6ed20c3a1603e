"""
HTTP server with scrape-aware shutdown.
"""

import asyncio
import signal
from typing import Optional

import uvicorn

from shared.logging import get_logger

from .scrape.scheduler import ScrapeScheduler


class ExporterServer(uvicorn.Server):
    """uvicorn server that stops the scrape scheduler before it stops serving.

    On the first SIGINT/SIGTERM the scheduler is stopped (an in-flight cycle
    completes and commits), then uvicorn begins its graceful shutdown bounded
    by ``timeout_graceful_shutdown``. A second signal forces exit.
    """

    def __init__(self, config: uvicorn.Config, scheduler: ScrapeScheduler):
        super().__init__(config)
        self.scheduler = scheduler
        self.logger = get_logger("exporter.server")
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._shutdown_task: Optional[asyncio.Task] = None

    async def serve(self, sockets=None):
        self._loop = asyncio.get_running_loop()
        await super().serve(sockets=sockets)

    def handle_exit(self, sig: int, frame) -> None:
        if self._shutdown_task is not None or self._loop is None:
            self.force_exit = True
            self.should_exit = True
            return
        self._loop.call_soon_threadsafe(self._begin_shutdown, sig)

    def _begin_shutdown(self, sig: int):
        if self._shutdown_task is not None:
            return
        self.logger.info("Shutdown signal received", signal=signal.Signals(sig).name)
        self._shutdown_task = asyncio.ensure_future(self._drain())

    async def _drain(self):
        try:
            await self.scheduler.stop()
        finally:
            self.logger.info(
                "Scraping stopped, shutting down HTTP server",
                grace_period_seconds=self.config.timeout_graceful_shutdown
            )
            self.should_exit = True
