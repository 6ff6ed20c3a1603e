"""
Feature flag exporter service.
"""

from typing import Dict, Optional

from shared.base_service import BaseService
from shared.config import ExporterConfig

from . import __version__
from .adapters.flags_client import FeatureFlagsClient
from .domain.models import ScrapeTarget
from .exporters.prometheus import MetricStore
from .scrape.orchestrator import ScrapeOrchestrator
from .scrape.scheduler import ScrapeScheduler
from .server import ExporterServer


class ExporterService(BaseService):
    """Exporter service implementation."""

    def __init__(
        self,
        config: ExporterConfig,
        client: Optional[FeatureFlagsClient] = None,
        store: Optional[MetricStore] = None
    ):
        self.store = store or MetricStore(namespace=config.metrics_namespace)
        super().__init__("exporter", config, self.store.render, __version__)

        self.target = ScrapeTarget.from_config(config)
        self.client = client or FeatureFlagsClient(
            config.api_key,
            config.api_url,
            timeout=config.request_timeout
        )
        self.orchestrator = ScrapeOrchestrator(
            self.client,
            self.store,
            self.target,
            stale_count_mode=config.stale_count_mode
        )
        self.scheduler = ScrapeScheduler(self.orchestrator, config.scrape_interval)

        self._setup_exporter_routes()

    def _setup_exporter_routes(self):
        """Set up exporter-specific routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "exporter",
                "message": "Feature Flag Prometheus Exporter",
                "version": __version__,
                "endpoints": {
                    "metrics": "/metrics",
                    "health": "/health"
                }
            }

    async def _check_dependencies(self) -> Dict[str, str]:
        """Report the scrape scheduler state."""
        return {"scheduler": "ok" if self.scheduler.running else "stopped"}

    async def serve(self):
        """Scrape in the background while serving HTTP."""
        self.logger.info(
            "Starting feature flag exporter",
            port=self.config.port,
            scrape_interval=self.config.scrape_interval,
            log_level=self.config.log_level,
            organization_id=self.target.organization_id,
            product_id=self.target.product_id
        )

        server = ExporterServer(self._server_config(), self.scheduler)
        self.scheduler.start()
        try:
            await server.serve()
        finally:
            await self.scheduler.stop()

        self.logger.info("Exporter stopped")
