"""
Base service class for the feature flag exporter.
"""

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST
from typing import Callable, Dict
import asyncio
import time

import uvicorn

from shared.config import ExporterConfig
from shared.logging import configure_logging, get_logger
from shared.errors import ExporterError

# uvicorn has no "warn" level
_UVICORN_LOG_LEVELS = {"warn": "warning"}


class BaseService:
    """Base service class with common functionality."""

    def __init__(
        self,
        service_name: str,
        config: ExporterConfig,
        render_metrics: Callable[[], bytes],
        version: str
    ):
        self.service_name = service_name
        self.config = config
        self.port = config.port
        self.version = version
        self._render_metrics = render_metrics
        self._start_time = time.time()

        # Configure logging
        configure_logging(service_name, config.log_level, config.log_format)
        self.logger = get_logger(service_name)

        # Create FastAPI app
        self.app = self._create_app()

        # Set up middleware
        self._setup_middleware()

        # Set up routes
        self._setup_routes()

    def _create_app(self) -> FastAPI:
        """Create FastAPI application."""
        return FastAPI(
            title=f"{self.service_name.title()} Service",
            description="Feature flag API metrics exporter",
            version=self.version,
            docs_url=None,
            redoc_url=None,
        )

    def _setup_middleware(self):
        """Set up middleware."""

        # Request timing middleware
        @self.app.middleware("http")
        async def add_request_timing(request: Request, call_next):
            start_time = time.time()

            response = await call_next(request)

            duration = time.time() - start_time
            self.logger.debug(
                "HTTP request",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=round(duration * 1000, 2)
            )

            return response

    def _setup_routes(self):
        """Set up common routes."""

        @self.app.get("/health")
        async def health_check():
            """Health check endpoint."""
            return {
                "service": self.service_name,
                "status": "ok",
                "uptime_seconds": self._get_uptime(),
                "dependencies": await self._check_dependencies(),
                "version": self.version,
            }

        @self.app.get("/metrics")
        async def metrics_endpoint():
            """Prometheus metrics endpoint."""
            return Response(
                content=self._render_metrics(),
                media_type=CONTENT_TYPE_LATEST
            )

        # Error handlers
        @self.app.exception_handler(ExporterError)
        async def exporter_exception_handler(request: Request, exc: ExporterError):
            """Handle ExporterError."""
            self.logger.error(
                "Exporter error",
                code=exc.code,
                message=exc.message,
                details=exc.details
            )
            return JSONResponse(
                status_code=400,
                content=exc.to_response().model_dump()
            )

        @self.app.exception_handler(Exception)
        async def general_exception_handler(request: Request, exc: Exception):
            """Handle general exceptions."""
            self.logger.error("Unhandled exception", error=str(exc), exc_info=True)
            return JSONResponse(
                status_code=500,
                content={
                    "code": "INTERNAL_ERROR",
                    "message": "Internal server error",
                    "details": {}
                }
            )

    async def _check_dependencies(self) -> Dict[str, str]:
        """Check service dependencies. Override in subclasses."""
        return {}

    def _get_uptime(self) -> float:
        """Get service uptime in seconds."""
        return time.time() - self._start_time

    def _server_config(self) -> uvicorn.Config:
        """uvicorn settings shared by all services."""
        return uvicorn.Config(
            self.app,
            host=self.config.host,
            port=self.config.port,
            log_level=_UVICORN_LOG_LEVELS.get(self.config.log_level, self.config.log_level),
            timeout_graceful_shutdown=5,
        )

    async def serve(self):
        """Serve HTTP until uvicorn exits. Override to run background work."""
        await uvicorn.Server(self._server_config()).serve()

    def run(self):
        """Run the service."""
        asyncio.run(self.serve())
