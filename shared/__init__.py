"""
Shared utilities for the feature flag exporter.

- config: Exporter configuration via pydantic-settings
- logging: Structured logging with scrape cycle correlation
- errors: Canonical error types and responses
- base_service: FastAPI application skeleton served by uvicorn

Do not import from service packages into shared/.
"""
