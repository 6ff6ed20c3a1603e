"""
Shared configuration management for the feature flag exporter.
"""

from typing import Optional

import httpx
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from shared.errors import ConfigurationError

DEFAULT_API_URL = "https://api.example.com"
DEFAULT_PORT = 8080
DEFAULT_SCRAPE_INTERVAL = 60
DEFAULT_REQUEST_TIMEOUT = 30.0
DEFAULT_LOG_LEVEL = "info"

STALE_COUNT_MODES = ("per_config", "cumulative")


class ExporterConfig(BaseSettings):
    """Exporter settings read from the environment (and an optional .env file)."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Remote API
    api_key: str = Field(default="", validation_alias="FEATURE_FLAGS_API_KEY")
    api_url: str = Field(default=DEFAULT_API_URL, validation_alias="FEATURE_FLAGS_API_URL")
    organization_id: str = Field(default="", validation_alias="FEATURE_FLAGS_ORGANIZATION_ID")
    product_id: str = Field(default="", validation_alias="FEATURE_FLAGS_PRODUCT_ID")
    product_name: Optional[str] = Field(default=None, validation_alias="FEATURE_FLAGS_PRODUCT_NAME")
    request_timeout: float = Field(default=DEFAULT_REQUEST_TIMEOUT, validation_alias="REQUEST_TIMEOUT")

    # Scraping
    scrape_interval: int = Field(default=DEFAULT_SCRAPE_INTERVAL, validation_alias="SCRAPE_INTERVAL")
    stale_count_mode: str = Field(default="per_config", validation_alias="STALE_COUNT_MODE")
    metrics_namespace: str = Field(default="featureflag", validation_alias="METRICS_NAMESPACE")

    # HTTP server
    host: str = Field(default="0.0.0.0", validation_alias="HOST")
    port: int = Field(default=DEFAULT_PORT, validation_alias="PORT")

    # Observability
    log_level: str = Field(default=DEFAULT_LOG_LEVEL, validation_alias="LOG_LEVEL")
    log_format: str = Field(default="json", validation_alias="LOG_FORMAT")

    @field_validator("api_url")
    @classmethod
    def _valid_api_url(cls, value: str) -> str:
        try:
            url = httpx.URL(value)
        except httpx.InvalidURL as e:
            raise ValueError(f"API URL is invalid: {e}")
        if url.scheme not in ("http", "https") or not url.host:
            raise ValueError("API URL must be an absolute http(s) address")
        return value

    @field_validator("scrape_interval")
    @classmethod
    def _positive_interval(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("scrape interval must be greater than zero")
        return value

    @field_validator("request_timeout")
    @classmethod
    def _positive_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("request timeout must be greater than zero")
        return value

    @field_validator("port")
    @classmethod
    def _valid_port(cls, value: int) -> int:
        if not 1 <= value <= 65535:
            raise ValueError("port must be between 1 and 65535")
        return value

    @field_validator("log_level", "log_format", "stale_count_mode")
    @classmethod
    def _lowercase(cls, value: str) -> str:
        return value.lower()

    @field_validator("stale_count_mode")
    @classmethod
    def _known_mode(cls, value: str) -> str:
        if value not in STALE_COUNT_MODES:
            raise ValueError(f"stale count mode must be one of {', '.join(STALE_COUNT_MODES)}")
        return value

    @field_validator("log_format")
    @classmethod
    def _known_format(cls, value: str) -> str:
        if value not in ("json", "console"):
            raise ValueError("log format must be 'json' or 'console'")
        return value

    @property
    def resolved_product_name(self) -> str:
        """Product label value; the API is not asked for the real name."""
        return self.product_name or f"product-{self.product_id}"

    def validate_required(self) -> "ExporterConfig":
        """Check that all required configuration is present."""
        if not self.api_key:
            raise ConfigurationError("API key is required", details={"field": "api_key"})
        if not self.organization_id:
            raise ConfigurationError("Organization ID is required", details={"field": "organization_id"})
        if not self.product_id:
            raise ConfigurationError("Product ID is required", details={"field": "product_id"})
        return self


def get_config(**overrides) -> ExporterConfig:
    """Build configuration from the environment, applying explicit overrides.

    Overrides are keyed by field name and passed under the field's
    environment alias so they replace, rather than sit beside, the value read
    from the environment.
    """
    fields = ExporterConfig.model_fields
    aliased = {
        (fields[name].validation_alias or name): value
        for name, value in overrides.items()
    }
    return ExporterConfig(**aliased)
