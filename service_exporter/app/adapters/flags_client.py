"""
Client for the remote feature flag management API.
"""

import asyncio
from typing import Any, List, Optional

import httpx
from pydantic import TypeAdapter, ValidationError

from shared.errors import FetchError
from shared.logging import get_logger

from .. import __version__
from ..domain.models import Config, Environment, FeatureFlag, StaleFlagReport

USER_AGENT = f"feature-flag-exporter/{__version__}"

_CONFIGS = TypeAdapter(List[Config])
_ENVIRONMENTS = TypeAdapter(List[Environment])
_FEATURE_FLAGS = TypeAdapter(List[FeatureFlag])
_STALE_FLAGS = TypeAdapter(StaleFlagReport)


class FeatureFlagsClient:
    """Read-only client for the feature flag API.

    Every call is one GET with no retries and no pagination. Anything that
    keeps a call from producing a well-formed result is raised as
    ``FetchError``; deciding what a failure means is left to the caller.
    Task cancellation is not intercepted and aborts the request.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.logger = get_logger("exporter.flags_client")
        self._transport = transport
        self._headers = {
            "Authorization": f"Basic {api_key}",
            "Content-Type": "application/json",
            "User-Agent": USER_AGENT,
        }

    async def get_configs(self, product_id: str) -> List[Config]:
        """Retrieve all configs for a product."""
        configs = await self._fetch(f"/v1/products/{product_id}/configs", _CONFIGS)
        self.logger.debug("Retrieved configs", product_id=product_id, count=len(configs))
        return configs

    async def get_environments(self, product_id: str) -> List[Environment]:
        """Retrieve all environments for a product."""
        environments = await self._fetch(f"/v1/products/{product_id}/environments", _ENVIRONMENTS)
        self.logger.debug("Retrieved environments", product_id=product_id, count=len(environments))
        return environments

    async def get_feature_flags(self, config_id: str) -> List[FeatureFlag]:
        """Retrieve all feature flags for a config."""
        flags = await self._fetch(f"/v1/configs/{config_id}/settings", _FEATURE_FLAGS)
        self.logger.debug("Retrieved feature flags", config_id=config_id, count=len(flags))
        return flags

    async def get_stale_flags(self, product_id: str) -> StaleFlagReport:
        """Retrieve the stale flag report for a product."""
        report = await self._fetch(f"/v1/products/{product_id}/staleflags", _STALE_FLAGS)
        self.logger.debug(
            "Retrieved stale flags",
            product_id=product_id,
            configs=len(report.configs),
            count=report.stale_count
        )
        return report

    async def _fetch(self, endpoint: str, adapter: TypeAdapter) -> Any:
        """Run one request bounded by the overall timeout and parse the body."""
        try:
            payload = await asyncio.wait_for(self._get_json(endpoint), timeout=self.timeout)
        except asyncio.TimeoutError:
            raise FetchError(endpoint, f"request timed out after {self.timeout}s")
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise FetchError(endpoint, f"making request: {e}")

        try:
            return adapter.validate_python(payload)
        except ValidationError as e:
            raise FetchError(
                endpoint,
                "unexpected response body",
                status_code=200,
                details={"validation_errors": e.error_count()}
            )

    async def _get_json(self, endpoint: str) -> Any:
        async with httpx.AsyncClient(
            timeout=self.timeout,
            headers=self._headers,
            transport=self._transport
        ) as client:
            response = await client.get(f"{self.base_url}{endpoint}")

        if response.status_code != 200:
            raise FetchError(endpoint, "unexpected status", status_code=response.status_code)

        try:
            return response.json()
        except ValueError as e:
            raise FetchError(endpoint, f"decoding response: {e}", status_code=response.status_code)
