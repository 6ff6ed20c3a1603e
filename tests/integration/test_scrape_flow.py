"""
Integration tests for the scrape flow: API client, orchestrator, store and
the `/metrics` endpoint wired together over a mocked remote API.
"""

import asyncio

import httpx
import pytest
from fastapi.testclient import TestClient
from prometheus_client.parser import text_string_to_metric_families

from service_exporter.app.adapters.flags_client import FeatureFlagsClient
from service_exporter.app.exporters.prometheus import MetricStore
from service_exporter.app.main import ExporterService
from service_exporter.app.scrape.orchestrator import CycleOutcome
from shared.config import ExporterConfig


def parse_samples(text):
    """Map (sample name, sorted labels) to value."""
    samples = {}
    for family in text_string_to_metric_families(text):
        for sample in family.samples:
            samples[(sample.name, tuple(sorted(sample.labels.items())))] = sample.value
    return samples


def key(name, **labels):
    return (name, tuple(sorted(labels.items())))


class FakeFlagsApi:
    """In-process stand-in for the remote feature flag API."""

    def __init__(self):
        self.requests = []
        self.failing_paths = set()
        self.routes = {
            "/v1/products/p1/configs": [
                {"configId": "c1", "name": "Config1"},
                {"configId": "c2", "name": "Config2"},
            ],
            "/v1/products/p1/environments": [
                {"environmentId": "e1", "name": "Env1"},
            ],
            "/v1/configs/c1/settings": [
                {"settingId": 1, "key": "a", "name": "A"},
                {"settingId": 2, "key": "b", "name": "B"},
                {"settingId": 3, "key": "c", "name": "C"},
            ],
            "/v1/configs/c2/settings": [
                {"settingId": 4, "key": "d", "name": "D"},
            ],
            "/v1/products/p1/staleflags": {
                "productId": "p1",
                "name": "Main",
                "configs": [
                    {
                        "configId": "c1",
                        "name": "Config1",
                        "settings": [
                            {"settingId": 1, "key": "a", "settingValues": [
                                {"environmentId": "e1", "updatedAt": "2023-05-01T00:00:00Z", "isStale": True}
                            ]},
                            {"settingId": 2, "key": "b"},
                        ]
                    }
                ],
                "environments": [{"environmentId": "e1", "name": "Env1"}]
            },
        }

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.headers.get("Authorization") != "Basic secret-key":
            return httpx.Response(401)
        if request.url.path in self.failing_paths:
            return httpx.Response(500, json={"error": "internal"})
        if request.url.path not in self.routes:
            return httpx.Response(404)
        return httpx.Response(200, json=self.routes[request.url.path])


class TestScrapeFlow:
    """End-to-end scrape and exposition."""

    @pytest.fixture
    def api(self):
        return FakeFlagsApi()

    @pytest.fixture
    def service(self, api):
        config = ExporterConfig(
            api_key="secret-key",
            organization_id="org-1",
            product_id="p1",
            api_url="https://api.example.com/"
        )
        client = FeatureFlagsClient(
            config.api_key,
            config.api_url,
            transport=httpx.MockTransport(api)
        )
        return ExporterService(config, client=client, store=MetricStore())

    def test_full_cycle_is_exposed(self, service, api):
        """Test one cycle ends up on /metrics."""
        result = asyncio.run(service.orchestrator.run_cycle())
        assert result.outcome == CycleOutcome.SUCCESS

        response = TestClient(service.app).get("/metrics")
        samples = parse_samples(response.text)

        product = {"product_id": "p1", "product_name": "product-p1"}
        c1 = {**product, "config_id": "c1", "config_name": "Config1"}
        c2 = {**product, "config_id": "c2", "config_name": "Config2"}

        assert samples[key("featureflag_products_total")] == 1
        assert samples[key("featureflag_configs_total", **product)] == 2
        assert samples[key("featureflag_environments_total", **product)] == 1
        assert samples[key("featureflag_feature_flags_total", **c1)] == 3
        assert samples[key("featureflag_feature_flags_total", **c2)] == 1
        assert samples[key("featureflag_zombie_flags_total", **c1)] == 2
        assert samples[key("featureflag_scrape_errors_total")] == 0
        assert samples[key("featureflag_scrape_duration_seconds_count")] == 1
        assert samples[key("featureflag_last_scrape_timestamp")] > 0

        assert [r.url.path for r in api.requests] == [
            "/v1/products/p1/configs",
            "/v1/products/p1/environments",
            "/v1/products/p1/staleflags",
            "/v1/configs/c1/settings",
            "/v1/configs/c2/settings",
        ]

    def test_outage_then_recovery(self, service, api):
        """Test an aborted cycle keeps old values and the next cycle recovers."""
        asyncio.run(service.orchestrator.run_cycle())

        api.failing_paths.add("/v1/products/p1/environments")
        api.routes["/v1/products/p1/configs"] = api.routes["/v1/products/p1/configs"][:1]
        result = asyncio.run(service.orchestrator.run_cycle())

        assert result.outcome == CycleOutcome.ENVIRONMENTS_FAILED
        assert service.store.get_value("configs_total", {"product_id": "p1", "product_name": "product-p1"}) == 2
        assert service.store.get_value("scrape_errors_total") == 1

        api.failing_paths.clear()
        result = asyncio.run(service.orchestrator.run_cycle())

        assert result.outcome == CycleOutcome.SUCCESS
        assert service.store.get_value("configs_total", {"product_id": "p1", "product_name": "product-p1"}) == 1
        assert service.store.get_value("scrape_errors_total") == 1

    def test_isolated_feature_flag_failure(self, service, api):
        """Test one config failing still publishes the other."""
        api.failing_paths.add("/v1/configs/c1/settings")

        result = asyncio.run(service.orchestrator.run_cycle())

        assert result.outcome == CycleOutcome.PARTIAL
        samples = parse_samples(TestClient(service.app).get("/metrics").text)
        c2 = {"product_id": "p1", "product_name": "product-p1", "config_id": "c2", "config_name": "Config2"}
        assert samples[key("featureflag_feature_flags_total", **c2)] == 1
        assert samples[key("featureflag_scrape_errors_total")] == 1

    @pytest.mark.asyncio
    async def test_scheduler_shutdown_commits_in_flight_cycle(self, service, api):
        """Test stopping mid-cycle lets the cycle commit and starts no other."""
        entered = asyncio.Event()
        release = asyncio.Event()

        async def slow_api(request: httpx.Request):
            if request.url.path == "/v1/configs/c2/settings":
                entered.set()
                await release.wait()
            return api(request)

        service.client._transport = httpx.MockTransport(slow_api)

        service.scheduler.start()
        await entered.wait()
        stopping = asyncio.create_task(service.scheduler.stop())
        await asyncio.sleep(0.01)
        release.set()
        await stopping

        assert service.scheduler.cycles_run == 1
        assert service.store.get_value("products_total") == 1
        assert service.store.get_value(
            "feature_flags_total",
            {"product_id": "p1", "product_name": "product-p1", "config_id": "c2", "config_name": "Config2"}
        ) == 1
