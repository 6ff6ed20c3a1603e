"""
Shared fixtures for exporter unit tests.
"""

import pytest

from service_exporter.app.domain.models import ScrapeTarget
from service_exporter.app.exporters.prometheus import MetricStore


@pytest.fixture
def target():
    """Scrape target for product p1."""
    return ScrapeTarget(
        organization_id="org-1",
        product_id="p1",
        product_name="product-p1",
        api_url="https://api.example.com",
        api_key="secret-key"
    )


@pytest.fixture
def store():
    """Fresh metric store on its own registry."""
    return MetricStore()
