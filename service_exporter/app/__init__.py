"""
Feature flag exporter application.

Polls the remote feature flag API on a fixed interval and republishes
aggregate counts (products, configs, environments, feature flags, stale
flags) through the Prometheus `/metrics` endpoint.
"""

__version__ = "1.0.0"
