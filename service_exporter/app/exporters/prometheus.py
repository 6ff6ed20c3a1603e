"""
Prometheus metric store for the feature flag exporter.
"""

import threading
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional, Tuple

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, generate_latest

from shared.logging import get_logger

PRODUCTS_TOTAL = "products_total"
CONFIGS_TOTAL = "configs_total"
ENVIRONMENTS_TOTAL = "environments_total"
FEATURE_FLAGS_TOTAL = "feature_flags_total"
ZOMBIE_FLAGS_TOTAL = "zombie_flags_total"
LAST_SCRAPE_TIMESTAMP = "last_scrape_timestamp"
SCRAPE_DURATION_SECONDS = "scrape_duration_seconds"
SCRAPE_ERRORS_TOTAL = "scrape_errors_total"

PRODUCT_LABELS = ["product_id", "product_name"]
CONFIG_LABELS = ["config_id", "config_name"]


class MetricStore:
    """Current-value store behind the `/metrics` endpoint.

    Every metric lives on a registry owned by the store, so two stores never
    share state. Writes, batch commits and renders all take the same lock:
    a render sees either all of a committed batch or none of it.
    """

    def __init__(self, namespace: str = "featureflag", registry: Optional[CollectorRegistry] = None):
        self.namespace = namespace
        self.registry = registry if registry is not None else CollectorRegistry()
        self.logger = get_logger("exporter.store")
        self._lock = threading.RLock()
        self._scalars: Dict[str, Gauge] = {}
        self._labeled: Dict[str, Gauge] = {}
        self._counters: Dict[str, Counter] = {}
        self._histograms: Dict[str, Histogram] = {}
        self._setup_metrics()

    def _setup_metrics(self):
        """Register the exporter's metrics."""
        self._scalars[PRODUCTS_TOTAL] = Gauge(
            PRODUCTS_TOTAL,
            "Total number of products",
            namespace=self.namespace,
            registry=self.registry
        )
        self._scalars[LAST_SCRAPE_TIMESTAMP] = Gauge(
            LAST_SCRAPE_TIMESTAMP,
            "Unix timestamp of the last completed scrape",
            namespace=self.namespace,
            registry=self.registry
        )

        self._labeled[CONFIGS_TOTAL] = Gauge(
            CONFIGS_TOTAL,
            "Total number of configs per product",
            PRODUCT_LABELS,
            namespace=self.namespace,
            registry=self.registry
        )
        self._labeled[ENVIRONMENTS_TOTAL] = Gauge(
            ENVIRONMENTS_TOTAL,
            "Total number of environments per product",
            PRODUCT_LABELS,
            namespace=self.namespace,
            registry=self.registry
        )
        self._labeled[FEATURE_FLAGS_TOTAL] = Gauge(
            FEATURE_FLAGS_TOTAL,
            "Total number of feature flags per config",
            PRODUCT_LABELS + CONFIG_LABELS,
            namespace=self.namespace,
            registry=self.registry
        )
        self._labeled[ZOMBIE_FLAGS_TOTAL] = Gauge(
            ZOMBIE_FLAGS_TOTAL,
            "Total number of stale (zombie) flags per config",
            PRODUCT_LABELS + CONFIG_LABELS,
            namespace=self.namespace,
            registry=self.registry
        )

        self._counters[SCRAPE_ERRORS_TOTAL] = Counter(
            SCRAPE_ERRORS_TOTAL,
            "Total number of remote API scrape errors",
            namespace=self.namespace,
            registry=self.registry
        )

        self._histograms[SCRAPE_DURATION_SECONDS] = Histogram(
            SCRAPE_DURATION_SECONDS,
            "Duration of scrape cycles in seconds",
            namespace=self.namespace,
            registry=self.registry
        )

    def set_scalar(self, name: str, value: float):
        """Set an unlabeled gauge."""
        with self._lock:
            self._scalars[name].set(value)

    def increment_counter(self, name: str, amount: float = 1):
        """Increment a counter. Counters only go up."""
        with self._lock:
            self._counters[name].inc(amount)

    def set_labeled(self, name: str, labels: Dict[str, str], value: float):
        """Set one series of a labeled gauge family."""
        with self._lock:
            self._labeled[name].labels(**labels).set(value)

    def observe(self, name: str, value: float):
        """Record an observation into a histogram."""
        with self._lock:
            self._histograms[name].observe(value)

    def reset_all(self):
        """Zero scalar gauges and drop every labeled series.

        Counters and histograms keep their values for the life of the process.
        """
        with self._lock:
            for gauge in self._scalars.values():
                gauge.set(0)
            for family in self._labeled.values():
                family.clear()
        self.logger.debug("Metric store reset")

    @contextmanager
    def batch(self) -> Iterator["MetricBatch"]:
        """Stage gauge writes and apply them in one step on exit.

        Nothing is applied if the block raises or calls ``discard()``.
        """
        pending = MetricBatch(self)
        yield pending
        if not pending.discarded:
            self.commit(pending)

    def commit(self, pending: "MetricBatch"):
        with self._lock:
            for name, labels, value in pending.operations:
                if labels is None:
                    self._scalars[name].set(value)
                else:
                    self._labeled[name].labels(**labels).set(value)

    def get_value(self, name: str, labels: Optional[Dict[str, str]] = None) -> Optional[float]:
        """Read a sample by its unprefixed name, e.g. ``configs_total``."""
        with self._lock:
            return self.registry.get_sample_value(f"{self.namespace}_{name}", labels or {})

    def render(self) -> bytes:
        """Serialize the registry in the Prometheus text format."""
        with self._lock:
            return generate_latest(self.registry)


class MetricBatch:
    """Gauge writes staged for an atomic commit into a MetricStore."""

    def __init__(self, store: MetricStore):
        self._store = store
        self.operations: List[Tuple[str, Optional[Dict[str, str]], float]] = []
        self.discarded = False

    def set_scalar(self, name: str, value: float):
        if name not in self._store._scalars:
            raise KeyError(name)
        self.operations.append((name, None, value))

    def set_labeled(self, name: str, labels: Dict[str, str], value: float):
        if name not in self._store._labeled:
            raise KeyError(name)
        self.operations.append((name, dict(labels), value))

    def discard(self):
        """Drop everything staged so far; nothing will be committed."""
        self.operations.clear()
        self.discarded = True

    def __len__(self) -> int:
        return len(self.operations)
