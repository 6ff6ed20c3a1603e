"""
Scrape cycle orchestration.

One cycle reads configs, environments and the stale flag report for the
configured product, then feature flags for every config, and folds the
results into the metric store as a single atomic batch.
"""

import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional

from shared.errors import FetchError
from shared.logging import clear_context, get_logger, set_cycle_id

from ..adapters.flags_client import FeatureFlagsClient
from ..domain.models import ScrapeTarget, StaleFlagReport
from ..exporters.prometheus import (
    CONFIGS_TOTAL,
    ENVIRONMENTS_TOTAL,
    FEATURE_FLAGS_TOTAL,
    LAST_SCRAPE_TIMESTAMP,
    PRODUCTS_TOTAL,
    SCRAPE_DURATION_SECONDS,
    SCRAPE_ERRORS_TOTAL,
    ZOMBIE_FLAGS_TOTAL,
    MetricBatch,
    MetricStore,
)


class CycleOutcome(str, Enum):
    """How a call to ``run_cycle`` ended."""
    SUCCESS = "success"
    PARTIAL = "partial"
    CONFIGS_FAILED = "configs_failed"
    ENVIRONMENTS_FAILED = "environments_failed"
    STALE_FLAGS_FAILED = "stale_flags_failed"
    SKIPPED = "skipped"

    @property
    def aborted(self) -> bool:
        return self in (
            CycleOutcome.CONFIGS_FAILED,
            CycleOutcome.ENVIRONMENTS_FAILED,
            CycleOutcome.STALE_FLAGS_FAILED,
        )


@dataclass
class CycleResult:
    """Summary of one scrape cycle."""
    outcome: CycleOutcome
    errors: int = 0
    duration_seconds: float = 0.0
    configs: int = 0
    environments: int = 0
    stale_flags: int = 0
    failed_configs: Optional[List[str]] = None


class StaleCountMode(str, Enum):
    PER_CONFIG = "per_config"
    CUMULATIVE = "cumulative"


class ScrapeOrchestrator:
    """Runs scrape cycles against one product, at most one at a time."""

    def __init__(
        self,
        client: FeatureFlagsClient,
        store: MetricStore,
        target: ScrapeTarget,
        stale_count_mode: str = StaleCountMode.PER_CONFIG.value,
        clock: Callable[[], float] = time.time
    ):
        self.client = client
        self.store = store
        self.target = target
        self.stale_count_mode = StaleCountMode(stale_count_mode)
        self.logger = get_logger("exporter.orchestrator")
        self._clock = clock
        self._lock = asyncio.Lock()

    @property
    def in_progress(self) -> bool:
        return self._lock.locked()

    async def run_cycle(self) -> CycleResult:
        """Run one scrape cycle, or skip if another one is still running.

        Fetch failures never escape: they are logged and counted in
        ``scrape_errors_total``.
        """
        if self._lock.locked():
            self.logger.warning("Scrape already in progress, skipping")
            return CycleResult(outcome=CycleOutcome.SKIPPED)

        async with self._lock:
            set_cycle_id()
            started = time.perf_counter()
            try:
                result = await self._scrape()
            finally:
                duration = time.perf_counter() - started
                self.store.observe(SCRAPE_DURATION_SECONDS, duration)
                clear_context()

        result.duration_seconds = duration
        return result

    async def _scrape(self) -> CycleResult:
        target = self.target
        self.logger.info("Starting metrics scrape", product_id=target.product_id)

        with self.store.batch() as pending:
            # Single product deployment
            pending.set_scalar(PRODUCTS_TOTAL, 1)

            try:
                configs = await self.client.get_configs(target.product_id)
            except FetchError as e:
                return self._abort(pending, CycleOutcome.CONFIGS_FAILED, "configs", e)

            try:
                environments = await self.client.get_environments(target.product_id)
            except FetchError as e:
                return self._abort(pending, CycleOutcome.ENVIRONMENTS_FAILED, "environments", e)

            try:
                report = await self.client.get_stale_flags(target.product_id)
            except FetchError as e:
                return self._abort(pending, CycleOutcome.STALE_FLAGS_FAILED, "stale flags", e)

            pending.set_labeled(CONFIGS_TOTAL, target.product_labels, len(configs))
            pending.set_labeled(ENVIRONMENTS_TOTAL, target.product_labels, len(environments))

            stale_counts = self.stale_counts(report)
            for group in report.configs:
                pending.set_labeled(
                    ZOMBIE_FLAGS_TOTAL,
                    target.config_labels(group.config_id, group.name),
                    stale_counts[group.config_id]
                )

            failed_configs = []
            for config in configs:
                try:
                    flags = await self.client.get_feature_flags(config.config_id)
                except FetchError as e:
                    self.logger.error(
                        "Failed to get feature flags for config",
                        config_id=config.config_id,
                        config_name=config.name,
                        error=str(e)
                    )
                    self.store.increment_counter(SCRAPE_ERRORS_TOTAL)
                    failed_configs.append(config.config_id)
                    continue

                pending.set_labeled(
                    FEATURE_FLAGS_TOTAL,
                    target.config_labels(config.config_id, config.name),
                    len(flags)
                )
                self.logger.debug(
                    "Collected feature flags",
                    config_id=config.config_id,
                    config_name=config.name,
                    feature_flags_count=len(flags)
                )

            pending.set_scalar(LAST_SCRAPE_TIMESTAMP, self._clock())

        outcome = CycleOutcome.PARTIAL if failed_configs else CycleOutcome.SUCCESS
        self.logger.info(
            "Metrics scrape completed",
            outcome=outcome.value,
            configs_count=len(configs),
            environments_count=len(environments),
            zombieflags_count=report.stale_count,
            failed_configs=len(failed_configs)
        )
        return CycleResult(
            outcome=outcome,
            errors=len(failed_configs),
            configs=len(configs),
            environments=len(environments),
            stale_flags=report.stale_count,
            failed_configs=failed_configs
        )

    def stale_counts(self, report: StaleFlagReport) -> Dict[str, int]:
        """Stale setting count per config id.

        In cumulative mode each config also carries the counts of every
        config listed before it, matching dashboards built on that series.
        """
        counts: Dict[str, int] = {}
        running = 0
        for group in report.configs:
            running += len(group.settings)
            if self.stale_count_mode is StaleCountMode.CUMULATIVE:
                counts[group.config_id] = running
            else:
                counts[group.config_id] = counts.get(group.config_id, 0) + len(group.settings)
        return counts

    def _abort(self, pending: MetricBatch, outcome: CycleOutcome, resource: str, error: FetchError) -> CycleResult:
        pending.discard()
        self.store.increment_counter(SCRAPE_ERRORS_TOTAL)
        self.logger.error(
            "Scrape aborted",
            resource=resource,
            endpoint=error.endpoint,
            status_code=error.status_code,
            error=str(error)
        )
        return CycleResult(outcome=outcome, errors=1)
