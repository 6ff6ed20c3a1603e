from .orchestrator import CycleOutcome, CycleResult, ScrapeOrchestrator, StaleCountMode
from .scheduler import ScrapeScheduler

__all__ = [
    "CycleOutcome",
    "CycleResult",
    "ScrapeOrchestrator",
    "ScrapeScheduler",
    "StaleCountMode",
]
