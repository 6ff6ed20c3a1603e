from .prometheus import MetricBatch, MetricStore

__all__ = ["MetricBatch", "MetricStore"]
