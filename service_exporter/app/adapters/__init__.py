from .flags_client import FeatureFlagsClient

__all__ = ["FeatureFlagsClient"]
