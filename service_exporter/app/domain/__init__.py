from .models import (
    Config,
    Environment,
    FeatureFlag,
    ScrapeTarget,
    SettingTag,
    StaleConfigGroup,
    StaleFlagReport,
    StaleSetting,
    StaleSettingValue,
)

__all__ = [
    "Config",
    "Environment",
    "FeatureFlag",
    "ScrapeTarget",
    "SettingTag",
    "StaleConfigGroup",
    "StaleFlagReport",
    "StaleSetting",
    "StaleSettingValue",
]
