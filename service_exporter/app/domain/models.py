"""
Domain models for the remote feature flag API.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from shared.config import ExporterConfig


class ApiModel(BaseModel):
    """Base for API payloads: camelCase on the wire, unknown fields ignored."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)


class Config(ApiModel):
    """A config (settings file) inside a product."""
    config_id: str = Field(..., alias="configId")
    name: str = ""


class Environment(ApiModel):
    """An environment of a product."""
    environment_id: str = Field(..., alias="environmentId")
    name: str = ""


class FeatureFlag(ApiModel):
    """A feature flag (setting) of a config."""
    setting_id: int = Field(..., alias="settingId")
    key: str = ""
    name: str = ""
    hint: Optional[str] = None


class SettingTag(ApiModel):
    tag_id: int = Field(..., alias="tagId")
    setting_tag_id: Optional[int] = Field(None, alias="settingTagId")


class StaleSettingValue(ApiModel):
    """Per-environment state of a stale setting."""
    environment_id: str = Field(..., alias="environmentId")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt")
    is_stale: bool = Field(False, alias="isStale")


class StaleSetting(ApiModel):
    setting_id: int = Field(..., alias="settingId")
    name: str = ""
    key: str = ""
    hint: Optional[str] = None
    has_code_references: bool = Field(False, alias="hasCodeReferences")
    tags: List[SettingTag] = Field(default_factory=list)
    setting_values: List[StaleSettingValue] = Field(default_factory=list, alias="settingValues")


class StaleConfigGroup(ApiModel):
    """Stale settings of one config."""
    config_id: str = Field(..., alias="configId")
    name: str = ""
    evaluation_version: Optional[str] = Field(None, alias="evaluationVersion")
    has_code_references: bool = Field(False, alias="hasCodeReferences")
    settings: List[StaleSetting] = Field(default_factory=list)


class StaleFlagReport(ApiModel):
    """Stale ("zombie") flag report of a product, grouped by config."""
    product_id: str = Field("", alias="productId")
    name: str = ""
    configs: List[StaleConfigGroup] = Field(default_factory=list)
    environments: List[Environment] = Field(default_factory=list)

    @property
    def stale_count(self) -> int:
        """Total number of stale settings across all configs."""
        return sum(len(group.settings) for group in self.configs)


class ScrapeTarget(BaseModel):
    """What to scrape and how to reach it. Fixed for the process lifetime."""

    model_config = ConfigDict(frozen=True)

    organization_id: str
    product_id: str
    product_name: str
    api_url: str
    api_key: str = Field(..., repr=False)

    @classmethod
    def from_config(cls, config: ExporterConfig) -> "ScrapeTarget":
        return cls(
            organization_id=config.organization_id,
            product_id=config.product_id,
            product_name=config.resolved_product_name,
            api_url=config.api_url,
            api_key=config.api_key,
        )

    @property
    def product_labels(self) -> dict:
        return {"product_id": self.product_id, "product_name": self.product_name}

    def config_labels(self, config_id: str, config_name: str) -> dict:
        return {
            **self.product_labels,
            "config_id": config_id,
            "config_name": config_name,
        }
