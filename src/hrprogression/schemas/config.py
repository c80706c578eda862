"""Pydantic configuration schema for YAML input."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .catalog import DomainDefinition


class ScoringConfig(BaseModel):
    pass_threshold: float = Field(default=60.0, ge=0, le=100)
    criterion_floor: int = Field(default=5, ge=0, le=10)


class RetryConfig(BaseModel):
    freezing_period_days: float = Field(default=1.0, ge=0, le=36500)
    env_var: str = "FREEZING_PERIOD_DAYS"


class OracleConfig(BaseModel):
    provider: Literal["http", "openai"] | None = None
    endpoint: str | None = None
    api_key: str | None = None
    model: str = "gpt-3.5-turbo"
    timeout: float = Field(default=10.0, gt=0)
    temperature: float = 0.2


class StoreConfig(BaseModel):
    path: str | None = None


class CatalogConfig(BaseModel):
    domains: list[DomainDefinition] = Field(default_factory=list)


class AppConfig(BaseModel):
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    oracle: OracleConfig = Field(default_factory=OracleConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    catalog: CatalogConfig = Field(default_factory=CatalogConfig)

    model_config = ConfigDict(extra="forbid")

    def to_settings(self) -> dict[str, Any]:
        settings: dict[str, Any] = {
            "scoring": self.scoring.model_dump(),
            "retry": self.retry.model_dump(),
        }
        oracle = self.oracle.model_dump(exclude_none=True)
        if self.oracle.provider:
            settings["oracle"] = oracle
        if self.store.path:
            settings["store"] = self.store.model_dump(exclude_none=True)
        if self.catalog.domains:
            settings["catalog"] = self.catalog.model_dump(mode="json")
        return settings


def load_config(raw: Any) -> AppConfig:
    if not isinstance(raw, dict):
        raise ValidationError.from_exception_data(
            "AppConfig",
            [{"type": "dict_type", "loc": ("config",), "input": raw}],
        )
    return AppConfig.model_validate(raw)
