"""Configuration loading: YAML documents plus environment overrides."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Mapping

import yaml

from ..schemas.config import AppConfig, load_config

ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "HRPROGRESSION_STORE_PATH": ("store", "path"),
    "HRPROGRESSION_ORACLE_PROVIDER": ("oracle", "provider"),
    "HRPROGRESSION_ORACLE_ENDPOINT": ("oracle", "endpoint"),
    "HRPROGRESSION_ORACLE_MODEL": ("oracle", "model"),
    "OPENAI_API_KEY": ("oracle", "api_key"),
}


class ConfigManager:
    """YAML-backed configuration loader."""

    def __init__(self, base_path: str | Path):
        self._base_path = Path(base_path)

    def load(self, name: str) -> dict[str, Any]:
        """Load a YAML configuration by name without file extension."""
        return read_yaml(self._base_path / f"{name}.yaml")

    def load_app_config(self, name: str, *, environ: Mapping[str, str] | None = None) -> AppConfig:
        raw = apply_env_overrides(self.load(name), environ)
        return load_config(raw)


def read_yaml(path: str | Path) -> dict[str, Any]:
    with Path(path).open("r", encoding="utf-8") as handle:
        loaded = yaml.safe_load(handle)
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ValueError(f"Config file {path} must be a YAML mapping")
    return loaded


def apply_env_overrides(
    raw: dict[str, Any],
    environ: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """Return a copy of ``raw`` with set environment variables layered on top."""
    env = os.environ if environ is None else environ
    merged = {key: dict(value) if isinstance(value, dict) else value for key, value in raw.items()}
    for variable, (section, key) in ENV_OVERRIDES.items():
        value = env.get(variable)
        if not value:
            continue
        # API key alone must not switch an unconfigured oracle on
        if key == "api_key" and section not in merged:
            continue
        merged.setdefault(section, {})
        merged[section][key] = value
    return merged


__all__ = ["ConfigManager", "apply_env_overrides", "read_yaml"]
