# src/sitemapper/config/settings.py
"""
Application settings (Pydantic).

Settings are loaded from `src/sitemapper/config/defaults.yaml`, then optionally overridden by:
- environment variables (e.g., `SITEMAPPER_LOG_LEVEL`, `SITEMAPPER_STORE_DIR`)
- an external YAML file via `SITEMAPPER_CONFIG_PATH`

Design rule:
- Defaults (icon keys, languages, zoom) live in YAML, not hard-coded in business logic.
"""

from __future__ import annotations

import os
from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field

from sitemapper.core.env import load_dotenv_if_present


def _read_package_yaml(filename: str) -> dict[str, Any]:
    """Read a YAML file packaged inside `sitemapper.config`."""
    text = resources.files("sitemapper.config").joinpath(filename).read_text(encoding="utf-8")
    data = yaml.safe_load(text) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid YAML root object for {filename}; expected a mapping.")
    return data


def _read_yaml_file(path: str | Path) -> dict[str, Any]:
    """Read a YAML file from disk and return its mapping root."""
    data = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid YAML root object for {path}; expected a mapping.")
    return data


class AppSettings(BaseModel):
    name: str = "SiteMapper"
    log_level: str = "INFO"


class StorageSettings(BaseModel):
    backend: Literal["file", "memory"] = "file"
    dir: str = ".data/sitemapper"
    key_prefix: str = "tower_mapper"


class IconOption(BaseModel):
    label: str
    value: str


class SitesSettings(BaseModel):
    default_type: str = "tower"
    default_icon: str = "tower"
    default_customer_name: str = "Current Prospect"
    icon_options: list[IconOption] = Field(
        default_factory=lambda: [
            IconOption(label="Tower", value="tower"),
            IconOption(label="Radio", value="radio"),
            IconOption(label="Signal", value="signal"),
            IconOption(label="Database", value="database"),
            IconOption(label="Pin", value="map-pin"),
        ]
    )

    @property
    def icon_values(self) -> list[str]:
        return [o.value for o in self.icon_options]


class RegionsSettings(BaseModel):
    default_zoom: int = Field(6, ge=0)


class I18nSettings(BaseModel):
    default_language: str = "en"
    languages: list[str] = Field(default_factory=lambda: ["en", "ar"])


class ApiSettings(BaseModel):
    cors_origins: list[str] = Field(default_factory=list)


class Settings(BaseModel):
    app: AppSettings = Field(default_factory=AppSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    sites: SitesSettings = Field(default_factory=SitesSettings)
    regions: RegionsSettings = Field(default_factory=RegionsSettings)
    i18n: I18nSettings = Field(default_factory=I18nSettings)
    api: ApiSettings = Field(default_factory=ApiSettings)


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Overlay selected environment variables onto raw settings payload.

    Only the variables listed here are honoured.
    """
    load_dotenv_if_present()
    data = dict(data)
    store_dir = os.getenv("SITEMAPPER_STORE_DIR")
    if store_dir:
        data.setdefault("storage", {})["dir"] = store_dir

    prefix = os.getenv("SITEMAPPER_STORAGE_PREFIX")
    if prefix:
        data.setdefault("storage", {})["key_prefix"] = prefix

    backend = os.getenv("SITEMAPPER_STORAGE_BACKEND")
    if backend:
        data.setdefault("storage", {})["backend"] = backend

    cors = os.getenv("SITEMAPPER_CORS_ORIGINS")
    if cors:
        data.setdefault("api", {})["cors_origins"] = [s.strip() for s in cors.split(",") if s.strip()]

    log_level = os.getenv("SITEMAPPER_LOG_LEVEL")
    if log_level:
        data.setdefault("app", {})["log_level"] = log_level

    return data


@lru_cache
def get_settings() -> Settings:
    """Load and validate settings (cached)."""
    load_dotenv_if_present()
    config_path = os.getenv("SITEMAPPER_CONFIG_PATH")
    raw = _read_yaml_file(config_path) if config_path else _read_package_yaml("defaults.yaml")
    raw = _apply_env_overrides(raw)
    return Settings.model_validate(raw)


@lru_cache
def get_logging_config() -> dict[str, Any]:
    """Load logging configuration (cached)."""
    return _read_package_yaml("logging.yaml")
