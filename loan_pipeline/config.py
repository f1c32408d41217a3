"""Configuration helpers for the CRM client, stage catalog, and refresher."""
from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from .metrics import AVERAGE_TIME_STRATEGIES
from .stages import StageCatalog

LOGGER = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://services.leadconnectorhq.com"
DEFAULT_API_VERSION = "2021-07-28"
DEFAULT_REFRESH_SECONDS = 30.0

ENV_OVERRIDES = {
    "token": "LEADCONNECTOR_TOKEN",
    "location_id": "LEADCONNECTOR_LOCATION_ID",
    "base_url": "LEADCONNECTOR_BASE_URL",
    "api_version": "LEADCONNECTOR_API_VERSION",
}


class ConfigurationError(RuntimeError):
    """Raised when configuration files are missing or malformed."""


_SUPPORTED_EXTENSIONS = {".json", ".yaml", ".yml"}


@dataclass(frozen=True)
class CRMSettings:
    """Connection details for the contacts API."""

    token: str = ""
    location_id: str = ""
    base_url: str = DEFAULT_BASE_URL
    api_version: str = DEFAULT_API_VERSION
    connect_timeout: float = 5.0
    read_timeout: float = 30.0
    total_retries: int = 3
    backoff_factor: float = 0.6

    def require_credentials(self) -> "CRMSettings":
        missing = [name for name in ("token", "location_id") if not getattr(self, name)]
        if missing:
            env_names = ", ".join(ENV_OVERRIDES[name] for name in missing)
            raise ConfigurationError(f"CRM settings are missing {', '.join(missing)} (set {env_names})")
        return self

    def masked_token(self) -> str:
        return f"{self.token[:10]}..." if self.token else ""


@dataclass(frozen=True)
class RefreshSettings:
    interval_seconds: float = DEFAULT_REFRESH_SECONDS


@dataclass(frozen=True)
class PipelineSettings:
    """Everything a :class:`~loan_pipeline.orchestrator.PipelineOrchestrator` needs."""

    crm: CRMSettings
    catalog: StageCatalog
    refresh: RefreshSettings
    average_time: str = "placeholder"


def load_configuration(path: str | Path) -> Dict[str, Any]:
    """Load configuration data from a JSON or YAML file."""

    file_path = Path(path)
    if not file_path.exists():
        raise ConfigurationError(f"Configuration file '{file_path}' was not found")

    if file_path.suffix.lower() not in _SUPPORTED_EXTENSIONS:
        raise ConfigurationError(
            f"Unsupported configuration format '{file_path.suffix}'. Supported extensions: {sorted(_SUPPORTED_EXTENSIONS)}"
        )

    text = file_path.read_text(encoding="utf-8")
    try:
        if file_path.suffix.lower() == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Could not parse configuration file '{file_path}': {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration file '{file_path}' must contain a mapping at the top level")
    return data


def crm_settings_from_config(
    config: Mapping[str, Any],
    environ: Optional[Mapping[str, str]] = None,
) -> CRMSettings:
    """Read the ``crm`` section, letting environment variables override it."""

    environ = os.environ if environ is None else environ
    section = dict(config.get("crm") or {})
    settings = CRMSettings(
        token=str(section.get("token", "")),
        location_id=str(section.get("location_id", "")),
        base_url=str(section.get("base_url", DEFAULT_BASE_URL)).rstrip("/"),
        api_version=str(section.get("api_version", DEFAULT_API_VERSION)),
        connect_timeout=float(section.get("connect_timeout", 5.0)),
        read_timeout=float(section.get("read_timeout", 30.0)),
        total_retries=int(section.get("total_retries", 3)),
        backoff_factor=float(section.get("backoff_factor", 0.6)),
    )

    overrides = {
        field_name: environ[env_name]
        for field_name, env_name in ENV_OVERRIDES.items()
        if environ.get(env_name)
    }
    if overrides:
        LOGGER.debug("Applying environment overrides for %s", sorted(overrides))
        if "base_url" in overrides:
            overrides["base_url"] = overrides["base_url"].rstrip("/")
        settings = replace(settings, **overrides)
    return settings


def build_settings(
    config: Optional[Mapping[str, Any]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> PipelineSettings:
    """Turn a raw configuration mapping into typed settings."""

    config = config or {}
    try:
        catalog = StageCatalog.from_config(config.get("pipeline") or {})
    except ValueError as exc:
        raise ConfigurationError(f"Invalid pipeline configuration: {exc}") from exc

    metrics_section = config.get("metrics") or {}
    average_time = str(metrics_section.get("average_time", "placeholder"))
    if average_time not in AVERAGE_TIME_STRATEGIES:
        raise ConfigurationError(
            f"Unknown metrics.average_time '{average_time}'. Supported values: {sorted(AVERAGE_TIME_STRATEGIES)}"
        )

    refresh_section = config.get("refresh") or {}
    interval = float(refresh_section.get("interval_seconds", DEFAULT_REFRESH_SECONDS))
    if interval <= 0:
        raise ConfigurationError("refresh.interval_seconds must be > 0")

    return PipelineSettings(
        crm=crm_settings_from_config(config, environ),
        catalog=catalog,
        refresh=RefreshSettings(interval_seconds=interval),
        average_time=average_time,
    )


def load_settings(
    path: str | Path | None = None,
    environ: Optional[Mapping[str, str]] = None,
) -> PipelineSettings:
    config = load_configuration(path) if path else {}
    settings = build_settings(config, environ)
    LOGGER.info(
        "Settings loaded (stages=%d, average_time=%s, refresh=%ss)",
        len(settings.catalog.stages),
        settings.average_time,
        settings.refresh.interval_seconds,
    )
    return settings


__all__ = [
    "ConfigurationError",
    "CRMSettings",
    "RefreshSettings",
    "PipelineSettings",
    "load_configuration",
    "crm_settings_from_config",
    "build_settings",
    "load_settings",
]
