"""Configuration management with Pydantic models and validation."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Optional
from urllib.parse import urlsplit

from pydantic import BaseModel, Field, field_validator, model_validator

from dtmetrics.errors import ConfigError


DEFAULT_BATCH_SIZE = 1000
CONFIG_SECTION = "dynatrace"

# Environment variable mapping
ENV_VAR_MAPPING = {
    "uri": ["DT_METRICS_URI", "DYNATRACE_URI"],
    "api_token": ["DT_METRICS_API_TOKEN", "DYNATRACE_API_TOKEN"],
    "tenant": ["DT_METRICS_TENANT", "DYNATRACE_TENANT"],
    "batch_size": ["DT_METRICS_BATCH_SIZE"],
    "connect_timeout": ["DT_METRICS_CONNECT_TIMEOUT"],
    "read_timeout": ["DT_METRICS_READ_TIMEOUT"],
    "step": ["DT_METRICS_STEP"],
    "enabled": ["DT_METRICS_ENABLED"],
    "debug": ["DT_METRICS_DEBUG"],
}

_BOOL_KEYS = ("enabled", "debug")
_INT_KEYS = ("batch_size",)
_FLOAT_KEYS = ("connect_timeout", "read_timeout", "step")


class DynatraceConfig(BaseModel):
    """
    Settings for exporting metrics to the Dynatrace metrics API v2.

    ``uri`` and ``api_token`` are required. When ``uri`` is not given but a
    ``tenant`` is, the SaaS endpoint for that tenant is used.
    """

    uri: Optional[str] = Field(
        default=None,
        description="Base URI of the Dynatrace environment"
    )
    api_token: Optional[str] = Field(
        default=None,
        description="API token with the metrics.ingest scope"
    )
    tenant: Optional[str] = Field(
        default=None,
        description="SaaS tenant id, used to derive the uri when none is set"
    )
    batch_size: int = Field(
        default=DEFAULT_BATCH_SIZE,
        gt=0,
        description="Maximum number of metric lines per ingestion request"
    )
    connect_timeout: float = Field(
        default=1.0,
        gt=0,
        description="Connect timeout in seconds"
    )
    read_timeout: float = Field(
        default=10.0,
        gt=0,
        description="Read timeout in seconds"
    )
    step: float = Field(
        default=60.0,
        gt=0,
        description="Export interval in seconds"
    )
    enabled: bool = Field(
        default=True,
        description="Publish metrics at all"
    )
    debug: bool = Field(
        default=False,
        description="Enable debug logging for the dtmetrics logger"
    )

    @field_validator("uri", "api_token", "tenant", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    @model_validator(mode="after")
    def check_required(self) -> "DynatraceConfig":
        """Resolve the uri and make sure both uri and api_token are present."""
        if self.uri is None and self.tenant is not None:
            self.uri = f"https://{self.tenant}.live.dynatrace.com"
        if self.uri is None:
            raise ConfigError(
                "either the tenant or the uri must be set to report metrics to Dynatrace",
                details={"uri": self.uri, "tenant": self.tenant},
            )
        if self.api_token is None:
            raise ConfigError("api_token must be set to report metrics to Dynatrace")
        parts = urlsplit(self.uri)
        if parts.scheme not in ("http", "https") or not parts.hostname:
            raise ConfigError(
                "uri must be an http or https URL of the Dynatrace environment",
                details={"uri": self.uri},
            )
        self.uri = self.uri.rstrip("/")
        return self


def find_config_file() -> Optional[str]:
    """
    Find dtmetrics.toml config file in standard locations.

    Lookup order:
    1. ./dtmetrics.toml (current directory)
    2. ~/.dtmetrics/config.toml (user home)
    """
    cwd_config = Path.cwd() / "dtmetrics.toml"
    if cwd_config.exists():
        return str(cwd_config)

    home_config = Path.home() / ".dtmetrics" / "config.toml"
    if home_config.exists():
        return str(home_config)

    return None


def load_toml_config(path: str) -> Dict[str, Any]:
    """
    Load the ``[dynatrace]`` table from a TOML file.

    Returns an empty dict when the file does not exist.
    """
    if not os.path.exists(path):
        return {}

    try:
        try:
            import tomllib as toml_lib
        except ImportError:
            import tomli as toml_lib
        with open(path, "rb") as f:
            data = toml_lib.load(f)
    except Exception as e:
        raise ConfigError(f"Failed to load config file: {e}", details={"path": path})

    section = data.get(CONFIG_SECTION, {})
    if not isinstance(section, dict):
        raise ConfigError(f"[{CONFIG_SECTION}] must be a table", details={"path": path})
    return section


def get_env_value(config_key: str) -> Optional[str]:
    """
    Get environment variable value for a config key.

    Tries multiple environment variable names in order of preference.
    """
    for env_var in ENV_VAR_MAPPING.get(config_key, []):
        value = os.getenv(env_var)
        if value is not None:
            return value
    return None


def load_config_from_env() -> Dict[str, Any]:
    """Load configuration values from environment variables."""
    env_config: Dict[str, Any] = {}
    for key in ENV_VAR_MAPPING:
        value = get_env_value(key)
        if value is None:
            continue
        if key in _BOOL_KEYS:
            env_config[key] = value.lower() in ("true", "1", "yes")
        elif key in _INT_KEYS:
            try:
                env_config[key] = int(value)
            except ValueError:
                raise ConfigError(f"Invalid {key} value: {value}. Must be an integer.")
        elif key in _FLOAT_KEYS:
            try:
                env_config[key] = float(value)
            except ValueError:
                raise ConfigError(f"Invalid {key} value: {value}. Must be a number.")
        else:
            env_config[key] = value
    return env_config


def load_config(
    config_file: Optional[str] = None,
    overrides: Optional[Dict[str, Any]] = None
) -> DynatraceConfig:
    """
    Load and validate configuration from multiple sources.

    Priority (highest to lowest):
    1. Explicit overrides (passed as parameters)
    2. Environment variables
    3. Config file (./dtmetrics.toml or ~/.dtmetrics/config.toml)
    4. Defaults

    Raises:
        ConfigError: If configuration is missing, invalid or unreadable
    """
    merged: Dict[str, Any] = {}

    path = config_file or find_config_file()
    if path:
        merged.update(load_toml_config(path))

    merged.update(load_config_from_env())

    if overrides:
        merged.update({k: v for k, v in overrides.items() if v is not None})

    try:
        return DynatraceConfig(**merged)
    except ConfigError:
        raise
    except Exception as e:
        raise ConfigError(f"Configuration validation failed: {e}")


def validate_config(
    config_file: Optional[str] = None,
    overrides: Optional[Dict[str, Any]] = None
) -> tuple[bool, str, Optional[DynatraceConfig]]:
    """
    Validate configuration without using it.

    Used by the `dtmetrics doctor` CLI command.

    Returns:
        Tuple of (is_valid, message, config_or_none)
    """
    try:
        config = load_config(config_file=config_file, overrides=overrides)
        return True, "Configuration is valid", config
    except ConfigError as e:
        return False, f"Configuration error: {e}", None
