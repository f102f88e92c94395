"""Exception types raised by the dtmetrics SDK."""

from __future__ import annotations

from typing import Any, Dict, Optional


class DtMetricsError(Exception):
    """Base class for all SDK errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if not self.details:
            return self.message
        extras = ", ".join(f"{k}={v!r}" for k, v in self.details.items())
        return f"{self.message} ({extras})"


class ConfigError(DtMetricsError):
    """Configuration is missing, unreadable, or conflicting."""


class ValidationError(ConfigError):
    """A single configuration value failed validation."""
