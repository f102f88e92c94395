"""Self-monitoring metrics emitted through OpenTelemetry."""

from __future__ import annotations

from .recorder import enable_self_monitoring, get_metrics_recorder, set_global_recorder

__all__ = [
    "enable_self_monitoring",
    "get_metrics_recorder",
    "set_global_recorder",
]
