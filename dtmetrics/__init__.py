"""Python SDK entrypoint for exporting metrics to the Dynatrace metrics API v2."""

from importlib.metadata import PackageNotFoundError, version

from dtmetrics.config import DynatraceConfig, load_config
from dtmetrics.errors import ConfigError, DtMetricsError
from dtmetrics.exporter import (
    BatchFailure,
    BatchSuccess,
    BatchTransportError,
    LineProtocolFormatter,
    MetricDiscardTracker,
    MetricsApiIngestion,
    SnapshotTranslator,
)
from dtmetrics.meters import Counter, Gauge, Measurement, Meter, MeterId, MeterKind, Statistic
from dtmetrics.registry import DynatraceMeterRegistry
from dtmetrics import metrics

try:
    __version__ = version("dtmetrics")
except PackageNotFoundError:
    __version__ = "0.1.0"  # Fallback version


def create_registry(config_file=None, **overrides) -> DynatraceMeterRegistry:
    """
    Load configuration and build a registry in one call.

    Usage:
        import dtmetrics

        registry = dtmetrics.create_registry(uri="https://abc123.live.dynatrace.com", api_token="...")
        registry.gauge("cpu.temperature", read_temperature, {"cpu": "1"})
        registry.start()
    """
    return DynatraceMeterRegistry(load_config(config_file=config_file, overrides=overrides))


__all__ = [
    "__version__",
    "create_registry",
    "BatchFailure",
    "BatchSuccess",
    "BatchTransportError",
    "ConfigError",
    "Counter",
    "DtMetricsError",
    "DynatraceConfig",
    "DynatraceMeterRegistry",
    "Gauge",
    "LineProtocolFormatter",
    "Measurement",
    "Meter",
    "MeterId",
    "MeterKind",
    "MetricDiscardTracker",
    "MetricsApiIngestion",
    "SnapshotTranslator",
    "Statistic",
    "load_config",
    "metrics",
]
