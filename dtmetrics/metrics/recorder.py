"""Global recorder for the exporter's self-monitoring metrics."""

from typing import Any, Optional

# Global recorder instance (installed by enable_self_monitoring)
_global_recorder: Optional[Any] = None


def set_global_recorder(recorder):
    """Set the global metrics recorder, or None to disable self-monitoring."""
    global _global_recorder
    _global_recorder = recorder


def get_metrics_recorder():
    """Get the global metrics recorder instance.

    Returns:
        MetricsRecorder instance or None if self-monitoring is not enabled
    """
    return _global_recorder


def enable_self_monitoring(meter_provider=None):
    """Create the self-monitoring instruments and install a global recorder.

    Args:
        meter_provider: OpenTelemetry MeterProvider to create instruments on.
            Defaults to the globally configured provider.

    Returns:
        The installed MetricsRecorder

    Example:
        >>> from dtmetrics.metrics import enable_self_monitoring
        >>> enable_self_monitoring()
    """
    from opentelemetry import metrics

    from dtmetrics.metrics.metrics import MetricsRecorder, StandardMetrics

    provider = meter_provider or metrics.get_meter_provider()
    meter = provider.get_meter("dtmetrics")
    recorder = MetricsRecorder(StandardMetrics.create_standard_metrics(meter))
    set_global_recorder(recorder)
    return recorder
