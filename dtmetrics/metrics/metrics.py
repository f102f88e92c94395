"""Self-monitoring metrics for the Dynatrace exporter.

StandardMetrics creates the OpenTelemetry instruments describing the exporter's
own activity, and MetricsRecorder records export outcomes against them.
"""

from typing import Any, Dict, Optional

from opentelemetry.metrics import Counter, Histogram, Meter

from dtmetrics.exporter.http_exporter import (
    BatchFailure,
    BatchOutcome,
    BatchSuccess,
    BatchTransportError,
)


class StandardMetrics:
    """Factory for the exporter's self-monitoring instruments."""

    @staticmethod
    def create_lines_counter(meter: Meter) -> Counter:
        """Create counter for metric lines handed to the ingestion client."""
        return meter.create_counter(
            name="dtmetrics.export.lines",
            unit="{line}",
            description="Number of metric lines submitted for ingestion"
        )

    @staticmethod
    def create_batches_counter(meter: Meter) -> Counter:
        """Create counter for ingestion requests, split by outcome."""
        return meter.create_counter(
            name="dtmetrics.export.batches",
            unit="{request}",
            description="Number of ingestion requests by outcome"
        )

    @staticmethod
    def create_discarded_counter(meter: Meter) -> Counter:
        """Create counter for meters discarded as unsupported."""
        return meter.create_counter(
            name="dtmetrics.meters.discarded",
            unit="{meter}",
            description="Number of meter names discarded as unsupported"
        )

    @staticmethod
    def create_duration_histogram(meter: Meter) -> Histogram:
        """Create histogram for export cycle duration."""
        return meter.create_histogram(
            name="dtmetrics.export.duration",
            unit="s",
            description="Duration of one export cycle"
        )

    @staticmethod
    def create_standard_metrics(meter: Meter) -> Dict[str, Any]:
        """Create all self-monitoring instruments.

        Returns:
            Dictionary with metric names as keys and metric instances as values
        """
        return {
            "lines_counter": StandardMetrics.create_lines_counter(meter),
            "batches_counter": StandardMetrics.create_batches_counter(meter),
            "discarded_counter": StandardMetrics.create_discarded_counter(meter),
            "duration_histogram": StandardMetrics.create_duration_histogram(meter),
        }


def outcome_label(outcome: BatchOutcome) -> str:
    if isinstance(outcome, BatchSuccess):
        return "success"
    if isinstance(outcome, BatchFailure):
        return "failure"
    if isinstance(outcome, BatchTransportError):
        return "transport_error"
    return "unknown"


class MetricsRecorder:
    """Utility class for recording exporter activity in a consistent way."""

    def __init__(self, metrics: Dict[str, Any]):
        """Initialize metrics recorder.

        Args:
            metrics: Dictionary of metric instances from StandardMetrics
        """
        self.metrics = metrics

    def record_lines(self, count: int, attributes: Optional[Dict[str, Any]] = None):
        lines_counter = self.metrics.get("lines_counter")
        if lines_counter and count > 0:
            lines_counter.add(count, attributes=attributes or {})

    def record_batch(self, outcome: BatchOutcome, attributes: Optional[Dict[str, Any]] = None):
        """Record one ingestion request.

        Args:
            outcome: Result of the request
            attributes: Additional attributes
        """
        batches_counter = self.metrics.get("batches_counter")
        if not batches_counter:
            return
        attrs = {**(attributes or {}), "outcome": outcome_label(outcome)}
        status_code = getattr(outcome, "status_code", None)
        if status_code is not None:
            attrs["http.status_code"] = status_code
        batches_counter.add(1, attributes=attrs)

    def record_discard(self, attributes: Optional[Dict[str, Any]] = None):
        discarded_counter = self.metrics.get("discarded_counter")
        if discarded_counter:
            discarded_counter.add(1, attributes=attributes or {})

    def record_cycle_duration(
        self,
        duration: float,
        attributes: Optional[Dict[str, Any]] = None
    ):
        """Record how long an export cycle took.

        Args:
            duration: Duration in seconds
            attributes: Additional attributes
        """
        duration_histogram = self.metrics.get("duration_histogram")
        if duration_histogram and duration >= 0:
            duration_histogram.record(duration, attributes=attributes or {})
