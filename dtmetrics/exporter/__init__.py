"""Export pipeline: line protocol formatting, discard tracking, batched delivery."""

from dtmetrics.exporter.discard import MetricDiscardTracker
from dtmetrics.exporter.http_exporter import (
    METRICS_INGESTION_PATH,
    BatchFailure,
    BatchOutcome,
    BatchSuccess,
    BatchTransportError,
    MetricsApiIngestion,
)
from dtmetrics.exporter.line_protocol import LineProtocolFormatter
from dtmetrics.exporter.translator import SnapshotTranslator

__all__ = [
    "METRICS_INGESTION_PATH",
    "BatchFailure",
    "BatchOutcome",
    "BatchSuccess",
    "BatchTransportError",
    "LineProtocolFormatter",
    "MetricDiscardTracker",
    "MetricsApiIngestion",
    "SnapshotTranslator",
]
