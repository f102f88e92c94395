"""OpenTelemetry metric exporter backed by the Dynatrace line protocol pipeline.

Plug :class:`DynatraceMetricExporter` into a ``PeriodicExportingMetricReader``
to let the OpenTelemetry SDK drive export cycles::

    reader = PeriodicExportingMetricReader(
        DynatraceMetricExporter(load_config()),
        export_interval_millis=60_000,
    )
    metrics.set_meter_provider(MeterProvider(metric_readers=[reader]))
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Tuple

from opentelemetry.sdk.metrics import (
    Counter as OtelCounter,
    Histogram as OtelHistogram,
    ObservableCounter,
    ObservableGauge,
    ObservableUpDownCounter,
    UpDownCounter,
)
from opentelemetry.sdk.metrics.export import (
    AggregationTemporality,
    Gauge,
    MetricExporter,
    MetricExportResult,
    MetricsData,
    Sum,
)

from dtmetrics.config import DynatraceConfig
from dtmetrics.exporter.http_exporter import BatchSuccess, Transport
from dtmetrics.exporter.translator import SnapshotTranslator
from dtmetrics.meters import Measurement, Meter, MeterKind, Statistic, snapshot
from dtmetrics.registry import Clock, DynatraceMeterRegistry

logger = logging.getLogger(__name__)

PREFERRED_TEMPORALITY = {
    OtelCounter: AggregationTemporality.DELTA,
    ObservableCounter: AggregationTemporality.DELTA,
    UpDownCounter: AggregationTemporality.CUMULATIVE,
    ObservableUpDownCounter: AggregationTemporality.CUMULATIVE,
    OtelHistogram: AggregationTemporality.DELTA,
    ObservableGauge: AggregationTemporality.CUMULATIVE,
}


def _classify(data: Any) -> Tuple[MeterKind, Statistic]:
    if isinstance(data, Sum):
        if data.is_monotonic:
            return MeterKind.COUNTER, Statistic.COUNT
        return MeterKind.GAUGE, Statistic.VALUE
    if isinstance(data, Gauge):
        return MeterKind.GAUGE, Statistic.VALUE
    return MeterKind.OTHER, Statistic.UNKNOWN


def _tag_value(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        return ";".join(str(v) for v in value)
    return str(value)


def to_meters(metrics_data: MetricsData) -> List[Meter]:
    """Convert OpenTelemetry metrics data into one meter per data point."""
    meters: List[Meter] = []
    for resource_metrics in metrics_data.resource_metrics:
        for scope_metrics in resource_metrics.scope_metrics:
            for metric in scope_metrics.metrics:
                kind, statistic = _classify(metric.data)
                for point in metric.data.data_points:
                    tags = {k: _tag_value(v) for k, v in (point.attributes or {}).items()}
                    measurements = []
                    if kind is not MeterKind.OTHER:
                        measurements.append(Measurement(statistic=statistic, value=float(point.value)))
                    meters.append(snapshot(metric.name, kind, measurements, tags))
    return meters


class DynatraceMetricExporter(MetricExporter):
    """Exports OpenTelemetry metrics to the Dynatrace metrics API v2."""

    def __init__(
        self,
        config: DynatraceConfig,
        clock: Optional[Clock] = None,
        transport: Optional[Transport] = None,
        translator: Optional[SnapshotTranslator] = None,
    ) -> None:
        super().__init__(preferred_temporality=PREFERRED_TEMPORALITY)
        self._registry = DynatraceMeterRegistry(
            config, clock=clock, transport=transport, translator=translator
        )
        self._shutdown = False

    @property
    def discard_tracker(self):
        return self._registry.discard_tracker

    def export(
        self,
        metrics_data: MetricsData,
        timeout_millis: float = 10_000,
        **kwargs,
    ) -> MetricExportResult:
        if self._shutdown:
            logger.warning("Exporter already shut down, ignoring export call")
            return MetricExportResult.FAILURE
        try:
            meters = to_meters(metrics_data)
        except Exception:
            logger.exception("Failed to convert OpenTelemetry metrics")
            return MetricExportResult.FAILURE
        outcomes = self._registry.export_meters(meters)
        if all(isinstance(outcome, BatchSuccess) for outcome in outcomes):
            return MetricExportResult.SUCCESS
        return MetricExportResult.FAILURE

    def force_flush(self, timeout_millis: float = 10_000) -> bool:
        return True

    def shutdown(self, timeout_millis: float = 30_000, **kwargs) -> None:
        self._shutdown = True
