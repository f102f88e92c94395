"""OpenTelemetry bridge tests."""

from __future__ import annotations

import unittest
from unittest.mock import MagicMock

from opentelemetry.metrics import Observation
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import InMemoryMetricReader, MetricExportResult

from dtmetrics.config import DynatraceConfig
from dtmetrics.meters import MeterKind, Statistic
from dtmetrics.otel import PREFERRED_TEMPORALITY, DynatraceMetricExporter, to_meters

TS = 1_600_000_000_000


class TestOpenTelemetryBridge(unittest.TestCase):
    """Convert SDK metrics data and export it as line protocol."""

    def setUp(self):
        self.reader = InMemoryMetricReader(preferred_temporality=PREFERRED_TEMPORALITY)
        self.provider = MeterProvider(metric_readers=[self.reader])
        self.meter = self.provider.get_meter("test")
        self.transport = MagicMock(return_value=(202, ""))
        self.exporter = DynatraceMetricExporter(
            DynatraceConfig(uri="https://x.live.dynatrace.com", api_token="t", batch_size=10),
            clock=lambda: TS,
            transport=self.transport,
        )

    def tearDown(self):
        self.provider.shutdown()

    def test_counter_becomes_count_line(self):
        counter = self.meter.create_counter("jobs.processed")
        counter.add(3, {"queue": "default"})
        counter.add(2, {"queue": "default"})

        meters = to_meters(self.reader.get_metrics_data())
        self.assertEqual(len(meters), 1)
        self.assertEqual(meters[0].kind, MeterKind.COUNTER)
        self.assertEqual(meters[0].id.tag_dict(), {"queue": "default"})
        self.assertEqual(meters[0].measure()[0].statistic, Statistic.COUNT)
        self.assertEqual(meters[0].measure()[0].value, 5.0)

    def test_up_down_counter_and_gauge_become_gauges(self):
        updown = self.meter.create_up_down_counter("queue.depth")
        updown.add(4)
        updown.add(-1)
        self.meter.create_observable_gauge(
            "cpu.temperature",
            callbacks=[lambda options: [Observation(55, {"cpu": "1"})]],
        )

        meters = {m.name: m for m in to_meters(self.reader.get_metrics_data())}
        self.assertEqual(meters["queue.depth"].kind, MeterKind.GAUGE)
        self.assertEqual(meters["queue.depth"].measure()[0].value, 3.0)
        self.assertEqual(meters["cpu.temperature"].kind, MeterKind.GAUGE)
        self.assertEqual(meters["cpu.temperature"].measure()[0].statistic, Statistic.VALUE)

    def test_histogram_is_unsupported(self):
        self.meter.create_histogram("latency").record(0.2)
        meters = to_meters(self.reader.get_metrics_data())
        self.assertEqual([m.kind for m in meters], [MeterKind.OTHER])

    def test_export_sends_lines_and_discards_histograms(self):
        self.meter.create_counter("jobs").add(1, {"queue": "a"})
        self.meter.create_histogram("latency").record(0.2)

        result = self.exporter.export(self.reader.get_metrics_data())

        self.assertEqual(result, MetricExportResult.SUCCESS)
        payload = self.transport.call_args[0][1].decode("utf-8")
        self.assertEqual(payload, f"jobs.count,queue=a 1 {TS}")
        self.assertTrue(self.exporter.discard_tracker.is_discarded("latency"))

    def test_export_failure_result(self):
        self.meter.create_counter("jobs").add(1)
        self.transport.return_value = (400, "invalid")
        self.assertEqual(self.exporter.export(self.reader.get_metrics_data()), MetricExportResult.FAILURE)

    def test_export_after_shutdown_fails(self):
        self.exporter.shutdown()
        self.meter.create_counter("jobs").add(1)
        self.assertEqual(self.exporter.export(self.reader.get_metrics_data()), MetricExportResult.FAILURE)
        self.transport.assert_not_called()
        self.assertTrue(self.exporter.force_flush())


if __name__ == "__main__":
    unittest.main()
