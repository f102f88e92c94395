"""Snapshot translation and discard tracking tests."""

from __future__ import annotations

import unittest
from unittest.mock import MagicMock, patch

from dtmetrics.exporter.discard import MetricDiscardTracker
from dtmetrics.exporter.translator import SnapshotTranslator
from dtmetrics.meters import Gauge, Measurement, Meter, MeterKind, Statistic, meter_id, snapshot
from dtmetrics.metrics.recorder import set_global_recorder

TS = 1_600_000_000_000


def histogram(name: str) -> Meter:
    return snapshot(name, MeterKind.OTHER, [Measurement(statistic=Statistic.COUNT, value=1)])


class TestMetricDiscardTracker(unittest.TestCase):
    def test_discard_is_permanent(self):
        tracker = MetricDiscardTracker()
        self.assertFalse(tracker.is_discarded("latency"))
        self.assertTrue(tracker.discard("latency"))
        self.assertTrue(tracker.is_discarded("latency"))
        self.assertIn("latency", tracker)
        self.assertEqual(len(tracker), 1)

    def test_warns_once_per_name(self):
        tracker = MetricDiscardTracker()
        with self.assertLogs("dtmetrics.exporter.discard", level="WARNING") as logs:
            tracker.discard("latency")
            self.assertFalse(tracker.discard("latency"))
        self.assertEqual(len(logs.records), 1)
        self.assertIn("latency", logs.output[0])

    def test_iterates_sorted(self):
        tracker = MetricDiscardTracker()
        tracker.discard("b")
        tracker.discard("a")
        self.assertEqual(list(tracker), ["a", "b"])


class TestSnapshotTranslator(unittest.TestCase):
    """Translate meters into ordered lines."""

    def setUp(self):
        self.translator = SnapshotTranslator()

    def tearDown(self):
        set_global_recorder(None)

    def test_two_gauges_same_name_different_tags(self):
        meters = [
            Gauge(meter_id("cpu.temperature", {"cpu": "1"}), lambda: 55),
            Gauge(meter_id("cpu.temperature", {"cpu": "2"}), lambda: 50),
        ]
        self.assertEqual(
            self.translator.translate(meters, TS),
            [f"cpu.temperature,cpu=1 55 {TS}", f"cpu.temperature,cpu=2 50 {TS}"],
        )

    def test_preserves_meter_then_measurement_order(self):
        meters = [
            snapshot("z", MeterKind.GAUGE, [Measurement(value=1)]),
            snapshot("a", MeterKind.GAUGE, [Measurement(value=2), Measurement(statistic=Statistic.MAX, value=3)]),
            snapshot("m", MeterKind.COUNTER, [Measurement(statistic=Statistic.COUNT, value=4)]),
        ]
        self.assertEqual(
            self.translator.translate(meters, TS),
            [f"z 1 {TS}", f"a 2 {TS}", f"a.max 3 {TS}", f"m.count 4 {TS}"],
        )

    def test_unsupported_meter_contributes_nothing_and_is_discarded(self):
        meters = [histogram("latency"), snapshot("up", MeterKind.GAUGE, [Measurement(value=1)])]
        self.assertEqual(self.translator.translate(meters, TS), [f"up 1 {TS}"])
        self.assertTrue(self.translator.discard_tracker.is_discarded("latency"))

    def test_discarded_meter_never_formatted_again(self):
        self.translator.translate([histogram("latency")], TS)

        second = MagicMock(spec=Meter)
        second.id = meter_id("latency")
        second.kind = MeterKind.GAUGE
        with patch("dtmetrics.exporter.discard.logger") as log:
            lines = self.translator.translate([second], TS + 1)
        self.assertEqual(lines, [])
        second.measure.assert_not_called()
        log.warning.assert_not_called()

    def test_discard_logged_once_across_cycles(self):
        with patch("dtmetrics.exporter.discard.logger") as log:
            for cycle in range(3):
                self.translator.translate([histogram("latency")], TS + cycle)
        self.assertEqual(log.warning.call_count, 1)

    def test_idempotent_for_same_snapshot(self):
        meters = [
            snapshot("a", MeterKind.GAUGE, [Measurement(value=0.25)], {"k": "v"}),
            histogram("h"),
            snapshot("c", MeterKind.COUNTER, [Measurement(statistic=Statistic.COUNT, value=9)]),
        ]
        first = self.translator.translate(meters, TS)
        second = self.translator.translate(meters, TS)
        self.assertEqual(first, second)
        self.assertEqual(first, [f"a,k=v 0.25 {TS}", f"c.count 9 {TS}"])

    def test_failing_meter_is_skipped_for_this_cycle_only(self):
        calls = {"n": 0}

        def flaky():
            calls["n"] += 1
            if calls["n"] == 1:
                raise RuntimeError("sensor offline")
            return 42

        meters = [Gauge(meter_id("sensor"), flaky), snapshot("ok", MeterKind.GAUGE, [Measurement(value=1)])]
        with self.assertLogs("dtmetrics.exporter.translator", level="ERROR"):
            self.assertEqual(self.translator.translate(meters, TS), [f"ok 1 {TS}"])
        self.assertFalse(self.translator.discard_tracker.is_discarded("sensor"))
        self.assertEqual(self.translator.translate(meters, TS), [f"sensor 42 {TS}", f"ok 1 {TS}"])

    def test_discard_recorded_in_self_metrics(self):
        recorder = MagicMock()
        set_global_recorder(recorder)
        self.translator.translate([histogram("latency"), histogram("latency")], TS)
        recorder.record_discard.assert_called_once_with({"meter.kind": "other"})


if __name__ == "__main__":
    unittest.main()
