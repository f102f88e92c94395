"""Self-monitoring metrics tests."""

from __future__ import annotations

import socket
import unittest
from unittest.mock import MagicMock

from dtmetrics.exporter.http_exporter import BatchFailure, BatchSuccess, BatchTransportError
from dtmetrics.metrics import enable_self_monitoring, get_metrics_recorder, set_global_recorder
from dtmetrics.metrics.metrics import MetricsRecorder, StandardMetrics, outcome_label


class TestStandardMetrics(unittest.TestCase):
    """Test StandardMetrics factory."""

    def test_create_lines_counter(self):
        """Lines counter has correct name and unit."""
        meter = MagicMock()
        StandardMetrics.create_lines_counter(meter)
        call_kw = meter.create_counter.call_args[1]
        assert call_kw["name"] == "dtmetrics.export.lines"
        assert call_kw["unit"] == "{line}"

    def test_create_batches_counter(self):
        meter = MagicMock()
        StandardMetrics.create_batches_counter(meter)
        call_kw = meter.create_counter.call_args[1]
        assert call_kw["name"] == "dtmetrics.export.batches"

    def test_create_duration_histogram(self):
        """Duration histogram has correct name and unit."""
        meter = MagicMock()
        StandardMetrics.create_duration_histogram(meter)
        call_kw = meter.create_histogram.call_args[1]
        assert call_kw["name"] == "dtmetrics.export.duration"
        assert call_kw["unit"] == "s"

    def test_create_standard_metrics(self):
        """create_standard_metrics returns all metrics."""
        meter = MagicMock()
        metrics = StandardMetrics.create_standard_metrics(meter)
        assert set(metrics) == {"lines_counter", "batches_counter", "discarded_counter", "duration_histogram"}


class TestMetricsRecorder(unittest.TestCase):
    """Test MetricsRecorder."""

    def setUp(self):
        self.lines_counter = MagicMock()
        self.batches_counter = MagicMock()
        self.discarded_counter = MagicMock()
        self.duration_hist = MagicMock()
        self.recorder = MetricsRecorder({
            "lines_counter": self.lines_counter,
            "batches_counter": self.batches_counter,
            "discarded_counter": self.discarded_counter,
            "duration_histogram": self.duration_hist,
        })

    def test_outcome_labels(self):
        assert outcome_label(BatchSuccess(202, 1)) == "success"
        assert outcome_label(BatchFailure(400, "", 1)) == "failure"
        assert outcome_label(BatchTransportError(socket.timeout(), 1)) == "transport_error"

    def test_record_lines(self):
        self.recorder.record_lines(12)
        self.lines_counter.add.assert_called_once_with(12, attributes={})

    def test_record_lines_skips_zero(self):
        self.recorder.record_lines(0)
        self.lines_counter.add.assert_not_called()

    def test_record_batch_success(self):
        self.recorder.record_batch(BatchSuccess(status_code=202, line_count=2))
        self.batches_counter.add.assert_called_once_with(
            1, attributes={"outcome": "success", "http.status_code": 202}
        )

    def test_record_batch_transport_error_has_no_status(self):
        self.recorder.record_batch(BatchTransportError(cause=ConnectionError(), line_count=2))
        self.batches_counter.add.assert_called_once_with(1, attributes={"outcome": "transport_error"})

    def test_record_discard(self):
        self.recorder.record_discard({"meter.kind": "other"})
        self.discarded_counter.add.assert_called_once_with(1, attributes={"meter.kind": "other"})

    def test_record_cycle_duration(self):
        self.recorder.record_cycle_duration(0.5)
        self.duration_hist.record.assert_called_once_with(0.5, attributes={})

    def test_missing_instruments_are_ignored(self):
        recorder = MetricsRecorder({})
        recorder.record_lines(1)
        recorder.record_batch(BatchSuccess(202, 1))
        recorder.record_discard()
        recorder.record_cycle_duration(1.0)


class TestGlobalRecorder(unittest.TestCase):
    """Test global recorder installation."""

    def tearDown(self):
        set_global_recorder(None)

    def test_get_metrics_recorder_none_when_not_set(self):
        set_global_recorder(None)
        assert get_metrics_recorder() is None

    def test_enable_self_monitoring_installs_recorder(self):
        provider = MagicMock()
        recorder = enable_self_monitoring(provider)
        provider.get_meter.assert_called_once_with("dtmetrics")
        assert get_metrics_recorder() is recorder
        assert isinstance(recorder, MetricsRecorder)


if __name__ == "__main__":
    unittest.main()
