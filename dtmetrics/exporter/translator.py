"""Translation of a meter snapshot into an ordered list of metric lines."""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from dtmetrics.exporter.discard import MetricDiscardTracker
from dtmetrics.exporter.line_protocol import LineProtocolFormatter
from dtmetrics.meters import Meter
from dtmetrics.metrics.recorder import get_metrics_recorder

logger = logging.getLogger(__name__)


class SnapshotTranslator:
    """Drives the formatter over a snapshot, skipping discarded meter names."""

    def __init__(
        self,
        formatter: Optional[LineProtocolFormatter] = None,
        discard_tracker: Optional[MetricDiscardTracker] = None,
    ) -> None:
        self.formatter = formatter or LineProtocolFormatter()
        self.discard_tracker = discard_tracker or MetricDiscardTracker()

    def translate(self, meters: Iterable[Meter], timestamp: int) -> List[str]:
        """
        Format ``meters`` in input order, measurement order within a meter.

        Meters of an unsupported kind are discarded by name on first sight and
        contribute no lines, now or in later cycles.
        """
        lines: List[str] = []
        for meter in meters:
            name = meter.id.name
            if self.discard_tracker.is_discarded(name):
                continue
            try:
                meter_lines = self.formatter.to_metric_lines(meter, timestamp)
            except Exception:
                # Sampling errors skip the meter for this cycle only.
                logger.exception(f"Failed to sample meter '{name}', skipping it for this cycle")
                continue
            if meter_lines is None:
                if self.discard_tracker.discard(name):
                    recorder = get_metrics_recorder()
                    if recorder is not None:
                        recorder.record_discard({"meter.kind": meter.kind.value})
                continue
            lines.extend(meter_lines)
        return lines
