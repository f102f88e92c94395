"""Formatting of meters into Dynatrace metric ingestion line protocol.

Each measurement becomes one line::

    metric.name[,key1=value1,key2=value2] value timestamp

Tags are rendered in ascending key order and the timestamp is the export
cycle's wall clock in epoch milliseconds.
"""

from __future__ import annotations

import math
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from dtmetrics.meters import Measurement, Meter, MeterKind, Statistic

# Above this magnitude float integers lose exactness, so they keep repr() form.
_MAX_EXACT_INTEGRAL = 1e15


def format_value(value: float) -> Optional[str]:
    """Render a numeric value, or None when it cannot be represented."""
    value = float(value)
    if not math.isfinite(value):
        return None
    if value.is_integer() and abs(value) < _MAX_EXACT_INTEGRAL:
        return str(int(value))
    return repr(value)


def metric_name(name: str, statistic: Statistic) -> str:
    if statistic is Statistic.VALUE:
        return name
    return f"{name}.{statistic.label}"


def format_line(
    name: str,
    tags: Iterable[Tuple[str, str]],
    value: float,
    timestamp: int,
) -> Optional[str]:
    """
    Render one ``name,k=v,... value timestamp`` line, tags sorted by key.

    Tag keys and values are written verbatim, without escaping. Keys or values
    containing a space, ``,`` or ``=`` produce a line the ingest API rejects,
    so they must be normalized before the meter is registered.
    """
    rendered = format_value(value)
    if rendered is None:
        return None
    dimensions = ",".join(f"{k}={v}" for k, v in sorted(tags))
    if dimensions:
        return f"{name},{dimensions} {rendered} {int(timestamp)}"
    return f"{name} {rendered} {int(timestamp)}"


def _format_gauge(meter: Meter, measurement: Measurement, timestamp: int) -> Optional[str]:
    return format_line(
        metric_name(meter.id.name, measurement.statistic),
        meter.id.tags,
        measurement.value,
        timestamp,
    )


def _format_counter(meter: Meter, measurement: Measurement, timestamp: int) -> Optional[str]:
    return format_line(
        metric_name(meter.id.name, measurement.statistic),
        meter.id.tags,
        measurement.value,
        timestamp,
    )


LineFormatter = Callable[[Meter, Measurement, int], Optional[str]]

FORMATTERS: Dict[MeterKind, LineFormatter] = {
    MeterKind.GAUGE: _format_gauge,
    MeterKind.COUNTER: _format_counter,
}


class LineProtocolFormatter:
    """Maps meters to line protocol using an explicit per-kind formatter table."""

    def __init__(self, formatters: Optional[Dict[MeterKind, LineFormatter]] = None) -> None:
        self._formatters = dict(FORMATTERS if formatters is None else formatters)

    def supports(self, kind: MeterKind) -> bool:
        return kind in self._formatters

    def to_metric_lines(self, meter: Meter, timestamp: int) -> Optional[List[str]]:
        """
        Format every measurement of ``meter``.

        Returns None when the meter kind has no formatter. Measurements whose
        value is not finite are dropped.
        """
        formatter = self._formatters.get(meter.kind)
        if formatter is None:
            return None
        lines = []
        for measurement in meter.measure():
            line = formatter(meter, measurement, timestamp)
            if line is not None:
                lines.append(line)
        return lines
