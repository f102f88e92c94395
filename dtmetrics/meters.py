"""In-memory meter model consumed by the export pipeline.

A meter is identified by a name and a set of tags and, when sampled, produces
an ordered sequence of measurements. The pipeline never mutates meters; it
only reads the measurements returned by ``measure()`` during an export cycle.
"""

from __future__ import annotations

import threading
from enum import Enum
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Statistic(Enum):
    """Statistic carried by a measurement, with its canonical short label."""

    VALUE = "value"
    COUNT = "count"
    TOTAL = "total"
    TOTAL_TIME = "total_time"
    MAX = "max"
    ACTIVE_TASKS = "active_tasks"
    DURATION = "duration"
    UNKNOWN = "unknown"

    @property
    def label(self) -> str:
        return _STATISTIC_LABELS[self]


_STATISTIC_LABELS = {
    Statistic.VALUE: "value",
    Statistic.COUNT: "count",
    Statistic.TOTAL: "total",
    Statistic.TOTAL_TIME: "total",
    Statistic.MAX: "max",
    Statistic.ACTIVE_TASKS: "active",
    Statistic.DURATION: "duration",
    Statistic.UNKNOWN: "unknown",
}


class MeterKind(Enum):
    GAUGE = "gauge"
    COUNTER = "counter"
    OTHER = "other"


class MeterId(BaseModel):
    """Meter identity: name plus tags sorted by key."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1, description="Metric name")
    tags: Tuple[Tuple[str, str], ...] = Field(
        default=(),
        description="Key/value tag pairs, kept sorted by key",
    )

    @field_validator("tags", mode="before")
    @classmethod
    def _sort_tags(cls, value):
        if value is None:
            return ()
        if isinstance(value, Mapping):
            value = value.items()
        return tuple(sorted((str(k), str(v)) for k, v in value))

    def tag_dict(self) -> Dict[str, str]:
        return dict(self.tags)


class Measurement(BaseModel):
    """A single (statistic, value) sample."""

    model_config = ConfigDict(frozen=True)

    statistic: Statistic = Statistic.VALUE
    value: float


class Meter:
    """
    A named instrument that yields measurements when sampled.

    ``measure_fn`` is called once per export cycle and must return the
    measurements in a stable order.
    """

    def __init__(
        self,
        meter_id: MeterId,
        kind: MeterKind,
        measure_fn: Callable[[], Iterable[Measurement]],
    ) -> None:
        self.id = meter_id
        self.kind = kind
        self._measure_fn = measure_fn

    @property
    def name(self) -> str:
        return self.id.name

    def measure(self) -> List[Measurement]:
        return list(self._measure_fn())

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.id.name!r}, tags={self.id.tags!r}, kind={self.kind.value})"


class Gauge(Meter):
    """Gauge whose value is read from a supplier at sampling time."""

    def __init__(self, meter_id: MeterId, supplier: Callable[[], float]) -> None:
        super().__init__(meter_id, MeterKind.GAUGE, self._sample)
        self._supplier = supplier

    def value(self) -> float:
        return float(self._supplier())

    def _sample(self) -> List[Measurement]:
        return [Measurement(statistic=Statistic.VALUE, value=self.value())]


class Counter(Meter):
    """Monotonically increasing counter, safe to increment from any thread."""

    def __init__(self, meter_id: MeterId) -> None:
        super().__init__(meter_id, MeterKind.COUNTER, self._sample)
        self._lock = threading.Lock()
        self._count = 0.0

    def increment(self, amount: float = 1.0) -> None:
        if amount < 0:
            raise ValueError("Counter increments must be non-negative")
        with self._lock:
            self._count += amount

    def count(self) -> float:
        with self._lock:
            return self._count

    def _sample(self) -> List[Measurement]:
        return [Measurement(statistic=Statistic.COUNT, value=self.count())]


def meter_id(name: str, tags: Optional[Mapping[str, object]] = None) -> MeterId:
    """Build a MeterId from a name and an optional tag mapping."""
    return MeterId(name=name, tags=tags or ())


def snapshot(
    name: str,
    kind: MeterKind,
    measurements: Iterable[Measurement],
    tags: Optional[Mapping[str, object]] = None,
) -> Meter:
    """Build an immutable meter that always reports the given measurements."""
    frozen = tuple(measurements)
    return Meter(meter_id(name, tags), kind, lambda: frozen)
