"""Meter registry that publishes to the Dynatrace metrics API v2 on a fixed step."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Dict, List, Mapping, Optional, Tuple

from dtmetrics.config import DynatraceConfig
from dtmetrics.exporter.http_exporter import BatchOutcome, MetricsApiIngestion, Transport
from dtmetrics.exporter.translator import SnapshotTranslator
from dtmetrics.meters import Counter, Gauge, Meter, MeterId, meter_id
from dtmetrics.metrics.recorder import get_metrics_recorder

logger = logging.getLogger(__name__)

Clock = Callable[[], int]


def wall_time_millis() -> int:
    return int(time.time() * 1000)


class DynatraceMeterRegistry:
    """
    Holds meters and exports them, one cycle per ``config.step`` seconds.

    Each cycle samples every registered meter once, formats the measurements
    as line protocol stamped with a single wall-clock timestamp, and sends the
    lines in batches. Cycles never overlap and never raise.
    """

    def __init__(
        self,
        config: DynatraceConfig,
        clock: Optional[Clock] = None,
        transport: Optional[Transport] = None,
        translator: Optional[SnapshotTranslator] = None,
    ) -> None:
        self.config = config
        self._clock = clock or wall_time_millis
        self._ingestion = MetricsApiIngestion(config, transport=transport)
        self._translator = translator or SnapshotTranslator()
        self._meters: Dict[MeterId, Meter] = {}
        self._meters_lock = threading.Lock()
        self._cycle_lock = threading.Lock()
        self._stop_event: Optional[threading.Event] = None
        self._thread: Optional[threading.Thread] = None
        if config.debug:
            logging.getLogger("dtmetrics").setLevel(logging.DEBUG)

    @property
    def discard_tracker(self):
        return self._translator.discard_tracker

    # Registration
    def add(self, meter: Meter) -> Meter:
        """Register ``meter``; an existing meter with the same id wins."""
        with self._meters_lock:
            return self._meters.setdefault(meter.id, meter)

    def gauge(
        self,
        name: str,
        supplier: Callable[[], float],
        tags: Optional[Mapping[str, object]] = None,
    ) -> Meter:
        return self.add(Gauge(meter_id(name, tags), supplier))

    def counter(self, name: str, tags: Optional[Mapping[str, object]] = None) -> Meter:
        return self.add(Counter(meter_id(name, tags)))

    def remove(self, meter: Meter) -> Optional[Meter]:
        with self._meters_lock:
            return self._meters.pop(meter.id, None)

    def get_meters(self) -> List[Meter]:
        with self._meters_lock:
            return list(self._meters.values())

    # Publishing
    def publish(self) -> List[BatchOutcome]:
        """Run one export cycle over the current meters."""
        return self.export_meters(self.get_meters())

    def export_meters(self, meters: List[Meter]) -> List[BatchOutcome]:
        """Run one export cycle over ``meters`` and return the batch outcomes."""
        if not self.config.enabled:
            return []
        with self._cycle_lock:
            started = time.monotonic()
            try:
                timestamp = self._clock()
                lines = self._translator.translate(meters, timestamp)
                outcomes = self._ingestion.send_in_batches(lines)
            except Exception:
                logger.exception("Unexpected error while publishing metrics to Dynatrace")
                return []
            finally:
                recorder = get_metrics_recorder()
                if recorder is not None:
                    recorder.record_cycle_duration(time.monotonic() - started)
            logger.debug(
                f"Published {len(lines)} metric lines from {len(meters)} meters in {len(outcomes)} batches"
            )
            return outcomes

    # Background publishing
    def start(self) -> None:
        """Start the background publisher thread."""
        if not self.config.enabled:
            logger.info("Dynatrace metrics publishing is disabled")
            return
        if self._thread is not None and self._thread.is_alive():
            return

        stop_event = threading.Event()

        def _loop():
            while not stop_event.wait(self.config.step):
                self.publish()

        self._stop_event = stop_event
        self._thread = threading.Thread(
            target=_loop, name="dtmetrics-publisher", daemon=True
        )
        self._thread.start()
        logger.info(f"Publishing metrics to {self._ingestion.url} every {self.config.step}s")

    def stop(self, timeout: Optional[float] = None) -> None:
        """Stop the background publisher, waiting for an in-flight cycle."""
        if self._stop_event:
            self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=timeout)
            logger.info("Stopped Dynatrace metrics publisher")
        self._thread = None
        self._stop_event = None

    def close(self) -> List[BatchOutcome]:
        """Stop publishing and flush the current meters one last time."""
        self.stop()
        return self.publish()

    def __enter__(self) -> "DynatraceMeterRegistry":
        self.start()
        return self

    def __exit__(self, *exc_info: Tuple) -> None:
        self.close()
