"""Tracking of meter names that cannot be exported."""

from __future__ import annotations

import logging
from typing import Iterator, Set

logger = logging.getLogger(__name__)


class MetricDiscardTracker:
    """
    Append-only set of meter names whose kind has no line protocol mapping.

    Only the export-cycle thread mutates the set, so no locking is done here.
    """

    def __init__(self) -> None:
        self._names: Set[str] = set()

    def is_discarded(self, name: str) -> bool:
        return name in self._names

    def discard(self, name: str) -> bool:
        """Mark ``name`` as unsupported. Returns True if it was newly discarded."""
        if name in self._names:
            return False
        self._names.add(name)
        logger.warning(
            f"Meter '{name}' has been discarded because it is not supported by the Dynatrace metrics API v2"
        )
        return True

    def __contains__(self, name: object) -> bool:
        return name in self._names

    def __len__(self) -> int:
        return len(self._names)

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._names))
