"""Range readings and the thread-safe staging buffer between producers and the update cycle."""

from __future__ import annotations

import math
import threading
from dataclasses import dataclass


@dataclass(frozen=True)
class RangeReading:
    """One range-finder measurement, as delivered by the transport.

    Fixed-range sensors (``min_range == max_range``) report only
    ``+inf`` (nothing detected) or ``-inf`` (object detected at
    ``min_range``).
    """

    frame_id: str
    stamp: float           # seconds
    range: float           # metres, or +/-inf for fixed-range sensors
    min_range: float       # metres
    max_range: float       # metres
    field_of_view: float   # full cone angle, radians

    @property
    def is_fixed(self) -> bool:
        return self.min_range == self.max_range

    @property
    def is_detection_flag(self) -> bool:
        """True for the fixed-range "object detected" encoding (-inf)."""
        return math.isinf(self.range) and self.range < 0


class ReadingBuffer:
    """Append-from-anywhere, drain-from-one buffer of :class:`RangeReading`.

    The lock is held only for the append and for the swap in
    :meth:`drain_all`; the drained batch is processed outside it.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._readings: list[RangeReading] = []

    def push(self, reading: RangeReading) -> None:
        with self._lock:
            self._readings.append(reading)

    def drain_all(self) -> list[RangeReading]:
        """Remove and return everything buffered, in arrival order."""
        with self._lock:
            batch = self._readings
            self._readings = []
        return batch

    def clear(self) -> None:
        with self._lock:
            self._readings = []

    def __len__(self) -> int:
        with self._lock:
            return len(self._readings)
