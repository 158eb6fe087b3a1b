"""Staleness Monitor: reading-rate based currency flag for the layer.

The layer counts readings accepted since the last merge and remembers when
the last one arrived.  At the end of a bounds cycle with no new readings and
a positive timeout that has elapsed, the layer is flagged as not current.
Merging resets the counter and marks the layer current again.  Staleness never
discards data.
"""

from __future__ import annotations

import logging
import time
from typing import Callable

from src.range_layer.throttle import Throttle

logger = logging.getLogger(__name__)

WARN_PERIOD: float = 2.0


class StalenessMonitor:
    """Tracks last-reading time, per-cycle reading count and the currency flag.

    Parameters
    ----------
    timeout:
        Seconds without readings before the layer is stale. 0 disables.
    clock:
        Monotonic time source in seconds. Injectable for tests.
    """

    def __init__(self, timeout: float = 0.0, clock: Callable[[], float] = time.monotonic) -> None:
        self.timeout = float(timeout)
        self._clock = clock
        self._throttle = Throttle(clock)
        self.last_reading_time: float = clock()
        self.buffered_readings: int = 0
        self.current: bool = True

    def reading_accepted(self) -> None:
        self.buffered_readings += 1
        self.last_reading_time = self._clock()

    def elapsed(self) -> float:
        return self._clock() - self.last_reading_time

    def end_cycle(self) -> bool:
        """Evaluate staleness after a fusion pass. Returns the currency flag."""
        if self.buffered_readings == 0 and self.timeout > 0.0:
            elapsed = self.elapsed()
            if elapsed > self.timeout:
                self._throttle.log(
                    logger, logging.WARNING, "staleness.no_readings", WARN_PERIOD,
                    f"No range readings received for {elapsed:.2f} seconds, "
                    f"while expected at least every {self.timeout:.2f} seconds.",
                )
                self.current = False
        return self.current

    def merged(self) -> None:
        """Called after the merge phase: start a new counting window."""
        self.buffered_readings = 0
        self.current = True

    def reset(self) -> None:
        self.buffered_readings = 0
        self.last_reading_time = self._clock()
        self.current = True
