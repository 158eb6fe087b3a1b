# TDP: Wide-field scan cross-check for variable-range readings
# Approach: Keep the most recent planar scan (LaserScan-style array of
#   ranges) under its own lock.  For a variable-range reading at range r,
#   look at the central window of the scan (+/- window beams around the
#   middle index, i.e. straight ahead) and report corroboration if any finite
#   scan range is closer than r + trust_distance.  The classifier then handles
#   the reading as a cone clear: the scan already covers that obstacle, so the
#   range sensor only contributes free space.
#
#   The comparison is one-sided (only "scan closer than range + trust").
#
# Alternatives considered:
#   Time-synchronising scan and range messages -- the producer side has no
#   common clock guarantee; latest-scan is what the layer actually has.
"""Optional cross-check of range readings against the latest wide-field scan."""

from __future__ import annotations

import threading

import numpy as np

TRUST_DISTANCE: float = 0.65
SCAN_WINDOW: int = 50


class ScanCrossCheck:
    """Latest-scan store plus the one-sided corroboration test.

    Parameters
    ----------
    trust_distance:
        Slack added to the reading's range before comparing (metres).
    window:
        Number of beams each side of the scan centre to inspect.
    """

    def __init__(self, trust_distance: float = TRUST_DISTANCE, window: int = SCAN_WINDOW) -> None:
        self.trust_distance = float(trust_distance)
        self.window = int(window)
        self._lock = threading.Lock()
        self._ranges: np.ndarray | None = None

    def update_scan(self, ranges) -> None:
        """Replace the buffered scan (safe to call from a producer thread)."""
        arr = np.asarray(ranges, dtype=np.float64).copy()
        with self._lock:
            self._ranges = arr

    def clear(self) -> None:
        with self._lock:
            self._ranges = None

    def corroborates(self, range_value: float) -> bool:
        """True if the scan sees something closer than ``range + trust_distance``.

        Returns False when no scan has been received yet.
        """
        with self._lock:
            ranges = self._ranges
        if ranges is None or ranges.size == 0:
            return False

        centre = ranges.size // 2
        start = max(0, centre - self.window)
        stop = min(ranges.size, centre + self.window)
        window = ranges[start:stop]
        window = window[np.isfinite(window)]
        return bool(np.any(window < range_value + self.trust_distance))
