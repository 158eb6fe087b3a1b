# TDP: Minimal structured JSON logger for update cycles
# Approach: Write one JSON object per line (JSONL format) to a log file.
#   Each cycle entry carries the cycle number, reading counts, the reported
#   dirty region, merge statistics and the currency flag. Grid snapshots
#   store occupancy probability (float32, [0,1]) -- NOT the quantised bytes --
#   and are written every N cycles to avoid large files.
#   The logger streams directly to disk and does not accumulate entries in RAM.
# Schema per cycle entry:
#   { "cycle": int, "drained": int, "accepted": int, "dropped": int,
#     "bounds": [min_x, min_y, max_x, max_y] | null,
#     "merged_cells": int, "current": bool,
#     "grid_snapshot": [[...]] }  <- occupancy prob, shape (size_y, size_x)
# Alternatives considered: CSV -- cannot hold the variable-size snapshot.
"""Minimal structured JSON (JSONL) logger for layer update cycles."""

from __future__ import annotations

import json
import math
from pathlib import Path
from typing import Any

import numpy as np


def _finite_or_none(value: float) -> float | None:
    return float(value) if math.isfinite(value) else None


class CycleLogger:
    """Writes update-cycle events to a JSONL file.

    Parameters
    ----------
    log_path:
        Path to the output JSONL log file.
    grid_snapshot_interval:
        Write a grid snapshot every this many cycles. Set to 0 to disable
        snapshots.
    """

    def __init__(self, log_path: Path, grid_snapshot_interval: int = 0) -> None:
        self._path = log_path
        self._interval = grid_snapshot_interval
        self._fh = log_path.open("w", encoding="utf-8")

    def log_cycle(
        self,
        *,
        cycle: int,
        stats: dict[str, int],
        bounds: tuple[float, float, float, float] | None,
        merged_cells: int,
        current: bool,
        grid_data: np.ndarray | None = None,
    ) -> None:
        """Write one update-cycle entry.

        Parameters
        ----------
        cycle:
            Cycle number (0-indexed).
        stats:
            Reading counters for the cycle (drained / accepted / dropped).
        bounds:
            Region reported to the caller, or None if nothing was touched.
            Infinite extents are written as null.
        merged_cells:
            Number of shared-map cells written by the merge phase.
        current:
            Layer currency flag after the cycle.
        grid_data:
            Occupancy probability grid (values in [0,1]). Written as a
            snapshot if the cycle is a multiple of the snapshot interval.
        """
        entry: dict[str, Any] = {
            "cycle": cycle,
            **{k: int(v) for k, v in stats.items()},
            "bounds": [_finite_or_none(b) for b in bounds] if bounds is not None else None,
            "merged_cells": int(merged_cells),
            "current": bool(current),
        }

        include_snapshot = (
            grid_data is not None
            and self._interval > 0
            and cycle % self._interval == 0
        )
        if include_snapshot and grid_data is not None:
            entry["grid_snapshot"] = np.round(grid_data, 4).tolist()

        self._fh.write(json.dumps(entry) + "\n")
        self._fh.flush()

    def log_event(self, event_type: str, data: dict[str, Any]) -> None:
        """Write an arbitrary event entry to the log file."""
        entry: dict[str, Any] = {"event": event_type, **data}
        self._fh.write(json.dumps(entry) + "\n")
        self._fh.flush()

    def close(self) -> None:
        """Close the log file handle."""
        self._fh.close()

    def __enter__(self) -> "CycleLogger":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()
