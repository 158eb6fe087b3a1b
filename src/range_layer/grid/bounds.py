"""Dirty-region tracking in world coordinates.

The tracker is widened by every point the fusion pass touches and reported to
the caller once per bounds cycle, after which it is reset to the inverted
(empty) state.  Downstream consumers repaint only the reported area.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

Bounds = tuple[float, float, float, float]  # (min_x, min_y, max_x, max_y)


@dataclass
class DirtyRegion:
    """Axis-aligned world-frame region touched during a fusion cycle."""

    min_x: float = math.inf
    min_y: float = math.inf
    max_x: float = -math.inf
    max_y: float = -math.inf

    @classmethod
    def everything(cls) -> "DirtyRegion":
        """A region covering the whole plane (forces a full repaint)."""
        return cls(-math.inf, -math.inf, math.inf, math.inf)

    @property
    def is_empty(self) -> bool:
        return self.min_x > self.max_x or self.min_y > self.max_y

    def touch(self, x: float, y: float) -> None:
        """Widen the region to include the point (x, y)."""
        self.min_x = min(self.min_x, x)
        self.min_y = min(self.min_y, y)
        self.max_x = max(self.max_x, x)
        self.max_y = max(self.max_y, y)

    def union_into(self, bounds: Bounds) -> Bounds:
        """Return *bounds* widened by this region (unchanged if empty)."""
        if self.is_empty:
            return bounds
        min_x, min_y, max_x, max_y = bounds
        return (
            min(min_x, self.min_x),
            min(min_y, self.min_y),
            max(max_x, self.max_x),
            max(max_y, self.max_y),
        )

    def reset(self) -> None:
        self.min_x = self.min_y = math.inf
        self.max_x = self.max_y = -math.inf

    def as_tuple(self) -> Bounds:
        return (self.min_x, self.min_y, self.max_x, self.max_y)
