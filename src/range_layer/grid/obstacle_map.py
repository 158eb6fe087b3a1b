# TDP: Shared obstacle map + probability thresholding merge
# Approach: The shared map is a plain uint8 array owned by the map compositor
#   (here: ObstacleMap).  The layer never writes into it during fusion; the
#   merge phase walks only the requested cell window and:
#     - skips cells that carry no information (NO_INFORMATION or the 0.5 prior)
#     - resolves P > mark to LETHAL_OBSTACLE and P < clear to FREE_SPACE
#     - leaves ambiguous cells alone
#   and writes a resolved value only if the shared cell is NO_INFORMATION or
#   holds a numerically lower cost, so an obstacle always beats free and
#   nothing ever downgrades an existing obstacle.
#
#   Thresholds are compared in the quantised cost domain (to_cost(mark) /
#   to_cost(clear)) so the comparison matches exactly what is stored.
#
# Alternatives considered:
#   Per-cell Python loop -- the window can cover the whole grid on the first
#   cycle; a boolean-mask pass over a numpy view is linear and branch free.
"""Shared obstacle map and the threshold/merge step that folds probabilities into it."""

from __future__ import annotations

import numpy as np

from src.range_layer.fusion.bayes import (
    FREE_SPACE,
    LETHAL_OBSTACLE,
    NO_INFORMATION,
    UNKNOWN_COST,
    to_cost,
)


class ObstacleMap:
    """Discrete shared map: FREE_SPACE / LETHAL_OBSTACLE / NO_INFORMATION per cell.

    Parameters
    ----------
    size_x, size_y:
        Dimensions in cells.
    resolution:
        Metres per cell.
    origin_x, origin_y:
        World coordinates of the lower-left corner of cell (0, 0).
    """

    def __init__(
        self,
        size_x: int,
        size_y: int,
        resolution: float,
        origin_x: float = 0.0,
        origin_y: float = 0.0,
    ) -> None:
        self.size_x = int(size_x)
        self.size_y = int(size_y)
        self.resolution = float(resolution)
        self.origin_x = float(origin_x)
        self.origin_y = float(origin_y)
        self.data: np.ndarray = np.full(
            (self.size_y, self.size_x), NO_INFORMATION, dtype=np.uint8
        )

    def world_to_map(self, wx: float, wy: float) -> tuple[int, int] | None:
        if wx < self.origin_x or wy < self.origin_y:
            return None
        mx = int((wx - self.origin_x) / self.resolution)
        my = int((wy - self.origin_y) / self.resolution)
        if mx < self.size_x and my < self.size_y:
            return mx, my
        return None

    def bounds_to_cells(
        self, min_x: float, min_y: float, max_x: float, max_y: float
    ) -> tuple[int, int, int, int]:
        """Convert a world-frame region to a clamped half-open cell window.

        Returns ``(min_i, min_j, max_i, max_j)`` suitable for
        :func:`merge_probabilities`.  An empty region yields an empty window.
        """
        if min_x > max_x or min_y > max_y:
            return 0, 0, 0, 0

        def _cell(value: float, origin: float, size: int) -> int:
            if value == float("inf"):
                return size
            if value == float("-inf"):
                return 0
            return int(np.clip(np.floor((value - origin) / self.resolution), 0, size))

        min_i = _cell(min_x, self.origin_x, self.size_x)
        min_j = _cell(min_y, self.origin_y, self.size_y)
        max_i = min(self.size_x, _cell(max_x, self.origin_x, self.size_x) + 1)
        max_j = min(self.size_y, _cell(max_y, self.origin_y, self.size_y) + 1)
        return min_i, min_j, max_i, max_j

    def get_cost(self, mx: int, my: int) -> int:
        return int(self.data[my, mx])

    def set_cost(self, mx: int, my: int, cost: int) -> None:
        self.data[my, mx] = cost

    def reset(self) -> None:
        self.data.fill(NO_INFORMATION)


def merge_probabilities(
    master: np.ndarray,
    probabilities: np.ndarray,
    min_i: int,
    min_j: int,
    max_i: int,
    max_j: int,
    *,
    mark_threshold: float,
    clear_threshold: float,
) -> int:
    """Threshold a quantised probability grid into *master* over a cell window.

    Parameters
    ----------
    master:
        Shared map array, shape (size_y, size_x), uint8; modified in-place.
    probabilities:
        Quantised P(occupied) grid of the same shape, uint8.
    min_i, min_j, max_i, max_j:
        Half-open cell window ``[min_i, max_i) x [min_j, max_j)``.
    mark_threshold:
        Probability above which a cell becomes LETHAL_OBSTACLE.
    clear_threshold:
        Probability below which a cell becomes FREE_SPACE.

    Returns
    -------
    int
        Number of master cells written.
    """
    if max_i <= min_i or max_j <= min_j:
        return 0

    mark = to_cost(mark_threshold)
    clear = to_cost(clear_threshold)

    prob = probabilities[min_j:max_j, min_i:max_i]
    target = master[min_j:max_j, min_i:max_i]

    informative = (prob != NO_INFORMATION) & (prob != UNKNOWN_COST)
    obstacle = informative & (prob > mark)
    free = informative & ~obstacle & (prob < clear)

    current = np.where(obstacle, LETHAL_OBSTACLE, FREE_SPACE).astype(np.uint8)
    replace = (obstacle | free) & ((target == NO_INFORMATION) | (target < current))

    target[replace] = current[replace]
    return int(np.count_nonzero(replace))
