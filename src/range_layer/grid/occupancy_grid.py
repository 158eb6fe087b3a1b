# TDP: Quantised occupancy-probability grid with world <-> map conversion
# Approach: One numpy uint8 array of shape (size_y, size_x) indexed [my, mx].
#   World coordinates follow the costmap convention: cell (mx, my) covers
#   [origin_x + mx*res, origin_x + (mx+1)*res) and likewise for y, with y
#   pointing up (no row flip).  Every cell starts at the quantised 0.5 prior.
#
#   Rolling windows: update_origin() snaps the requested origin to a whole
#   number of cells, keeps the overlapping block and resets the rest, so the
#   probability history survives while the robot moves.
#
# Alternatives considered:
#   float32 probability storage -- 4x memory and the merge phase needs bytes.
"""Occupancy-probability grid (uint8 quantised) owned by the fusion cycle."""

from __future__ import annotations

import math

import numpy as np

from src.range_layer.fusion.bayes import UNKNOWN_COST, to_prob


class OccupancyGrid:
    """Byte-quantised P(occupied) grid.

    Parameters
    ----------
    size_x, size_y:
        Grid dimensions in cells.
    resolution:
        Metres per cell.
    origin_x, origin_y:
        World coordinates of the lower-left corner of cell (0, 0).
    default_value:
        Cost written on creation / reset.  Defaults to the 0.5 prior.
    """

    def __init__(
        self,
        size_x: int,
        size_y: int,
        resolution: float,
        origin_x: float = 0.0,
        origin_y: float = 0.0,
        default_value: int = UNKNOWN_COST,
    ) -> None:
        if size_x <= 0 or size_y <= 0:
            raise ValueError(f"Grid size must be positive, got {size_x}x{size_y}")
        if resolution <= 0.0:
            raise ValueError(f"Resolution must be positive, got {resolution}")
        self.size_x = int(size_x)
        self.size_y = int(size_y)
        self.resolution = float(resolution)
        self.origin_x = float(origin_x)
        self.origin_y = float(origin_y)
        self.default_value = int(default_value)
        self.data: np.ndarray = np.full(
            (self.size_y, self.size_x), self.default_value, dtype=np.uint8
        )

    # ------------------------------------------------------------------
    # Geometry
    # ------------------------------------------------------------------

    @property
    def size_in_meters_x(self) -> float:
        return self.size_x * self.resolution

    @property
    def size_in_meters_y(self) -> float:
        return self.size_y * self.resolution

    def map_to_world(self, mx: int, my: int) -> tuple[float, float]:
        """World coordinates of the centre of cell (mx, my)."""
        wx = self.origin_x + (mx + 0.5) * self.resolution
        wy = self.origin_y + (my + 0.5) * self.resolution
        return wx, wy

    def world_to_map(self, wx: float, wy: float) -> tuple[int, int] | None:
        """Cell containing (wx, wy), or None if the point is outside the grid."""
        if wx < self.origin_x or wy < self.origin_y:
            return None
        mx = int((wx - self.origin_x) / self.resolution)
        my = int((wy - self.origin_y) / self.resolution)
        if mx < self.size_x and my < self.size_y:
            return mx, my
        return None

    def world_to_map_no_bounds(self, wx: float, wy: float) -> tuple[int, int]:
        """Cell index of (wx, wy) without any bounds check (may be negative)."""
        mx = int(math.floor((wx - self.origin_x) / self.resolution))
        my = int(math.floor((wy - self.origin_y) / self.resolution))
        return mx, my

    def cell_centres(
        self, bx0: int, by0: int, bx1: int, by1: int
    ) -> tuple[np.ndarray, np.ndarray]:
        """World (wx, wy) meshes for the inclusive cell block [bx0..bx1] x [by0..by1].

        Returns arrays of shape (by1 - by0 + 1, bx1 - bx0 + 1).
        """
        xs = self.origin_x + (np.arange(bx0, bx1 + 1) + 0.5) * self.resolution
        ys = self.origin_y + (np.arange(by0, by1 + 1) + 0.5) * self.resolution
        wx, wy = np.meshgrid(xs, ys)
        return wx, wy

    # ------------------------------------------------------------------
    # Cell access
    # ------------------------------------------------------------------

    def get_cost(self, mx: int, my: int) -> int:
        return int(self.data[my, mx])

    def set_cost(self, mx: int, my: int, cost: int) -> None:
        self.data[my, mx] = cost

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def reset(self) -> None:
        """Reset every cell to the default value."""
        self.data.fill(self.default_value)

    def resize(
        self,
        size_x: int,
        size_y: int,
        resolution: float,
        origin_x: float,
        origin_y: float,
    ) -> None:
        """Reallocate the grid; all cells return to the default value."""
        self.size_x = int(size_x)
        self.size_y = int(size_y)
        self.resolution = float(resolution)
        self.origin_x = float(origin_x)
        self.origin_y = float(origin_y)
        self.data = np.full((self.size_y, self.size_x), self.default_value, dtype=np.uint8)

    def update_origin(self, new_origin_x: float, new_origin_y: float) -> None:
        """Move the grid window, keeping the cells that overlap the old window.

        The new origin is snapped to a whole number of cells relative to the
        current one.
        """
        cell_ox = int(math.floor((new_origin_x - self.origin_x) / self.resolution))
        cell_oy = int(math.floor((new_origin_y - self.origin_y) / self.resolution))
        if cell_ox == 0 and cell_oy == 0:
            return

        new_data = np.full_like(self.data, self.default_value)

        # Overlap in old-grid cell coordinates
        lower_x = max(0, cell_ox)
        lower_y = max(0, cell_oy)
        upper_x = min(self.size_x, cell_ox + self.size_x)
        upper_y = min(self.size_y, cell_oy + self.size_y)

        if lower_x < upper_x and lower_y < upper_y:
            new_data[
                lower_y - cell_oy:upper_y - cell_oy,
                lower_x - cell_ox:upper_x - cell_ox,
            ] = self.data[lower_y:upper_y, lower_x:upper_x]

        self.data = new_data
        self.origin_x += cell_ox * self.resolution
        self.origin_y += cell_oy * self.resolution

    def probabilities(self) -> np.ndarray:
        """Stored P(occupied) as float32 in [0, 1]."""
        return to_prob(self.data).astype(np.float32)
