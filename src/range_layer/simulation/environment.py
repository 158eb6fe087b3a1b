# TDP: 2D room generator for layer simulation
# Approach: single rectangular room with border walls.  The robot patrols a
#   rectangle a fixed distance inside the walls, so the room is built around
#   that path: a band either side of it is reserved, and rectangular
#   obstacles are drawn by rejection sampling until they land on cells that
#   are neither reserved nor already occupied.
#
# Coordinate convention (same as OccupancyGrid / ObstacleMap):
# - Array index [my, mx]; cell (mx, my) covers
#   [origin + mx*res, origin + (mx+1)*res) with y pointing up.
#
# Alternatives considered:
#   Placing obstacles first and erasing the path afterwards -- leaves
#   truncated slivers on the path edge that no sonar can resolve.
"""Ground-truth occupancy environment for the layer simulation."""

from __future__ import annotations

import logging

import numpy as np

logger = logging.getLogger(__name__)

_OBSTACLE_EXTENT = (0.05, 0.12)   # fraction of the interior, min / max side
_ATTEMPTS_PER_OBSTACLE = 100


def path_band_mask(size_x: int, size_y: int, offset: int, band: int) -> np.ndarray:
    """Cells within *band* of the rectangle *offset* cells inside the border.

    Border cells are never included.
    """
    mask = np.zeros((size_y, size_x), dtype=bool)
    lo = max(1, offset - band)
    mask[lo:min(size_y - 1, size_y - offset + band), lo:min(size_x - 1, size_x - offset + band)] = True
    inner = offset + band
    if inner < size_x - inner and inner < size_y - inner:
        mask[inner:size_y - inner, inner:size_x - inner] = False
    return mask


def _place_obstacles(
    grid: np.ndarray,
    num_obstacles: int,
    rng: np.random.Generator,
    reserved: np.ndarray,
) -> int:
    """Draw up to *num_obstacles* rectangles into *grid* avoiding *reserved*.

    Returns the number actually placed.
    """
    size_y, size_x = grid.shape
    lo_frac, hi_frac = _OBSTACLE_EXTENT
    side_y = (max(1, int(lo_frac * (size_y - 2))), max(1, int(hi_frac * (size_y - 2))))
    side_x = (max(1, int(lo_frac * (size_x - 2))), max(1, int(hi_frac * (size_x - 2))))
    blocked = reserved | (grid > 0.0)

    placed = 0
    for _ in range(_ATTEMPTS_PER_OBSTACLE * num_obstacles):
        if placed == num_obstacles:
            break
        h = int(rng.integers(side_y[0], side_y[1] + 1))
        w = int(rng.integers(side_x[0], side_x[1] + 1))
        if h >= size_y - 2 or w >= size_x - 2:
            continue
        y0 = int(rng.integers(1, size_y - 1 - h))
        x0 = int(rng.integers(1, size_x - 1 - w))
        footprint = (slice(y0, y0 + h), slice(x0, x0 + w))
        if blocked[footprint].any():
            continue
        grid[footprint] = 1.0
        blocked[footprint] = True
        placed += 1
    return placed


def generate_room(
    *,
    size_x: int,
    size_y: int,
    num_obstacles: int,
    rng: np.random.Generator,
    reserved: np.ndarray | None = None,
) -> np.ndarray:
    """Generate a walled room with rectangular obstacles.

    Parameters
    ----------
    size_x, size_y:
        Grid dimensions in cells.
    num_obstacles:
        Number of interior obstacles to attempt to place.
    rng:
        Random generator for obstacle placement.
    reserved:
        Optional boolean mask, shape (size_y, size_x), of cells that must
        stay free (e.g. :func:`path_band_mask` around the patrol path).

    Returns
    -------
    np.ndarray, shape (size_y, size_x), dtype float32
        1.0 = wall / obstacle, 0.0 = free.
    """
    grid = np.zeros((size_y, size_x), dtype=np.float32)
    grid[[0, -1], :] = 1.0
    grid[:, [0, -1]] = 1.0
    if num_obstacles > 0:
        if reserved is None:
            reserved = np.zeros_like(grid, dtype=bool)
        placed = _place_obstacles(grid, num_obstacles, rng, reserved)
        if placed < num_obstacles:
            logger.debug(f"Placed {placed} of {num_obstacles} obstacles")
    return grid
