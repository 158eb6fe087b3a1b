# TDP: Perimeter patrol trajectory for the layer simulation
# Approach: The robot walks counter-clockwise along the inside perimeter of
#   the room, *margin* metres from each wall, with heading along the direction
#   of travel. Poses are evenly distributed in arc length.
# Risks: If the room is very small the inner rectangle degenerates; rejected
#   with ValueError.
"""Ground-truth perimeter trajectory."""

from __future__ import annotations

import math
from typing import NamedTuple

import numpy as np


class Pose(NamedTuple):
    """A 2D robot pose."""

    x: float     # metres
    y: float     # metres
    theta: float  # radians, counter-clockwise from positive x axis


def generate_perimeter_trajectory(
    *,
    width: float,
    height: float,
    num_steps: int,
    margin: float = 1.0,
    origin: tuple[float, float] = (0.0, 0.0),
) -> list[Pose]:
    """Generate a perimeter trajectory inside a rectangular room.

    Parameters
    ----------
    width, height:
        Room dimensions in metres.
    num_steps:
        Total number of poses to generate.
    margin:
        Distance in metres to keep from each wall.
    origin:
        World coordinates of the room's lower-left corner.

    Returns
    -------
    list[Pose]
        Ordered list of (x, y, theta) poses.
    """
    inner_width = width - 2.0 * margin
    inner_height = height - 2.0 * margin
    if inner_width <= 0.0 or inner_height <= 0.0:
        raise ValueError(
            f"Room ({width}x{height}m) too small for margin={margin}m. "
            "Reduce margin or increase room size."
        )

    x0 = origin[0] + margin
    y0 = origin[1] + margin
    segments = [
        ((x0, y0), (inner_width, 0.0)),
        ((x0 + inner_width, y0), (0.0, inner_height)),
        ((x0 + inner_width, y0 + inner_height), (-inner_width, 0.0)),
        ((x0, y0 + inner_height), (0.0, -inner_height)),
    ]
    perimeter = 2.0 * (inner_width + inner_height)

    poses: list[Pose] = []
    for arc in np.linspace(0.0, perimeter, num_steps, endpoint=False):
        for (sx, sy), (dx, dy) in segments:
            length = math.hypot(dx, dy)
            if arc < length:
                t = arc / length
                poses.append(Pose(sx + dx * t, sy + dy * t, math.atan2(dy, dx)))
                break
            arc -= length
        else:
            (sx, sy), (dx, dy) = segments[-1]
            poses.append(Pose(sx + dx, sy + dy, math.atan2(dy, dx)))
    return poses
