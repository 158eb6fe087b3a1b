# TDP: Sonar cone geometry in the global frame
# Approach: Transform two sensor-frame points into the global frame: the
#   sensor origin (0, 0) and the point effective_range along the beam axis
#   (range, 0).  From the world origin (ox, oy) and target (tx, ty):
#     theta  = atan2(ty - oy, tx - ox)        beam heading
#     length = |target - origin|
#     radius = length * tanh(max_angle)       cone half-width at the target
#   The two edge points are the target shifted +/- radius perpendicular to
#   the beam.  The candidate cells are the bounding box of the origin cell,
#   the target cell and both edge cells, clamped to the grid.
#
#   tanh() instead of tan(): wide field-of-view sensors get a cone narrower
#   than their nominal width (tanh(x) < x < tan(x)).
#
# Alternatives considered:
#   Exact sector rasterisation -- fewer cells, but the likelihood model
#   already attenuates to neutral outside the cone, and the box keeps the
#   pass a single rectangular numpy block.
# Risks: A transform that never becomes available stalls each reading for
#   the full tolerance.  Bounded by transform_tolerance (0.1 s default).
"""Cone Geometry Resolver: world-frame beam geometry and candidate cell box."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

import numpy as np

from src.range_layer.grid.bounds import DirtyRegion
from src.range_layer.grid.occupancy_grid import OccupancyGrid
from src.range_layer.sensing.classifier import Classified
from src.range_layer.sensing.transform import FrameTransformer
from src.range_layer.throttle import log_throttled

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Cone:
    """Resolved geometry of one reading in the global frame."""

    ox: float
    oy: float
    tx: float
    ty: float
    theta: float    # beam heading, radians
    length: float   # |target - origin|
    radius: float   # half-width at the target
    left: tuple[float, float]
    right: tuple[float, float]
    bx0: int        # inclusive, clamped cell box
    by0: int
    bx1: int
    by1: int

    @property
    def is_empty(self) -> bool:
        return self.bx0 > self.bx1 or self.by0 > self.by1


def resolve_cone(
    grid: OccupancyGrid,
    transformer: FrameTransformer,
    global_frame: str,
    classified: Classified,
    *,
    max_angle: float,
    tolerance: float = 0.1,
) -> Cone | None:
    """Compute the world-frame cone of *classified*, or None if untransformable.

    Parameters
    ----------
    grid:
        Probability grid (for cell indexing and clamping).
    transformer:
        Frame transformer used for the origin and the target point.
    global_frame:
        Frame the grid is expressed in.
    classified:
        Accepted reading with its effective range.
    max_angle:
        Cone half-width (radians).
    tolerance:
        Maximum wait for the transform (seconds).
    """
    reading = classified.reading
    frame = reading.frame_id

    try:
        available = transformer.wait_for_transform(global_frame, frame, reading.stamp, tolerance)
        if available:
            ox, oy = transformer.transform_point(global_frame, frame, (0.0, 0.0), reading.stamp)
            tx, ty = transformer.transform_point(
                global_frame, frame, (classified.effective_range, 0.0), reading.stamp
            )
    except LookupError as e:
        logger.debug(f"Transform lookup failed: {e}")
        available = False

    if not available:
        log_throttled(
            logger, logging.ERROR, f"cone.transform.{frame}", 1.0,
            f"Range sensor layer can't transform from {global_frame} to {frame} "
            f"at {reading.stamp:.3f}",
        )
        return None

    dx, dy = tx - ox, ty - oy
    theta = math.atan2(dy, dx)
    length = math.hypot(dx, dy)
    radius = length * math.tanh(max_angle)

    left = (tx - radius * math.sin(theta), ty + radius * math.cos(theta))
    right = (tx + radius * math.sin(theta), ty - radius * math.cos(theta))

    cells = [
        grid.world_to_map_no_bounds(ox, oy),
        grid.world_to_map_no_bounds(tx, ty),
        grid.world_to_map_no_bounds(*left),
        grid.world_to_map_no_bounds(*right),
    ]
    bx0 = max(0, min(c[0] for c in cells))
    by0 = max(0, min(c[1] for c in cells))
    bx1 = min(grid.size_x - 1, max(c[0] for c in cells))
    by1 = min(grid.size_y - 1, max(c[1] for c in cells))

    return Cone(ox, oy, tx, ty, theta, length, radius, left, right, bx0, by0, bx1, by1)


def touch_cone(region: DirtyRegion, grid: OccupancyGrid, cone: Cone) -> None:
    """Widen *region* by the origin, the target (if on the grid) and both edges."""
    region.touch(cone.ox, cone.oy)
    if grid.world_to_map(cone.tx, cone.ty) is not None:
        region.touch(cone.tx, cone.ty)
    region.touch(*cone.left)
    region.touch(*cone.right)


def cell_polar(cone: Cone, wx, wy):
    """Angular deviation from the beam axis and radial distance of cell centres.

    Works on scalars or numpy arrays.  The deviation is normalised to
    (-pi, pi].

    Returns
    -------
    tuple
        (theta_dev, phi)
    """
    dx = np.asarray(wx, dtype=np.float64) - cone.ox
    dy = np.asarray(wy, dtype=np.float64) - cone.oy
    raw = np.arctan2(dy, dx) - cone.theta
    theta_dev = np.arctan2(np.sin(raw), np.cos(raw))
    phi = np.hypot(dx, dy)
    if theta_dev.ndim == 0:
        return float(theta_dev), float(phi)
    return theta_dev, phi
