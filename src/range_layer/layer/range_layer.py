# TDP: Range-sensor layer orchestration
# Approach: The layer owns the probability grid and is the only thing that
#   touches it.  Producers only ever call push_reading()/update_scan(), which
#   take a short lock on their own buffers.  The periodic consumer drives two
#   phases per cycle:
#
#   update_bounds(robot pose, bounds):
#     1. re-origin the grid if the map is a rolling window
#     2. drain the reading buffer wholesale
#     3. for each reading in drain order: classify -> resolve cone -> Bayes
#        update; a dropped reading (malformed, untransformable) never aborts
#        the batch
#     4. union the dirty region into the caller's bounds, report, reset
#     5. evaluate staleness
#
#   update_costs(master, window):
#     threshold the probability grid into the shared map over the window,
#     then reset the per-cycle reading counter and mark the layer current.
#
#   The dirty region starts as "everything" so the first cycle after start,
#   reset or resize repaints the whole map.
#
# Alternatives considered:
#   Fusing inside the producer callback -- needs a lock across a whole grid
#   pass and blocks sensor delivery; the buffer keeps the lock short.
"""RangeSensorLayer: buffered readings in, Bayesian grid updates, thresholded merge out."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable

import numpy as np

from src.range_layer.experiment.config import FusionConfig
from src.range_layer.fusion.cell_fuser import fuse_cone
from src.range_layer.grid.bounds import Bounds, DirtyRegion
from src.range_layer.grid.obstacle_map import ObstacleMap, merge_probabilities
from src.range_layer.grid.occupancy_grid import OccupancyGrid
from src.range_layer.layer.staleness import StalenessMonitor
from src.range_layer.sensing.classifier import classify
from src.range_layer.sensing.cone import resolve_cone, touch_cone
from src.range_layer.sensing.readings import RangeReading, ReadingBuffer
from src.range_layer.sensing.scan_check import ScanCrossCheck
from src.range_layer.sensing.transform import FrameTransformer

logger = logging.getLogger(__name__)


class RangeSensorLayer:
    """Occupancy layer fed by cone-shaped range sensors.

    Parameters
    ----------
    size_x, size_y:
        Grid dimensions in cells.
    resolution:
        Metres per cell.
    transformer:
        Frame transformer used to place readings in *global_frame*.
    config:
        Fusion parameters. Defaults to :class:`FusionConfig` defaults.
    origin_x, origin_y:
        World coordinates of cell (0, 0).
    global_frame:
        Frame the grid is expressed in.
    rolling_window:
        Re-centre the grid on the robot in every :meth:`update_bounds`.
    clock:
        Monotonic time source for staleness. Injectable for tests.
    """

    def __init__(
        self,
        *,
        size_x: int,
        size_y: int,
        resolution: float,
        transformer: FrameTransformer,
        config: FusionConfig | None = None,
        origin_x: float = 0.0,
        origin_y: float = 0.0,
        global_frame: str = "map",
        rolling_window: bool = False,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config if config is not None else FusionConfig()
        self.transformer = transformer
        self.global_frame = global_frame
        self.rolling_window = rolling_window

        self.grid = OccupancyGrid(size_x, size_y, resolution, origin_x, origin_y)
        self.buffer = ReadingBuffer()
        self.cross_check = ScanCrossCheck(self.config.trust_distance, self.config.scan_window)
        self.dirty = DirtyRegion.everything()
        self.staleness = StalenessMonitor(self.config.no_readings_timeout, clock)
        self.last_cycle: dict[str, int] = {"drained": 0, "accepted": 0, "dropped": 0}

        logger.info(
            f"Range sensor layer: {self.config.input_sensor_type.value} as input_sensor_type, "
            f"{size_x}x{size_y} cells @ {resolution} m"
        )

    # ------------------------------------------------------------------
    # Producer side
    # ------------------------------------------------------------------

    def push_reading(self, reading: RangeReading) -> None:
        """Buffer a reading. Safe to call from any thread."""
        self.buffer.push(reading)

    def update_scan(self, ranges) -> None:
        """Replace the wide-field scan used by the optional cross-check."""
        self.cross_check.update_scan(ranges)

    # ------------------------------------------------------------------
    # Consumer side: fusion
    # ------------------------------------------------------------------

    @property
    def current(self) -> bool:
        return self.staleness.current

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    def _max_angle(self, reading: RangeReading) -> float:
        if reading.field_of_view > 0.0:
            return reading.field_of_view / 2.0
        return self.config.max_angle

    def process_reading(self, reading: RangeReading) -> bool:
        """Fuse one reading into the grid. Returns False if it was dropped."""
        cfg = self.config
        classified = classify(
            reading,
            cfg.input_sensor_type,
            clear_on_max_reading=cfg.clear_on_max_reading,
            cross_check=self.cross_check if cfg.scan_cross_check else None,
        )
        if classified is None:
            return False

        max_angle = self._max_angle(reading)
        cone = resolve_cone(
            self.grid,
            self.transformer,
            self.global_frame,
            classified,
            max_angle=max_angle,
            tolerance=cfg.transform_tolerance,
        )
        if cone is None:
            return False

        touch_cone(self.dirty, self.grid, cone)
        fuse_cone(
            self.grid,
            cone,
            classified,
            max_angle=max_angle,
            phi_v=cfg.phi_v,
            mark_detection_arc=cfg.mark_detection_arc,
            arc_min_range=cfg.arc_min_range,
        )
        self.staleness.reading_accepted()
        return True

    def update_map(self) -> dict[str, int]:
        """Drain the buffer and fuse every reading, in drain order."""
        batch = self.buffer.drain_all()
        accepted = 0
        for reading in batch:
            if self.process_reading(reading):
                accepted += 1
        self.last_cycle = {
            "drained": len(batch),
            "accepted": accepted,
            "dropped": len(batch) - accepted,
        }
        return self.last_cycle

    def update_bounds(
        self,
        robot_x: float,
        robot_y: float,
        robot_yaw: float,
        bounds: Bounds,
    ) -> Bounds:
        """Run the fusion phase and return *bounds* widened by the dirty region.

        Parameters
        ----------
        robot_x, robot_y, robot_yaw:
            Robot pose in the global frame (used for rolling windows).
        bounds:
            ``(min_x, min_y, max_x, max_y)`` the caller is already tracking.
        """
        if self.rolling_window:
            self.grid.update_origin(
                robot_x - self.grid.size_in_meters_x / 2.0,
                robot_y - self.grid.size_in_meters_y / 2.0,
            )

        self.update_map()

        bounds = self.dirty.union_into(bounds)
        self.dirty.reset()

        if not self.config.enabled:
            self.staleness.current = True
            return bounds

        self.staleness.end_cycle()
        return bounds

    # ------------------------------------------------------------------
    # Consumer side: merge
    # ------------------------------------------------------------------

    def update_costs(
        self,
        master: ObstacleMap,
        min_i: int,
        min_j: int,
        max_i: int,
        max_j: int,
    ) -> int:
        """Threshold the probability grid into *master* over the half-open cell window.

        Returns the number of shared-map cells written.

        Raises
        ------
        ValueError
            If *master* and the layer grid differ in shape.
        """
        if not self.config.enabled:
            return 0
        if master.data.shape != self.grid.data.shape:
            raise ValueError(
                f"Shared map shape {master.data.shape} does not match layer grid "
                f"{self.grid.data.shape}; call match_size() first"
            )

        min_i, min_j = max(0, min_i), max(0, min_j)
        max_i, max_j = min(self.grid.size_x, max_i), min(self.grid.size_y, max_j)

        written = merge_probabilities(
            master.data,
            self.grid.data,
            min_i,
            min_j,
            max_i,
            max_j,
            mark_threshold=self.config.mark_threshold,
            clear_threshold=self.config.clear_threshold,
        )
        self.staleness.merged()
        return written

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def reconfigure(self, section: dict[str, Any]) -> FusionConfig:
        """Apply a ``layer`` config section; invalid values keep their previous setting."""
        old = self.config
        new = FusionConfig.from_dict(section, previous=old)
        self.config = new

        self.staleness.timeout = new.no_readings_timeout
        self.cross_check.trust_distance = new.trust_distance
        self.cross_check.window = new.scan_window

        if new.enabled != old.enabled:
            self.staleness.current = False
        return new

    def match_size(
        self,
        size_x: int,
        size_y: int,
        resolution: float,
        origin_x: float,
        origin_y: float,
    ) -> None:
        """Resize the grid to match the shared map; history is discarded."""
        self.grid.resize(size_x, size_y, resolution, origin_x, origin_y)
        self.dirty = DirtyRegion.everything()

    def activate(self) -> None:
        self.buffer.clear()

    def deactivate(self) -> None:
        self.buffer.clear()

    def reset(self) -> None:
        """Drop buffered readings and return every cell to the 0.5 prior."""
        logger.debug("Resetting range sensor layer...")
        self.deactivate()
        self.grid.reset()
        self.cross_check.clear()
        self.dirty = DirtyRegion.everything()
        self.staleness.reset()
        self.activate()

    def probabilities(self) -> np.ndarray:
        """Stored P(occupied), float32 (size_y, size_x)."""
        return self.grid.probabilities()
