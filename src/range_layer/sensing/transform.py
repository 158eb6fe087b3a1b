"""Frame transformer interface and a static 2-D implementation.

The layer only needs two calls per reading: wait until the sensor frame can
be expressed in the global frame, then map points across.  Any object with
these two methods works (a tf buffer adapter, a simulator, a test double).
"""

from __future__ import annotations

import math
import threading
import time
from typing import Protocol

Point = tuple[float, float]


class FrameTransformer(Protocol):
    def wait_for_transform(
        self, target_frame: str, source_frame: str, stamp: float, max_wait: float
    ) -> bool:
        ...

    def transform_point(
        self, target_frame: str, source_frame: str, point: Point, stamp: float
    ) -> Point:
        ...


class StaticFrameTransformer:
    """Planar poses of named frames relative to one global frame.

    Poses are ``(x, y, yaw)`` of each frame's origin in the global frame.
    :meth:`wait_for_transform` polls until the source frame is known or
    *max_wait* seconds elapse.

    Parameters
    ----------
    global_frame:
        Name of the frame all poses are expressed in.
    """

    def __init__(self, global_frame: str = "map") -> None:
        self.global_frame = global_frame
        self._poses: dict[str, tuple[float, float, float]] = {global_frame: (0.0, 0.0, 0.0)}
        self._cond = threading.Condition()

    def set_pose(self, frame: str, x: float, y: float, yaw: float) -> None:
        with self._cond:
            self._poses[frame] = (float(x), float(y), float(yaw))
            self._cond.notify_all()

    def remove(self, frame: str) -> None:
        with self._cond:
            self._poses.pop(frame, None)

    def _pose(self, frame: str) -> tuple[float, float, float]:
        with self._cond:
            try:
                return self._poses[frame]
            except KeyError:
                raise LookupError(f"Unknown frame '{frame}'") from None

    def wait_for_transform(
        self, target_frame: str, source_frame: str, stamp: float, max_wait: float
    ) -> bool:
        deadline = time.monotonic() + max(0.0, max_wait)
        with self._cond:
            while not (target_frame in self._poses and source_frame in self._poses):
                remaining = deadline - time.monotonic()
                if remaining <= 0.0:
                    return False
                self._cond.wait(remaining)
        return True

    def transform_point(
        self, target_frame: str, source_frame: str, point: Point, stamp: float
    ) -> Point:
        sx, sy, syaw = self._pose(source_frame)
        tx, ty, tyaw = self._pose(target_frame)

        # source -> global
        px, py = point
        gx = sx + px * math.cos(syaw) - py * math.sin(syaw)
        gy = sy + px * math.sin(syaw) + py * math.cos(syaw)

        # global -> target
        dx, dy = gx - tx, gy - ty
        return (
            dx * math.cos(tyaw) + dy * math.sin(tyaw),
            -dx * math.sin(tyaw) + dy * math.cos(tyaw),
        )
