"""Shared fixtures: a sonar mounted at the world origin looking along +x.

The layer grid covers x in [-2.01, 7.99), y in [-5.01, 4.99) at 5 cm; the
small offset keeps beam targets away from cell borders.
"""

from __future__ import annotations

import math

import pytest

from src.range_layer.experiment.config import FusionConfig
from src.range_layer.layer.range_layer import RangeSensorLayer
from src.range_layer.sensing.readings import RangeReading
from src.range_layer.sensing.transform import StaticFrameTransformer

SIZE = 200
RESOLUTION = 0.05
ORIGIN = (-2.01, -5.01)
EMPTY_BOUNDS = (math.inf, math.inf, -math.inf, -math.inf)


class FakeClock:
    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def transformer() -> StaticFrameTransformer:
    tf = StaticFrameTransformer("map")
    tf.set_pose("sonar", 0.0, 0.0, 0.0)
    return tf


@pytest.fixture
def make_reading():
    def _make(
        range_value: float,
        *,
        min_range: float = 0.1,
        max_range: float = 10.0,
        fov: float = 0.2,
        frame: str = "sonar",
        stamp: float = 0.0,
    ) -> RangeReading:
        return RangeReading(
            frame_id=frame,
            stamp=stamp,
            range=range_value,
            min_range=min_range,
            max_range=max_range,
            field_of_view=fov,
        )

    return _make


@pytest.fixture
def make_layer(transformer):
    """Factory for a layer whose initial full-map dirty region is already consumed."""

    def _make(clock=None, **cfg) -> RangeSensorLayer:
        config = FusionConfig.from_dict({"transform_tolerance": 0.01, **cfg})
        kwargs = {"clock": clock} if clock is not None else {}
        layer = RangeSensorLayer(
            size_x=SIZE,
            size_y=SIZE,
            resolution=RESOLUTION,
            transformer=transformer,
            config=config,
            origin_x=ORIGIN[0],
            origin_y=ORIGIN[1],
            **kwargs,
        )
        layer.update_bounds(0.0, 0.0, 0.0, EMPTY_BOUNDS)
        return layer

    return _make
