import math
import threading
import time

import numpy as np
import pytest

from src.range_layer.grid.occupancy_grid import OccupancyGrid
from src.range_layer.sensing.classifier import Classified, SensorMode, classify
from src.range_layer.sensing.cone import cell_polar, resolve_cone
from src.range_layer.sensing.readings import ReadingBuffer
from src.range_layer.sensing.scan_check import ScanCrossCheck
from src.range_layer.sensing.transform import StaticFrameTransformer


# ----------------------------------------------------------------------
# Classifier
# ----------------------------------------------------------------------

@pytest.mark.parametrize(
    "name, expected",
    [("fixed", SensorMode.FIXED), (" Variable ", SensorMode.VARIABLE),
     ("ALL", SensorMode.ALL), ("auto", SensorMode.ALL)],
)
def test_sensor_mode_parse(name, expected):
    assert SensorMode.parse(name) is expected


def test_sensor_mode_parse_rejects_unknown():
    with pytest.raises(ValueError, match="Invalid input sensor type"):
        SensorMode.parse("SONAR")


def test_fixed_max_reading(make_reading):
    r = make_reading(math.inf, min_range=1.0, max_range=1.0)
    assert classify(r, SensorMode.ALL, clear_on_max_reading=True) == Classified(r, 1.0, True)
    assert classify(r, SensorMode.ALL, clear_on_max_reading=False) is None


def test_fixed_detection(make_reading):
    r = make_reading(-math.inf, min_range=1.0, max_range=1.0)
    assert classify(r, SensorMode.FIXED, clear_on_max_reading=True) == Classified(r, 1.0, False)


def test_fixed_rejects_finite_value(make_reading):
    r = make_reading(0.7, min_range=1.0, max_range=1.0)
    assert classify(r, SensorMode.FIXED, clear_on_max_reading=True) is None


def test_variable_rules(make_reading):
    detect = make_reading(3.0)
    at_min = make_reading(0.1)
    beyond = make_reading(15.0)

    assert classify(detect, SensorMode.VARIABLE, clear_on_max_reading=False) == Classified(detect, 3.0, False)
    assert classify(at_min, SensorMode.VARIABLE, clear_on_max_reading=False) is None
    # Clamped to max_range whatever clear_on_max_reading says
    assert classify(beyond, SensorMode.ALL, clear_on_max_reading=False) == Classified(beyond, 10.0, True)


@pytest.mark.parametrize("mode", list(SensorMode))
@pytest.mark.parametrize(
    "range_value, min_range, max_range",
    [(6.0, 5.0, 2.0), (3.0, math.nan, math.nan), (3.0, 0.1, math.nan), (-math.inf, math.nan, 1.0)],
)
def test_inverted_or_nan_limits_are_dropped(make_reading, mode, range_value, min_range, max_range):
    r = make_reading(range_value, min_range=min_range, max_range=max_range)
    assert classify(r, mode, clear_on_max_reading=True) is None


def test_detection_flag_encoding(make_reading):
    assert make_reading(-math.inf, min_range=1.0, max_range=1.0).is_detection_flag
    assert not make_reading(math.inf, min_range=1.0, max_range=1.0).is_detection_flag
    assert not make_reading(3.0).is_detection_flag


def test_fixed_mode_forces_fixed_rules_on_variable_sensor(make_reading):
    r = make_reading(3.0)
    assert classify(r, SensorMode.FIXED, clear_on_max_reading=True) is None


def test_variable_detection_with_cross_check(make_reading):
    check = ScanCrossCheck(trust_distance=0.5, window=2)
    r = make_reading(3.0)

    assert not classify(r, SensorMode.VARIABLE, clear_on_max_reading=True, cross_check=check).clear_cone
    check.update_scan([9.0, 9.0, 3.2, 9.0, 9.0])
    assert classify(r, SensorMode.VARIABLE, clear_on_max_reading=True, cross_check=check).clear_cone


# ----------------------------------------------------------------------
# Scan cross-check
# ----------------------------------------------------------------------

class TestScanCrossCheck:
    def test_no_scan(self):
        assert not ScanCrossCheck().corroborates(1.0)

    def test_only_central_window_counts(self):
        check = ScanCrossCheck(trust_distance=0.0, window=2)
        ranges = np.full(21, 10.0)
        ranges[0] = 0.5   # outside the window
        check.update_scan(ranges)
        assert not check.corroborates(2.0)

        ranges[9] = 0.5   # inside [8, 12)
        check.update_scan(ranges)
        assert check.corroborates(2.0)

    def test_non_finite_ignored(self):
        check = ScanCrossCheck(trust_distance=0.65, window=5)
        check.update_scan([math.inf, math.nan, math.inf])
        assert not check.corroborates(1.0)

    def test_update_copies_input(self):
        check = ScanCrossCheck(trust_distance=0.0, window=5)
        ranges = np.full(5, 1.0)
        check.update_scan(ranges)
        ranges[:] = 100.0
        assert check.corroborates(2.0)
        check.clear()
        assert not check.corroborates(2.0)


# ----------------------------------------------------------------------
# Reading buffer
# ----------------------------------------------------------------------

def test_buffer_drains_in_arrival_order(make_reading):
    buf = ReadingBuffer()
    readings = [make_reading(float(i + 1)) for i in range(5)]
    for r in readings:
        buf.push(r)

    assert buf.drain_all() == readings
    assert len(buf) == 0
    assert buf.drain_all() == []


def test_buffer_concurrent_producers(make_reading):
    buf = ReadingBuffer()
    per_thread = 500
    drained = []
    done = threading.Event()

    def produce(tag):
        for i in range(per_thread):
            buf.push(make_reading(1.0 + i, frame=f"sonar_{tag}"))

    def consume():
        while not done.is_set():
            drained.extend(buf.drain_all())
            time.sleep(0.0005)

    consumer = threading.Thread(target=consume)
    consumer.start()
    producers = [threading.Thread(target=produce, args=(t,)) for t in range(4)]
    for p in producers:
        p.start()
    for p in producers:
        p.join()
    done.set()
    consumer.join()
    drained.extend(buf.drain_all())

    assert len(drained) == 4 * per_thread
    for tag in range(4):
        ranges = [r.range for r in drained if r.frame_id == f"sonar_{tag}"]
        assert ranges == [1.0 + i for i in range(per_thread)]


# ----------------------------------------------------------------------
# Transformer
# ----------------------------------------------------------------------

class TestStaticFrameTransformer:
    def test_transform_point(self):
        tf = StaticFrameTransformer("map")
        tf.set_pose("base", 1.0, 2.0, math.pi / 2)
        assert tf.transform_point("map", "base", (1.0, 0.0), 0.0) == pytest.approx((1.0, 3.0))
        assert tf.transform_point("base", "map", (1.0, 3.0), 0.0) == pytest.approx((1.0, 0.0))

    def test_wait_times_out(self):
        tf = StaticFrameTransformer("map")
        start = time.monotonic()
        assert not tf.wait_for_transform("map", "missing", 0.0, 0.05)
        assert time.monotonic() - start >= 0.04

    def test_wait_wakes_on_new_pose(self):
        tf = StaticFrameTransformer("map")
        timer = threading.Timer(0.05, tf.set_pose, args=("late", 0.0, 0.0, 0.0))
        timer.start()
        try:
            assert tf.wait_for_transform("map", "late", 0.0, 5.0)
        finally:
            timer.cancel()

    def test_unknown_frame(self):
        tf = StaticFrameTransformer("map")
        with pytest.raises(LookupError):
            tf.transform_point("map", "nowhere", (0.0, 0.0), 0.0)
        tf.set_pose("gone", 0.0, 0.0, 0.0)
        tf.remove("gone")
        with pytest.raises(LookupError):
            tf.transform_point("map", "gone", (0.0, 0.0), 0.0)


# ----------------------------------------------------------------------
# Cone geometry
# ----------------------------------------------------------------------

def _resolve(grid, tf, reading, effective_range, max_angle=0.1):
    return resolve_cone(
        grid, tf, "map", Classified(reading, effective_range, False),
        max_angle=max_angle, tolerance=0.01,
    )


def test_cone_geometry(transformer, make_reading):
    grid = OccupancyGrid(100, 100, 0.1, origin_x=-5.05, origin_y=-5.05)

    cone = _resolve(grid, transformer, make_reading(3.0), 3.0)

    assert (cone.ox, cone.oy) == pytest.approx((0.0, 0.0))
    assert (cone.tx, cone.ty) == pytest.approx((3.0, 0.0))
    assert cone.theta == pytest.approx(0.0)
    assert cone.length == pytest.approx(3.0)
    assert cone.radius == pytest.approx(3.0 * math.tanh(0.1))
    assert cone.left == pytest.approx((3.0, 3.0 * math.tanh(0.1)))
    assert cone.right == pytest.approx((3.0, -3.0 * math.tanh(0.1)))
    assert (cone.bx0, cone.bx1) == (50, 80)
    assert (cone.by0, cone.by1) == (47, 53)


def test_cone_box_is_clamped(transformer, make_reading):
    grid = OccupancyGrid(40, 40, 0.1, origin_x=-2.0, origin_y=-2.0)

    cone = _resolve(grid, transformer, make_reading(9.0), 9.0)

    assert cone.bx1 == grid.size_x - 1
    assert 0 <= cone.by0 <= cone.by1 < grid.size_y
    assert not cone.is_empty


def test_cone_missing_transform(make_reading):
    grid = OccupancyGrid(10, 10, 0.1)
    tf = StaticFrameTransformer("map")
    assert _resolve(grid, tf, make_reading(1.0, frame="missing"), 1.0) is None


def test_cell_polar(transformer, make_reading):
    grid = OccupancyGrid(100, 100, 0.1, origin_x=-5.0, origin_y=-5.0)
    transformer.set_pose("back", 1.0, 0.0, math.pi)
    cone = _resolve(grid, transformer, make_reading(2.0, frame="back"), 2.0)

    theta, phi = cell_polar(cone, -1.0, 0.0)
    assert isinstance(theta, float)
    assert theta == pytest.approx(0.0)
    assert phi == pytest.approx(2.0)

    theta, phi = cell_polar(cone, np.array([1.0, 2.0]), np.array([1.0, 0.0]))
    np.testing.assert_allclose(np.abs(theta), [math.pi / 2, math.pi])
    np.testing.assert_allclose(phi, [1.0, 1.0])
