import logging
import math

import numpy as np
import pytest

from src.range_layer.fusion.bayes import FREE_SPACE, LETHAL_OBSTACLE, NO_INFORMATION, UNKNOWN_COST
from src.range_layer.grid.obstacle_map import ObstacleMap

SIZE = 200
RESOLUTION = 0.05
ORIGIN = (-2.01, -5.01)
EMPTY = (math.inf, math.inf, -math.inf, -math.inf)
HALF_FOV = 0.1  # readings below use field_of_view = 0.2


def _polar(layer, ox=0.0, oy=0.0, heading=0.0):
    wx, wy = layer.grid.cell_centres(0, 0, layer.grid.size_x - 1, layer.grid.size_y - 1)
    raw = np.arctan2(wy - oy, wx - ox) - heading
    theta = np.arctan2(np.sin(raw), np.cos(raw))
    return theta, np.hypot(wx - ox, wy - oy)


def _cost_at(layer, wx, wy):
    mx, my = layer.grid.world_to_map(wx, wy)
    return layer.grid.get_cost(mx, my)


def _cycle(layer, *readings):
    for r in readings:
        layer.push_reading(r)
    return layer.update_bounds(0.0, 0.0, 0.0, EMPTY)


def _shared_map():
    return ObstacleMap(SIZE, SIZE, RESOLUTION, *ORIGIN)


# ----------------------------------------------------------------------
# Fusion
# ----------------------------------------------------------------------

def test_fixed_max_reading_without_clearing_leaves_grid_untouched(make_layer, make_reading):
    layer = make_layer(clear_on_max_reading=False)
    before = layer.grid.data.copy()

    bounds = _cycle(layer, make_reading(math.inf, min_range=2.0, max_range=2.0))

    np.testing.assert_array_equal(layer.grid.data, before)
    assert layer.last_cycle == {"drained": 1, "accepted": 0, "dropped": 1}
    assert bounds == EMPTY


def test_fixed_detection_raises_cell_at_min_range(make_layer, make_reading):
    layer = make_layer()

    _cycle(layer, make_reading(-math.inf, min_range=2.0, max_range=2.0))

    assert _cost_at(layer, 2.0, 0.0) > UNKNOWN_COST
    # Free space between the sensor and the detection
    assert _cost_at(layer, 1.0, 0.0) < UNKNOWN_COST


def test_fixed_invalid_finite_value_is_dropped(make_layer, make_reading):
    layer = make_layer()
    before = layer.grid.data.copy()

    _cycle(layer, make_reading(1.5, min_range=2.0, max_range=2.0))

    np.testing.assert_array_equal(layer.grid.data, before)
    assert layer.last_cycle["dropped"] == 1


def test_variable_detection_raises_near_range_and_ignores_outside_cone(make_layer, make_reading):
    layer = make_layer(phi_v=10.0)

    _cycle(layer, make_reading(5.0))

    assert _cost_at(layer, 4.95, 0.0) > UNKNOWN_COST
    assert _cost_at(layer, 2.0, 0.0) < UNKNOWN_COST
    theta, _ = _polar(layer)
    outside = np.abs(theta) > HALF_FOV + 0.01
    assert np.all(layer.grid.data[outside] == UNKNOWN_COST)


def test_variable_max_reading_clears_cone_only(make_layer, make_reading):
    layer = make_layer()

    _cycle(layer, make_reading(12.0))

    theta, phi = _polar(layer)
    inside = (np.abs(theta) < HALF_FOV - 0.01) & (phi > 0.5)
    outside = np.abs(theta) > HALF_FOV + 0.01
    assert inside.any()
    assert np.all(layer.grid.data[inside] < UNKNOWN_COST)
    assert np.all(layer.grid.data[outside] == UNKNOWN_COST)


def test_variable_reading_below_min_range_is_dropped(make_layer, make_reading):
    layer = make_layer()
    before = layer.grid.data.copy()

    _cycle(layer, make_reading(0.05), make_reading(float("nan")))

    np.testing.assert_array_equal(layer.grid.data, before)
    assert layer.last_cycle == {"drained": 2, "accepted": 0, "dropped": 2}


@pytest.mark.parametrize(
    "range_value, min_range, max_range",
    [(6.0, 5.0, 2.0), (3.0, math.nan, math.nan)],
)
def test_reading_with_invalid_limits_leaves_grid_untouched(
    make_layer, make_reading, range_value, min_range, max_range
):
    layer = make_layer()
    before = layer.grid.data.copy()

    bounds = _cycle(layer, make_reading(range_value, min_range=min_range, max_range=max_range))

    np.testing.assert_array_equal(layer.grid.data, before)
    assert layer.last_cycle == {"drained": 1, "accepted": 0, "dropped": 1}
    assert bounds == EMPTY


def test_variable_sensor_type_rejects_fixed_encoding(make_layer, make_reading):
    layer = make_layer(input_sensor_type="VARIABLE")

    _cycle(layer, make_reading(-math.inf, min_range=2.0, max_range=2.0))

    assert layer.last_cycle["dropped"] == 1


def test_scan_cross_check_turns_detection_into_clear(make_layer, make_reading):
    layer = make_layer(scan_cross_check=True, phi_v=10.0)
    layer.update_scan(np.full(360, 3.0))

    _cycle(layer, make_reading(5.0))

    # No detection stamp: the target cell is cleared like the rest of the cone
    assert _cost_at(layer, 5.0, 0.0) < UNKNOWN_COST
    assert _cost_at(layer, 4.95, 0.0) < UNKNOWN_COST


def test_cross_check_disabled_ignores_scan(make_layer, make_reading):
    layer = make_layer(phi_v=10.0)
    layer.update_scan(np.full(360, 3.0))

    _cycle(layer, make_reading(5.0))

    assert _cost_at(layer, 4.95, 0.0) > UNKNOWN_COST


def test_untransformable_reading_is_dropped_and_batch_continues(make_layer, make_reading):
    layer = make_layer(phi_v=10.0)

    _cycle(layer, make_reading(5.0, frame="unknown"), make_reading(5.0))

    assert layer.last_cycle == {"drained": 2, "accepted": 1, "dropped": 1}
    assert _cost_at(layer, 4.95, 0.0) > UNKNOWN_COST


def test_untransformable_reading_leaves_grid_and_bounds(make_layer, make_reading):
    layer = make_layer()
    before = layer.grid.data.copy()

    bounds = _cycle(layer, make_reading(5.0, frame="unknown"))

    np.testing.assert_array_equal(layer.grid.data, before)
    assert bounds == EMPTY


def test_detection_arc_stamps_across_cone(make_layer, make_reading):
    plain = make_layer(phi_v=10.0)
    arc = make_layer(phi_v=10.0, mark_detection_arc=True)

    _cycle(plain, make_reading(3.0))
    _cycle(arc, make_reading(3.0))

    # Off-axis cell at the detection range: only the arc stamp lifts it near lethal
    assert _cost_at(arc, 3.0, 0.2) > _cost_at(plain, 3.0, 0.2) > UNKNOWN_COST
    assert _cost_at(arc, 1.5, 0.0) == _cost_at(plain, 1.5, 0.0)


def test_rotated_sensor_fuses_along_its_heading(transformer, make_layer, make_reading):
    transformer.set_pose("side", 1.0, 0.0, math.pi / 2)
    layer = make_layer(phi_v=10.0)

    _cycle(layer, make_reading(3.0, frame="side"))

    assert _cost_at(layer, 1.0, 2.95) > UNKNOWN_COST
    assert _cost_at(layer, 1.0, 1.5) < UNKNOWN_COST
    assert _cost_at(layer, 4.0, 0.0) == UNKNOWN_COST


# ----------------------------------------------------------------------
# Dirty region
# ----------------------------------------------------------------------

def test_first_cycle_reports_everything(transformer):
    from src.range_layer.layer.range_layer import RangeSensorLayer

    layer = RangeSensorLayer(
        size_x=10, size_y=10, resolution=0.1, transformer=transformer
    )
    bounds = layer.update_bounds(0.0, 0.0, 0.0, EMPTY)

    assert bounds == (-math.inf, -math.inf, math.inf, math.inf)
    assert layer.update_bounds(0.0, 0.0, 0.0, EMPTY) == EMPTY


def test_bounds_cover_origin_target_and_edges(make_layer, make_reading):
    layer = make_layer()

    bounds = _cycle(layer, make_reading(3.0))

    half_width = 3.0 * math.tanh(HALF_FOV)
    assert bounds == pytest.approx((0.0, -half_width, 3.0, half_width))


def test_bounds_union_of_two_readings(transformer, make_layer, make_reading):
    transformer.set_pose("other", 1.0, 1.0, math.pi / 2)
    layer = make_layer()
    first = make_reading(3.0)
    second = make_reading(2.0, frame="other")

    b1 = _cycle(layer, first)
    b2 = _cycle(layer, second)
    both = _cycle(layer, first, second)

    assert both == pytest.approx((
        min(b1[0], b2[0]),
        min(b1[1], b2[1]),
        max(b1[2], b2[2]),
        max(b1[3], b2[3]),
    ))


def test_bounds_widen_caller_region(make_layer, make_reading):
    layer = make_layer()
    layer.push_reading(make_reading(3.0))

    bounds = layer.update_bounds(0.0, 0.0, 0.0, (-1.0, -1.0, 1.0, 1.0))

    assert bounds[0] == -1.0 and bounds[1] == -1.0
    assert bounds[2] == pytest.approx(3.0)
    assert bounds[3] == 1.0


# ----------------------------------------------------------------------
# Merge
# ----------------------------------------------------------------------

def test_merge_marks_obstacle_and_free(make_layer, make_reading):
    layer = make_layer(phi_v=10.0)
    master = _shared_map()

    bounds = _cycle(layer, make_reading(5.0))
    written = layer.update_costs(master, *master.bounds_to_cells(*bounds))

    assert written > 0
    mx, my = master.world_to_map(4.95, 0.0)
    assert master.get_cost(mx, my) == LETHAL_OBSTACLE
    mx, my = master.world_to_map(2.0, 0.0)
    assert master.get_cost(mx, my) == FREE_SPACE
    mx, my = master.world_to_map(-1.0, 3.0)
    assert master.get_cost(mx, my) == NO_INFORMATION


def test_merge_never_downgrades_obstacle(make_layer, make_reading):
    layer = make_layer(phi_v=10.0)
    master = _shared_map()
    bounds = _cycle(layer, make_reading(5.0))
    layer.update_costs(master, *master.bounds_to_cells(*bounds))
    mx, my = master.world_to_map(4.95, 0.0)
    assert master.get_cost(mx, my) == LETHAL_OBSTACLE

    # Clear the whole cone repeatedly until the layer believes it is free
    for _ in range(3):
        bounds = _cycle(layer, make_reading(12.0))
        layer.update_costs(master, *master.bounds_to_cells(*bounds))

    assert _cost_at(layer, 4.95, 0.0) < UNKNOWN_COST
    assert master.get_cost(mx, my) == LETHAL_OBSTACLE


def test_update_costs_rejects_mismatched_map(make_layer):
    layer = make_layer()
    master = ObstacleMap(SIZE // 2, SIZE, RESOLUTION, *ORIGIN)

    with pytest.raises(ValueError):
        layer.update_costs(master, 0, 0, SIZE, SIZE)


def test_disabled_layer_never_writes(make_layer, make_reading):
    layer = make_layer(phi_v=10.0)
    layer.reconfigure({"enabled": False})
    assert layer.current is False
    master = _shared_map()

    bounds = _cycle(layer, make_reading(5.0))

    assert layer.current is True
    assert layer.update_costs(master, *master.bounds_to_cells(*bounds)) == 0
    assert np.all(master.data == NO_INFORMATION)


# ----------------------------------------------------------------------
# Staleness
# ----------------------------------------------------------------------

def test_staleness_cycle(clock, make_layer, make_reading):
    layer = make_layer(clock=clock, no_readings_timeout=1.0)
    master = _shared_map()
    assert layer.current

    clock.now = 1.5
    _cycle(layer)
    assert not layer.current

    # A fresh reading alone does not restore currency; the merge does
    clock.now = 1.6
    _cycle(layer, make_reading(3.0))
    assert not layer.current
    layer.update_costs(master, 0, 0, SIZE, SIZE)
    assert layer.current

    clock.now = 2.0
    _cycle(layer)
    assert layer.current

    clock.now = 3.0
    _cycle(layer)
    assert not layer.current


def test_staleness_disabled_with_zero_timeout(clock, make_layer):
    layer = make_layer(clock=clock)

    clock.now = 1000.0
    _cycle(layer)

    assert layer.current


def test_staleness_warning_is_logged(clock, make_layer, caplog):
    layer = make_layer(clock=clock, no_readings_timeout=0.5)
    clock.now = 1.0

    with caplog.at_level(logging.WARNING, logger="src.range_layer.layer.staleness"):
        _cycle(layer)
        _cycle(layer)

    warnings = [r for r in caplog.records if "No range readings received" in r.getMessage()]
    assert len(warnings) == 1


# ----------------------------------------------------------------------
# Lifecycle
# ----------------------------------------------------------------------

def test_reset_restores_prior_and_repaints(make_layer, make_reading):
    layer = make_layer(phi_v=10.0)
    _cycle(layer, make_reading(5.0))
    layer.push_reading(make_reading(5.0))

    layer.reset()

    assert np.all(layer.grid.data == UNKNOWN_COST)
    assert len(layer.buffer) == 0
    assert layer.update_bounds(0.0, 0.0, 0.0, EMPTY) == (-math.inf, -math.inf, math.inf, math.inf)


def test_match_size_discards_history(make_layer, make_reading):
    layer = make_layer(phi_v=10.0)
    _cycle(layer, make_reading(5.0))

    layer.match_size(50, 40, 0.1, 0.0, 0.0)

    assert layer.grid.data.shape == (40, 50)
    assert np.all(layer.grid.data == UNKNOWN_COST)


def test_reconfigure_keeps_previous_on_bad_values(make_layer):
    layer = make_layer(no_readings_timeout=2.0)

    cfg = layer.reconfigure({"clear_threshold": 0.9, "mark_threshold": 0.1, "phi_v": "fast"})

    assert cfg.clear_threshold == 0.2
    assert cfg.mark_threshold == 0.8
    assert cfg.phi_v == 1.2
    assert layer.staleness.timeout == 2.0


def test_rolling_window_follows_robot(transformer):
    from src.range_layer.layer.range_layer import RangeSensorLayer

    layer = RangeSensorLayer(
        size_x=100,
        size_y=100,
        resolution=0.1,
        transformer=transformer,
        origin_x=-5.0,
        origin_y=-5.0,
        rolling_window=True,
    )

    layer.update_bounds(2.0, 1.0, 0.0, EMPTY)

    assert layer.grid.origin_x == pytest.approx(-3.0)
    assert layer.grid.origin_y == pytest.approx(-4.0)
