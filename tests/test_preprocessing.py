"""
Preprocessing Module Tests

Tests for the DifficultyObject builder: cursor simulation, normalised
distances, angles with backtracking, the primary-only sub-sequence and
the travel fold into extended objects.
"""

import dataclasses
import math

import pytest
import numpy as np

from beatmap_strain import preprocessing
from beatmap_strain.errors import InvalidGeometryError, InvalidSequenceError
from beatmap_strain.objects import (
    KIND_EXTENDED,
    KIND_NON_POSITIONAL,
    NESTED_TAIL,
    NESTED_TICK,
    NestedPoint,
    RawObject,
    make_hit_window_fn,
)
from beatmap_strain.preprocessing import (
    DifficultySequence,
    backtracked_angle,
    build_difficulty_objects,
    lazy_cursor_step,
    simulate_nested_track,
)


HIT_WINDOW = make_hit_window_fn(8.0)


def circle(time: float, x: float, y: float, radius: float = 50.0) -> RawObject:
    return RawObject(start_time=time, end_time=time, position=(x, y), radius=radius)


def straight_extended(
    time: float,
    x: float,
    y: float,
    length: float = 200.0,
    duration: float = 1000.0,
    radius: float = 50.0,
    with_tick: bool = False
) -> RawObject:
    """Extended object moving right by `length`, ending with a tail."""
    nested = []
    if with_tick:
        nested.append(NestedPoint(time + duration / 2, (x + length / 2, y), NESTED_TICK))
    nested.append(NestedPoint(time + duration, (x + length, y), NESTED_TAIL))
    return RawObject(
        start_time=time,
        end_time=time + duration,
        position=(x, y),
        radius=radius,
        kind=KIND_EXTENDED,
        nested=tuple(nested),
        path=((0.0, 0.0), (length, 0.0)),
    )


def build(raw_objects, clock_rate: float = 1.0, expand_nested: bool = False) -> DifficultySequence:
    return build_difficulty_objects(raw_objects, clock_rate, HIT_WINDOW, expand_nested=expand_nested)


# =============================================================================
# BASIC QUANTITIES
# =============================================================================

class TestBasicQuantities:
    """Tests for distances, times and angles of simple objects."""

    def test_two_objects(self):
        """Two objects 100ms and 50 units apart at radius 50."""
        seq = build([circle(0, 0, 0), circle(100, 50, 0)])

        assert len(seq) == 2
        assert seq[1].lazy_jump_distance == pytest.approx(50.0)
        assert seq[1].strain_time == pytest.approx(100.0)
        assert seq[1].angle is None

    def test_first_object_defaults(self):
        """First object has no movement and a floored strain time."""
        seq = build([circle(0, 0, 0), circle(100, 50, 0)])

        assert seq[0].delta_time == 0.0
        assert seq[0].strain_time == preprocessing.MIN_DELTA_TIME
        assert seq[0].lazy_jump_distance == 0.0
        assert seq[0].angle is None

    def test_colinear_objects_turn_back_angle(self):
        """Straight continuation: incoming and outgoing vectors point apart."""
        seq = build([circle(0, 0, 0), circle(50, 100, 0), circle(100, 200, 0)])

        assert seq[2].angle == pytest.approx(math.pi)

    def test_right_angle(self):
        """Objects at (0,0), (100,0), (100,100) form a right angle."""
        seq = build([circle(0, 0, 0), circle(50, 100, 0), circle(100, 100, 100)])

        assert seq[2].angle == pytest.approx(math.pi / 2)
        assert abs(seq[2].signed_angle) == pytest.approx(math.pi / 2)

    def test_angle_in_range(self):
        """Angles stay within [0, pi]."""
        rng = np.random.RandomState(7)
        raw = [circle(i * 120.0, *rng.uniform(0, 400, size=2)) for i in range(40)]
        seq = build(raw)

        for obj in seq:
            if obj.angle is not None:
                assert 0.0 <= obj.angle <= math.pi
                assert abs(obj.signed_angle) == pytest.approx(obj.angle)

    def test_distance_normalised_by_radius(self):
        """Halving the radius doubles the normalised distance."""
        seq = build([circle(0, 0, 0, radius=25.0), circle(100, 50, 0, radius=25.0)])

        assert seq[1].scaling_factor == pytest.approx(2.0)
        assert seq[1].lazy_jump_distance == pytest.approx(100.0)

    def test_small_radius_bonus(self):
        """Bonus is 1 at large radii and grows below the threshold."""
        large = build([circle(0, 0, 0, radius=50.0)])
        small = build([circle(0, 0, 0, radius=20.0)])

        assert large[0].small_radius_bonus == 1.0
        assert small[0].small_radius_bonus == pytest.approx(1.25)

    def test_min_delta_time_floor(self):
        """Objects closer than 25ms get a floored strain time."""
        seq = build([circle(0, 0, 0), circle(10, 50, 0)])

        assert seq[1].delta_time == pytest.approx(10.0)
        assert seq[1].strain_time == pytest.approx(25.0)

    def test_clock_rate_scales_times(self):
        """Clock rate 2 halves every time and the hit window."""
        normal = build([circle(0, 0, 0), circle(200, 50, 0)])
        fast = build([circle(0, 0, 0), circle(200, 50, 0)], clock_rate=2.0)

        assert fast[1].start_time == pytest.approx(100.0)
        assert fast[1].strain_time == pytest.approx(normal[1].strain_time / 2)
        assert fast[1].hit_window_great == pytest.approx(normal[1].hit_window_great / 2)

    def test_hit_window_great_is_full_window(self):
        """OD 8 gives a 32ms half window, 64ms full window."""
        seq = build([circle(0, 0, 0)])
        assert seq[0].hit_window_great == pytest.approx(64.0)

    def test_empty_input(self):
        """Empty input builds an empty sequence."""
        seq = build([])
        assert len(seq) == 0
        assert seq.primary_objects == ()


# =============================================================================
# VALIDATION
# =============================================================================

class TestValidation:
    """Tests for builder input validation."""

    def test_decreasing_start_times(self):
        with pytest.raises(InvalidSequenceError):
            build([circle(100, 0, 0), circle(50, 10, 0)])

    def test_equal_start_times_allowed(self):
        seq = build([circle(100, 0, 0), circle(100, 10, 0)])
        assert seq[1].strain_time == preprocessing.MIN_DELTA_TIME

    def test_end_before_start(self):
        raw = RawObject(start_time=100, end_time=50, position=(0, 0), radius=50)
        with pytest.raises(InvalidSequenceError):
            build([raw])

    def test_non_positive_radius(self):
        with pytest.raises(InvalidGeometryError):
            build([circle(0, 0, 0, radius=0.0)])

    def test_non_finite_position(self):
        with pytest.raises(InvalidGeometryError):
            build([circle(0, float('nan'), 0)])

    def test_extended_without_path(self):
        raw = dataclasses.replace(straight_extended(0, 0, 0), path=())
        with pytest.raises(InvalidGeometryError):
            build([raw])

    def test_nested_point_outside_owner(self):
        raw = dataclasses.replace(
            straight_extended(0, 0, 0),
            nested=(NestedPoint(2000.0, (200.0, 0.0), NESTED_TAIL),)
        )
        with pytest.raises(InvalidSequenceError):
            build([raw])

    def test_unknown_kind(self):
        raw = RawObject(start_time=0, end_time=0, position=(0, 0), radius=50, kind='hold')
        with pytest.raises(ValueError):
            build([raw])

    def test_invalid_clock_rate(self):
        with pytest.raises(ValueError):
            build([circle(0, 0, 0)], clock_rate=0.0)

    def test_non_positive_hit_window(self):
        with pytest.raises(ValueError):
            build_difficulty_objects([circle(0, 0, 0)], 1.0, make_hit_window_fn(14.0))

    def test_errors_are_value_errors(self):
        """Input errors can be caught as ValueError."""
        assert issubclass(InvalidSequenceError, ValueError)
        assert issubclass(InvalidGeometryError, ValueError)


# =============================================================================
# CURSOR SIMULATION
# =============================================================================

class TestLazyCursor:
    """Tests for lazy_cursor_step and simulate_nested_track."""

    def test_cursor_stops_at_tolerance_edge(self):
        cursor = lazy_cursor_step(np.zeros(2), np.array([100.0, 0.0]), 50.0, 1.0)
        np.testing.assert_allclose(cursor, [50.0, 0.0])

    def test_cursor_does_not_move_inside_tolerance(self):
        cursor = lazy_cursor_step(np.zeros(2), np.array([30.0, 0.0]), 50.0, 1.0)
        np.testing.assert_allclose(cursor, [0.0, 0.0])

    def test_shorter_lazy_end_preferred(self):
        cursor = lazy_cursor_step(
            np.zeros(2), np.array([100.0, 0.0]), 50.0, 1.0, lazy_end=np.array([60.0, 0.0])
        )
        np.testing.assert_allclose(cursor, [10.0, 0.0])

    def test_scaling_factor_applies_to_movement(self):
        """At scaling 2, a 30 unit move is 60 normalised units."""
        cursor = lazy_cursor_step(np.zeros(2), np.array([30.0, 0.0]), 50.0, 2.0)
        np.testing.assert_allclose(cursor, [5.0, 0.0])

    def test_nested_track_follows_lazy_end(self):
        """Tail target is the path position at the leniency-adjusted deadline."""
        raw = straight_extended(0, 0, 0, length=200.0, duration=1000.0)
        end_cursor, travel = simulate_nested_track(raw, np.zeros(2))

        # Deadline 968ms -> lazy end (193.6, 0), cursor stops 50 short
        np.testing.assert_allclose(end_cursor, [143.6, 0.0])
        assert travel == pytest.approx(143.6)

    def test_lazy_end_position_with_late_tick(self):
        """A tick inside the leniency window extends tracking to the tick."""
        raw = dataclasses.replace(
            straight_extended(0, 0, 0, length=200.0, duration=1000.0),
            nested=(
                NestedPoint(990.0, (198.0, 0.0), NESTED_TICK),
                NestedPoint(1000.0, (200.0, 0.0), NESTED_TAIL),
            )
        )
        assert raw.tracking_end_time(32.0) == pytest.approx(990.0)
        np.testing.assert_allclose(raw.lazy_end_position(32.0), [198.0, 0.0])


# =============================================================================
# ANGLE BACKTRACKING
# =============================================================================

class TestBacktrackedAngle:
    """Tests for backtracked_angle."""

    def test_backtracks_negligible_incoming_vector(self):
        """Incoming vector taken from earlier points when prev sits on pprev."""
        points = [np.array([0.0, 0.0]), np.array([100.0, 0.0]), np.array([100.0, 1.0])]
        angle, _ = backtracked_angle(points, [True] * 3, np.array([100.0, 101.0]), 2, 1.0, 20.0)

        assert angle == pytest.approx(math.pi / 2, abs=0.02)

    def test_backtracks_negligible_outgoing_vector(self):
        """Current on top of prev: direction comes from an earlier point."""
        points = [np.array([0.0, 0.0]), np.array([100.0, 0.0]), np.array([200.0, 0.0])]
        angle, _ = backtracked_angle(points, [True] * 3, np.array([200.0, 1.0]), 2, 1.0, 20.0)

        assert angle > 3.0

    def test_unusable_points_stop_backtracking(self):
        points = [np.array([0.0, 0.0]), np.array([100.0, 0.0]), np.array([200.0, 0.0])]
        angle, _ = backtracked_angle(points, [False, True, True], np.array([200.0, 1.0]), 2, 1.0, 20.0)

        assert angle == pytest.approx(math.pi / 2)

    def test_stacked_objects_in_sequence(self):
        """Repeated taps on one spot do not produce a spurious angle."""
        seq = build([
            circle(0, 0, 0),
            circle(100, 100, 0),
            circle(200, 100, 0),
            circle(300, 200, 0),
        ])

        # Third object is stacked: direction falls back to the first movement
        assert seq[3].angle == pytest.approx(math.pi)


# =============================================================================
# NON-POSITIONAL OBJECTS
# =============================================================================

class TestNonPositional:
    """Tests for non-positional objects in the sequence."""

    def test_no_movement_around_non_positional(self):
        spinner = RawObject(start_time=200, end_time=1200, position=(256, 192), radius=50,
                            kind=KIND_NON_POSITIONAL)
        seq = build([circle(0, 0, 0), circle(100, 100, 0), spinner, circle(1500, 400, 0),
                     circle(1600, 500, 0)])

        assert seq[2].lazy_jump_distance == 0.0
        assert seq[2].angle is None
        assert seq[3].lazy_jump_distance == 0.0
        assert seq[3].angle is None
        assert seq[4].angle is None
        assert not seq[2].is_primary

    def test_non_positional_excluded_from_primary(self):
        spinner = RawObject(start_time=200, end_time=1200, position=(256, 192), radius=50,
                            kind=KIND_NON_POSITIONAL)
        seq = build([circle(0, 0, 0), spinner, circle(1500, 400, 0)])

        assert [o.index for o in seq.primary_objects] == [0, 2]
        assert seq.previous_primary(seq[2]).index == 0


# =============================================================================
# EXTENDED OBJECTS
# =============================================================================

class TestExtendedObjects:
    """Tests for nested expansion and the travel fold."""

    def _raw(self):
        return [
            circle(0, 0, 0),
            straight_extended(500, 100, 0, length=200.0, duration=1000.0, with_tick=True),
            circle(1800, 300, 200),
            circle(2100, 100, 200),
        ]

    def test_expanded_object_count(self):
        raw = self._raw()
        seq = build(raw, expand_nested=True)

        assert len(seq) == len(raw) + 2
        assert [o.index for o in seq] == list(range(len(seq)))

    def test_nested_points_are_not_primary(self):
        seq = build(self._raw(), expand_nested=True)

        nested = [o for o in seq if o.is_nested]
        assert len(nested) == 2
        for obj in nested:
            assert not obj.is_primary
            assert obj.primary_index is None
            assert seq.owner(obj).is_extended

    def test_primary_navigation_skips_nested(self):
        seq = build(self._raw(), expand_nested=True)

        last = seq[len(seq) - 2]
        assert last.is_primary
        assert seq.previous(last).is_nested
        assert seq.previous_primary(last).is_extended
        assert seq.next_primary(seq.primary_objects[-1]) is None

    def test_travel_equals_nested_movement(self):
        """Owner travel distance is the sum of its nested lazy jumps."""
        seq = build(self._raw(), expand_nested=True)

        owner = next(o for o in seq if o.is_extended)
        nested_sum = sum(o.lazy_jump_distance for o in seq if o.owner_index == owner.index)
        assert owner.travel_distance == pytest.approx(nested_sum)
        assert owner.travel_distance > 0

    def test_travel_time(self):
        """Travel time runs to the tracking deadline."""
        seq = build(self._raw())

        owner = seq[1]
        assert owner.travel_time == pytest.approx(1500.0 - 32.0 - 500.0)

    def test_private_simulation_matches_travel(self):
        """Without expansion, travel comes from the private nested simulation."""
        raw = self._raw()
        seq = build(raw)

        end_cursor, travel = simulate_nested_track(raw[1], np.asarray(raw[1].position, dtype=np.float64))
        assert len(seq) == len(raw)
        assert seq[1].travel_distance == pytest.approx(travel)
        np.testing.assert_allclose(seq[1].end_cursor_position, end_cursor)

    def test_jump_measured_from_end_cursor(self):
        """The object after an extended one jumps from the tracked end cursor."""
        raw = self._raw()
        seq = build(raw)

        end_cursor = np.asarray(seq[1].end_cursor_position)
        expected = np.hypot(*(np.asarray(raw[2].position) - end_cursor))
        assert seq[2].lazy_jump_distance == pytest.approx(expected)

    def test_minimum_jump_falls_back_to_start_to_start(self):
        """A short hop off the tail is treated like a jump from the head."""
        raw = [
            circle(0, -200, 0),
            straight_extended(300, 0, 0, length=200.0, duration=400.0),
            circle(900, 200, 100),
        ]
        seq = build(raw)

        assert seq[2].minimum_jump_distance == pytest.approx(math.hypot(200.0, 100.0))
        assert seq[2].minimum_jump_time == pytest.approx(600.0)

    def test_simple_objects_have_no_travel(self):
        seq = build(self._raw())
        assert seq[0].travel_distance == 0.0
        assert seq[2].travel_time == 0.0


# =============================================================================
# PRIMARY-ONLY SUB-SEQUENCE
# =============================================================================

class TestPrimarySubsequence:
    """Tests for quantities computed over primary objects only."""

    def _raw(self):
        return [
            circle(0, 0, 0),
            straight_extended(500, 100, 0, length=200.0, duration=1000.0, with_tick=True),
            circle(1800, 300, 200),
            circle(2100, 100, 200),
        ]

    def test_primary_values_skip_nested_points(self):
        seq = build(self._raw(), expand_nested=True)
        after_extended = seq[4]

        assert after_extended.primary_index == 2
        # Full sequence measures from the tail, primary-only from the head
        assert after_extended.strain_time == pytest.approx(300.0)
        assert after_extended.primary_strain_time == pytest.approx(1300.0)
        assert after_extended.primary_jump_distance == pytest.approx(math.hypot(200.0, 200.0))
        assert after_extended.primary_angle == pytest.approx(3 * math.pi / 4)

        last = seq[5]
        assert last.primary_strain_time == pytest.approx(300.0)
        assert last.primary_jump_distance == pytest.approx(200.0)
        assert last.primary_angle == pytest.approx(math.pi / 4)
        assert abs(last.primary_signed_angle) == pytest.approx(last.primary_angle)

    def test_nested_points_have_no_primary_values(self):
        seq = build(self._raw(), expand_nested=True)

        for obj in seq:
            if obj.is_nested:
                assert obj.primary_angle is None
                assert obj.primary_signed_angle is None
                assert obj.primary_jump_distance == 0.0

    def test_first_primaries_have_no_angle(self):
        seq = build(self._raw(), expand_nested=True)
        primaries = seq.primary_objects

        assert primaries[0].primary_jump_distance == 0.0
        assert primaries[0].primary_angle is None
        assert primaries[1].primary_angle is None
        assert primaries[2].primary_angle is not None

    def test_primary_values_independent_of_expansion(self):
        expanded = build(self._raw(), expand_nested=True).primary_objects
        collapsed = build(self._raw(), expand_nested=False).primary_objects

        assert len(expanded) == len(collapsed) == 4
        for a, b in zip(expanded, collapsed):
            assert a.primary_index == b.primary_index
            assert a.primary_strain_time == pytest.approx(b.primary_strain_time)
            assert a.primary_jump_distance == pytest.approx(b.primary_jump_distance)
            if b.primary_angle is None:
                assert a.primary_angle is None
            else:
                assert a.primary_angle == pytest.approx(b.primary_angle)

    def test_primary_angle_backtracks_over_stacked_primary(self):
        """Object stacked on an extended head takes its direction from earlier primaries."""
        raw = [
            circle(0, 0, 0),
            circle(300, 100, 0),
            straight_extended(600, 200, 0, length=200.0, duration=400.0),
            circle(1300, 200, 5),
        ]
        seq = build(raw, expand_nested=True)
        stacked = seq[len(seq) - 1]

        assert seq.previous(stacked).is_nested
        assert stacked.primary_jump_distance == pytest.approx(5.0)
        # Without backtracking this would be a right angle
        assert stacked.primary_angle == pytest.approx(math.pi - math.atan2(5.0, 100.0))


# =============================================================================
# SEQUENCE GUARANTEES
# =============================================================================

class TestSequenceGuarantees:
    """Tests for determinism, immutability and navigation."""

    def test_determinism(self):
        raw = [circle(i * 150.0, (i * 73) % 400, (i * 41) % 300) for i in range(30)]
        first = build(raw)
        second = build(raw)

        assert first.objects == second.objects

    def test_objects_are_frozen(self):
        seq = build([circle(0, 0, 0)])
        with pytest.raises(dataclasses.FrozenInstanceError):
            seq[0].strain_time = 1.0

    def test_strain_time_floor_everywhere(self):
        raw = [circle(i * 5.0, i, 0) for i in range(10)]
        seq = build(raw)
        assert all(o.strain_time >= preprocessing.MIN_DELTA_TIME for o in seq)

    @pytest.mark.parametrize('expand_nested', [False, True])
    def test_time_floors_with_extended_objects(self, expand_nested):
        """Every derived time respects the floor, including hops off short extended objects."""
        raw = [
            straight_extended(0, 0, 0, length=100.0, duration=100.0, with_tick=True),
            circle(110, 100, 0),
            straight_extended(120, 100, 0, length=50.0, duration=60.0),
            circle(185, 300, 300),
            circle(190, 300, 300),
        ]
        seq = build(raw, expand_nested=expand_nested)

        for obj in seq:
            assert obj.strain_time >= preprocessing.MIN_DELTA_TIME
            assert obj.minimum_jump_time >= preprocessing.MIN_DELTA_TIME
            assert obj.primary_strain_time >= preprocessing.MIN_DELTA_TIME
            if obj.is_extended:
                assert obj.travel_time >= preprocessing.MIN_DELTA_TIME

    def test_out_of_range_navigation(self):
        seq = build([circle(0, 0, 0), circle(100, 50, 0)])

        assert seq.previous(seq[0]) is None
        assert seq.next(seq[1]) is None
        assert seq.previous(seq[1], 5) is None
        assert seq.next(seq[0]).index == 1

    def test_doubletapness(self):
        """No next object means no doubletap; equal spacing is not doubletappable."""
        seq = build([circle(0, 0, 0), circle(100, 50, 0), circle(200, 100, 0)])

        assert seq[2].get_doubletapness(None) == 0.0
        assert seq[1].get_doubletapness(seq[2]) == pytest.approx(0.0)

    def test_doubletapness_range(self):
        seq = build([circle(0, 0, 0), circle(200, 50, 0), circle(210, 100, 0)])
        value = seq[1].get_doubletapness(seq[2])
        assert 0.0 <= value <= 1.0


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
