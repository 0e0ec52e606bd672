"""
Evaluator Tests

Tests for the evaluator call contract (framework zero rules, invariant
checks, purity) and sanity checks of the reference evaluators.
"""

import math

import pytest
import numpy as np

from beatmap_strain import evaluators
from beatmap_strain.errors import StrainInvariantError
from beatmap_strain.evaluators import (
    AimEvaluator,
    AltEvaluator,
    EvaluationContext,
    EvaluationFlags,
    Evaluator,
    FlowAimEvaluator,
    SpeedEvaluator,
    circular_cursor_path_distance,
    evaluate_object,
    get_evaluator,
)
from beatmap_strain.objects import KIND_NON_POSITIONAL, RawObject, make_hit_window_fn
from beatmap_strain.preprocessing import build_difficulty_objects
from golden_reference import generate_jumps, generate_slider_flow, generate_stream


FLAGS = EvaluationFlags()


class ConstantEvaluator(Evaluator):
    """Returns a fixed value for every object it is asked about."""
    name = 'constant'

    def __init__(self, value: float) -> None:
        self.value = value
        self.calls = 0

    def evaluate(self, context, flags):
        self.calls += 1
        return self.value


def circle(time: float, x: float, y: float) -> RawObject:
    return RawObject(start_time=time, end_time=time, position=(x, y), radius=36.48)


def build(raw_objects, expand_nested: bool = False):
    return build_difficulty_objects(raw_objects, 1.0, make_hit_window_fn(8.0), expand_nested=expand_nested)


def evaluate_all(evaluator: Evaluator, sequence, flags: EvaluationFlags = FLAGS):
    return [evaluate_object(evaluator, EvaluationContext(sequence, i), flags) for i in range(len(sequence))]


# =============================================================================
# CALL CONTRACT
# =============================================================================

class TestCallContract:
    """Tests for evaluate_object framework rules."""

    def test_first_two_objects_are_zero(self):
        seq = build([circle(i * 100.0, i * 50.0, 0) for i in range(4)])
        evaluator = ConstantEvaluator(5.0)

        values = evaluate_all(evaluator, seq)

        assert values == [0.0, 0.0, 5.0, 5.0]
        assert evaluator.calls == 2

    def test_zero_next_to_non_positional(self):
        spinner = RawObject(start_time=300, end_time=1000, position=(256, 192), radius=36.48,
                            kind=KIND_NON_POSITIONAL)
        seq = build([circle(0, 0, 0), circle(100, 50, 0), circle(200, 100, 0), spinner,
                     circle(1200, 300, 0), circle(1300, 350, 0)])

        values = evaluate_all(ConstantEvaluator(5.0), seq)

        assert values[2] == 5.0
        assert values[3] == 0.0
        assert values[4] == 0.0
        assert values[5] == 5.0

    @pytest.mark.parametrize('bad_value', [-1.0, float('nan'), float('inf')])
    def test_invalid_output_raises(self, bad_value):
        seq = build([circle(i * 100.0, i * 50.0, 0) for i in range(3)])

        with pytest.raises(StrainInvariantError):
            evaluate_object(ConstantEvaluator(bad_value), EvaluationContext(seq, 2), FLAGS)

    def test_context_index_out_of_range(self):
        seq = build([circle(0, 0, 0)])
        with pytest.raises(IndexError):
            EvaluationContext(seq, 1)

    def test_context_window(self):
        seq = build([circle(i * 100.0, i * 50.0, 0) for i in range(6)])

        assert [o.index for o in EvaluationContext(seq, 5).window()] == [2, 3, 4, 5]
        assert [o.index for o in EvaluationContext(seq, 1).window()] == [0, 1]

    def test_base_evaluator_is_abstract(self):
        seq = build([circle(i * 100.0, i * 50.0, 0) for i in range(3)])
        with pytest.raises(NotImplementedError):
            Evaluator().evaluate(EvaluationContext(seq, 2), FLAGS)


# =============================================================================
# REGISTRY
# =============================================================================

class TestRegistry:
    """Tests for evaluator lookup."""

    def test_known_names(self):
        for name in ['aim', 'speed', 'flow_aim', 'alt']:
            assert get_evaluator(name).name == name

    def test_unknown_name(self):
        with pytest.raises(ValueError):
            get_evaluator('rhythm')

    def test_fresh_instances(self):
        assert get_evaluator('aim') is not get_evaluator('aim')


# =============================================================================
# REFERENCE EVALUATORS
# =============================================================================

class TestReferenceEvaluators:
    """Sanity checks of the concrete evaluators on synthetic beatmaps."""

    @pytest.mark.parametrize('evaluator_cls', [AimEvaluator, SpeedEvaluator, FlowAimEvaluator, AltEvaluator])
    @pytest.mark.parametrize('expand_nested', [False, True])
    def test_finite_non_negative(self, evaluator_cls, expand_nested):
        for beatmap in [generate_stream(), generate_jumps(), generate_slider_flow()]:
            seq = build(beatmap.objects, expand_nested=expand_nested)
            for flags in [EvaluationFlags(), EvaluationFlags(include_extended=False, ignore_distance=True)]:
                values = evaluate_all(evaluator_cls(), seq, flags)
                assert all(math.isfinite(v) and v >= 0 for v in values)

    def test_purity(self):
        seq = build(generate_jumps().objects)
        evaluator = AimEvaluator()

        first = evaluate_all(evaluator, seq)
        second = evaluate_all(evaluator, seq)

        assert first == second

    def test_aim_rewards_distance(self):
        """Wide jumps are harder to aim than a tight stream at the same tempo."""
        stream = build(generate_stream(interval_ms=300.0).objects)
        jumps = build(generate_jumps(interval_ms=300.0).objects)

        stream_aim = np.mean(evaluate_all(AimEvaluator(), stream)[2:])
        jump_aim = np.mean(evaluate_all(AimEvaluator(), jumps)[2:])

        assert jump_aim > stream_aim

    def test_speed_rewards_tempo(self):
        """The same pattern played faster taps harder."""
        slow = build(generate_stream(interval_ms=200.0).objects)
        fast = build(generate_stream(interval_ms=80.0).objects)

        slow_speed = np.mean(evaluate_all(SpeedEvaluator(), slow)[2:])
        fast_speed = np.mean(evaluate_all(SpeedEvaluator(), fast)[2:])

        assert fast_speed > slow_speed

    def test_nested_points_skipped_by_primary_skills(self):
        """Speed and primary-only aim ignore nested sub-points."""
        seq = build(generate_slider_flow().objects, expand_nested=True)
        primary_flags = EvaluationFlags(include_extended=False)

        for i, obj in enumerate(seq):
            if obj.is_nested:
                context = EvaluationContext(seq, i)
                assert evaluate_object(SpeedEvaluator(), context, FLAGS) == 0.0
                assert evaluate_object(AimEvaluator(), context, primary_flags) == 0.0

    def test_ignore_distance_lowers_speed(self):
        seq = build(generate_jumps(interval_ms=120.0).objects)

        with_distance = sum(evaluate_all(SpeedEvaluator(), seq))
        without_distance = sum(evaluate_all(SpeedEvaluator(), seq, EvaluationFlags(ignore_distance=True)))

        assert without_distance < with_distance

    def test_alt_peaks_at_midpoint(self):
        """Alt strain is highest when spacing sits on the bell curve mean."""
        spacing = AltEvaluator.SPACING_MIDPOINT * 36.48 / 50.0
        on_mean = build([circle(i * 200.0, (i % 2) * spacing, 0) for i in range(4)])
        far = build([circle(i * 200.0, (i % 2) * spacing * 2, 0) for i in range(4)])

        assert evaluate_all(AltEvaluator(), on_mean)[3] == pytest.approx(1.0)
        assert evaluate_all(AltEvaluator(), far)[3] == 0.0


class TestCursorPathHelpers:
    """Tests for flow aim geometry helpers."""

    def test_straight_path(self):
        assert circular_cursor_path_distance(math.pi, 100.0) == 100.0

    def test_full_turn(self):
        assert circular_cursor_path_distance(0.0, 100.0) == pytest.approx(math.pi * 100.0)

    def test_arc_longer_than_chord(self):
        for angle in np.linspace(0.1, math.pi - 0.1, 10):
            assert circular_cursor_path_distance(angle, 100.0) >= 100.0 - 1e-9

    def test_circle_stream_nerf_range(self):
        seq = build(generate_stream().objects)
        for i in range(len(seq)):
            nerf = evaluators.circle_stream_nerf(EvaluationContext(seq, i))
            assert 0.0 < nerf <= 1.0


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
