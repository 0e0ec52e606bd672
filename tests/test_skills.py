"""
Skill Tests

Tests for the strain accumulators: decay fold, state machine,
non-mutating strain queries and section peak extraction.
"""

import pytest
import numpy as np

from beatmap_strain import timebase
from beatmap_strain.errors import InvalidSequenceError
from beatmap_strain.evaluators import EvaluationContext, Evaluator
from beatmap_strain.kernel_params import SKILL_PRESETS, WEIGHTING_CONTINUOUS, SkillParams
from beatmap_strain.objects import RawObject, make_hit_window_fn
from beatmap_strain.preprocessing import build_difficulty_objects
from beatmap_strain.skills import (
    STATE_ACCUMULATING,
    STATE_EMPTY,
    StrainSkill,
    VariableLengthStrainSkill,
    create_skill,
)


class ScriptedEvaluator(Evaluator):
    """Returns a preset value per object index, 0.0 for any other index."""
    name = 'scripted'

    def __init__(self, values: dict) -> None:
        self.values = values

    def evaluate(self, context, flags):
        return self.values.get(context.index, 0.0)


def build_sequence(times, spacing: float = 50.0):
    raw = [
        RawObject(start_time=t, end_time=t, position=(i * spacing, 0.0), radius=50.0)
        for i, t in enumerate(times)
    ]
    return build_difficulty_objects(raw, 1.0, make_hit_window_fn(8.0))


def skill_params(decay_base: float = 0.3, **overrides) -> SkillParams:
    return SkillParams(name='test', evaluator='aim', decay_base=decay_base, multiplier=1.0, **overrides)


def run(skill: StrainSkill, sequence):
    return [skill.process(EvaluationContext(sequence, i)) for i in range(len(sequence))]


# =============================================================================
# STRAIN FOLD
# =============================================================================

class TestStrainFold:
    """Tests for the decaying accumulation."""

    def test_decay_between_objects(self):
        """Outputs 10 then 5, 1000ms apart, decay 0.3 -> strains 10 and 8."""
        seq = build_sequence([0.0, 1000.0, 2000.0, 3000.0])
        skill = StrainSkill(skill_params(0.3), ScriptedEvaluator({2: 10.0, 3: 5.0}))

        strains = run(skill, seq)

        assert strains[2] == pytest.approx(10.0)
        assert strains[3] == pytest.approx(8.0)

    def test_multiplier_applied(self):
        seq = build_sequence([0.0, 1000.0, 2000.0])
        params = SkillParams(name='test', evaluator='aim', decay_base=0.3, multiplier=2.5)
        skill = StrainSkill(params, ScriptedEvaluator({2: 4.0}))

        assert run(skill, seq)[2] == pytest.approx(10.0)

    def test_evaluator_constants_by_default(self):
        """Without overrides the evaluator's decay_base and multiplier drive the fold."""
        class SlowEvaluator(ScriptedEvaluator):
            decay_base = 0.5
            multiplier = 3.0

        seq = build_sequence([0.0, 1000.0, 2000.0, 3000.0])
        skill = StrainSkill(SkillParams(name='test', evaluator='aim'), SlowEvaluator({2: 4.0, 3: 2.0}))

        strains = run(skill, seq)

        assert skill.decay_base == 0.5
        assert skill.multiplier == 3.0
        assert strains[2] == pytest.approx(12.0)
        assert strains[3] == pytest.approx(12.0 * 0.5 + 6.0)

    def test_params_override_evaluator_constants(self):
        class SlowEvaluator(ScriptedEvaluator):
            decay_base = 0.5
            multiplier = 3.0

        seq = build_sequence([0.0, 1000.0, 2000.0, 3000.0])
        skill = StrainSkill(skill_params(0.3), SlowEvaluator({2: 4.0, 3: 2.0}))

        strains = run(skill, seq)

        assert skill.decay_base == 0.3
        assert strains[3] == pytest.approx(4.0 * 0.3 + 2.0)

    @pytest.mark.parametrize('name', sorted(SKILL_PRESETS))
    def test_presets_take_evaluator_constants(self, name):
        skill = create_skill(SKILL_PRESETS[name])

        assert skill.decay_base == type(skill.evaluator).decay_base
        assert skill.multiplier == type(skill.evaluator).multiplier

    def test_strains_non_negative(self):
        seq = build_sequence(np.arange(20) * 150.0)
        skill = StrainSkill(skill_params(), ScriptedEvaluator({i: float(i % 3) for i in range(20)}))

        assert all(s >= 0 for s in run(skill, seq))

    def test_recorded_strains(self):
        seq = build_sequence([0.0, 1000.0, 2000.0, 3000.0])
        skill = StrainSkill(skill_params(0.3), ScriptedEvaluator({2: 10.0, 3: 5.0}))
        run(skill, seq)

        assert skill.object_strains == pytest.approx([0.0, 0.0, 10.0, 8.0])
        assert skill.object_times == [0.0, 1000.0, 2000.0, 3000.0]
        assert skill.extended_strains == []


# =============================================================================
# STATE MACHINE
# =============================================================================

class TestStateMachine:
    """Tests for Empty/Accumulating state and strain queries."""

    def test_initial_state(self):
        skill = StrainSkill(skill_params())

        assert skill.state == STATE_EMPTY
        assert skill.current_strain == 0.0
        assert skill.initial_strain_at(5000.0) == 0.0
        assert skill.get_current_strain_peaks() == []

    def test_accumulating_after_process(self):
        seq = build_sequence([0.0])
        skill = StrainSkill(skill_params())
        skill.process(EvaluationContext(seq, 0))

        assert skill.state == STATE_ACCUMULATING

    def test_initial_strain_at_does_not_mutate(self):
        seq = build_sequence([0.0, 1000.0, 2000.0, 3000.0])
        skill = StrainSkill(skill_params(0.3), ScriptedEvaluator({2: 10.0, 3: 5.0}))
        run(skill, seq)

        assert skill.initial_strain_at(4000.0) == pytest.approx(8.0 * 0.3)
        assert skill.initial_strain_at(4000.0) == pytest.approx(8.0 * 0.3)
        assert skill.current_strain == pytest.approx(8.0)

    def test_out_of_order_processing(self):
        seq = build_sequence([0.0, 1000.0, 2000.0, 3000.0])
        skill = StrainSkill(skill_params())
        skill.process(EvaluationContext(seq, 3))

        with pytest.raises(InvalidSequenceError):
            skill.process(EvaluationContext(seq, 2))

    def test_reset(self):
        seq = build_sequence([0.0, 1000.0, 2000.0])
        skill = StrainSkill(skill_params(), ScriptedEvaluator({2: 10.0}))
        run(skill, seq)
        skill.reset()

        assert skill.state == STATE_EMPTY
        assert skill.object_strains == []
        assert skill.get_current_strain_peaks() == []
        assert run(skill, seq)[2] == pytest.approx(10.0)

    def test_instances_do_not_share_state(self):
        seq = build_sequence([0.0, 1000.0, 2000.0])
        first = StrainSkill(skill_params(), ScriptedEvaluator({2: 10.0}))
        second = StrainSkill(skill_params(), ScriptedEvaluator({2: 10.0}))
        run(first, seq)

        assert second.state == STATE_EMPTY
        assert second.object_strains == []


# =============================================================================
# FIXED SECTIONS
# =============================================================================

class TestFixedSections:
    """Tests for fixed-length section peaks."""

    def _skill(self):
        seq = build_sequence([0.0, 1000.0, 2000.0, 3000.0])
        skill = StrainSkill(skill_params(0.3), ScriptedEvaluator({2: 10.0, 3: 5.0}))
        run(skill, seq)
        return skill

    def test_section_count_matches_timebase(self):
        skill = self._skill()
        peaks = skill.get_current_strain_peaks()
        ends = timebase.compute_section_time_axis(0.0, len(peaks), 400.0)

        # Sections end at 0, 400, ..., 3200; the last one holds the object at 3000
        assert len(peaks) == 9
        assert ends[-2] < 3000.0 <= ends[-1]
        assert all(p.section_length == 400.0 for p in peaks)

    def test_peak_values(self):
        values = [p.value for p in self._skill().get_current_strain_peaks()]

        # Section ending at 2000 holds the object, the next starts at its decayed strain
        assert values[5] == pytest.approx(10.0)
        assert values[6] == pytest.approx(10.0)
        assert values[7] == pytest.approx(10.0 * 0.3 ** 0.4)
        assert values[8] == pytest.approx(8.0)
        assert max(values) == pytest.approx(10.0)

    def test_open_section_included(self):
        skill = self._skill()
        assert len(skill.get_current_strain_peaks()) == len(skill.peaks) + 1

    def test_peaks_bound_object_strains(self):
        seq = build_sequence(np.arange(30) * 170.0)
        skill = StrainSkill(skill_params(), ScriptedEvaluator({i: 1.0 + (i % 5) for i in range(30)}))
        strains = run(skill, seq)

        assert max(p.value for p in skill.get_current_strain_peaks()) == pytest.approx(max(strains))


# =============================================================================
# VARIABLE-LENGTH SECTIONS
# =============================================================================

class TestVariableLengthSections:
    """Tests for VariableLengthStrainSkill."""

    def _params(self, **overrides):
        settings = {'variable_length': True, 'weighting': WEIGHTING_CONTINUOUS, 'max_section_length': 400.0}
        settings.update(overrides)
        return skill_params(0.3, **settings)

    def test_factory(self):
        assert isinstance(create_skill(self._params()), VariableLengthStrainSkill)
        assert type(create_skill(skill_params())) is StrainSkill
        assert isinstance(create_skill(SKILL_PRESETS['speed']), VariableLengthStrainSkill)

    def test_section_lengths_cover_strain_time(self):
        seq = build_sequence(np.arange(40) * 100.0)
        skill = VariableLengthStrainSkill(self._params(), ScriptedEvaluator({i: 1.0 for i in range(40)}))
        run(skill, seq)

        peaks = skill.get_current_strain_peaks()
        total = sum(p.section_length for p in peaks)

        assert total == pytest.approx(sum(o.strain_time for o in seq))
        assert all(0 < p.section_length <= 400.0 for p in peaks)

    def test_rhythm_change_closes_section(self):
        times = [0.0, 100.0, 200.0, 300.0, 600.0, 900.0]
        seq = build_sequence(times)
        skill = VariableLengthStrainSkill(self._params(), ScriptedEvaluator({i: 1.0 for i in range(6)}))
        run(skill, seq)

        lengths = [p.section_length for p in skill.get_current_strain_peaks()]

        # First object alone, then the 100ms run, then 300ms objects one per section
        assert lengths == pytest.approx([25.0, 300.0, 300.0, 300.0])

    def test_strain_drop_closes_section(self):
        seq = build_sequence([0.0, 25.0, 50.0, 75.0, 1075.0])
        skill = VariableLengthStrainSkill(
            self._params(rhythm_ratio_limit=100.0, max_section_length=5000.0),
            ScriptedEvaluator({2: 10.0})
        )
        run(skill, seq)

        peaks = skill.get_current_strain_peaks()
        assert len(peaks) == 2
        assert peaks[0] == pytest.approx((10.0, 100.0))
        assert peaks[1].value == pytest.approx(10.0 * 0.3 ** 0.025 * 0.3)
        assert peaks[1].section_length == pytest.approx(1000.0)

    def test_empty_skill_has_no_peaks(self):
        skill = VariableLengthStrainSkill(self._params())
        assert skill.get_current_strain_peaks() == []


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
