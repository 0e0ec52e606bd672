"""
Skills Module - Strain Accumulators

A skill folds one evaluator over a DifficultySequence into a decaying
strain value and records the peaks the aggregator consumes.

STATE MACHINE:
- Empty:        no object processed yet, current_strain == 0
- Accumulating: at least one object processed

Transition on process(context):
    current_strain = current_strain * decay_base ** (strain_time / 1000)
                     + evaluate(context) * multiplier

DESIGN CONSTRAINTS:
- All state lives on the instance; two skills never share state
- Objects must be processed once each, in time order
- initial_strain_at() never mutates state
"""

import math
from typing import List, Optional

from beatmap_strain.aggregation import DEFAULT_AGGREGATION_PARAMS, StrainPeak, difficulty_value
from beatmap_strain.errors import InvalidSequenceError
from beatmap_strain.evaluators import (
    EvaluationContext,
    EvaluationFlags,
    Evaluator,
    evaluate_object,
    get_evaluator,
)
from beatmap_strain.kernel_params import AggregationParams, SkillParams


STATE_EMPTY: str = 'empty'
STATE_ACCUMULATING: str = 'accumulating'


class StrainSkill:
    """
    Strain accumulator with fixed-length sections.

    Sections are aligned to multiples of section_length. The peak of a
    section is the highest post-update strain of its objects, or the
    strain carried over from the previous section, whichever is higher.

    CONTRACT:
    - process() returns the post-update strain of the object
    - get_current_strain_peaks() includes the still-open section
    - Call reset() before reusing an instance for another sequence
    - decay_base and multiplier come from params when set, otherwise from the evaluator
    """

    def __init__(self, params: SkillParams, evaluator: Optional[Evaluator] = None) -> None:
        self.params = params
        self.evaluator = evaluator if evaluator is not None else get_evaluator(params.evaluator)
        self.decay_base = params.decay_base if params.decay_base is not None else self.evaluator.decay_base
        self.multiplier = params.multiplier if params.multiplier is not None else self.evaluator.multiplier
        self.flags = EvaluationFlags(
            include_extended=params.include_extended,
            ignore_distance=params.ignore_distance
        )
        self.reset()

    def reset(self) -> None:
        """Reset state to initial values."""
        self.current_strain: float = 0.0
        self.last_time: Optional[float] = None
        self.object_strains: List[float] = []
        self.object_times: List[float] = []
        self.extended_strains: List[float] = []
        self.peaks: List[StrainPeak] = []
        self._section_end: Optional[float] = None
        self._section_peak: float = 0.0

    @property
    def name(self) -> str:
        return self.params.name

    @property
    def state(self) -> str:
        return STATE_EMPTY if self.last_time is None else STATE_ACCUMULATING

    def strain_decay(self, ms: float) -> float:
        return self.decay_base ** (ms / 1000.0)

    def initial_strain_at(self, time: float) -> float:
        """Strain decayed from the last processed object to `time`, without mutation."""
        if self.last_time is None:
            return 0.0
        return self.current_strain * self.strain_decay(time - self.last_time)

    def strain_value_at(self, context: EvaluationContext) -> float:
        current = context.current
        self.current_strain *= self.strain_decay(current.strain_time)
        self.current_strain += evaluate_object(self.evaluator, context, self.flags) * self.multiplier
        return self.current_strain

    def _check_order(self, context: EvaluationContext) -> None:
        current = context.current
        if self.last_time is not None and current.start_time < self.last_time:
            raise InvalidSequenceError(
                f"{self.name}: object {current.index} at {current.start_time}ms processed "
                f"after an object at {self.last_time}ms"
            )

    def _record(self, context: EvaluationContext, strain: float) -> None:
        current = context.current
        self.object_strains.append(strain)
        self.object_times.append(current.start_time)
        if current.is_extended:
            self.extended_strains.append(strain)
        self.last_time = current.start_time

    def process(self, context: EvaluationContext) -> float:
        """
        Process one object.

        Parameters:
            context: Evaluation context of the object

        Returns:
            Post-update strain

        Raises:
            InvalidSequenceError: If the object starts before the last processed one
        """
        self._check_order(context)
        current = context.current
        section_length = self.params.section_length

        if self._section_end is None:
            self._section_end = math.ceil(current.start_time / section_length) * section_length

        while current.start_time > self._section_end:
            self.peaks.append(StrainPeak(self._section_peak, section_length))
            self._section_peak = self.initial_strain_at(self._section_end)
            self._section_end += section_length

        strain = self.strain_value_at(context)
        self._section_peak = max(self._section_peak, strain)
        self._record(context, strain)
        return strain

    def get_current_strain_peaks(self) -> List[StrainPeak]:
        if self._section_end is None:
            return list(self.peaks)
        return self.peaks + [StrainPeak(self._section_peak, self.params.section_length)]

    def difficulty_value(self, params: AggregationParams = DEFAULT_AGGREGATION_PARAMS) -> float:
        difficulty, _ = difficulty_value(self.get_current_strain_peaks(), self.params, params)
        return difficulty


class VariableLengthStrainSkill(StrainSkill):
    """
    Strain accumulator grouping consecutive similar objects into one section.

    Each object adds its strain time to the open section. The section is
    closed before an object when:
    - its strain falls below the section peak by more than similarity_band
    - its strain time differs from the previous one by more than rhythm_ratio_limit
    - it would push the section past max_section_length
    Peaks are (section peak, section length in ms).
    """

    def reset(self) -> None:
        super().reset()
        self._section_length: float = 0.0
        self._last_strain_time: Optional[float] = None

    def _violates_section(self, strain: float, strain_time: float) -> bool:
        if self._section_length <= 0:
            return False
        if strain < self._section_peak * (1.0 - self.params.similarity_band):
            return True
        if self._last_strain_time is not None:
            ratio = max(strain_time, self._last_strain_time) / min(strain_time, self._last_strain_time)
            if ratio > self.params.rhythm_ratio_limit:
                return True
        return self._section_length + strain_time > self.params.max_section_length

    def process(self, context: EvaluationContext) -> float:
        self._check_order(context)
        current = context.current

        strain = self.strain_value_at(context)

        if self._violates_section(strain, current.strain_time):
            self.peaks.append(StrainPeak(self._section_peak, self._section_length))
            self._section_peak = 0.0
            self._section_length = 0.0

        self._section_peak = max(self._section_peak, strain)
        self._section_length += current.strain_time
        self._last_strain_time = current.strain_time
        self._record(context, strain)
        return strain

    def get_current_strain_peaks(self) -> List[StrainPeak]:
        if self._section_length <= 0:
            return list(self.peaks)
        return self.peaks + [StrainPeak(self._section_peak, self._section_length)]


def create_skill(params: SkillParams, evaluator: Optional[Evaluator] = None) -> StrainSkill:
    """Instantiate the skill class matching params.variable_length."""
    if params.variable_length:
        return VariableLengthStrainSkill(params, evaluator)
    return StrainSkill(params, evaluator)
