"""
Metrics Module

Run skills over a built DifficultySequence and collect their results:
difficulty value, auxiliary counts, per-object strains and section curves.
"""

import numpy as np
from dataclasses import dataclass, field
from typing import Dict, List, Tuple

from beatmap_strain import aggregation, timebase
from beatmap_strain.aggregation import StrainPeak
from beatmap_strain.evaluators import EvaluationContext
from beatmap_strain.kernel_params import DEFAULT_CONFIG, AggregationParams, KernelConfig, SkillParams
from beatmap_strain.preprocessing import DifficultySequence
from beatmap_strain.skills import StrainSkill, VariableLengthStrainSkill, create_skill


@dataclass
class SkillResult:
    """
    Output of one skill over one sequence.

    Attributes:
        name: Skill name
        difficulty: Aggregated difficulty value (finite, >= 0)
        weight_sum: Sum of aggregation weights (rank) or W(total time) (continuous)
        top_weighted_count: Logistic count of objects near the average top strain
        top_weighted_extended_count: Same count over extended objects only
        relevant_object_count: Logistic count relative to the hardest object
        decay_base: Decay base the strains were accumulated with
        object_times: Start time of every processed object (ms)
        object_strains: Post-update strain of every processed object
        peaks: Section peaks in emission order
        section_starts / section_ends: Section boundaries (ms), aligned with peaks
    """
    name: str
    difficulty: float
    weight_sum: float
    top_weighted_count: float
    top_weighted_extended_count: float
    relevant_object_count: float
    decay_base: float
    object_times: np.ndarray = field(default_factory=lambda: np.array([], dtype=np.float64))
    object_strains: np.ndarray = field(default_factory=lambda: np.array([], dtype=np.float64))
    peaks: List[StrainPeak] = field(default_factory=list)
    section_starts: np.ndarray = field(default_factory=lambda: np.array([], dtype=np.float64))
    section_ends: np.ndarray = field(default_factory=lambda: np.array([], dtype=np.float64))

    @property
    def section_strains(self) -> np.ndarray:
        return np.array([p.value for p in self.peaks], dtype=np.float64)


def compute_section_axis(
    skill: StrainSkill,
    peaks: List[StrainPeak]
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Section start/end times for a processed skill.

    Fixed sections use the shared timebase layout; variable-length
    sections are laid out back to back from the first object.

    Returns:
        Tuple of (starts, ends)
    """
    if len(peaks) == 0 or len(skill.object_times) == 0:
        empty = np.array([], dtype=np.float64)
        return empty, empty

    first_time = skill.object_times[0]

    if isinstance(skill, VariableLengthStrainSkill):
        return timebase.compute_variable_section_axis([p.section_length for p in peaks], first_time)

    section_length = skill.params.section_length
    ends = timebase.compute_section_time_axis(first_time, len(peaks), section_length)
    return ends - section_length, ends


def run_skill(
    sequence: DifficultySequence,
    params: SkillParams,
    aggregation_params: AggregationParams = aggregation.DEFAULT_AGGREGATION_PARAMS
) -> SkillResult:
    """
    Fold one skill over a sequence and aggregate it.

    Parameters:
        sequence: Frozen DifficultySequence
        params: Skill parameters
        aggregation_params: Shared weighting constants

    Returns:
        SkillResult
    """
    skill = create_skill(params)

    for index in range(len(sequence)):
        skill.process(EvaluationContext(sequence, index))

    peaks = skill.get_current_strain_peaks()
    difficulty, weight_sum = aggregation.difficulty_value(peaks, params, aggregation_params)
    starts, ends = compute_section_axis(skill, peaks)

    return SkillResult(
        name=params.name,
        difficulty=difficulty,
        weight_sum=weight_sum,
        top_weighted_count=aggregation.count_top_weighted(
            skill.object_strains, difficulty, weight_sum, aggregation_params
        ),
        top_weighted_extended_count=aggregation.count_top_weighted(
            skill.extended_strains, difficulty, weight_sum, aggregation_params
        ),
        relevant_object_count=aggregation.relevant_object_count(skill.object_strains),
        decay_base=skill.decay_base,
        object_times=np.asarray(skill.object_times, dtype=np.float64),
        object_strains=np.asarray(skill.object_strains, dtype=np.float64),
        peaks=peaks,
        section_starts=starts,
        section_ends=ends
    )


def compute_all_skills(
    sequence: DifficultySequence,
    config: KernelConfig = DEFAULT_CONFIG
) -> Dict[str, SkillResult]:
    """
    Run every configured skill over the same frozen sequence.

    This is the main entry point for metrics computation. Skills are
    independent; each gets a fresh accumulator.

    Returns:
        Dictionary of skill name -> SkillResult, in config order
    """
    return {
        params.name: run_skill(sequence, params, config.aggregation)
        for params in config.skills
    }


def compute_sequence_statistics(sequence: DifficultySequence) -> Dict:
    """
    Descriptive statistics of a built sequence.

    Returns:
        Dictionary containing:
            - 'object_count', 'primary_count', 'extended_count',
              'non_positional_count', 'nested_count'
            - 'duration_ms': last end time - first start time
            - 'end_time_ms': last end time (event times are clamped to it)
            - 'mean_strain_time', 'mean_lazy_jump_distance', 'max_lazy_jump_distance'
            - 'total_travel_distance'
    """
    objects = list(sequence)
    if not objects:
        return {
            'object_count': 0,
            'primary_count': 0,
            'extended_count': 0,
            'non_positional_count': 0,
            'nested_count': 0,
            'duration_ms': 0.0,
            'end_time_ms': 0.0,
            'mean_strain_time': 0.0,
            'mean_lazy_jump_distance': 0.0,
            'max_lazy_jump_distance': 0.0,
            'total_travel_distance': 0.0
        }

    strain_times = np.array([o.strain_time for o in objects], dtype=np.float64)
    jumps = np.array([o.lazy_jump_distance for o in objects], dtype=np.float64)

    return {
        'object_count': len(objects),
        'primary_count': sum(1 for o in objects if o.is_primary),
        'extended_count': sum(1 for o in objects if o.is_extended),
        'non_positional_count': sum(1 for o in objects if not o.is_positional),
        'nested_count': sum(1 for o in objects if o.is_nested),
        'duration_ms': float(max(o.end_time for o in objects) - objects[0].start_time),
        'end_time_ms': float(max(o.end_time for o in objects)),
        'mean_strain_time': float(np.mean(strain_times)),
        'mean_lazy_jump_distance': float(np.mean(jumps)),
        'max_lazy_jump_distance': float(np.max(jumps)),
        'total_travel_distance': float(sum(o.travel_distance for o in objects))
    }
