"""
Kernel Parameters Module - All Tunable Constants

These parameters control preprocessing, strain accumulation and
aggregation. Every dataclass is frozen so a configuration can be shared
between skills of one calculation without any risk of mutation.

USAGE:
    from beatmap_strain.kernel_params import KernelConfig, DEFAULT_CONFIG

    # Use default config
    config = DEFAULT_CONFIG

    # Create custom config
    custom = KernelConfig(
        preprocess=PreprocessParams(tail_leniency=36.0),
        skills=(SKILL_PRESETS['aim'], SKILL_PRESETS['speed'])
    )
"""

from dataclasses import dataclass, field, replace
from typing import Dict, Optional, Tuple


WEIGHTING_RANK: str = 'rank'
WEIGHTING_CONTINUOUS: str = 'continuous'


@dataclass(frozen=True)
class PreprocessParams:
    """
    DifficultyObject builder parameters.

    Attributes:
        normalised_radius: Radius all distances are scaled to (default 50, diameter 100)
        min_delta_time: Floor for every time delta in ms (default 25)
        tail_leniency: How long before an extended object's end the tail may be released (default 32ms)
        assumed_extended_radius: Tolerance radius while tracking repeats (default 1.8 * normalised_radius)
        maximum_extended_radius: Largest tracking tolerance radius (default 2.4 * normalised_radius)
        negligible_movement: Normalised length below which a movement has no direction (default 20)
        small_radius_threshold: Radius below which the small radius bonus starts (default 30)
        small_radius_divisor: Radius span over which the bonus grows by 1.0 (default 40)
    """
    normalised_radius: float = 50.0
    min_delta_time: float = 25.0
    tail_leniency: float = 32.0
    assumed_extended_radius: float = 90.0
    maximum_extended_radius: float = 120.0
    negligible_movement: float = 20.0
    small_radius_threshold: float = 30.0
    small_radius_divisor: float = 40.0

    @property
    def normalised_diameter(self) -> float:
        return self.normalised_radius * 2


@dataclass(frozen=True)
class SkillParams:
    """
    Per-skill strain accumulation and aggregation parameters.

    Attributes:
        name: Skill name used as result key
        evaluator: Evaluator name ('aim', 'speed', 'flow_aim', 'alt')
        decay_base: Fraction of strain kept after one second, in (0, 1)
            (None uses the evaluator's decay_base)
        multiplier: Scale applied to every evaluator output
            (None uses the evaluator's multiplier)
        include_extended: Evaluate extended objects with their travel (aim family)
        ignore_distance: Drop distance bonuses (speed)
        section_length: Fixed section length in ms for peak extraction (default 400)
        reduced_section_count: Number of top sections whose strain is reduced (default 10)
        reduced_strain_baseline: Multiplier applied to the single highest section (default 0.75)
        difficulty_multiplier: Final scale applied to the aggregate
        weighting: 'rank' (discrete harmonic weights) or 'continuous'
        variable_length: Group objects into variable-length sections instead of fixed ones
        max_section_length: Normalisation length for continuous weighting, in ms
        similarity_band: Relative strain drop tolerated inside one variable-length section
        rhythm_ratio_limit: Largest delta-time ratio tolerated inside one variable-length section
    """
    name: str
    evaluator: str
    decay_base: Optional[float] = None
    multiplier: Optional[float] = None
    include_extended: bool = True
    ignore_distance: bool = False
    section_length: float = 400.0
    reduced_section_count: int = 10
    reduced_strain_baseline: float = 0.75
    difficulty_multiplier: float = 1.0
    weighting: str = WEIGHTING_RANK
    variable_length: bool = False
    max_section_length: float = 400.0
    similarity_band: float = 0.1
    rhythm_ratio_limit: float = 1.25


@dataclass(frozen=True)
class AggregationParams:
    """
    Weighting constants shared by every skill.

    Attributes:
        rank_weight_bonus: Harmonic bonus numerator in the rank weight (default 20)
        rank_weight_exponent: Rank exponent in the rank weight (default 0.85)
        top_weighted_midpoint: Logistic midpoint relative to the average top strain (default 0.88)
        top_weighted_steepness: Logistic steepness (default 10)
        top_weighted_max: Logistic ceiling (default 1.1)
    """
    rank_weight_bonus: float = 20.0
    rank_weight_exponent: float = 0.85
    top_weighted_midpoint: float = 0.88
    top_weighted_steepness: float = 10.0
    top_weighted_max: float = 1.1


@dataclass(frozen=True)
class EventParams:
    """
    Strain spike and sustained section detection parameters.

    Attributes:
        spike_prominence: Minimum prominence relative to the curve maximum (default 0.15)
        spike_min_distance_sections: Minimum distance between spikes in sections (default 5)
        sustained_threshold: Fraction of the curve maximum a sustained section stays above (default 0.7)
        sustained_min_duration_ms: Minimum sustained section length (default 4000)
        top_n_spikes: Number of spikes kept in summaries (default 5)
    """
    spike_prominence: float = 0.15
    spike_min_distance_sections: int = 5
    sustained_threshold: float = 0.7
    sustained_min_duration_ms: float = 4000.0
    top_n_spikes: int = 5


# =============================================================================
# SKILL PRESETS
# =============================================================================

SKILL_PRESETS: Dict[str, SkillParams] = {
    'aim': SkillParams(
        name='aim', evaluator='aim', include_extended=True
    ),
    'aim_no_extended': SkillParams(
        name='aim_no_extended', evaluator='aim', include_extended=False
    ),
    'speed': SkillParams(
        name='speed', evaluator='speed', reduced_section_count=5,
        weighting=WEIGHTING_CONTINUOUS, variable_length=True
    ),
    'flow_aim': SkillParams(
        name='flow_aim', evaluator='flow_aim'
    ),
    'alt': SkillParams(
        name='alt', evaluator='alt', reduced_section_count=7
    ),
}

DEFAULT_SKILLS: Tuple[SkillParams, ...] = (
    SKILL_PRESETS['aim'],
    SKILL_PRESETS['aim_no_extended'],
    SKILL_PRESETS['speed'],
    SKILL_PRESETS['flow_aim'],
    SKILL_PRESETS['alt'],
)


@dataclass
class KernelConfig:
    """
    Complete kernel configuration aggregating all parameter groups.

    Example usage:
        config = KernelConfig()  # All defaults
        config = KernelConfig(preprocess=PreprocessParams(min_delta_time=20.0))
    """
    preprocess: PreprocessParams = field(default_factory=PreprocessParams)
    aggregation: AggregationParams = field(default_factory=AggregationParams)
    events: EventParams = field(default_factory=EventParams)
    skills: Tuple[SkillParams, ...] = DEFAULT_SKILLS

    def skill(self, name: str) -> SkillParams:
        for params in self.skills:
            if params.name == name:
                return params
        raise KeyError(f"No skill named {name!r} in config")

    def with_skill_overrides(self, name: str, **overrides) -> 'KernelConfig':
        """Return a copy with one skill's parameters replaced."""
        skills = tuple(
            replace(params, **overrides) if params.name == name else params
            for params in self.skills
        )
        return replace(self, skills=skills)

    def to_dict(self) -> Dict:
        """
        Export all parameters as a flat dictionary for JSON serialization.

        Returns:
            Dictionary with all parameter values
        """
        return {
            # Preprocess params
            'normalised_radius': self.preprocess.normalised_radius,
            'min_delta_time': self.preprocess.min_delta_time,
            'tail_leniency': self.preprocess.tail_leniency,
            'assumed_extended_radius': self.preprocess.assumed_extended_radius,
            'maximum_extended_radius': self.preprocess.maximum_extended_radius,
            'negligible_movement': self.preprocess.negligible_movement,

            # Aggregation params
            'rank_weight_bonus': self.aggregation.rank_weight_bonus,
            'rank_weight_exponent': self.aggregation.rank_weight_exponent,
            'top_weighted_midpoint': self.aggregation.top_weighted_midpoint,

            # Event params
            'spike_prominence': self.events.spike_prominence,
            'sustained_threshold': self.events.sustained_threshold,
            'sustained_min_duration_ms': self.events.sustained_min_duration_ms,

            # Skill params
            'skills': {
                params.name: {
                    'evaluator': params.evaluator,
                    # None means the evaluator's own constant
                    'decay_base': params.decay_base,
                    'multiplier': params.multiplier,
                    'include_extended': params.include_extended,
                    'weighting': params.weighting,
                    'variable_length': params.variable_length,
                    'section_length': params.section_length,
                    'reduced_section_count': params.reduced_section_count,
                    'reduced_strain_baseline': params.reduced_strain_baseline,
                    'difficulty_multiplier': params.difficulty_multiplier,
                }
                for params in self.skills
            },
        }


# Default configuration instance
DEFAULT_CONFIG = KernelConfig()


def validate_skill_params(params: SkillParams) -> None:
    """Raise ValueError if a single skill's parameters are unusable."""
    if params.decay_base is not None and not (0.0 < params.decay_base < 1.0):
        raise ValueError(f"{params.name}: decay_base must be in (0, 1), got {params.decay_base}")
    if params.multiplier is not None and params.multiplier < 0:
        raise ValueError(f"{params.name}: multiplier must be non-negative")
    if params.section_length <= 0 or params.max_section_length <= 0:
        raise ValueError(f"{params.name}: section lengths must be positive")
    if params.reduced_section_count < 0:
        raise ValueError(f"{params.name}: reduced_section_count must be non-negative")
    if not (0.0 < params.reduced_strain_baseline <= 1.0):
        raise ValueError(f"{params.name}: reduced_strain_baseline must be in (0, 1]")
    if params.weighting not in (WEIGHTING_RANK, WEIGHTING_CONTINUOUS):
        raise ValueError(f"{params.name}: unknown weighting {params.weighting!r}")
    # Rank reduction assumes every section has the same length
    if params.variable_length and params.weighting != WEIGHTING_CONTINUOUS:
        raise ValueError(f"{params.name}: variable-length sections require continuous weighting")
    if params.rhythm_ratio_limit < 1.0:
        raise ValueError(f"{params.name}: rhythm_ratio_limit must be >= 1")


def validate_config(config: KernelConfig) -> bool:
    """
    Validate configuration parameters for consistency.

    Parameters:
        config: KernelConfig instance to validate

    Returns:
        True if config is valid

    Raises:
        ValueError: If configuration is invalid
    """
    pre = config.preprocess

    # Check positive values
    if pre.normalised_radius <= 0:
        raise ValueError("normalised_radius must be positive")
    if pre.min_delta_time <= 0:
        raise ValueError("min_delta_time must be positive")
    if pre.tail_leniency < 0:
        raise ValueError("tail_leniency must be non-negative")
    if pre.negligible_movement < 0:
        raise ValueError("negligible_movement must be non-negative")

    # Tracking radii must be ordered for the minimum jump slack to be >= 0
    if pre.maximum_extended_radius < pre.assumed_extended_radius:
        raise ValueError("maximum_extended_radius must be >= assumed_extended_radius")

    if config.aggregation.rank_weight_exponent <= 0:
        raise ValueError("rank_weight_exponent must be positive")
    if not (0.0 <= config.events.sustained_threshold <= 1.0):
        raise ValueError("sustained_threshold must be in [0, 1]")

    names = [params.name for params in config.skills]
    if len(names) != len(set(names)):
        raise ValueError(f"Skill names must be unique, got {names}")

    for params in config.skills:
        validate_skill_params(params)

    return True


# Validate default config on import
validate_config(DEFAULT_CONFIG)
