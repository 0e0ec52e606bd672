"""
Aggregation Module

Reduce a skill's strain peaks to a single difficulty value and derive the
auxiliary "how many objects mattered" counts.

PIPELINE:
1. Drop zero-valued peaks
2. Sort descending by (value, section_length)
3. Peak reduction: the first K section lengths of sorted strain are scaled
   toward a baseline so one isolated passage cannot dominate
4. Weighting: discrete rank weights or continuous time-integrated weights

Rank weighting reduces each entry by the ramp at its elapsed time and
re-sorts (fixed section lengths only). Continuous weighting folds the ramp
into the weight itself: an entry spanning [t, t + len / L] is weighted by
the integral of ramp * dW over that span, so equal values contribute the
same total whatever their order.

Output is finite, non-negative and monotone non-decreasing in every
individual peak value.
"""

import math
from typing import Iterable, List, NamedTuple, Sequence, Tuple

import numpy as np

from beatmap_strain.interpolation import clamp, lerp, logistic
from beatmap_strain.kernel_params import (
    WEIGHTING_CONTINUOUS,
    WEIGHTING_RANK,
    AggregationParams,
    SkillParams,
)


DEFAULT_AGGREGATION_PARAMS: AggregationParams = AggregationParams()

# Quadrature nodes for the reduced continuous weight, on [-1, 1]
QUADRATURE_NODES, QUADRATURE_WEIGHTS = np.polynomial.legendre.leggauss(64)


class StrainPeak(NamedTuple):
    """
    One aggregator entry.

    Attributes:
        value: Peak strain of the section
        section_length: Section weight in ms (fixed section length, or the
            length of a variable-length section)
    """
    value: float
    section_length: float


# =============================================================================
# SORTING AND PEAK REDUCTION
# =============================================================================

def drop_zero_peaks(peaks: Iterable[StrainPeak]) -> List[StrainPeak]:
    return [StrainPeak(float(p.value), float(p.section_length)) for p in peaks if p.value > 0]


def sort_peaks(peaks: Iterable[StrainPeak]) -> List[StrainPeak]:
    """Sort descending by (value, section_length)."""
    return sorted(peaks, key=lambda p: (p.value, p.section_length), reverse=True)


def reduction_factor(elapsed: float, window: float, baseline: float) -> float:
    """
    Log-interpolated ramp from baseline at elapsed 0 to 1 at the window end.

    lerp(baseline, 1, log10(lerp(1, 10, elapsed / window))); 1 past the window.
    """
    if window <= 0 or elapsed >= window:
        return 1.0
    scale = math.log10(lerp(1.0, 10.0, clamp(elapsed / window, 0.0, 1.0)))
    return lerp(baseline, 1.0, scale)


def reduce_top_peaks(
    sorted_peaks: Sequence[StrainPeak],
    section_length: float,
    reduced_section_count: int,
    reduced_strain_baseline: float
) -> List[StrainPeak]:
    """
    Scale down the highest peaks with a log-interpolated ramp.

    CONTRACT:
    - Input: peaks sorted descending, all of the same section_length
    - Output: peaks sorted descending (re-sorted after scaling)
    - elapsed = total section_length of all higher entries
    - Entries with elapsed < K * section_length are multiplied by
      reduction_factor(elapsed, K * section_length, baseline)
    - The first entry gets exactly the baseline; entries past the window are untouched

    With equal lengths the factor depends on rank only, so tied values
    swap factors without changing the reduced multiset.

    Parameters:
        sorted_peaks: Peaks sorted descending
        section_length: Fixed section length in ms
        reduced_section_count: K, number of section lengths in the window
        reduced_strain_baseline: Multiplier for the highest entry

    Returns:
        Reduced and re-sorted peaks
    """
    window = reduced_section_count * section_length
    if window <= 0:
        return list(sorted_peaks)

    reduced = []
    elapsed = 0.0

    for peak in sorted_peaks:
        value = peak.value * reduction_factor(elapsed, window, reduced_strain_baseline)
        reduced.append(StrainPeak(value, peak.section_length))
        elapsed += peak.section_length

    return sort_peaks(reduced)


# =============================================================================
# WEIGHTING
# =============================================================================

def rank_weights(
    count: int,
    params: AggregationParams = DEFAULT_AGGREGATION_PARAMS
) -> np.ndarray:
    """
    Discrete weights for ranks 0..count-1.

    weight(r) = (1 + b/(1+r)) / (r**e + 1 + b/(1+r)); weight(0) == 1.
    """
    ranks = np.arange(count, dtype=np.float64)
    bonus = params.rank_weight_bonus / (1.0 + ranks)
    return (1.0 + bonus) / (np.power(ranks, params.rank_weight_exponent) + 1.0 + bonus)


def rank_weighted_sum(
    sorted_peaks: Sequence[StrainPeak],
    params: AggregationParams = DEFAULT_AGGREGATION_PARAMS
) -> Tuple[float, float]:
    """
    Algorithm A: sum of value * weight(rank).

    Returns:
        Tuple of (difficulty, weight_sum)
    """
    if len(sorted_peaks) == 0:
        return 0.0, 0.0

    values = np.array([p.value for p in sorted_peaks], dtype=np.float64)
    weights = rank_weights(len(values), params)
    return float(np.sum(values * weights)), float(np.sum(weights))


def continuous_weight(time: float) -> float:
    """Monotone warping W(t) of normalised time, W(0) == 0."""
    return (
        math.log(time * 8 + 1) ** 2.32 * 0.134398398845
        + math.log((time * 8) ** 2.15 + 1) * 0.793690755297
    ) / 2


def reduced_continuous_weight(time: float, window: float, baseline: float) -> float:
    """
    Continuous weight with the reduction ramp folded in.

    CONTRACT:
    - G(t) = integral over [0, t] of reduction_factor(s, window, baseline) dW(s)
    - G(t) == W(t) when window <= 0
    - Past the window G grows exactly like W
    - Non-decreasing in t, G(0) == 0

    Inside the window the integral is taken by parts,
    G(t) = r(t) * W(t) - integral of W * r', with Gauss-Legendre quadrature.

    Parameters:
        time: Normalised elapsed time
        window: Normalised reduction window (K * section_length / L)
        baseline: Ramp value at time 0
    """
    if window <= 0 or time <= 0:
        return continuous_weight(time)

    inside = min(time, window)
    value = reduction_factor(inside, window, baseline) * continuous_weight(inside)

    nodes = 0.5 * inside * (QUADRATURE_NODES + 1.0)
    ramp_slope = (1.0 - baseline) * 9.0 / (window * math.log(10.0) * (1.0 + 9.0 * nodes / window))
    weights = np.array([continuous_weight(s) for s in nodes])
    value -= 0.5 * inside * float(np.sum(QUADRATURE_WEIGHTS * weights * ramp_slope))

    if time > window:
        value += continuous_weight(time) - continuous_weight(window)
    return value


def continuous_weighted_sum(
    sorted_peaks: Sequence[StrainPeak],
    max_section_length: float,
    reduced_window: float = 0.0,
    reduced_strain_baseline: float = 1.0
) -> Tuple[float, float]:
    """
    Algorithm B: each entry is weighted by the growth of the (reduced)
    weight over the normalised time span it occupies.

    difficulty = sum(value_i * (G(t_i + len_i / L) - G(t_i))), t advancing by len_i / L.

    Parameters:
        sorted_peaks: Peaks sorted descending
        max_section_length: L, normalisation length in ms
        reduced_window: Reduction window in normalised time (0 disables reduction)
        reduced_strain_baseline: Ramp value for the highest entry

    Returns:
        Tuple of (difficulty, weight_sum) where weight_sum = W(total time)
    """
    difficulty = 0.0
    time = 0.0
    previous_weight = 0.0

    for peak in sorted_peaks:
        time += peak.section_length / max_section_length
        weight = reduced_continuous_weight(time, reduced_window, reduced_strain_baseline)
        difficulty += peak.value * (weight - previous_weight)
        previous_weight = weight

    return difficulty, continuous_weight(time)


def difficulty_value(
    peaks: Iterable[StrainPeak],
    skill: SkillParams,
    params: AggregationParams = DEFAULT_AGGREGATION_PARAMS
) -> Tuple[float, float]:
    """
    Full aggregation of one skill's peaks.

    Parameters:
        peaks: Unsorted (value, section_length) pairs
        skill: Skill parameters (reduction window, weighting, multiplier)
        params: Shared weighting constants

    Returns:
        Tuple of (difficulty, weight_sum)
    """
    entries = sort_peaks(drop_zero_peaks(peaks))
    if not entries:
        return 0.0, 0.0

    if skill.weighting == WEIGHTING_RANK:
        entries = reduce_top_peaks(
            entries,
            skill.section_length,
            skill.reduced_section_count,
            skill.reduced_strain_baseline
        )
        difficulty, weight_sum = rank_weighted_sum(entries, params)
    elif skill.weighting == WEIGHTING_CONTINUOUS:
        difficulty, weight_sum = continuous_weighted_sum(
            entries,
            skill.max_section_length,
            skill.reduced_section_count * skill.section_length / skill.max_section_length,
            skill.reduced_strain_baseline
        )
    else:
        raise ValueError(f"Unknown weighting: {skill.weighting}")

    return difficulty * skill.difficulty_multiplier, weight_sum


# =============================================================================
# AUXILIARY COUNTS
# =============================================================================

def count_top_weighted(
    object_strains: Sequence[float],
    difficulty: float,
    weight_sum: float,
    params: AggregationParams = DEFAULT_AGGREGATION_PARAMS
) -> float:
    """
    Logistic count of objects whose strain is close to the average top strain.

    The average top strain is difficulty / weight_sum; each object adds
    logistic(strain / average_top, midpoint, steepness, max).

    Returns:
        Weighted count (0.0 when there is nothing to count)
    """
    if len(object_strains) == 0 or difficulty <= 0 or weight_sum <= 0:
        return 0.0

    consistent_top_strain = difficulty / weight_sum

    return float(sum(
        logistic(
            s / consistent_top_strain,
            params.top_weighted_midpoint,
            params.top_weighted_steepness,
            params.top_weighted_max
        )
        for s in object_strains
    ))


def relevant_object_count(object_strains: Sequence[float]) -> float:
    """
    Logistic count of objects relative to the hardest one.

    Each object adds 1 / (1 + exp(-(s / max * 12 - 6))).
    """
    if len(object_strains) == 0:
        return 0.0

    strains = np.asarray(object_strains, dtype=np.float64)
    max_strain = float(np.max(strains))
    if max_strain <= 0:
        return 0.0

    return float(np.sum(1.0 / (1.0 + np.exp(-(strains / max_strain * 12.0 - 6.0)))))
