"""
Timebase Module - Strain Section Time Axis Utilities

Maps section peaks back onto the beatmap timeline and samples the decaying
strain curve at arbitrary times.

DESIGN CONSTRAINTS:
- Section layout must match StrainSkill exactly
- Deterministic: same inputs -> same outputs
- No external config imports (explicit parameters)

FIXED SECTION LAYOUT:
- First section end: e0 = ceil(t_first / L) * L
- Section end: e[i] = e0 + i * L
- One peak per section, including the still-open last section
"""

import math
from typing import Dict, List, Sequence, Tuple

import numpy as np


# =============================================================================
# VERSION
# =============================================================================

# Bump when section/time calculation logic changes
TIMEBASE_VERSION: str = "1"


# =============================================================================
# CONSTANTS
# =============================================================================

DEFAULT_SECTION_LENGTH_MS: float = 400.0
EPSILON_MS: float = 1e-6


# =============================================================================
# FIXED SECTIONS
# =============================================================================

def first_section_end(first_time_ms: float, section_length_ms: float = DEFAULT_SECTION_LENGTH_MS) -> float:
    return math.ceil(first_time_ms / section_length_ms) * section_length_ms


def compute_section_time_axis(
    first_time_ms: float,
    n_sections: int,
    section_length_ms: float = DEFAULT_SECTION_LENGTH_MS
) -> np.ndarray:
    """
    Section end times for fixed sections.

    CONTRACT:
    - Output: strictly increasing float64 array of length n_sections
    - times[i] = ceil(first / L) * L + i * L

    Returns:
        Array of section end times (n_sections,)
    """
    if n_sections <= 0:
        return np.array([], dtype=np.float64)

    end = first_section_end(first_time_ms, section_length_ms)
    return end + np.arange(n_sections, dtype=np.float64) * section_length_ms


# =============================================================================
# VARIABLE-LENGTH SECTIONS
# =============================================================================

def compute_variable_section_axis(
    section_lengths_ms: Sequence[float],
    start_time_ms: float
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Start and end times of consecutive variable-length sections.

    Parameters:
        section_lengths_ms: Section lengths in emission order
        start_time_ms: Start time of the first section

    Returns:
        Tuple of (starts, ends), both float64 arrays
    """
    lengths = np.asarray(section_lengths_ms, dtype=np.float64)
    ends = start_time_ms + np.cumsum(lengths)
    starts = ends - lengths
    return starts, ends


# =============================================================================
# STRAIN SAMPLING
# =============================================================================

def sample_strain_curve(
    sample_times_ms: Sequence[float],
    object_times_ms: Sequence[float],
    object_strains: Sequence[float],
    decay_base: float
) -> np.ndarray:
    """
    Strain at arbitrary times, decayed from the latest object at or before each time.

    Equivalent to calling StrainSkill.initial_strain_at() right after the
    matching object, without re-running the fold.

    CONTRACT:
    - Times before the first object sample 0.0
    - object_times_ms must be non-decreasing

    Returns:
        Array of sampled strains (len(sample_times_ms),)
    """
    samples = np.asarray(sample_times_ms, dtype=np.float64)
    times = np.asarray(object_times_ms, dtype=np.float64)
    strains = np.asarray(object_strains, dtype=np.float64)

    result = np.zeros(len(samples), dtype=np.float64)
    if len(times) == 0:
        return result

    idx = np.searchsorted(times, samples, side='right') - 1
    valid = idx >= 0
    elapsed = samples[valid] - times[idx[valid]]
    result[valid] = strains[idx[valid]] * np.power(decay_base, elapsed / 1000.0)
    return result


# =============================================================================
# EVENT VALIDATION
# =============================================================================

def clamp_point_event(
    event_time: float,
    duration_ms: float,
    epsilon: float = EPSILON_MS
) -> Tuple[float, bool]:
    """
    Clamp a point event time to valid range [0, duration_ms].

    Returns:
        Tuple of (clamped_time, was_clamped)
    """
    was_clamped = False
    clamped_time = event_time

    if event_time < 0:
        clamped_time = 0.0
        was_clamped = True
    elif event_time > duration_ms + epsilon:
        clamped_time = duration_ms
        was_clamped = True

    return float(clamped_time), was_clamped


def is_segment_valid(
    start_time: float,
    end_time: float,
    min_duration_ms: float = 0.0
) -> bool:
    """True if end > start and the segment lasts at least min_duration_ms."""
    duration = end_time - start_time
    return duration >= min_duration_ms and end_time > start_time


def validate_point_events(
    events: List[Dict],
    duration_ms: float,
    time_key: str = 'time',
    drop_invalid: bool = False,
    epsilon: float = EPSILON_MS
) -> List[Dict]:
    """
    Validate and optionally clamp point events with a time field.

    Parameters:
        events: List of event dicts with time_key field
        duration_ms: Map duration in ms
        time_key: Key name for the time field (default 'time')
        drop_invalid: If True, drop events beyond duration instead of clamping
        epsilon: Tolerance for out-of-bounds detection

    Returns:
        List of events with clamped times (or filtered if drop_invalid=True)
    """
    validated = []

    for event in events:
        if time_key not in event:
            validated.append(event.copy())
            continue

        event_copy = event.copy()
        clamped_time, was_clamped = clamp_point_event(event_copy[time_key], duration_ms, epsilon)

        if was_clamped and drop_invalid:
            continue

        if was_clamped:
            event_copy[time_key] = clamped_time

        validated.append(event_copy)

    return validated
