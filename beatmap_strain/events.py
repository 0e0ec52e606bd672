"""
Event Detection Module

Detect strain spikes and sustained high-strain sections in a skill's
section peak curve using deterministic heuristic rules.
"""

import numpy as np
from typing import Dict, List, Optional, Tuple
from scipy import signal as scipy_signal

from beatmap_strain import timebase
from beatmap_strain.kernel_params import EventParams


DEFAULT_EVENT_PARAMS: EventParams = EventParams()


def detect_peaks_with_prominence(
    curve: np.ndarray,
    prominence_threshold: float,
    min_distance: int = DEFAULT_EVENT_PARAMS.spike_min_distance_sections
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Detect peaks in a curve with prominence filtering.

    Parameters:
        curve: 1D array
        prominence_threshold: Minimum prominence for peaks
        min_distance: Minimum distance between peaks (sections)

    Returns:
        Tuple of (peak_indices, peak_values, prominences)
    """
    peaks, properties = scipy_signal.find_peaks(
        curve,
        prominence=prominence_threshold,
        distance=max(1, min_distance)
    )

    prominences = properties['prominences']
    peak_values = curve[peaks]

    return peaks, peak_values, prominences


def detect_strain_spikes(
    section_strains: np.ndarray,
    section_starts: np.ndarray,
    section_ends: np.ndarray,
    params: EventParams = DEFAULT_EVENT_PARAMS,
    duration_ms: Optional[float] = None
) -> List[Dict]:
    """
    Detect isolated strain spikes.

    A spike is a section peak whose prominence is at least
    spike_prominence times the curve maximum. The top_n_spikes most
    prominent spikes are returned, most prominent first.

    Parameters:
        section_strains: Section peak strains in time order
        section_starts: Section start times (ms)
        section_ends: Section end times (ms)
        params: Event detection parameters
        duration_ms: Map end time in ms, spike times are clamped to [0, duration_ms]

    Returns:
        List of spike dicts with:
            - 'time': section center time in ms
            - 'section': section index
            - 'strain': section peak strain
            - 'relative_strain': strain / curve maximum
            - 'prominence': prominence relative to curve maximum
    """
    curve = np.asarray(section_strains, dtype=np.float64)
    if len(curve) < 3:
        return []

    max_strain = float(np.max(curve))
    if max_strain <= 0:
        return []

    peaks, values, prominences = detect_peaks_with_prominence(
        curve / max_strain,
        params.spike_prominence,
        params.spike_min_distance_sections
    )

    spikes = []
    for idx, value, prominence in zip(peaks, values, prominences):
        spikes.append({
            'time': float((section_starts[idx] + section_ends[idx]) / 2.0),
            'section': int(idx),
            'strain': float(curve[idx]),
            'relative_strain': float(value),
            'prominence': float(prominence)
        })

    # Most prominent first, ties by time
    spikes.sort(key=lambda s: (-s['prominence'], s['time']))
    spikes = spikes[:params.top_n_spikes]

    if duration_ms is not None:
        spikes = timebase.validate_point_events(spikes, duration_ms, time_key='time')

    return spikes


def detect_sustained_sections(
    section_strains: np.ndarray,
    section_starts: np.ndarray,
    section_ends: np.ndarray,
    params: EventParams = DEFAULT_EVENT_PARAMS
) -> List[Dict]:
    """
    Detect sustained high-strain passages.

    A sustained section is a contiguous run of sections whose strain stays
    at or above sustained_threshold times the curve maximum for at least
    sustained_min_duration_ms.

    Parameters:
        section_strains: Section peak strains in time order
        section_starts: Section start times (ms)
        section_ends: Section end times (ms)
        params: Event detection parameters

    Returns:
        List of dicts with:
            - 'start_time' / 'end_time' / 'duration': ms
            - 'mean_relative_strain': mean strain / curve maximum
            - 'start_section' / 'end_section': section indices
            - 'label': descriptive label
    """
    curve = np.asarray(section_strains, dtype=np.float64)
    if len(curve) == 0:
        return []

    max_strain = float(np.max(curve))
    if max_strain <= 0:
        return []

    relative = curve / max_strain
    is_high = relative >= params.sustained_threshold

    runs = []
    in_run = False
    run_start = 0

    for i in range(len(is_high)):
        if is_high[i] and not in_run:
            in_run = True
            run_start = i
        elif not is_high[i] and in_run:
            runs.append((run_start, i - 1))
            in_run = False

    # Handle run extending to end
    if in_run:
        runs.append((run_start, len(is_high) - 1))

    results = []
    for start_idx, end_idx in runs:
        start_time = float(section_starts[start_idx])
        end_time = float(section_ends[end_idx])

        if not timebase.is_segment_valid(start_time, end_time, params.sustained_min_duration_ms):
            continue

        mean_relative = float(np.mean(relative[start_idx:end_idx + 1]))

        if mean_relative > 0.9:
            label = "Relentless section"
        else:
            label = "Sustained section"

        results.append({
            'start_time': start_time,
            'end_time': end_time,
            'duration': end_time - start_time,
            'mean_relative_strain': mean_relative,
            'start_section': int(start_idx),
            'end_section': int(end_idx),
            'label': label
        })

    return results


def detect_all_events(
    section_curves: Dict[str, Dict[str, np.ndarray]],
    params: EventParams = DEFAULT_EVENT_PARAMS,
    duration_ms: Optional[float] = None
) -> Dict[str, Dict[str, List[Dict]]]:
    """
    Detect spikes and sustained sections for every skill.

    This is the main entry point for event detection.

    Parameters:
        section_curves: Per skill name, a dict with 'strains', 'starts', 'ends'
        params: Event detection parameters
        duration_ms: Map end time in ms, spike times are clamped to [0, duration_ms]

    Returns:
        Per skill name: {'spikes': [...], 'sustained_sections': [...]}
    """
    events = {}
    for name, curve in section_curves.items():
        events[name] = {
            'spikes': detect_strain_spikes(
                curve['strains'], curve['starts'], curve['ends'], params, duration_ms
            ),
            'sustained_sections': detect_sustained_sections(
                curve['strains'], curve['starts'], curve['ends'], params
            )
        }
    return events
