"""
Export Module

Generate JSON outputs and plots for difficulty analysis results.
All outputs follow versioned schema for consistency.
"""

import numpy as np
import json
from pathlib import Path
from typing import Dict, List
import matplotlib
matplotlib.use('Agg')  # Non-interactive backend
import matplotlib.pyplot as plt

import config
from beatmap_strain import timebase
from beatmap_strain.metrics import SkillResult


class NumpyEncoder(json.JSONEncoder):
    """JSON encoder that handles numpy types."""
    def default(self, obj):
        if isinstance(obj, np.integer):
            return int(obj)
        elif isinstance(obj, np.floating):
            return float(obj)
        elif isinstance(obj, np.ndarray):
            return obj.tolist()
        elif isinstance(obj, np.bool_):
            return bool(obj)
        return super().default(obj)


def skill_result_to_dict(result: SkillResult) -> Dict:
    """Serializable view of one SkillResult."""
    return {
        'difficulty': result.difficulty,
        'weight_sum': result.weight_sum,
        'top_weighted_count': result.top_weighted_count,
        'top_weighted_extended_count': result.top_weighted_extended_count,
        'relevant_object_count': result.relevant_object_count,
        'decay_base': result.decay_base,
        'object_strains': {
            'times_ms': result.object_times,
            'values': result.object_strains,
            'length': len(result.object_strains)
        },
        'sections': {
            'starts_ms': result.section_starts,
            'ends_ms': result.section_ends,
            'peaks': result.section_strains,
            'lengths_ms': [p.section_length for p in result.peaks],
            'length': len(result.peaks)
        }
    }


def create_metrics_json(
    beatmap_metadata: Dict,
    params: Dict,
    statistics: Dict,
    skill_results: Dict[str, SkillResult],
    events_dict: Dict
) -> Dict:
    """
    Create complete metrics JSON following schema.

    Parameters:
        beatmap_metadata: Dict with name, clock_rate, overall_difficulty, expand_nested
        params: Dict of all parameters used (KernelConfig.to_dict())
        statistics: Dict from compute_sequence_statistics
        skill_results: Dict from compute_all_skills
        events_dict: Dict from detect_all_events

    Returns:
        Complete metrics dict ready for JSON serialization
    """
    return {
        'schema_version': config.SCHEMA_VERSION,
        'timebase_version': timebase.TIMEBASE_VERSION,
        'beatmap_metadata': beatmap_metadata,
        'params': params,
        'statistics': statistics,
        'skills': {name: skill_result_to_dict(result) for name, result in skill_results.items()},
        'events': events_dict
    }


def create_summary_json(metrics_json: Dict) -> Dict:
    """
    Create concise summary JSON from full metrics.

    Parameters:
        metrics_json: Complete metrics dict

    Returns:
        Summary dict with per-skill difficulty, counts and top spikes
    """
    skills_summary = {}
    for name, skill in metrics_json['skills'].items():
        events = metrics_json['events'].get(name, {})
        sustained = events.get('sustained_sections', [])
        skills_summary[name] = {
            'difficulty': skill['difficulty'],
            'top_weighted_count': skill['top_weighted_count'],
            'top_weighted_extended_count': skill['top_weighted_extended_count'],
            'relevant_object_count': skill['relevant_object_count'],
            'top_spikes': events.get('spikes', []),
            'num_sustained_sections': len(sustained),
            'longest_sustained_ms': max((s['duration'] for s in sustained), default=0.0)
        }

    return {
        'schema_version': metrics_json['schema_version'],
        'name': metrics_json['beatmap_metadata']['name'],
        'clock_rate': metrics_json['beatmap_metadata']['clock_rate'],
        'object_count': metrics_json['statistics']['object_count'],
        'duration_ms': metrics_json['statistics']['duration_ms'],
        'skills': skills_summary
    }


def save_json(data: Dict, output_path: Path) -> None:
    """
    Save data as JSON with pretty printing.

    Parameters:
        data: Dictionary to save
        output_path: Path to output file
    """
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, 'w') as f:
        json.dump(data, f, indent=2, cls=NumpyEncoder)


def plot_strain_curves(
    skill_results: Dict[str, SkillResult],
    events_dict: Dict,
    output_path: Path,
    title: str = "Strain Analysis"
) -> None:
    """
    Plot one strain panel per skill with section peaks and event markers.

    Each panel shows the decaying strain sampled every
    STRAIN_SAMPLE_INTERVAL_MS, the section peaks as a step curve,
    spikes as dashed lines and sustained sections as shaded spans.

    Parameters:
        skill_results: Dict from compute_all_skills
        events_dict: Dict from detect_all_events
        output_path: Path to save plot
        title: Plot title
    """
    n_skills = max(1, len(skill_results))
    fig, axes = plt.subplots(n_skills, 1, figsize=config.PLOT_FIGSIZE, sharex=True, squeeze=False)

    for ax, (name, result) in zip(axes[:, 0], skill_results.items()):
        if len(result.object_times) > 0:
            sample_times = np.arange(
                result.object_times[0],
                result.object_times[-1] + config.STRAIN_SAMPLE_INTERVAL_MS,
                config.STRAIN_SAMPLE_INTERVAL_MS
            )
            sampled = timebase.sample_strain_curve(
                sample_times, result.object_times, result.object_strains, result.decay_base
            )
            ax.plot(config.ms_to_seconds(sample_times), sampled,
                    label='Strain', color='red', alpha=0.4, linewidth=1)

        if len(result.peaks) > 0:
            ax.step(config.ms_to_seconds(result.section_ends), result.section_strains,
                    where='pre', label='Section peak', color='red', linewidth=2)

        skill_events = events_dict.get(name, {})
        for spike in skill_events.get('spikes', []):
            ax.axvline(config.ms_to_seconds(spike['time']), color='purple', alpha=0.5,
                       linestyle='--', linewidth=1)
        for section in skill_events.get('sustained_sections', []):
            ax.axvspan(config.ms_to_seconds(section['start_time']),
                       config.ms_to_seconds(section['end_time']),
                       alpha=0.2, color='orange', label='_nolegend_')

        ax.set_ylabel(f"{name}\n({result.difficulty:.3f})", fontsize=10)
        ax.legend(loc='upper right', fontsize=8)
        ax.grid(True, alpha=0.3)

    axes[0, 0].set_title(title, fontsize=12, fontweight='bold')
    axes[-1, 0].set_xlabel('Time (seconds)', fontsize=10)

    plt.tight_layout()

    output_path.parent.mkdir(parents=True, exist_ok=True)
    plt.savefig(output_path, dpi=config.PLOT_DPI, bbox_inches='tight')
    plt.close(fig)


def export_all_outputs(
    analysis_results: Dict,
    output_dir: Path,
    beatmap_name: str,
    generate_plots: bool = True
) -> List[Path]:
    """
    Export all outputs: JSON files and plots.

    Parameters:
        analysis_results: Dict containing all analysis data:
            - 'beatmap_metadata': name, clock rate, overall difficulty
            - 'params': parameters used
            - 'statistics': from compute_sequence_statistics
            - 'skills': from compute_all_skills
            - 'events': from detect_all_events
        output_dir: Output directory path
        beatmap_name: Name of beatmap (for filenames)
        generate_plots: Whether to generate plot files

    Returns:
        List of paths to created files
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    created_files = []

    metrics_json = create_metrics_json(
        analysis_results['beatmap_metadata'],
        analysis_results['params'],
        analysis_results['statistics'],
        analysis_results['skills'],
        analysis_results['events']
    )

    metrics_path = output_dir / f"{beatmap_name}_metrics.json"
    save_json(metrics_json, metrics_path)
    created_files.append(metrics_path)

    summary_json = create_summary_json(metrics_json)
    summary_path = output_dir / f"{beatmap_name}_summary.json"
    save_json(summary_json, summary_path)
    created_files.append(summary_path)

    if generate_plots:
        plots_path = output_dir / f"{beatmap_name}_strains.png"
        plot_strain_curves(
            analysis_results['skills'],
            analysis_results['events'],
            plots_path,
            title=f"Strain Analysis: {beatmap_name}"
        )
        created_files.append(plots_path)

    return created_files


def print_analysis_summary(summary_json: Dict, beatmap_name: str) -> None:
    """
    Print concise analysis summary to console.

    Parameters:
        summary_json: Summary JSON dict
        beatmap_name: Beatmap name
    """
    print(f"\n{'='*60}")
    print(f"Analysis Summary: {beatmap_name}")
    print(f"{'='*60}")
    print(f"Objects: {summary_json['object_count']}, "
          f"duration: {config.ms_to_seconds(summary_json['duration_ms']):.2f} seconds, "
          f"clock rate: {summary_json['clock_rate']:.2f}")

    for name, skill in summary_json['skills'].items():
        print(f"\n{name}: {skill['difficulty']:.4f} "
              f"(top weighted: {skill['top_weighted_count']:.1f}, "
              f"relevant: {skill['relevant_object_count']:.1f})")
        for i, spike in enumerate(skill['top_spikes'], 1):
            print(f"  {i}. Spike at {config.ms_to_seconds(spike['time']):.2f}s "
                  f"(relative strain {spike['relative_strain']:.3f})")
        if skill['num_sustained_sections'] > 0:
            print(f"  Sustained sections: {skill['num_sustained_sections']}, longest "
                  f"{config.ms_to_seconds(skill['longest_sustained_ms']):.2f}s")

    print(f"{'='*60}\n")
