"""
Golden Reference Generator

Generates deterministic reference outputs from the difficulty kernel so any
change to preprocessing, evaluators or aggregation shows up as a diff.

Usage:
    # Generate synthetic golden outputs
    python golden_reference.py --output golden_outputs/

    # Same, with nested points expanded into their own difficulty objects
    python golden_reference.py --output golden_outputs/ --expand-nested

    # Validate existing golden outputs
    python golden_reference.py --validate --output golden_outputs/

Directory structure:
    golden_outputs/
    ├── kernel_v{KERNEL_VERSION}/
    │   ├── timebase_v{TIMEBASE_VERSION}/
    │   │   └── synthetic/
    │   │       ├── stream/
    │   │       │   ├── beatmap.json
    │   │       │   ├── metrics.json
    │   │       │   └── summary.json
    │   │       ├── jumps/
    │   │       ├── slider_flow/
    │   │       └── break_contrast/
    │   │
    │   └── README.md
"""

import argparse
import hashlib
import json
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Tuple

import numpy as np

import config
from beatmap_strain import beatmap_io, events, export, metrics
from beatmap_strain.beatmap_io import Beatmap
from beatmap_strain.kernel_params import KernelConfig, DEFAULT_CONFIG
from beatmap_strain.objects import (
    KIND_EXTENDED,
    KIND_NON_POSITIONAL,
    NESTED_REPEAT,
    NESTED_TAIL,
    NESTED_TICK,
    NestedPoint,
    RawObject,
)
from beatmap_strain.preprocessing import build_difficulty_objects
from beatmap_strain.timebase import TIMEBASE_VERSION


PLAYFIELD_CENTER: Tuple[float, float] = (256.0, 192.0)
SYNTHETIC_RADIUS: float = beatmap_io.radius_from_circle_size(config.DEFAULT_CIRCLE_SIZE)


# =============================================================================
# SYNTHETIC BEATMAP GENERATORS
# =============================================================================

def generate_stream(count: int = 64, interval_ms: float = 100.0, spacing: float = 40.0) -> Beatmap:
    """
    Generate a tightly spaced stream of simple objects.

    Objects snake through rows of eight with a slight zigzag, so consecutive
    movements are short and nearly colinear: high speed strain, low aim strain.

    Parameters:
        count: Number of objects
        interval_ms: Time between consecutive objects
        spacing: Horizontal distance between consecutive objects

    Returns:
        Beatmap
    """
    x0 = PLAYFIELD_CENTER[0] - 3.5 * spacing
    objects = []
    for i in range(count):
        row, col = divmod(i, 8)
        if row % 2 == 1:
            col = 7 - col
        x = x0 + col * spacing
        y = PLAYFIELD_CENTER[1] - 140.0 + (row % 8) * 40.0 + (i % 2) * spacing / 4
        t = i * interval_ms
        objects.append(RawObject(start_time=t, end_time=t, position=(x, y), radius=SYNTHETIC_RADIUS))

    return Beatmap(name='stream', objects=objects)


def generate_jumps(count: int = 48, interval_ms: float = 300.0, distance: float = 300.0) -> Beatmap:
    """
    Generate wide jumps cycling around a square.

    Every movement is a full `distance` with a right angle between
    consecutive movements: high aim strain, low speed strain.

    Parameters:
        count: Number of objects
        interval_ms: Time between consecutive objects
        distance: Side of the square in playfield units

    Returns:
        Beatmap
    """
    half = distance / 2
    corners = [(-half, -half), (half, -half), (half, half), (-half, half)]

    objects = []
    for i in range(count):
        dx, dy = corners[i % 4]
        t = i * interval_ms
        objects.append(RawObject(
            start_time=t,
            end_time=t,
            position=(PLAYFIELD_CENTER[0] + dx, PLAYFIELD_CENTER[1] + dy),
            radius=SYNTHETIC_RADIUS
        ))

    return Beatmap(name='jumps', objects=objects)


def _make_extended(
    start_time: float,
    position: Tuple[float, float],
    offset: Tuple[float, float],
    span_duration: float,
    span_count: int
) -> RawObject:
    """Straight-line extended object with one tick per span, repeats and a tail."""
    hx, hy = position
    ex, ey = hx + offset[0], hy + offset[1]
    middle = ((hx + ex) / 2, (hy + ey) / 2)

    nested = []
    for span in range(span_count):
        span_start = start_time + span * span_duration
        nested.append(NestedPoint(time=span_start + span_duration / 2, position=middle, kind=NESTED_TICK))
        span_end = (ex, ey) if span % 2 == 0 else (hx, hy)
        kind = NESTED_TAIL if span == span_count - 1 else NESTED_REPEAT
        nested.append(NestedPoint(time=span_start + span_duration, position=span_end, kind=kind))

    return RawObject(
        start_time=start_time,
        end_time=start_time + span_count * span_duration,
        position=(hx, hy),
        radius=SYNTHETIC_RADIUS,
        kind=KIND_EXTENDED,
        nested=tuple(nested),
        path=((0.0, 0.0), (float(offset[0]), float(offset[1]))),
        span_count=span_count
    )


def generate_slider_flow(count: int = 16, interval_ms: float = 600.0, length: float = 160.0) -> Beatmap:
    """
    Generate chained extended objects separated by simple objects.

    Every third extended object repeats once. Path direction rotates by
    90 degrees each time so the cursor keeps changing direction.

    Parameters:
        count: Number of extended objects
        interval_ms: Time from one extended head to the next
        length: Path length in playfield units

    Returns:
        Beatmap
    """
    directions = [(1.0, 0.0), (0.0, 1.0), (-1.0, 0.0), (0.0, -1.0)]
    span_duration = interval_ms / 3

    objects = []
    x, y = PLAYFIELD_CENTER[0] - length / 2, PLAYFIELD_CENTER[1] - length / 2
    for i in range(count):
        t = i * interval_ms
        dx, dy = directions[i % 4]
        offset = (dx * length, dy * length)
        span_count = 2 if i % 3 == 2 else 1

        obj = _make_extended(t, (x, y), offset, span_duration, span_count)
        objects.append(obj)

        # A single circle just past the tail, off the path
        end_x, end_y = obj.end_position
        circle_time = obj.end_time + span_duration / 2
        objects.append(RawObject(
            start_time=circle_time,
            end_time=circle_time,
            position=(float(end_x + dy * 60.0), float(end_y - dx * 60.0)),
            radius=SYNTHETIC_RADIUS
        ))

        x, y = float(end_x + dx * 40.0 + dy * 60.0), float(end_y + dy * 40.0 - dx * 60.0)
        x = min(max(x, 32.0), 480.0)
        y = min(max(y, 32.0), 352.0)

    return Beatmap(name='slider_flow', objects=objects)


def generate_break_contrast(
    stream_count: int = 48,
    jump_count: int = 32,
    break_ms: float = 4000.0
) -> Tuple[Beatmap, float]:
    """
    Generate a stream, a long non-positional object, then jumps.

    Parameters:
        stream_count: Objects in the opening stream
        jump_count: Objects in the closing jump section
        break_ms: Duration of the non-positional object

    Returns:
        Tuple of (beatmap, jump_section_start_ms)
    """
    stream = generate_stream(count=stream_count).objects
    jumps = generate_jumps(count=jump_count).objects

    spin_start = stream[-1].start_time + 500.0
    spin = RawObject(
        start_time=spin_start,
        end_time=spin_start + break_ms,
        position=PLAYFIELD_CENTER,
        radius=SYNTHETIC_RADIUS,
        kind=KIND_NON_POSITIONAL
    )

    jump_start = spin.end_time + 1000.0
    shifted = [replace(o, start_time=o.start_time + jump_start, end_time=o.end_time + jump_start) for o in jumps]

    return Beatmap(name='break_contrast', objects=stream + [spin] + shifted), jump_start


def generate_synthetic_beatmaps() -> Dict[str, Beatmap]:
    """All synthetic beatmaps keyed by reference name."""
    return {
        'stream': generate_stream(),
        'jumps': generate_jumps(),
        'slider_flow': generate_slider_flow(),
        'break_contrast': generate_break_contrast()[0],
    }


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

def compute_sha256(data: np.ndarray) -> str:
    """Compute SHA256 checksum of numpy array."""
    return hashlib.sha256(np.ascontiguousarray(data, dtype=np.float64).tobytes()).hexdigest()


def compute_beatmap_sha256(beatmap: Beatmap) -> str:
    """SHA256 of the canonical (sorted-key) JSON form of a beatmap."""
    payload = json.dumps(beatmap_io.beatmap_to_dict(beatmap), sort_keys=True)
    return hashlib.sha256(payload.encode('utf-8')).hexdigest()


def get_versioned_output_path(
    base_dir: str,
    kernel_version: str = None,
    timebase_version: str = None
) -> Path:
    """
    Build versioned output path.

    Parameters:
        base_dir: Base output directory
        kernel_version: Kernel version (default: config.KERNEL_VERSION)
        timebase_version: Timebase version (default: TIMEBASE_VERSION)

    Returns:
        Path like golden_outputs/kernel_v1.0.0/timebase_v1/
    """
    if kernel_version is None:
        kernel_version = config.KERNEL_VERSION
    if timebase_version is None:
        timebase_version = TIMEBASE_VERSION

    return Path(base_dir) / f"kernel_v{kernel_version}" / f"timebase_v{timebase_version}"


# =============================================================================
# ANALYSIS PIPELINE
# =============================================================================

def run_full_analysis(
    beatmap: Beatmap,
    cfg: KernelConfig = DEFAULT_CONFIG,
    expand_nested: bool = config.EXPAND_NESTED
) -> Dict:
    """
    Run complete analysis pipeline on a beatmap.

    Parameters:
        beatmap: Loaded or generated beatmap
        cfg: Kernel configuration
        expand_nested: Emit one difficulty object per nested point

    Returns:
        Dictionary with all analysis results, in the layout
        export.export_all_outputs expects, plus the built 'sequence'
    """
    sequence = build_difficulty_objects(
        beatmap.objects,
        beatmap.clock_rate,
        beatmap.hit_window_fn,
        expand_nested=expand_nested,
        params=cfg.preprocess
    )

    statistics = metrics.compute_sequence_statistics(sequence)
    skill_results = metrics.compute_all_skills(sequence, cfg)

    section_curves = {
        name: {
            'strains': result.section_strains,
            'starts': result.section_starts,
            'ends': result.section_ends,
        }
        for name, result in skill_results.items()
    }
    detected_events = events.detect_all_events(section_curves, cfg.events, statistics['end_time_ms'])

    return {
        'beatmap_metadata': {
            'name': beatmap.name,
            'clock_rate': beatmap.clock_rate,
            'overall_difficulty': beatmap.overall_difficulty,
            'expand_nested': expand_nested,
        },
        'params': cfg.to_dict(),
        'statistics': statistics,
        'skills': skill_results,
        'events': detected_events,
        'sequence': sequence,
    }


# =============================================================================
# OUTPUT GENERATION
# =============================================================================

def generate_beatmap_outputs(
    name: str,
    beatmap: Beatmap,
    cfg: KernelConfig,
    output_dir: Path,
    expand_nested: bool = config.EXPAND_NESTED
) -> List[Path]:
    """
    Generate all outputs for a single beatmap.

    Parameters:
        name: Beatmap name (used for output directory)
        beatmap: Beatmap to analyze
        cfg: Kernel configuration
        output_dir: Base output directory (e.g., golden_outputs/kernel_v1.0.0/timebase_v1/synthetic/)
        expand_nested: Emit one difficulty object per nested point

    Returns:
        List of created file paths
    """
    beatmap_dir = output_dir / name
    beatmap_dir.mkdir(parents=True, exist_ok=True)

    results = run_full_analysis(beatmap, cfg, expand_nested)

    created_files = []

    # The input itself is part of the reference so validation can re-run it
    beatmap_path = beatmap_dir / 'beatmap.json'
    beatmap_io.save_beatmap(beatmap, beatmap_path)
    created_files.append(beatmap_path)

    metrics_json = export.create_metrics_json(
        results['beatmap_metadata'],
        results['params'],
        results['statistics'],
        results['skills'],
        results['events']
    )
    metrics_json['kernel_version'] = config.KERNEL_VERSION
    metrics_json['generated_at'] = datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z')
    metrics_json['beatmap_metadata']['beatmap_checksum'] = compute_beatmap_sha256(beatmap)
    for skill_name, result in results['skills'].items():
        metrics_json['skills'][skill_name]['strain_checksum'] = compute_sha256(result.object_strains)

    metrics_path = beatmap_dir / 'metrics.json'
    export.save_json(metrics_json, metrics_path)
    created_files.append(metrics_path)

    summary_path = beatmap_dir / 'summary.json'
    export.save_json(export.create_summary_json(metrics_json), summary_path)
    created_files.append(summary_path)

    return created_files


def generate_synthetic_references(
    output_dir: str,
    cfg: KernelConfig = None,
    expand_nested: bool = config.EXPAND_NESTED
) -> List[Path]:
    """
    Generate golden references for every synthetic beatmap.

    Parameters:
        output_dir: Base output directory
        cfg: Kernel configuration
        expand_nested: Emit one difficulty object per nested point

    Returns:
        List of generated file paths
    """
    if cfg is None:
        cfg = DEFAULT_CONFIG

    versioned_path = get_versioned_output_path(output_dir)
    synthetic_path = versioned_path / 'synthetic'
    synthetic_path.mkdir(parents=True, exist_ok=True)

    all_files = []

    for name, beatmap in generate_synthetic_beatmaps().items():
        print(f"Generating reference: {name}...")
        files = generate_beatmap_outputs(name, beatmap, cfg, synthetic_path, expand_nested)
        all_files.extend(files)
        print(f"  Created {len(files)} files in {synthetic_path / name}")

    readme_path = versioned_path.parent / 'README.md'
    readme_content = f"""# Golden Reference Outputs

## Kernel Version: {config.KERNEL_VERSION}
## Timebase Version: {TIMEBASE_VERSION}
## Schema Version: {config.SCHEMA_VERSION}

Generated: {datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z')}
Nested points expanded: {expand_nested}

## Synthetic Beatmaps

1. **stream**: 64 objects, 100ms apart, short zigzag movements
2. **jumps**: 48 objects, 300ms apart, corners of a 300-unit square
3. **slider_flow**: 16 extended objects (every third repeats), each followed by a circle
4. **break_contrast**: stream, 4 second non-positional object, then jumps

## Per-Beatmap Outputs

- `beatmap.json`: The exact input, in beatmap_io format
- `metrics.json`: Per-skill object strains, section peaks, difficulty and counts
- `summary.json`: High-level summary with top spikes and sustained sections

## Validation

Run `python golden_reference.py --validate` to verify:
- beatmap_checksum matches the stored beatmap.json
- section peak counts match the section axis
- difficulty values and object strains match re-analysis
"""

    with open(readme_path, 'w') as f:
        f.write(readme_content)
    all_files.append(readme_path)

    return all_files


def validate_references(
    output_dir: str,
    cfg: KernelConfig = None
) -> bool:
    """
    Validate all golden references by re-running their stored beatmaps.

    Validates:
    1. beatmap_checksum in metrics.json matches beatmap.json
    2. section peak count == section axis length
    3. difficulty values match re-analysis
    4. object strains match re-analysis

    Parameters:
        output_dir: Base output directory
        cfg: Kernel configuration

    Returns:
        True if all validations pass
    """
    if cfg is None:
        cfg = DEFAULT_CONFIG

    versioned_path = get_versioned_output_path(output_dir)
    synthetic_path = versioned_path / 'synthetic'

    if not synthetic_path.exists():
        print(f"No golden outputs found at {synthetic_path}")
        return False

    all_passed = True

    for name in generate_synthetic_beatmaps():
        beatmap_dir = synthetic_path / name
        metrics_path = beatmap_dir / 'metrics.json'

        if not metrics_path.exists():
            print(f"SKIP: {name} - metrics.json not found")
            continue

        print(f"Validating: {name}...")

        with open(metrics_path, 'r') as f:
            ref_metrics = json.load(f)

        beatmap = beatmap_io.load_beatmap(beatmap_dir / 'beatmap.json')

        # Check 1: stored input is the one the reference was made from
        ref_checksum = ref_metrics['beatmap_metadata']['beatmap_checksum']
        checksum = compute_beatmap_sha256(beatmap)
        if ref_checksum != checksum:
            print(f"  FAIL: beatmap_checksum doesn't match beatmap.json")
            print(f"    Golden:   {ref_checksum}")
            print(f"    Computed: {checksum}")
            all_passed = False
            continue
        print(f"  PASS: beatmap_checksum matches beatmap.json")

        # Check 2: section peaks and section axis agree
        for skill_name, skill in ref_metrics['skills'].items():
            sections = skill['sections']
            if not (len(sections['peaks']) == len(sections['ends_ms']) == sections['length']):
                print(f"  FAIL: {skill_name} section peaks and axis lengths differ")
                all_passed = False

        # Checks 3 and 4: re-run analysis
        expand_nested = ref_metrics['beatmap_metadata'].get('expand_nested', False)
        results = run_full_analysis(beatmap, cfg, expand_nested)
        for skill_name, result in results['skills'].items():
            if skill_name not in ref_metrics['skills']:
                print(f"  FAIL: {skill_name} missing from reference")
                all_passed = False
                continue

            ref_skill = ref_metrics['skills'][skill_name]
            if not np.isclose(ref_skill['difficulty'], result.difficulty, rtol=1e-9, atol=1e-12):
                print(f"  FAIL: {skill_name} difficulty differs "
                      f"({ref_skill['difficulty']} vs {result.difficulty})")
                all_passed = False
                continue

            ref_strains = np.array(ref_skill['object_strains']['values'], dtype=np.float64)
            if len(ref_strains) != len(result.object_strains):
                print(f"  FAIL: {skill_name} re-analysis length mismatch "
                      f"({len(ref_strains)} vs {len(result.object_strains)})")
                all_passed = False
                continue

            if not np.allclose(ref_strains, result.object_strains, rtol=1e-9, atol=1e-12):
                max_diff = np.max(np.abs(ref_strains - result.object_strains))
                print(f"  FAIL: {skill_name} re-analysis strains differ (max diff: {max_diff})")
                all_passed = False
            else:
                print(f"  PASS: {skill_name} re-analysis matches ({result.difficulty:.4f})")

    return all_passed


# =============================================================================
# MAIN
# =============================================================================

def main():
    parser = argparse.ArgumentParser(
        description='Generate golden reference outputs for difficulty kernel validation'
    )
    parser.add_argument(
        '--output', '-o',
        default='golden_outputs',
        help='Base output directory for golden reference files'
    )
    parser.add_argument(
        '--validate', '-v',
        action='store_true',
        help='Validate existing golden references instead of generating'
    )
    parser.add_argument(
        '--expand-nested',
        action='store_true',
        help='Emit one difficulty object per nested point of extended objects'
    )

    args = parser.parse_args()

    if args.validate:
        print(f"Validating golden references in {args.output}/")
        success = validate_references(args.output)
        return 0 if success else 1

    print(f"Generating synthetic golden references to {args.output}/")
    files = generate_synthetic_references(args.output, expand_nested=args.expand_nested)
    print(f"\nGenerated {len(files)} files.")

    return 0


if __name__ == '__main__':
    exit(main())
