#!/usr/bin/env python3
"""
beatmap-strain - Command Line Interface

Main entry point for running difficulty analysis on beatmap files.
Uses the same run_full_analysis pipeline as golden_reference.py.
"""

import argparse
import json
import sys
from pathlib import Path

import config
from beatmap_strain import beatmap_io, export
from beatmap_strain.beatmap_io import Beatmap
from beatmap_strain.kernel_params import DEFAULT_CONFIG
from golden_reference import generate_synthetic_beatmaps, run_full_analysis


def analyze_beatmap(
    beatmap: Beatmap,
    output_dir: Path,
    params: dict,
    verbose: bool = False
) -> bool:
    """
    Analyze an already loaded beatmap and export its outputs.

    Used by both process_single_beatmap and run_demo_mode.

    Parameters:
        beatmap: Beatmap to analyze
        output_dir: Output directory for results
        params: Parameters dict (from config or overrides)
        verbose: Print verbose progress messages

    Returns:
        True if successful, False otherwise
    """
    try:
        if params.get('clock_rate') is not None:
            beatmap.clock_rate = params['clock_rate']
            beatmap_io.validate_beatmap(beatmap)

        if verbose:
            print(f"   {len(beatmap.objects)} objects, clock rate {beatmap.clock_rate:.2f}, "
                  f"OD {beatmap.overall_difficulty:.1f}")

        # Step 2: Build difficulty objects, run skills, detect events
        if verbose:
            print("2. Building difficulty objects and running skills...")

        analysis_results = run_full_analysis(
            beatmap,
            DEFAULT_CONFIG,
            expand_nested=params.get('expand_nested', config.EXPAND_NESTED)
        )

        if verbose:
            stats = analysis_results['statistics']
            print(f"   Built {stats['object_count']} difficulty objects "
                  f"({stats['primary_count']} primary, {stats['nested_count']} nested)")
            for name, skill_events in analysis_results['events'].items():
                print(f"   {name}: {len(skill_events['spikes'])} spikes, "
                      f"{len(skill_events['sustained_sections'])} sustained sections")

        # Step 3: Export results
        if verbose:
            print("3. Exporting results...")

        created_files = export.export_all_outputs(
            analysis_results,
            output_dir,
            beatmap.name,
            generate_plots=params.get('generate_plots', config.SAVE_PLOTS)
        )

        if verbose:
            print(f"   Created {len(created_files)} output files")

        summary_path = output_dir / f"{beatmap.name}_summary.json"
        with open(summary_path) as f:
            summary = json.load(f)
        export.print_analysis_summary(summary, beatmap.name)

        return True

    except Exception as e:
        print(f"ERROR analyzing {beatmap.name}: {e}", file=sys.stderr)
        if verbose:
            import traceback
            traceback.print_exc()
        return False


def process_single_beatmap(
    file_path: Path,
    output_dir: Path,
    params: dict,
    verbose: bool = False
) -> bool:
    """
    Process a single beatmap file through the full pipeline.

    Parameters:
        file_path: Path to beatmap JSON file
        output_dir: Output directory for results
        params: Parameters dict (from config or overrides)
        verbose: Print verbose progress messages

    Returns:
        True if successful, False otherwise
    """
    try:
        if verbose:
            print(f"\nProcessing: {file_path.name}")
            print("-" * 60)
            print("1. Loading beatmap...")

        beatmap = beatmap_io.load_beatmap(file_path)

    except Exception as e:
        print(f"ERROR processing {file_path.name}: {e}", file=sys.stderr)
        if verbose:
            import traceback
            traceback.print_exc()
        return False

    return analyze_beatmap(beatmap, output_dir, params, verbose)


def process_directory(
    input_dir: Path,
    output_dir: Path,
    params: dict,
    verbose: bool = False
) -> dict:
    """
    Process all beatmap files in a directory.

    Parameters:
        input_dir: Input directory containing beatmap files
        output_dir: Output directory for results
        params: Parameters dict
        verbose: Print verbose messages

    Returns:
        Dict with success/failure counts
    """
    beatmap_files = beatmap_io.list_beatmap_files(input_dir)

    if not beatmap_files:
        print(f"No beatmap files found in {input_dir}")
        return {'success': 0, 'failed': 0}

    print(f"Found {len(beatmap_files)} beatmap files")

    success_count = 0
    failed_count = 0

    for beatmap_file in beatmap_files:
        # Create per-beatmap output directory
        beatmap_output_dir = output_dir / beatmap_file.stem

        success = process_single_beatmap(beatmap_file, beatmap_output_dir, params, verbose)

        if success:
            success_count += 1
        else:
            failed_count += 1

    print(f"\nProcessing complete: {success_count} successful, {failed_count} failed")

    return {'success': success_count, 'failed': failed_count}


def run_demo_mode(output_dir: Path, params: dict, verbose: bool = False) -> bool:
    """
    Run demo mode using synthetic beatmaps.

    Parameters:
        output_dir: Output directory for demo results
        params: Parameters dict
        verbose: Print verbose messages

    Returns:
        True if successful
    """
    print("Running demo mode with synthetic beatmaps...")

    beatmaps = generate_synthetic_beatmaps()
    print(f"Generated {len(beatmaps)} synthetic beatmaps")

    for name, beatmap in beatmaps.items():
        beatmap.name = f"demo_{name}"
        print(f"\nProcessing: {beatmap.name}")
        print("-" * 60)

        if not analyze_beatmap(beatmap, output_dir / beatmap.name, params, verbose):
            return False

    print(f"\nDemo complete! Results saved to {output_dir}")
    return True


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description='beatmap-strain - Strain-based beatmap difficulty analysis',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Analyze single file
  %(prog)s map.json --output results/

  # Analyze directory
  %(prog)s maps/ --output results/

  # Run demo mode
  %(prog)s --demo --output demo_results/

  # Faster playback, nested points as their own objects
  %(prog)s map.json --output results/ --clock-rate 1.5 --expand-nested
        """
    )

    parser.add_argument(
        'input',
        nargs='?',
        type=str,
        help='Input beatmap file or directory (not needed for --demo)'
    )

    parser.add_argument(
        '--output', '-o',
        type=str,
        default=config.OUTPUT_DIR,
        help=f'Output directory for results (default: {config.OUTPUT_DIR})'
    )

    parser.add_argument(
        '--demo',
        action='store_true',
        help='Run demo mode with synthetic beatmaps (no input file needed)'
    )

    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Print verbose progress messages'
    )

    parser.add_argument(
        '--no-plots',
        action='store_true',
        help='Skip plot generation'
    )

    # Parameter overrides
    parser.add_argument(
        '--clock-rate',
        type=float,
        help='Playback rate, overrides the value stored in the beatmap'
    )

    parser.add_argument(
        '--expand-nested',
        action='store_true',
        help='Emit one difficulty object per nested point of extended objects'
    )

    args = parser.parse_args()

    # Validate arguments
    if not args.demo and not args.input:
        parser.error("Either provide an input file/directory or use --demo")

    if args.clock_rate is not None and args.clock_rate <= 0:
        parser.error("--clock-rate must be positive")

    # Build parameters dict
    params = {
        'clock_rate': args.clock_rate,
        'expand_nested': args.expand_nested or config.EXPAND_NESTED,
        'generate_plots': config.SAVE_PLOTS and not args.no_plots
    }

    output_dir = Path(args.output)

    # Run appropriate mode
    if args.demo:
        success = run_demo_mode(output_dir, params, args.verbose)
        sys.exit(0 if success else 1)

    else:
        input_path = Path(args.input)

        if not input_path.exists():
            print(f"ERROR: Input path does not exist: {input_path}", file=sys.stderr)
            sys.exit(1)

        if input_path.is_file():
            # Single file
            success = process_single_beatmap(input_path, output_dir, params, args.verbose)
            sys.exit(0 if success else 1)

        elif input_path.is_dir():
            # Directory
            results = process_directory(input_path, output_dir, params, args.verbose)
            sys.exit(0 if results['failed'] == 0 else 1)

        else:
            print(f"ERROR: Invalid input path: {input_path}", file=sys.stderr)
            sys.exit(1)


if __name__ == '__main__':
    main()
