"""
beatmap-strain - Configuration

Application-level parameters for loading, exporting and plotting.
Every default value includes rationale. Calculation constants live in
beatmap_strain/kernel_params.py and are never read from here by the kernel.
"""

from typing import List

# =============================================================================
# VERSIONING
# =============================================================================

# Output schema version
# Why: bump whenever a key in the metrics/summary JSON changes meaning,
#      so downstream consumers can refuse files they do not understand
SCHEMA_VERSION: str = "1.0"

# Calculation kernel version
# Why: golden references are stored per kernel version; bump whenever any
#      default in beatmap_strain/kernel_params.py or an evaluator changes
KERNEL_VERSION: str = "1.0.0"

# =============================================================================
# BEATMAP DEFAULTS
# =============================================================================

# Overall difficulty used when a beatmap file does not set one
# Why: 8.0 gives a 32ms great half-window, typical of ranked maps
#      in the range where speed difficulty matters
DEFAULT_OVERALL_DIFFICULTY: float = 8.0

# Circle size used to derive a radius when objects do not set one
# Why: 4.0 (radius 36.48) is the most common circle size; it sits just above
#      the small radius threshold, so no small radius bonus is implied
DEFAULT_CIRCLE_SIZE: float = 4.0

# Playback rate when neither the file nor the CLI sets one
# Why: 1.0 is unmodified playback
DEFAULT_CLOCK_RATE: float = 1.0

# Emit one difficulty object per nested point of extended objects
# Why: off by default; extended objects are then simulated privately and
#      every difficulty object corresponds to one input object
EXPAND_NESTED: bool = False

# =============================================================================
# INPUT LIMITS
# =============================================================================

# Maximum number of objects accepted from one file
# Why: 100000 covers marathon maps many times over while bounding memory
#      for the per-object strain arrays of every skill
MAX_OBJECT_COUNT: int = 100000

# File extensions picked up when analyzing a directory
# Why: only the JSON interchange format is parsed by beatmap_io
SUPPORTED_FORMATS: List[str] = ['.json']

# =============================================================================
# OUTPUT PARAMETERS
# =============================================================================

# Default output directory
# Why: relative to the working directory, kept out of the package tree
OUTPUT_DIR: str = 'outputs'

# Generate PNG plots alongside JSON output
# Why: strain curves are much easier to sanity check visually
SAVE_PLOTS: bool = True

# Plot DPI
# Why: 150 DPI is sharp on screens without producing multi-megabyte files
PLOT_DPI: int = 150

# Plot figure size (width, height in inches)
# Why: wide timeline view, one row per skill fits comfortably in 10 inches
PLOT_FIGSIZE: tuple = (14, 10)

# Interval at which the decaying strain curve is sampled for plots (ms)
# Why: 50ms resolves individual 1/4 notes up to 300 BPM, enough to see
#      the sawtooth shape of the accumulator
STRAIN_SAMPLE_INTERVAL_MS: float = 50.0

# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def ms_to_seconds(ms: float) -> float:
    return ms / 1000.0


def validate_config() -> bool:
    """
    Validate configuration parameters for consistency.

    Returns:
        True if config is valid

    Raises:
        ValueError: If configuration is invalid
    """
    if not (0.0 <= DEFAULT_OVERALL_DIFFICULTY <= 11.0):
        raise ValueError("DEFAULT_OVERALL_DIFFICULTY must be in [0, 11]")

    # Radius must stay positive: 54.4 - 4.48 * CS > 0
    if not (0.0 <= DEFAULT_CIRCLE_SIZE < 12.0):
        raise ValueError("DEFAULT_CIRCLE_SIZE must be in [0, 12)")

    if DEFAULT_CLOCK_RATE <= 0:
        raise ValueError("DEFAULT_CLOCK_RATE must be positive")

    if MAX_OBJECT_COUNT <= 0:
        raise ValueError("MAX_OBJECT_COUNT must be positive")

    if PLOT_DPI <= 0 or STRAIN_SAMPLE_INTERVAL_MS <= 0:
        raise ValueError("PLOT_DPI and STRAIN_SAMPLE_INTERVAL_MS must be positive")

    return True


# Validate on import
validate_config()
