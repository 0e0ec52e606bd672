"""
Objects Module - Raw Gameplay Event Model

Immutable records describing the beatmap as handed to the difficulty core.
Positions are expected to be stack-adjusted already; times are in
milliseconds of unmodified (clock rate 1.0) playback.

OBJECT KINDS:
- 'simple':         a single tap target
- 'extended':       a held/dragged object with nested sub-points
                    (head = the object itself, then ticks, repeats, tail)
- 'non_positional': a spin-type object whose position carries no aim meaning

NESTED POINT KINDS:
- 'tick', 'repeat', 'tail'
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, Tuple

import numpy as np

from beatmap_strain import geometry


KIND_SIMPLE: str = 'simple'
KIND_EXTENDED: str = 'extended'
KIND_NON_POSITIONAL: str = 'non_positional'

OBJECT_KINDS: Tuple[str, ...] = (KIND_SIMPLE, KIND_EXTENDED, KIND_NON_POSITIONAL)

NESTED_TICK: str = 'tick'
NESTED_REPEAT: str = 'repeat'
NESTED_TAIL: str = 'tail'

NESTED_KINDS: Tuple[str, ...] = (NESTED_TICK, NESTED_REPEAT, NESTED_TAIL)

# Judgement tiers understood by make_hit_window_fn
TIER_GREAT: str = 'great'
TIER_OK: str = 'ok'
TIER_MEH: str = 'meh'


@dataclass(frozen=True)
class NestedPoint:
    """
    A timed sub-event of an extended object.

    Attributes:
        time: Event time in milliseconds
        position: (x, y) position in playfield units
        kind: One of NESTED_KINDS
    """
    time: float
    position: Tuple[float, float]
    kind: str = NESTED_TICK


@dataclass(frozen=True)
class RawObject:
    """
    A timed, positioned gameplay event.

    Attributes:
        start_time: Start time in milliseconds
        end_time: End time in milliseconds (== start_time for simple objects)
        position: Stack-adjusted (x, y) head position
        radius: Hit radius in playfield units (must be > 0)
        kind: One of OBJECT_KINDS
        nested: Nested sub-points in time order (extended objects only)
        path: Polyline offsets relative to position, first vertex (0, 0)
        span_count: Number of path traversals (repeats + 1)
    """
    start_time: float
    end_time: float
    position: Tuple[float, float]
    radius: float
    kind: str = KIND_SIMPLE
    nested: Tuple[NestedPoint, ...] = field(default_factory=tuple)
    path: Tuple[Tuple[float, float], ...] = field(default_factory=tuple)
    span_count: int = 1

    @property
    def is_extended(self) -> bool:
        return self.kind == KIND_EXTENDED

    @property
    def is_positional(self) -> bool:
        return self.kind != KIND_NON_POSITIONAL

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time

    @property
    def span_duration(self) -> float:
        return self.duration / max(1, self.span_count)

    def path_array(self) -> np.ndarray:
        if not self.path:
            return np.zeros((1, 2), dtype=np.float64)
        return np.asarray(self.path, dtype=np.float64)

    def position_at(self, progress: float) -> np.ndarray:
        """Absolute position at a fraction of one span of the path."""
        return geometry.as_vector(self.position) + geometry.polyline_position_at(self.path_array(), progress)

    @property
    def end_position(self) -> np.ndarray:
        """Position at end_time: path end for odd span counts, head for even ones."""
        progress = 1.0 if self.span_count % 2 == 1 else 0.0
        return self.position_at(progress)

    def tracking_end_time(self, tail_leniency: float) -> float:
        """
        Time until which the player has to keep tracking this object.

        The tail only has to be held until tail_leniency before end_time,
        unless a tick or repeat falls inside that leniency window, in which
        case tracking must last until that last nested event.
        """
        last_non_tail = max(
            (n.time for n in self.nested if n.kind != NESTED_TAIL),
            default=float('-inf')
        )
        return max(self.end_time - tail_leniency, last_non_tail)

    def lazy_end_position(self, tail_leniency: float) -> np.ndarray:
        """Path position at the tracking deadline, folding repeats back and forth."""
        if self.span_duration <= 0:
            return self.end_position

        progress = (self.tracking_end_time(tail_leniency) - self.start_time) / self.span_duration
        if progress % 2 >= 1:
            progress = 1 - progress % 1
        else:
            progress %= 1
        return self.position_at(progress)


def make_hit_window_fn(overall_difficulty: float) -> Callable[[str], float]:
    """
    Build a hit-window resolution function from an overall difficulty value.

    Windows are half-widths in milliseconds:
        great = 80 - 6 * OD, ok = 140 - 8 * OD, meh = 200 - 10 * OD

    Parameters:
        overall_difficulty: Overall difficulty (typically 0-10, up to 11 with rate mods)

    Returns:
        Function mapping a judgement tier name to its window in milliseconds
    """
    windows: Dict[str, float] = {
        TIER_GREAT: 80.0 - 6.0 * overall_difficulty,
        TIER_OK: 140.0 - 8.0 * overall_difficulty,
        TIER_MEH: 200.0 - 10.0 * overall_difficulty,
    }

    def hit_window(tier: str) -> float:
        if tier not in windows:
            raise ValueError(f"Unknown judgement tier: {tier}")
        return windows[tier]

    return hit_window
