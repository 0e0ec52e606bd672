"""
Preprocessing Module - DifficultyObject Builder

Turns the raw object sequence into enriched difficulty objects carrying
the simulated ("lazy") cursor position, normalised jump distances,
clamped timing deltas and inter-object angles.

DESIGN CONSTRAINTS:
- Single forward pass: each object only reads already-built predecessors
- Objects are frozen; back-references are indices into one shared arena
- The only write-back (travel distance/time of an extended object, which
  is known only once its nested points were simulated) is a second pass
  producing new records, never an in-place mutation
- No config module imports - all parameters are explicit

PROCESSING PIPELINE:
1. Validation (time order, radius, nested point order)
2. Entry expansion (heads, plus nested points when expand_nested=True)
3. Phase 1: cursor simulation, distances, angles, primary-only values
4. Phase 2: travel fold into extended objects
"""

import math
from dataclasses import dataclass, replace
from typing import Callable, Dict, Iterator, List, NamedTuple, Optional, Sequence, Tuple

import numpy as np

from beatmap_strain import geometry
from beatmap_strain.errors import InvalidGeometryError, InvalidSequenceError
from beatmap_strain.kernel_params import PreprocessParams
from beatmap_strain.objects import (
    KIND_EXTENDED,
    KIND_NON_POSITIONAL,
    NESTED_KINDS,
    NESTED_REPEAT,
    NESTED_TAIL,
    OBJECT_KINDS,
    TIER_GREAT,
    RawObject,
)


# =============================================================================
# DEFAULT PARAMETERS (Explicit - No Config Imports)
# =============================================================================

DEFAULT_PREPROCESS_PARAMS: PreprocessParams = PreprocessParams()

NORMALISED_RADIUS: float = DEFAULT_PREPROCESS_PARAMS.normalised_radius
MIN_DELTA_TIME: float = DEFAULT_PREPROCESS_PARAMS.min_delta_time


# =============================================================================
# DIFFICULTY OBJECT
# =============================================================================

@dataclass(frozen=True)
class DifficultyObject:
    """
    One enriched object of a DifficultySequence.

    Times are clock-rate adjusted milliseconds. Distances are normalised
    so that every map behaves as if its radius were NORMALISED_RADIUS.

    Attributes:
        index: Position in the full sequence
        kind: Raw object kind, or nested point kind for expanded sub-points
        start_time / end_time: Adjusted times
        delta_time: Time since the previous object's start (0.0 for the first)
        strain_time: delta_time floored at MIN_DELTA_TIME
        position: Raw (stack-adjusted) position
        radius / scaling_factor: Raw radius and NORMALISED_RADIUS / radius
        small_radius_bonus: >= 1, grows as radius shrinks below the threshold
        hit_window_great: Full great window, adjusted for clock rate
        is_primary / primary_index: Membership in the primary-only sub-sequence
        owner_index: Arena index of the owning extended object (nested points only)
        cursor_position: Lazy cursor position when this object is reached
        end_cursor_position: Lazy cursor position once this object is finished
        lazy_jump_distance: Normalised cursor movement from the previous object
        minimum_jump_distance / minimum_jump_time: Shortest plausible jump and its time
        angle / signed_angle: Angle at the previous object, None when undefined
        primary_*: Same quantities computed over the primary-only sub-sequence
        travel_distance / travel_time: Movement while tracking an extended object
    """
    index: int
    kind: str
    start_time: float
    end_time: float
    delta_time: float
    strain_time: float
    position: Tuple[float, float]
    radius: float
    scaling_factor: float
    small_radius_bonus: float
    hit_window_great: float
    is_primary: bool
    primary_index: Optional[int]
    owner_index: Optional[int]
    cursor_position: Tuple[float, float]
    end_cursor_position: Tuple[float, float]
    lazy_jump_distance: float = 0.0
    minimum_jump_distance: float = 0.0
    minimum_jump_time: float = MIN_DELTA_TIME
    angle: Optional[float] = None
    signed_angle: Optional[float] = None
    primary_strain_time: float = MIN_DELTA_TIME
    primary_jump_distance: float = 0.0
    primary_angle: Optional[float] = None
    primary_signed_angle: Optional[float] = None
    travel_distance: float = 0.0
    travel_time: float = 0.0

    @property
    def is_positional(self) -> bool:
        return self.kind != KIND_NON_POSITIONAL

    @property
    def is_extended(self) -> bool:
        return self.kind == KIND_EXTENDED

    @property
    def is_nested(self) -> bool:
        return self.owner_index is not None

    def get_doubletapness(self, next_object: Optional['DifficultyObject']) -> float:
        """
        How feasible it is to hit this object and the next with one doubled
        input while still getting a great judgement, in [0, 1].
        """
        if next_object is None:
            return 0.0

        curr_delta = max(1.0, self.delta_time)
        next_delta = max(1.0, next_object.delta_time)
        delta_difference = abs(next_delta - curr_delta)
        speed_ratio = curr_delta / max(curr_delta, delta_difference)
        window_ratio = min(1.0, curr_delta / self.hit_window_great) ** 2
        return 1.0 - speed_ratio ** (1.0 - window_ratio)


class DifficultySequence:
    """
    Frozen arena of DifficultyObjects with two index spaces.

    previous()/next() walk the full sequence, previous_primary()/
    next_primary() walk the primary-only sub-sequence. Out-of-range
    lookups return None. backwards_index 0 is the immediate neighbour.
    """

    def __init__(self, objects: Sequence[DifficultyObject]) -> None:
        self._objects: Tuple[DifficultyObject, ...] = tuple(objects)
        self._primary: Tuple[int, ...] = tuple(o.index for o in self._objects if o.is_primary)

    def __len__(self) -> int:
        return len(self._objects)

    def __iter__(self) -> Iterator[DifficultyObject]:
        return iter(self._objects)

    def __getitem__(self, index: int) -> DifficultyObject:
        return self._objects[index]

    @property
    def objects(self) -> Tuple[DifficultyObject, ...]:
        return self._objects

    @property
    def primary_objects(self) -> Tuple[DifficultyObject, ...]:
        return tuple(self._objects[i] for i in self._primary)

    def _at(self, index: int) -> Optional[DifficultyObject]:
        if 0 <= index < len(self._objects):
            return self._objects[index]
        return None

    def previous(self, obj: DifficultyObject, backwards_index: int = 0) -> Optional[DifficultyObject]:
        return self._at(obj.index - (backwards_index + 1))

    def next(self, obj: DifficultyObject, forwards_index: int = 0) -> Optional[DifficultyObject]:
        return self._at(obj.index + (forwards_index + 1))

    def _primary_at(self, primary_index: int) -> Optional[DifficultyObject]:
        if 0 <= primary_index < len(self._primary):
            return self._objects[self._primary[primary_index]]
        return None

    def previous_primary(self, obj: DifficultyObject, backwards_index: int = 0) -> Optional[DifficultyObject]:
        if obj.primary_index is None:
            return None
        return self._primary_at(obj.primary_index - (backwards_index + 1))

    def next_primary(self, obj: DifficultyObject, forwards_index: int = 0) -> Optional[DifficultyObject]:
        if obj.primary_index is None:
            return None
        return self._primary_at(obj.primary_index + (forwards_index + 1))

    def owner(self, obj: DifficultyObject) -> Optional[DifficultyObject]:
        if obj.owner_index is None:
            return None
        return self._objects[obj.owner_index]


# =============================================================================
# VALIDATION
# =============================================================================

def _is_finite_point(point: Sequence[float]) -> bool:
    return len(point) == 2 and all(math.isfinite(float(c)) for c in point)


def validate_raw_sequence(raw_objects: Sequence[RawObject]) -> None:
    """
    Check the raw sequence before any object is built.

    Raises:
        InvalidSequenceError: Decreasing start times, end before start,
            or nested points out of order / outside their owner
        InvalidGeometryError: Non-positive radius, non-finite position,
            empty path or non-positive span count of an extended object
        ValueError: Unknown object or nested point kind
    """
    previous_start = float('-inf')

    for i, raw in enumerate(raw_objects):
        if raw.kind not in OBJECT_KINDS:
            raise ValueError(f"Object {i}: unknown kind {raw.kind!r}")
        if not (raw.radius > 0):
            raise InvalidGeometryError(f"Object {i}: radius must be positive, got {raw.radius}")
        if not _is_finite_point(raw.position):
            raise InvalidGeometryError(f"Object {i}: position must be finite, got {raw.position}")
        if raw.start_time < previous_start:
            raise InvalidSequenceError(
                f"Object {i} starts at {raw.start_time}ms, before the previous object ({previous_start}ms)"
            )
        if raw.end_time < raw.start_time:
            raise InvalidSequenceError(f"Object {i}: end_time {raw.end_time} precedes start_time {raw.start_time}")
        previous_start = raw.start_time

        if not raw.is_extended:
            continue

        if raw.span_count < 1:
            raise InvalidGeometryError(f"Object {i}: span_count must be >= 1, got {raw.span_count}")
        if len(raw.path) == 0:
            raise InvalidGeometryError(f"Object {i}: extended object has an empty path")
        for point in raw.path:
            if not _is_finite_point(point):
                raise InvalidGeometryError(f"Object {i}: path contains a non-finite point {point}")

        previous_nested = raw.start_time
        for point in raw.nested:
            if point.kind not in NESTED_KINDS:
                raise ValueError(f"Object {i}: unknown nested kind {point.kind!r}")
            if point.time < previous_nested or point.time > raw.end_time:
                raise InvalidSequenceError(
                    f"Object {i}: nested {point.kind} at {point.time}ms is out of order or outside "
                    f"[{raw.start_time}, {raw.end_time}]"
                )
            if not _is_finite_point(point.position):
                raise InvalidGeometryError(f"Object {i}: nested position must be finite, got {point.position}")
            previous_nested = point.time


# =============================================================================
# CURSOR SIMULATION
# =============================================================================

def lazy_cursor_step(
    last_cursor: np.ndarray,
    target: np.ndarray,
    required_movement: float,
    scaling_factor: float,
    lazy_end: Optional[np.ndarray] = None
) -> np.ndarray:
    """
    Move the cursor the least amount needed to enter a tolerance region.

    CONTRACT:
    - Input: last cursor, target position, required normalised movement
    - Output: new cursor position
    - If the (raw or lazy, whichever is shorter) normalised movement exceeds
      required_movement, the cursor stops on the edge of the tolerance
      radius around the target; otherwise it does not move at all

    Parameters:
        last_cursor: Cursor position before this step
        target: Visual position of the sub-point
        required_movement: Tolerance radius in normalised units
        scaling_factor: NORMALISED_RADIUS / radius
        lazy_end: Alternative target reachable with less movement (tails only)

    Returns:
        Cursor position after this step
    """
    movement = target - last_cursor

    if lazy_end is not None:
        lazy_movement = lazy_end - last_cursor
        if geometry.length(lazy_movement) < geometry.length(movement):
            movement = lazy_movement

    movement_length = scaling_factor * geometry.length(movement)

    if movement_length > required_movement:
        return last_cursor + movement * ((movement_length - required_movement) / movement_length)

    return last_cursor.copy()


def _required_movement(nested_kind: str, params: PreprocessParams) -> float:
    if nested_kind == NESTED_REPEAT:
        return params.assumed_extended_radius
    return params.normalised_radius


def simulate_nested_track(
    raw: RawObject,
    start_cursor: np.ndarray,
    params: PreprocessParams = DEFAULT_PREPROCESS_PARAMS
) -> Tuple[np.ndarray, float]:
    """
    Follow an extended object's nested points with lazy cursor movement.

    Parameters:
        raw: Extended raw object
        start_cursor: Cursor position at the head
        params: Preprocess parameters

    Returns:
        Tuple of (end_cursor, travel_distance)
        end_cursor: Cursor position after the last nested point
        travel_distance: Total normalised cursor movement
    """
    scaling_factor = params.normalised_radius / raw.radius
    cursor = start_cursor.copy()
    travel = 0.0

    for point in raw.nested:
        lazy_end = raw.lazy_end_position(params.tail_leniency) if point.kind == NESTED_TAIL else None
        new_cursor = lazy_cursor_step(
            cursor,
            geometry.as_vector(point.position),
            _required_movement(point.kind, params),
            scaling_factor,
            lazy_end
        )
        travel += geometry.length(new_cursor - cursor) * scaling_factor
        cursor = new_cursor

    return cursor, travel


# =============================================================================
# ANGLES
# =============================================================================

def backtracked_angle(
    points: Sequence[np.ndarray],
    usable: Sequence[bool],
    current: np.ndarray,
    prev_idx: int,
    scaling_factor: float,
    negligible_movement: float
) -> Tuple[float, float]:
    """
    Angle at points[prev_idx] of the path points[prev_idx-1] -> points[prev_idx] -> current.

    When current sits (almost) on top of the previous point, the direction
    is taken from the nearest earlier points that are distinguishable;
    the incoming vector is backtracked the same way.

    CONTRACT:
    - Input: prev_idx >= 1, usable[prev_idx] and usable[prev_idx - 1] True
    - Output: (angle, signed_angle), angle in [0, pi], signed in [-pi, pi]
    - Backtracking never walks onto a point with usable[i] == False

    Parameters:
        points: Positions indexed like the sequence they came from
        usable: Whether each point may take part in backtracking
        current: Position of the current object
        prev_idx: Index of the previous object in points
        scaling_factor: NORMALISED_RADIUS / radius
        negligible_movement: Normalised length below which a vector has no direction

    Returns:
        Tuple of (angle, signed_angle)
    """
    def available(idx: int) -> bool:
        return idx >= 0 and usable[idx]

    def negligible(v: np.ndarray) -> bool:
        return geometry.length(v) * scaling_factor < negligible_movement

    last = points[prev_idx]
    v1 = points[prev_idx - 1] - last
    v2 = current - last

    prev_obj = prev_idx - 1
    prev_prev_obj = prev_idx - 2

    while negligible(v2) and available(prev_obj) and available(prev_prev_obj):
        v1 = points[prev_prev_obj] - points[prev_obj]
        v2 = current - points[prev_obj]

        if negligible(v2):
            prev_obj -= 1
            prev_prev_obj -= 1

    while negligible(v1) and available(prev_obj) and available(prev_prev_obj):
        v1 = points[prev_prev_obj] - points[prev_obj]
        prev_prev_obj -= 1

    signed = geometry.signed_angle_between(v1, v2)
    return abs(signed), signed


# =============================================================================
# ENTRY EXPANSION
# =============================================================================

class _Entry(NamedTuple):
    time: float
    raw_index: int
    nested_index: Optional[int]


def _expand_entries(raw_objects: Sequence[RawObject], expand_nested: bool) -> List[_Entry]:
    entries = []
    for raw_index, raw in enumerate(raw_objects):
        entries.append(_Entry(raw.start_time, raw_index, None))
        if expand_nested and raw.is_extended:
            for nested_index, point in enumerate(raw.nested):
                entries.append(_Entry(point.time, raw_index, nested_index))

    # Stable sort keeps heads before their own nested points at equal times
    return sorted(entries, key=lambda e: e.time)


# =============================================================================
# BUILDER
# =============================================================================

def build_difficulty_objects(
    raw_objects: Sequence[RawObject],
    clock_rate: float,
    hit_window_fn: Callable[[str], float],
    expand_nested: bool = False,
    params: PreprocessParams = DEFAULT_PREPROCESS_PARAMS
) -> DifficultySequence:
    """
    Build the DifficultySequence for one calculation.

    CONTRACT:
    - Input: time-ordered raw objects, clock_rate > 0, hit window function
      returning a positive 'great' window
    - Output: DifficultySequence with dense indices 0..N-1
    - N == len(raw_objects), plus one per nested point if expand_nested
    - Deterministic: same input -> bit-identical objects
    - Empty input -> empty sequence

    Parameters:
        raw_objects: Raw objects in time order
        clock_rate: Playback rate multiplier
        hit_window_fn: Maps a judgement tier name to a half-window in ms
        expand_nested: Emit one object per nested point of extended objects
        params: Preprocess parameters

    Returns:
        Frozen DifficultySequence

    Raises:
        InvalidSequenceError, InvalidGeometryError, ValueError
    """
    if not (clock_rate > 0):
        raise ValueError(f"clock_rate must be positive, got {clock_rate}")

    validate_raw_sequence(raw_objects)

    if len(raw_objects) == 0:
        return DifficultySequence([])

    great_window = hit_window_fn(TIER_GREAT)
    if not (great_window > 0):
        raise ValueError(f"Great hit window must be positive, got {great_window}")
    hit_window_great = 2.0 * great_window / clock_rate

    entries = _expand_entries(raw_objects, expand_nested)

    objects: List[DifficultyObject] = []
    end_cursors: List[np.ndarray] = []
    positional: List[bool] = []
    primary_positions: List[np.ndarray] = []
    primary_objects: List[DifficultyObject] = []
    head_index: Dict[int, int] = {}
    tracked_travel: Dict[int, float] = {}

    # Phase 1: forward pass over already-built predecessors only
    for index, entry in enumerate(entries):
        raw = raw_objects[entry.raw_index]
        nested = raw.nested[entry.nested_index] if entry.nested_index is not None else None

        if nested is None:
            head_index[entry.raw_index] = index
            kind = raw.kind
            position = geometry.as_vector(raw.position)
            end_time = raw.end_time / clock_rate
            owner_index = None
        else:
            kind = nested.kind
            position = geometry.as_vector(nested.position)
            end_time = nested.time / clock_rate
            owner_index = head_index[entry.raw_index]

        start_time = entry.time / clock_rate
        scaling_factor = params.normalised_radius / raw.radius
        is_primary = nested is None and kind != KIND_NON_POSITIONAL
        prev = objects[-1] if objects else None

        delta_time = start_time - prev.start_time if prev is not None else 0.0
        strain_time = max(delta_time, params.min_delta_time)

        # Cursor simulation
        if prev is None or nested is None:
            cursor = position.copy()
        else:
            lazy_end = raw.lazy_end_position(params.tail_leniency) if kind == NESTED_TAIL else None
            cursor = lazy_cursor_step(
                end_cursors[-1], position, _required_movement(kind, params), scaling_factor, lazy_end
            )

        end_cursor = cursor
        if raw.is_extended and nested is None and not expand_nested:
            end_cursor, tracked_travel[index] = simulate_nested_track(raw, cursor, params)

        # Distances
        lazy_jump_distance = 0.0
        minimum_jump_distance = 0.0
        minimum_jump_time = strain_time

        if prev is not None and prev.is_positional and kind != KIND_NON_POSITIONAL:
            lazy_jump_distance = geometry.length(cursor - end_cursors[-1]) * scaling_factor
            minimum_jump_distance = lazy_jump_distance

            tracked_owner = _tracked_owner_of(prev, objects, raw_objects, entries, expand_nested)
            if tracked_owner is not None:
                owner_obj, owner_raw = tracked_owner
                minimum_jump_distance, minimum_jump_time = _minimum_jump_from_extended(
                    owner_obj, owner_raw, cursor, start_time, lazy_jump_distance,
                    raw, clock_rate, scaling_factor, params
                )

        # Angle over the full sequence
        angle = None
        signed_angle = None
        if index >= 2 and kind != KIND_NON_POSITIONAL and positional[-1] and positional[-2]:
            angle, signed_angle = backtracked_angle(
                end_cursors, positional, cursor, index - 1, scaling_factor, params.negligible_movement
            )

        # Primary-only computation
        primary_index = None
        primary_strain_time = strain_time
        primary_jump_distance = 0.0
        primary_angle = None
        primary_signed_angle = None

        if is_primary:
            primary_index = len(primary_objects)
            if primary_objects:
                last_primary = primary_objects[-1]
                primary_strain_time = max(start_time - last_primary.start_time, params.min_delta_time)
                primary_jump_distance = geometry.length(position - primary_positions[-1]) * scaling_factor
            if primary_index >= 2:
                primary_angle, primary_signed_angle = backtracked_angle(
                    primary_positions, [True] * len(primary_positions), position,
                    primary_index - 1, scaling_factor, params.negligible_movement
                )

        obj = DifficultyObject(
            index=index,
            kind=kind,
            start_time=start_time,
            end_time=end_time,
            delta_time=delta_time,
            strain_time=strain_time,
            position=(float(position[0]), float(position[1])),
            radius=raw.radius,
            scaling_factor=scaling_factor,
            small_radius_bonus=max(
                1.0, 1.0 + (params.small_radius_threshold - raw.radius) / params.small_radius_divisor
            ),
            hit_window_great=hit_window_great,
            is_primary=is_primary,
            primary_index=primary_index,
            owner_index=owner_index,
            cursor_position=(float(cursor[0]), float(cursor[1])),
            end_cursor_position=(float(end_cursor[0]), float(end_cursor[1])),
            lazy_jump_distance=lazy_jump_distance,
            minimum_jump_distance=minimum_jump_distance,
            minimum_jump_time=minimum_jump_time,
            angle=angle,
            signed_angle=signed_angle,
            primary_strain_time=primary_strain_time,
            primary_jump_distance=primary_jump_distance,
            primary_angle=primary_angle,
            primary_signed_angle=primary_signed_angle,
        )

        objects.append(obj)
        end_cursors.append(end_cursor)
        positional.append(kind != KIND_NON_POSITIONAL)
        if is_primary:
            primary_objects.append(obj)
            primary_positions.append(position)

    # Phase 2: travel fold
    objects = fold_travel(objects, raw_objects, entries, tracked_travel, clock_rate, params)

    return DifficultySequence(objects)


def _tracked_owner_of(
    prev: DifficultyObject,
    objects: List[DifficultyObject],
    raw_objects: Sequence[RawObject],
    entries: List[_Entry],
    expand_nested: bool
) -> Optional[Tuple[DifficultyObject, RawObject]]:
    """
    The extended object the cursor is leaving, if the previous object ends one.

    That is the owner of a previous tail (expanded), or the previous
    extended object itself when nested points are not expanded.
    """
    if prev.kind == NESTED_TAIL and prev.owner_index is not None:
        owner = objects[prev.owner_index]
        return owner, raw_objects[entries[owner.index].raw_index]
    if prev.is_extended and not expand_nested:
        return prev, raw_objects[entries[prev.index].raw_index]
    return None


def _minimum_jump_from_extended(
    owner_obj: DifficultyObject,
    owner_raw: RawObject,
    cursor: np.ndarray,
    start_time: float,
    lazy_jump_distance: float,
    current_raw: RawObject,
    clock_rate: float,
    scaling_factor: float,
    params: PreprocessParams
) -> Tuple[float, float]:
    """
    Minimum jump distance and time when leaving an extended object.

    Two movement patterns are possible: cutting the object short (covered
    by the lazy distance minus the tracking slack) or following it to its
    visual end (distance from the path end, minus the full tracking
    radius). The shorter one is assumed. If that is shorter than jumping
    start-to-start, the extended object is treated like a simple tap.

    Returns:
        Tuple of (minimum_jump_distance, minimum_jump_time)
    """
    tracking_end = owner_raw.tracking_end_time(params.tail_leniency) / clock_rate
    minimum_jump_time = max(start_time - tracking_end, params.min_delta_time)

    tail_jump_distance = geometry.length(owner_raw.end_position - cursor) * scaling_factor
    minimum_jump_distance = max(
        0.0,
        min(
            lazy_jump_distance - (params.maximum_extended_radius - params.assumed_extended_radius),
            tail_jump_distance - params.maximum_extended_radius
        )
    )

    current_owner_position = geometry.as_vector(current_raw.position)
    start_to_start = geometry.length(current_owner_position - geometry.as_vector(owner_raw.position)) * scaling_factor

    if minimum_jump_distance < start_to_start:
        minimum_jump_distance = start_to_start
        minimum_jump_time = max(current_raw.start_time / clock_rate - owner_obj.start_time, params.min_delta_time)

    return minimum_jump_distance, minimum_jump_time


def fold_travel(
    objects: List[DifficultyObject],
    raw_objects: Sequence[RawObject],
    entries: List[_Entry],
    tracked_travel: Dict[int, float],
    clock_rate: float,
    params: PreprocessParams = DEFAULT_PREPROCESS_PARAMS
) -> List[DifficultyObject]:
    """
    Second build phase: write tracking travel into extended objects.

    Expanded nested points contribute their lazy jump distance to their
    owner; non-expanded extended objects use the distance recorded by
    simulate_nested_track during phase 1. Returns a new list; records are
    replaced, never mutated.
    """
    travel: Dict[int, float] = dict(tracked_travel)
    for obj in objects:
        if obj.owner_index is not None:
            travel[obj.owner_index] = travel.get(obj.owner_index, 0.0) + obj.lazy_jump_distance

    folded = list(objects)
    for obj in objects:
        if not obj.is_extended:
            continue
        raw = raw_objects[entries[obj.index].raw_index]
        travel_time = max(
            raw.tracking_end_time(params.tail_leniency) / clock_rate - obj.start_time,
            params.min_delta_time
        )
        folded[obj.index] = replace(
            obj,
            travel_distance=travel.get(obj.index, 0.0),
            travel_time=travel_time
        )

    return folded
