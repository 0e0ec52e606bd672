"""
Evaluators Module - Per-Object Difficulty Heuristics

An evaluator turns one DifficultyObject (plus a short window of its
neighbours) into a non-negative difficulty value. Evaluators are pure:
the same context always yields the same value and no state is kept
between calls.

FRAMEWORK RULES (evaluate_object):
- Index 0 and 1 evaluate to 0.0 (not enough history for velocity/angle)
- Objects that are, or directly follow, a non-positional object evaluate to 0.0
- NaN, infinite or negative output raises StrainInvariantError

REFERENCE EVALUATORS:
- AimEvaluator:     velocity, wide/acute angle bonuses, wiggle, velocity change
- SpeedEvaluator:   tapping rate, small distance bonus, doubletap penalty
- FlowAimEvaluator: velocity along an assumed circular cursor path
- AltEvaluator:     bell curve over spacing
"""

import math
from dataclasses import dataclass
from typing import Dict, Optional, Tuple, Type

from beatmap_strain.errors import StrainInvariantError
from beatmap_strain.interpolation import (
    bpm_to_ms,
    ms_to_bpm,
    reverse_lerp,
    smootherstep,
    smoothstep,
    smoothstep_bell_curve,
)
from beatmap_strain.preprocessing import (
    NORMALISED_RADIUS,
    DifficultyObject,
    DifficultySequence,
)


NORMALISED_DIAMETER: float = NORMALISED_RADIUS * 2


# =============================================================================
# CALL CONTRACT
# =============================================================================

@dataclass(frozen=True)
class EvaluationFlags:
    """
    Switches a skill passes to its evaluator.

    Attributes:
        include_extended: Use extended-object aware distances/times and
            evaluate nested points; False restricts aim to primary objects
        ignore_distance: Drop distance-based bonuses
    """
    include_extended: bool = True
    ignore_distance: bool = False


class EvaluationContext:
    """Read-only view of one object and its neighbours in a DifficultySequence."""

    WINDOW_SIZE: int = 4

    def __init__(self, sequence: DifficultySequence, index: int) -> None:
        if not (0 <= index < len(sequence)):
            raise IndexError(f"Index {index} outside sequence of length {len(sequence)}")
        self.sequence = sequence
        self.index = index

    @property
    def current(self) -> DifficultyObject:
        return self.sequence[self.index]

    def previous(self, backwards_index: int = 0) -> Optional[DifficultyObject]:
        return self.sequence.previous(self.current, backwards_index)

    def next(self, forwards_index: int = 0) -> Optional[DifficultyObject]:
        return self.sequence.next(self.current, forwards_index)

    def previous_primary(self, backwards_index: int = 0) -> Optional[DifficultyObject]:
        return self.sequence.previous_primary(self.current, backwards_index)

    def window(self, size: int = WINDOW_SIZE) -> Tuple[DifficultyObject, ...]:
        """Up to `size` consecutive objects ending at current, oldest first."""
        start = max(0, self.index - size + 1)
        return tuple(self.sequence[i] for i in range(start, self.index + 1))


class Evaluator:
    """
    Capability interface for a difficulty heuristic.

    Subclasses set name, decay_base and multiplier and implement evaluate().
    """
    name: str = ''
    decay_base: float = 0.15
    multiplier: float = 1.0

    def evaluate(self, context: EvaluationContext, flags: EvaluationFlags) -> float:
        raise NotImplementedError


def evaluate_object(evaluator: Evaluator, context: EvaluationContext, flags: EvaluationFlags) -> float:
    """
    Evaluate one object under the framework rules.

    CONTRACT:
    - Output: finite float >= 0
    - 0.0 for index <= 1 and next to non-positional objects

    Raises:
        StrainInvariantError: If the evaluator produced NaN, inf or a negative value
    """
    current = context.current
    previous = context.previous(0)

    if current.index <= 1 or previous is None:
        return 0.0
    if not current.is_positional or not previous.is_positional:
        return 0.0

    value = float(evaluator.evaluate(context, flags))

    if not math.isfinite(value) or value < 0.0:
        raise StrainInvariantError(
            f"{evaluator.name} evaluator returned {value} for object {current.index}"
        )

    return value


# =============================================================================
# AIM
# =============================================================================

def _wide_angle_bonus(angle: float) -> float:
    return smoothstep(angle, math.radians(40), math.radians(140))


def _acute_angle_bonus(angle: float) -> float:
    return smoothstep(angle, math.radians(140), math.radians(40))


class AimEvaluator(Evaluator):
    """
    Aim difficulty from cursor velocity, angle bonuses and velocity changes.

    With include_extended=False only primary objects are evaluated and all
    quantities come from the primary-only computation.
    """
    name = 'aim'
    decay_base = 0.15
    multiplier = 25.6

    WIDE_ANGLE_MULTIPLIER = 1.5
    ACUTE_ANGLE_MULTIPLIER = 2.55
    VELOCITY_CHANGE_MULTIPLIER = 0.75
    WIGGLE_MULTIPLIER = 1.02

    def evaluate(self, context: EvaluationContext, flags: EvaluationFlags) -> float:
        curr = context.current
        include_extended = flags.include_extended

        if include_extended:
            last = context.previous(0)
        else:
            if not curr.is_primary:
                return 0.0
            last = context.previous_primary(0)

        if last is None or not last.is_positional:
            return 0.0

        radius = NORMALISED_RADIUS
        diameter = NORMALISED_DIAMETER

        if include_extended:
            curr_time, prev_time = curr.minimum_jump_time, last.minimum_jump_time
            curr_velocity = curr.minimum_jump_distance / curr_time
            prev_velocity = last.minimum_jump_distance / prev_time
            curr_angle, last_angle = curr.angle, last.angle
        else:
            curr_time, prev_time = curr.primary_strain_time, last.primary_strain_time
            curr_velocity = curr.primary_jump_distance / curr_time
            prev_velocity = last.primary_jump_distance / prev_time
            curr_angle, last_angle = curr.primary_angle, last.primary_angle

        wide_bonus = 0.0
        acute_bonus = 0.0
        velocity_change_bonus = 0.0
        wiggle_bonus = 0.0

        aim_strain = curr_velocity

        if curr_angle is not None and last_angle is not None:
            angle_bonus = min(curr_velocity, prev_velocity)

            # Same rhythm
            if max(curr_time, prev_time) < 1.25 * min(curr_time, prev_time):
                acute_bonus = _acute_angle_bonus(curr_angle)
                # Repetition penalty
                acute_bonus *= 0.08 + 0.92 * (1 - min(acute_bonus, _acute_angle_bonus(last_angle) ** 3))
                # Only above 300 BPM 1/2 and farther than one diameter
                acute_bonus *= (
                    angle_bonus
                    * smootherstep(ms_to_bpm(curr_time, 2), 300, 400)
                    * smootherstep(curr.lazy_jump_distance, diameter, diameter * 2)
                )

            wide_bonus = _wide_angle_bonus(curr_angle)
            wide_bonus *= 1 - min(wide_bonus, _wide_angle_bonus(last_angle) ** 3)
            wide_bonus *= angle_bonus * smootherstep(curr.lazy_jump_distance, 0, diameter)

            wiggle_bonus = (
                angle_bonus
                * smootherstep(curr.lazy_jump_distance, radius, diameter)
                * reverse_lerp(curr.lazy_jump_distance, diameter * 3, diameter) ** 1.8
                * smootherstep(curr_angle, math.radians(110), math.radians(60))
                * smootherstep(last.lazy_jump_distance, radius, diameter)
                * reverse_lerp(last.lazy_jump_distance, diameter * 3, diameter) ** 1.8
                * smootherstep(last_angle, math.radians(110), math.radians(60))
            )

            # Back and forth through one middle point
            last2 = context.previous(2) if include_extended else context.previous_primary(2)
            if last2 is not None:
                middle_distance = math.hypot(
                    last2.position[0] - last.position[0],
                    last2.position[1] - last.position[1]
                )
                if middle_distance < 1:
                    wide_bonus *= 1 - 0.35 * (1 - middle_distance)

        if max(prev_velocity, curr_velocity) != 0:
            dist_ratio = smoothstep(
                abs(prev_velocity - curr_velocity) / max(prev_velocity, curr_velocity), 0, 1
            )
            overlap_velocity_buff = min(
                diameter * 1.25 / min(curr_time, prev_time),
                abs(prev_velocity - curr_velocity)
            )
            velocity_change_bonus = overlap_velocity_buff * dist_ratio
            # Rhythm change penalty
            velocity_change_bonus *= (min(curr_time, prev_time) / max(curr_time, prev_time)) ** 2

        aim_strain += wiggle_bonus * self.WIGGLE_MULTIPLIER
        aim_strain += velocity_change_bonus * self.VELOCITY_CHANGE_MULTIPLIER
        aim_strain += max(acute_bonus * self.ACUTE_ANGLE_MULTIPLIER, wide_bonus * self.WIDE_ANGLE_MULTIPLIER)

        return aim_strain * curr.small_radius_bonus


# =============================================================================
# SPEED
# =============================================================================

class SpeedEvaluator(Evaluator):
    """
    Tapping difficulty of primary objects.

    Strain time is capped by the great hit window, streams above 200 BPM
    (1/4) get a growing bonus, small spacing adds a distance bonus that
    is nerfed for circular streams, and doubletappable pairs are penalised.
    """
    name = 'speed'
    decay_base = 0.3
    multiplier = 1.2

    SINGLE_SPACING_THRESHOLD = NORMALISED_DIAMETER * 1.25
    MIN_SPEED_BONUS_BPM = 200.0
    SPEED_BALANCING_FACTOR = 40.0
    DISTANCE_MULTIPLIER = 0.96

    def evaluate(self, context: EvaluationContext, flags: EvaluationFlags) -> float:
        curr = context.current
        if not curr.is_primary:
            return 0.0

        prev = context.previous(0)

        strain_time = curr.strain_time
        doubletapness = 1.0 - curr.get_doubletapness(context.next(0))

        # Cap to the great hit window
        strain_time /= min(max((strain_time / curr.hit_window_great) / 0.93, 0.92), 1.0)

        speed_bonus = 0.0
        if ms_to_bpm(strain_time) > self.MIN_SPEED_BONUS_BPM:
            speed_bonus = 0.75 * (
                (bpm_to_ms(self.MIN_SPEED_BONUS_BPM) - strain_time) / self.SPEED_BALANCING_FACTOR
            ) ** 2

        distance_bonus = 0.0
        if not flags.ignore_distance:
            travel_distance = prev.travel_distance if prev is not None else 0.0
            distance = min(travel_distance + curr.minimum_jump_distance, self.SINGLE_SPACING_THRESHOLD)
            distance_bonus = (distance / self.SINGLE_SPACING_THRESHOLD) ** 3.95 * self.DISTANCE_MULTIPLIER
            distance_bonus *= math.sqrt(curr.small_radius_bonus)
            distance_bonus *= circle_stream_nerf(context)

        difficulty = (1 + speed_bonus + distance_bonus) * 1000 / strain_time
        return difficulty * doubletapness


def circle_stream_nerf(context: EvaluationContext) -> float:
    """
    Multiplier in (0, 1] for streams that keep turning the same way at
    about 150 degrees, which are easy to follow with a circular motion.
    """
    curr = context.current
    if curr.signed_angle is None or curr.index <= 1:
        return 1.0

    base_angle_nerf = 0.8
    taper_off = 0.9

    angle_nerf = 1 - base_angle_nerf
    mult = 1.0
    prev_signed_angle = curr.signed_angle

    for i in range(min(curr.index, 8)):
        checked = context.previous(i)
        if checked is None or checked.angle is None or checked.signed_angle is None:
            break

        # High angle differences are not circles
        angle_nerf *= 1 - min((abs(checked.signed_angle - prev_signed_angle) / math.radians(30)) ** 3, 1)
        mult *= 1 - angle_nerf * smoothstep_bell_curve(checked.angle, math.radians(150), 30)
        angle_nerf *= taper_off

        prev_signed_angle = checked.signed_angle

    return mult


# =============================================================================
# FLOW AIM
# =============================================================================

def circular_cursor_path_distance(angle: float, distance: float) -> float:
    """
    Length of the circular arc a cursor follows to cover `distance` when
    turning by `angle` at the previous object.
    """
    if angle >= math.pi:
        return distance
    if angle <= 0:
        # distance is the diameter here
        return math.pi * distance

    a = math.cos(angle) * distance
    b = math.sin(angle) * distance
    q = distance / 2
    p = distance / 2 * math.tan(angle / 2)
    r = math.sqrt((q - a) ** 2 + (p - b) ** 2)

    return (1 - angle / math.pi) * 2 * math.pi * r


class FlowAimEvaluator(Evaluator):
    """Velocity of a cursor assumed to flow along circular arcs."""
    name = 'flow_aim'
    decay_base = 0.15
    multiplier = 25.6

    OUTPUT_SCALE = 0.225

    def evaluate(self, context: EvaluationContext, flags: EvaluationFlags) -> float:
        curr = context.current
        prev = context.previous(0)
        prev2 = context.previous(1)

        curr_distance = curr.lazy_jump_distance + prev.travel_distance
        curr_velocity = curr_distance / curr.strain_time

        prev_distance = prev.lazy_jump_distance + (prev2.travel_distance if prev2 is not None else 0.0)
        prev_velocity = prev_distance / prev.strain_time

        difficulty = curr_velocity
        angle = curr.angle if curr.angle is not None else math.pi

        if max(prev_velocity, curr_velocity) != 0:
            circular_velocity = circular_cursor_path_distance(angle, curr_distance) / curr.strain_time
            dist_ratio = abs(prev_velocity - curr_velocity) / max(prev_velocity, curr_velocity)
            difficulty += (circular_velocity - curr_velocity) * dist_ratio

        difficulty *= curr.small_radius_bonus
        return max(0.0, difficulty * self.OUTPUT_SCALE)


# =============================================================================
# ALT
# =============================================================================

class AltEvaluator(Evaluator):
    """Spacing difficulty peaking at 1.75 normalised diameters."""
    name = 'alt'
    decay_base = 0.225
    multiplier = 40.0

    SPACING_MIDPOINT = NORMALISED_DIAMETER * 1.75
    SPACING_RANGE = NORMALISED_DIAMETER * 0.5

    def evaluate(self, context: EvaluationContext, flags: EvaluationFlags) -> float:
        curr = context.current
        prev = context.previous(0)

        travel_distance = prev.travel_distance if prev is not None else 0.0
        distance = max(curr.lazy_jump_distance, curr.minimum_jump_distance + travel_distance)

        strain = smoothstep_bell_curve(distance, self.SPACING_MIDPOINT, self.SPACING_RANGE)
        return strain * curr.small_radius_bonus


# =============================================================================
# REGISTRY
# =============================================================================

EVALUATORS: Dict[str, Type[Evaluator]] = {
    AimEvaluator.name: AimEvaluator,
    SpeedEvaluator.name: SpeedEvaluator,
    FlowAimEvaluator.name: FlowAimEvaluator,
    AltEvaluator.name: AltEvaluator,
}


def get_evaluator(name: str) -> Evaluator:
    if name not in EVALUATORS:
        raise ValueError(f"Unknown evaluator: {name}. Available: {sorted(EVALUATORS)}")
    return EVALUATORS[name]()
