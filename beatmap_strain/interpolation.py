"""
Interpolation Module - Scalar Easing and Weighting Helpers

Pure float functions shared by the evaluators and the aggregator.
"""

import math


def clamp(x: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, x))


def lerp(start: float, end: float, t: float) -> float:
    return start + (end - start) * t


def reverse_lerp(x: float, start: float, end: float) -> float:
    """
    Position of x between start and end, clamped to [0, 1].

    start may be greater than end, in which case the result falls as x grows.
    """
    return clamp((x - start) / (end - start), 0.0, 1.0)


def smoothstep(x: float, start: float, end: float) -> float:
    x = reverse_lerp(x, start, end)
    return x * x * (3.0 - 2.0 * x)


def smootherstep(x: float, start: float, end: float) -> float:
    x = reverse_lerp(x, start, end)
    return x * x * x * (x * (6.0 * x - 15.0) + 10.0)


def smoothstep_bell_curve(x: float, mean: float = 0.5, width: float = 1.0) -> float:
    """Bell curve peaking at 1.0 on mean and reaching 0.0 at mean +/- width."""
    x -= mean
    x = width - x if x > 0 else width + x
    return smoothstep(x, 0.0, width)


def ms_to_bpm(ms: float, delimiter: int = 4) -> float:
    """Beats per minute of notes spaced ms apart, counted as 1/delimiter notes."""
    return 60000.0 / (ms * delimiter)


def bpm_to_ms(bpm: float, delimiter: int = 4) -> float:
    return 60000.0 / (bpm * delimiter)


def logistic(x: float, midpoint: float, multiplier: float, max_value: float = 1.0) -> float:
    """max_value / (1 + exp(multiplier * (midpoint - x))), overflow-safe."""
    exponent = multiplier * (midpoint - x)
    if exponent > 700.0:
        return 0.0
    return max_value / (1.0 + math.exp(exponent))
