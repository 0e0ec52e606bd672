"""
Geometry Module - 2D Vector Primitives

Small helpers over numpy float64 vectors of shape (2,). Positions are
always converted with as_vector() before arithmetic so that every
computation runs in double precision regardless of the input type.
"""

import numpy as np
from typing import Sequence


def as_vector(point: Sequence[float]) -> np.ndarray:
    """Convert an (x, y) pair to a float64 numpy vector."""
    return np.asarray(point, dtype=np.float64).reshape(2)


def length(v: np.ndarray) -> float:
    return float(np.hypot(v[0], v[1]))


def dot(a: np.ndarray, b: np.ndarray) -> float:
    return float(a[0] * b[0] + a[1] * b[1])


def det(a: np.ndarray, b: np.ndarray) -> float:
    """2D cross product (z component of a x b)."""
    return float(a[0] * b[1] - a[1] * b[0])


def signed_angle_between(v1: np.ndarray, v2: np.ndarray) -> float:
    """
    Signed angle from v1 to v2 in [-pi, pi].

    Returns 0.0 when either vector has zero length (atan2(0, 0)).
    """
    return float(np.arctan2(det(v1, v2), dot(v1, v2)))


# =============================================================================
# POLYLINE PATHS
# =============================================================================

def polyline_lengths(points: np.ndarray) -> np.ndarray:
    """
    Cumulative arc length at every vertex of a polyline.

    Parameters:
        points: (n, 2) array of vertices

    Returns:
        (n,) array, first element 0.0
    """
    if len(points) < 2:
        return np.zeros(len(points), dtype=np.float64)

    segment_lengths = np.hypot(np.diff(points[:, 0]), np.diff(points[:, 1]))
    return np.concatenate([[0.0], np.cumsum(segment_lengths)])


def polyline_position_at(points: np.ndarray, progress: float) -> np.ndarray:
    """
    Point at a fraction of the total arc length of a polyline.

    CONTRACT:
    - Input: points (n, 2) with n >= 1, progress (clamped to [0, 1])
    - Output: (2,) float64 vector lying on the polyline
    - Zero-length polylines return their first vertex

    Parameters:
        points: Polyline vertices
        progress: Fraction of the total length

    Returns:
        Interpolated position
    """
    points = np.asarray(points, dtype=np.float64)
    progress = float(np.clip(progress, 0.0, 1.0))

    cumulative = polyline_lengths(points)
    total = cumulative[-1] if len(cumulative) > 0 else 0.0
    if total <= 0.0:
        return points[0].copy()

    target = progress * total
    x = np.interp(target, cumulative, points[:, 0])
    y = np.interp(target, cumulative, points[:, 1])
    return np.array([x, y], dtype=np.float64)

