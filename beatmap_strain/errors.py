"""
Error Taxonomy

Input errors derive from ValueError so callers that already guard
calculations with ``except ValueError`` keep working.
"""


class InvalidSequenceError(ValueError):
    """Raised when object start times are not non-decreasing (or nested points are out of order)."""


class InvalidGeometryError(ValueError):
    """Raised for a non-positive radius or a degenerate extended-object path."""


class StrainInvariantError(ArithmeticError):
    """
    Raised when a non-finite or negative value appears inside the strain pipeline.

    Valid input cannot produce one (every time denominator is floored at
    MIN_DELTA_TIME), so this always indicates a defect in an evaluator or
    in the framework itself. It is never recovered from.
    """
