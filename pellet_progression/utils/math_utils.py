# File: utils/math_utils.py
"""Math and calculation utilities for the pellet progression engine.

Pure Python math functions with no engine dependencies.

Functions:
    - round_half_up: Integer rounding with .5 always rounded up
    - calculate_percentage: Share of a total as a whole percent
    - percent_change: Window-over-window change with zero-division handling
    - clamp: Bound a value to a range
"""

from __future__ import annotations

import math

# ==============================================================================
# Constants (local copies to avoid circular imports)
# ==============================================================================

# Change reported when the baseline is zero and the new value is positive
NEW_ACTIVITY_CHANGE_PCT = 100


# ==============================================================================
# Rounding
# ==============================================================================


def round_half_up(value: float) -> int:
    """Round to the nearest integer, with ties rounded toward +infinity.

    Examples:
        round_half_up(2.5) → 3
        round_half_up(-2.5) → -2
        round_half_up(33.33) → 33
    """
    return math.floor(value + 0.5)


# ==============================================================================
# Percentages
# ==============================================================================


def calculate_percentage(part: float, total: float) -> int:
    """Calculate `part` as a whole percentage of `total`.

    Args:
        part: Portion value
        total: Total value

    Returns:
        Percentage rounded half-up, or 0 if total is 0

    Examples:
        calculate_percentage(1, 3) → 33
        calculate_percentage(2, 3) → 67
        calculate_percentage(5, 0) → 0  # Division by zero protection
    """
    if total <= 0:
        return 0
    return round_half_up((part / total) * 100)


def percent_change(
    previous: int,
    recent: int,
    new_activity_change: int = NEW_ACTIVITY_CHANGE_PCT,
) -> int:
    """Calculate the percent change from `previous` to `recent`.

    Never divides by zero: an empty baseline with new activity reports the
    fixed `new_activity_change` value, and two empty values report 0.

    Args:
        previous: Baseline count
        recent: New count
        new_activity_change: Value reported when previous == 0 < recent

    Returns:
        Whole percent change (rounded half-up)

    Examples:
        percent_change(2, 5) → 150
        percent_change(4, 1) → -75
        percent_change(0, 3) → 100
        percent_change(0, 0) → 0
    """
    if previous > 0:
        return round_half_up(((recent - previous) / previous) * 100)
    if recent > 0:
        return new_activity_change
    return 0


def clamp(value: float, min_val: float, max_val: float) -> float:
    """Clamp a value between minimum and maximum bounds.

    Examples:
        clamp(150, 0, 100) → 100
        clamp(-10, 0, 100) → 0
    """
    return max(min_val, min(value, max_val))
