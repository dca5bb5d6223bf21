# File: utils/__init__.py
"""Pure Python utilities for the pellet progression engine.

This module contains pure functions with no engine or manager dependencies.
All functions here can be unit tested in isolation.

Submodules:
    - dt_utils: Timestamp parsing, UTC normalization, window boundaries
    - math_utils: Half-up rounding, percentages, percent change

Usage:
    from . import dt_utils
    from .math_utils import percent_change
"""

from . import dt_utils, math_utils

__all__ = ["dt_utils", "math_utils"]
