"""Test helpers for pellet progression tests.

    from tests.helpers import FIXED_NOW, make_badge, make_pellet, make_user

See builders.py for field defaults.
"""

from tests.helpers.builders import FIXED_NOW, make_badge, make_pellet, make_user

__all__ = ["FIXED_NOW", "make_badge", "make_pellet", "make_user"]
