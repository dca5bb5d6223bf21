"""Progression Engine - Pure logic for experience points and levels.

This engine provides stateless, pure Python functions for:
- Level lookup from exp (fixed, monotonic step function)
- Exp awards with level-up detection
- Progress toward the next level (experience bar data)
- The exp reward policy for tagging actions

ARCHITECTURE: This is a pure logic engine with NO I/O.
level_for_exp() has no hidden state, so the same exp always yields the same
level; replaying a user's exp history reproduces their level exactly.
"""

from __future__ import annotations

from bisect import bisect_right
from typing import TYPE_CHECKING

from .. import const
from ..exceptions import InvalidAmountError
from ..utils.math_utils import clamp, round_half_up

if TYPE_CHECKING:
    from collections.abc import Sequence

    from ..type_defs import ExpAwardResult, LevelProgress, UserData


class ProgressionEngine:
    """Pure logic engine for the exp/level curve.

    All methods are static - no instance state.

    Level Table:
        const.EXP_LEVELS[i] is the minimum exp for level i + 1.
        Level 1 starts at 0 exp; the last entry is the max level.
    """

    # =========================================================================
    # Level Curve
    # =========================================================================

    @staticmethod
    def level_for_exp(exp: int, levels: Sequence[int] = const.EXP_LEVELS) -> int:
        """Return the level reached with `exp` experience points.

        Total over all integers: anything below the first threshold is level 1.

        Args:
            exp: Accumulated experience
            levels: Ascending level thresholds (default const.EXP_LEVELS)

        Returns:
            Level between 1 and len(levels)

        Examples:
            level_for_exp(0) → 1
            level_for_exp(99) → 1
            level_for_exp(100) → 2
            level_for_exp(1000) → 5
            level_for_exp(10**9) → 15
        """
        return max(1, bisect_right(levels, exp))

    @staticmethod
    def level_progress(
        exp: int, levels: Sequence[int] = const.EXP_LEVELS
    ) -> LevelProgress:
        """Describe progress from the current level toward the next one.

        Args:
            exp: Accumulated experience
            levels: Ascending level thresholds

        Returns:
            LevelProgress with exp into the level, level span and percent.
            At max level, `next` is 0 and `progress` is 100.
        """
        level = ProgressionEngine.level_for_exp(exp, levels)
        level_floor = levels[level - 1]

        if level >= len(levels):
            return {
                "level": level,
                "current": exp - level_floor,
                "next": 0,
                "progress": 100,
                "is_max_level": True,
            }

        span = levels[level] - level_floor
        current = exp - level_floor
        progress = int(clamp(round_half_up(current / span * 100), 0, 100))
        return {
            "level": level,
            "current": current,
            "next": span,
            "progress": progress,
            "is_max_level": False,
        }

    # =========================================================================
    # Exp Awards
    # =========================================================================

    @staticmethod
    def award_exp(user: UserData, amount: int) -> ExpAwardResult:
        """Add experience to a user and recompute the level.

        Args:
            user: User dict (exp and level are updated in place)
            amount: Experience to add (positive int)

        Returns:
            ExpAwardResult with the new exp/level and whether the level changed

        Raises:
            InvalidAmountError: If amount is not a positive int
        """
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            const.LOGGER.error(
                "ProgressionEngine.award_exp: rejected invalid amount %r", amount
            )
            raise InvalidAmountError(amount, "award_exp")

        old_exp = int(user.get(const.DATA_USER_EXP) or 0)
        new_exp = old_exp + amount
        old_level = ProgressionEngine.level_for_exp(old_exp)
        new_level = ProgressionEngine.level_for_exp(new_exp)

        user[const.DATA_USER_EXP] = new_exp  # type: ignore[literal-required]
        user[const.DATA_USER_LEVEL] = new_level  # type: ignore[literal-required]

        leveled_up = new_level != old_level
        if leveled_up:
            const.LOGGER.info(
                "User %s reached level %d (exp %d)",
                user.get(const.DATA_USER_ID),
                new_level,
                new_exp,
            )
        else:
            const.LOGGER.debug(
                "ProgressionEngine.award_exp: user=%s, +%d exp, total=%d, level=%d",
                user.get(const.DATA_USER_ID),
                amount,
                new_exp,
                new_level,
            )

        return {
            "exp": new_exp,
            "level": new_level,
            "leveled_up": leveled_up,
            "exp_gained": amount,
        }

    # =========================================================================
    # Reward Policy
    # =========================================================================

    @staticmethod
    def exp_for_tag(pellet_type: str, reason: str, has_location: bool) -> int:
        """Return the exp earned for one tagging action.

        Base reward depends on the pellet type; attaching a location and
        writing a detailed reason each add a bonus.

        Examples:
            exp_for_tag("negative", "Speeding", False) → 25
            exp_for_tag("positive", "Let me merge onto the highway", True) → 45
        """
        exp = (
            const.EXP_REWARD_POSITIVE_TAG
            if pellet_type == const.PELLET_TYPE_POSITIVE
            else const.EXP_REWARD_NEGATIVE_TAG
        )
        if has_location:
            exp += const.EXP_REWARD_LOCATION_BONUS
        if len(reason or "") > const.EXP_DETAILED_REASON_MIN_LENGTH:
            exp += const.EXP_REWARD_DETAILED_REASON_BONUS
        return exp
