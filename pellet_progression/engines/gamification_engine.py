"""Gamification Engine - Pure logic for badge evaluation and awarding.

This engine provides stateless, pure Python functions for:
- Building a StatsSnapshot from a user's given/received pellets
- Badge criterion evaluation (received, given, exp thresholds)
- Idempotent awarding of newly satisfied badges in catalog order
- Badge progress reporting for display

ARCHITECTURE: This is a pure logic engine with NO I/O.
All functions are static methods that operate on passed-in data.

PURITY REQUIREMENT: The engine never reads the event log itself. The
ProgressionManager fetches events, builds the snapshot and hands over the
catalog; the engine only counts, compares and records.

Badge Criterion Types:
- negative_pellets_received / positive_pellets_received: tags on the user's plate
- pellets_given / positive_pellets_given: tags created by the user
- exp_earned: accumulated experience

CRITICAL PRINCIPLE: Badges are NEVER removed. Eligibility is never cached
between calls, so a catalog extended after launch is evaluated in full on the
user's next check.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime
from typing import TYPE_CHECKING

from .. import const
from ..utils.dt_utils import as_utc, dt_now_utc

if TYPE_CHECKING:
    from ..type_defs import (
        BadgeDefinition,
        BadgeEvaluation,
        EarnedBadge,
        PelletData,
        StatsSnapshot,
        UserData,
    )


def normalize_plate(plate: str | None) -> str:
    """Return a license plate in its case-insensitive comparison form."""
    return (plate or "").strip().upper()


def _count_by_type(pellets: Iterable[PelletData], pellet_type: str | None) -> int:
    """Count pellets, optionally of one type only."""
    return sum(
        1
        for pellet in pellets
        if pellet_type is None or pellet.get(const.DATA_PELLET_TYPE) == pellet_type
    )


# =============================================================================
# GAMIFICATION ENGINE
# =============================================================================


class GamificationEngine:
    """Pure logic engine for badge evaluation.

    All methods are static - no instance state.

    Evaluation Flow:
        1. Manager fetches the user's given and received pellets
        2. build_stats_snapshot() reduces them to cumulative counters
        3. check_and_award() walks the catalog once, in declared order
        4. Manager persists the user and notifies about new badges
    """

    # =========================================================================
    # SNAPSHOT
    # =========================================================================

    @staticmethod
    def build_stats_snapshot(
        user: UserData,
        pellets_given: Iterable[PelletData],
        pellets_received: Iterable[PelletData],
    ) -> StatsSnapshot:
        """Reduce a user's pellets and exp to the badge counters.

        Events not created by the user are ignored for the "given" counters,
        and events not targeting the user's plate (case-insensitive) are
        ignored for the "received" counters, so callers may pass a wider log.

        Args:
            user: User dict (id, license_plate, exp are read)
            pellets_given: Events created by the user
            pellets_received: Events targeting the user's plate

        Returns:
            StatsSnapshot with one counter per criterion type
        """
        user_id = user.get(const.DATA_USER_ID)
        plate = normalize_plate(user.get(const.DATA_USER_LICENSE_PLATE))

        given = [
            pellet
            for pellet in pellets_given
            if pellet.get(const.DATA_PELLET_CREATED_BY) == user_id
        ]
        received = (
            [
                pellet
                for pellet in pellets_received
                if normalize_plate(pellet.get(const.DATA_PELLET_TARGET_LICENSE_PLATE))
                == plate
            ]
            if plate
            else []
        )

        snapshot: StatsSnapshot = {
            const.BADGE_CRITERION_NEGATIVE_PELLETS_RECEIVED: _count_by_type(
                received, const.PELLET_TYPE_NEGATIVE
            ),
            const.BADGE_CRITERION_POSITIVE_PELLETS_RECEIVED: _count_by_type(
                received, const.PELLET_TYPE_POSITIVE
            ),
            const.BADGE_CRITERION_PELLETS_GIVEN: _count_by_type(given, None),
            const.BADGE_CRITERION_POSITIVE_PELLETS_GIVEN: _count_by_type(
                given, const.PELLET_TYPE_POSITIVE
            ),
            const.BADGE_CRITERION_EXP_EARNED: int(user.get(const.DATA_USER_EXP) or 0),
        }  # type: ignore[assignment]
        const.LOGGER.debug("Stats snapshot for user %s: %s", user_id, snapshot)
        return snapshot

    # =========================================================================
    # EVALUATION
    # =========================================================================

    @staticmethod
    def evaluate_badge(
        snapshot: StatsSnapshot,
        badge: BadgeDefinition,
        held_badges: Iterable[str] = (),
    ) -> BadgeEvaluation:
        """Evaluate one badge against a snapshot.

        Pure function - no side effects. A threshold of 0 is always met.

        Args:
            snapshot: Cumulative counters for the user
            badge: Validated badge definition
            held_badges: Badge ids the user already holds

        Returns:
            BadgeEvaluation with met/earned flags and 0.0-1.0 progress
        """
        criteria = badge[const.DATA_BADGE_CRITERIA]
        criterion_type = criteria[const.DATA_BADGE_CRITERIA_TYPE]
        threshold = criteria[const.DATA_BADGE_CRITERIA_THRESHOLD]
        current_value = int(snapshot.get(criterion_type, 0))  # type: ignore[call-overload]

        met = current_value >= threshold
        progress = min(1.0, current_value / threshold) if threshold > 0 else 1.0

        return {
            "badge_id": badge[const.DATA_BADGE_ID],
            "badge_name": badge[const.DATA_BADGE_NAME],
            "criterion_type": criterion_type,
            "met": met,
            "earned": badge[const.DATA_BADGE_ID] in set(held_badges),
            "progress": progress,
            "current_value": current_value,
            "threshold": threshold,
            "reason": f"{criterion_type}: {current_value}/{threshold}",
        }

    @staticmethod
    def check_and_award(
        user: UserData,
        snapshot: StatsSnapshot,
        catalog: Sequence[BadgeDefinition],
        *,
        now: datetime | None = None,
    ) -> list[str]:
        """Award every catalog badge the user newly satisfies.

        Single pass over the catalog in declared order. Badges already held
        are skipped, so repeated calls with unchanged state return [].
        All new ids are added to the user's badges together.

        Args:
            user: User dict (badges and badges_earned updated in place)
            snapshot: Counters built by build_stats_snapshot()
            catalog: Ordered, validated badge definitions
            now: Award timestamp (defaults to current UTC time)

        Returns:
            Newly awarded badge ids in catalog order (empty when none)
        """
        badges = user.get(const.DATA_USER_BADGES)
        held = set(badges or [])

        newly_earned: list[str] = []
        for badge in catalog:
            badge_id = badge[const.DATA_BADGE_ID]
            if badge_id in held:
                continue
            criteria = badge[const.DATA_BADGE_CRITERIA]
            value = snapshot.get(criteria[const.DATA_BADGE_CRITERIA_TYPE], 0)  # type: ignore[call-overload]
            if value >= criteria[const.DATA_BADGE_CRITERIA_THRESHOLD]:
                newly_earned.append(badge_id)
                held.add(badge_id)

        if not newly_earned:
            return []

        earned_at = as_utc(now or dt_now_utc()).isoformat()
        badge_list = list(badges or [])
        earned_map = dict(user.get(const.DATA_USER_BADGES_EARNED) or {})
        for badge_id in newly_earned:
            badge_list.append(badge_id)
            earned_map.setdefault(badge_id, earned_at)

        user[const.DATA_USER_BADGES] = badge_list  # type: ignore[literal-required]
        user[const.DATA_USER_BADGES_EARNED] = earned_map  # type: ignore[literal-required]

        const.LOGGER.info(
            "User %s earned badges: %s",
            user.get(const.DATA_USER_ID),
            ", ".join(newly_earned),
        )
        return newly_earned

    # =========================================================================
    # REPORTING
    # =========================================================================

    @staticmethod
    def get_badge_progress(
        user: UserData,
        snapshot: StatsSnapshot,
        catalog: Sequence[BadgeDefinition],
    ) -> list[BadgeEvaluation]:
        """Evaluate every catalog badge for display, in catalog order."""
        held = user.get(const.DATA_USER_BADGES) or []
        return [
            GamificationEngine.evaluate_badge(snapshot, badge, held)
            for badge in catalog
        ]

    @staticmethod
    def get_user_badges(
        user: UserData, catalog: Sequence[BadgeDefinition]
    ) -> list[BadgeDefinition]:
        """Return the definitions of badges the user holds, in catalog order.

        Held ids missing from the catalog (retired badges) are not returned.
        """
        held = set(user.get(const.DATA_USER_BADGES) or [])
        return [badge for badge in catalog if badge[const.DATA_BADGE_ID] in held]

    @staticmethod
    def earned_badge_records(user: UserData) -> list[EarnedBadge]:
        """Return the user's badges as EarnedBadge records (held order)."""
        user_id = user.get(const.DATA_USER_ID)
        earned_map = user.get(const.DATA_USER_BADGES_EARNED) or {}
        return [
            {
                const.DATA_EARNED_BADGE_USER_ID: user_id,
                const.DATA_EARNED_BADGE_BADGE_ID: badge_id,
                const.DATA_EARNED_BADGE_EARNED_AT: earned_map.get(badge_id),
            }  # type: ignore[misc]
            for badge_id in user.get(const.DATA_USER_BADGES) or []
        ]
