"""Record builders for pellet progression tests.

Each builder returns a complete dict with sensible defaults; override any
field with keyword arguments.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any, cast
import uuid

from pellet_progression import const
from pellet_progression.type_defs import BadgeDefinition, PelletData, UserData

FIXED_NOW = datetime(2026, 3, 15, 12, 0, tzinfo=UTC)


def make_user(
    *,
    user_id: str = "user-1",
    license_plate: str = "CA-ABC123",
    pellet_count: int = const.DEFAULT_STARTING_NEGATIVE_PELLETS,
    positive_pellet_count: int = const.DEFAULT_STARTING_POSITIVE_PELLETS,
    exp: int = 0,
    level: int = 1,
    badges: list[str] | None = None,
    **extra: Any,
) -> UserData:
    """Build a user dict as stored by the repository."""
    user: dict[str, Any] = {
        const.DATA_USER_ID: user_id,
        const.DATA_USER_NAME: extra.pop("name", None),
        const.DATA_USER_EMAIL: extra.pop("email", None),
        const.DATA_USER_LICENSE_PLATE: license_plate,
        const.DATA_USER_PELLET_COUNT: pellet_count,
        const.DATA_USER_POSITIVE_PELLET_COUNT: positive_pellet_count,
        const.DATA_USER_EXP: exp,
        const.DATA_USER_LEVEL: level,
        const.DATA_USER_BADGES: list(badges or []),
        const.DATA_USER_BADGES_EARNED: {},
        const.DATA_USER_LEDGER: [],
    }
    user.update(extra)
    return cast("UserData", user)


def make_pellet(
    *,
    target: str = "CA-XYZ789",
    created_by: str = "user-1",
    pellet_type: str = const.PELLET_TYPE_NEGATIVE,
    reason: str = "Cut me off",
    created_at: datetime | str | None = None,
    days_ago: float | None = None,
    pellet_id: str | None = None,
) -> PelletData:
    """Build a pellet event.

    `days_ago` places the event relative to FIXED_NOW.
    """
    if created_at is None:
        created_at = FIXED_NOW - timedelta(days=days_ago or 0)
    if isinstance(created_at, datetime):
        created_at = created_at.isoformat()
    return cast(
        "PelletData",
        {
            const.DATA_PELLET_ID: pellet_id or str(uuid.uuid4()),
            const.DATA_PELLET_TARGET_LICENSE_PLATE: target,
            const.DATA_PELLET_CREATED_BY: created_by,
            const.DATA_PELLET_CREATED_AT: created_at,
            const.DATA_PELLET_TYPE: pellet_type,
            const.DATA_PELLET_REASON: reason,
            const.DATA_PELLET_LOCATION: None,
        },
    )


def make_badge(
    badge_id: str,
    criterion_type: str = const.BADGE_CRITERION_PELLETS_GIVEN,
    threshold: int = 1,
    *,
    rarity: str = const.BADGE_RARITY_COMMON,
) -> BadgeDefinition:
    """Build a validated-shape badge definition."""
    return cast(
        "BadgeDefinition",
        {
            const.DATA_BADGE_ID: badge_id,
            const.DATA_BADGE_NAME: badge_id.replace("-", " ").title(),
            const.DATA_BADGE_DESCRIPTION: "",
            const.DATA_BADGE_ICON: "",
            const.DATA_BADGE_RARITY: rarity,
            const.DATA_BADGE_CRITERIA: {
                const.DATA_BADGE_CRITERIA_TYPE: criterion_type,
                const.DATA_BADGE_CRITERIA_THRESHOLD: threshold,
            },
        },
    )
