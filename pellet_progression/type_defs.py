"""Type definitions for pellet progression data structures.

All records handled by the engines are plain dicts so that any persistence
collaborator (SQL rows, JSON documents, RPC payloads) can hand them over
without conversion. The TypedDicts below document the fixed-key shapes;
keys mirror the DATA_* constants in const.py.

NOTE: TypedDict is STATIC ANALYSIS ONLY. Runtime validation happens in
data_builders.py (users, pellets) and catalog.py / config.py (catalogs,
options).

IMPORTANT: This file must NOT import from engines or managers to avoid
circular dependencies. Only typing machinery is imported here.
"""

from typing import Literal, NotRequired, TypedDict

# =============================================================================
# Type Aliases (for readability)
# =============================================================================

UserId = str
PelletId = str
BadgeId = str
LicensePlate = str  # Normalized "STATE-PLATE" string
ISODatetime = str  # ISO 8601 datetime string "2026-01-18T12:30:00+00:00"

PelletType = Literal["negative", "positive"]
BadgeRarity = Literal["common", "uncommon", "rare", "epic", "legendary"]
CriterionType = Literal[
    "negative_pellets_received",
    "positive_pellets_received",
    "pellets_given",
    "positive_pellets_given",
    "exp_earned",
]
ShopItemType = Literal["purchase", "erase", "donation"]


# =============================================================================
# Economy
# =============================================================================


class LedgerEntry(TypedDict):
    """One balance transaction (newest entries at the end of the list)."""

    timestamp: ISODatetime
    pellet_type: PelletType
    amount: int  # Signed: negative for debits
    balance_after: int
    source: str
    reference_id: str | None


# =============================================================================
# Users and Events
# =============================================================================


class UserData(TypedDict):
    """Type definition for a user with mutable progression state."""

    id: UserId
    license_plate: LicensePlate
    name: NotRequired[str | None]
    email: NotRequired[str | None]
    state: NotRequired[str | None]
    pellet_count: int
    positive_pellet_count: int
    exp: int
    level: int
    badges: list[BadgeId]
    badges_earned: dict[BadgeId, ISODatetime]
    ledger: list[LedgerEntry]
    created_at: NotRequired[ISODatetime]


class PelletLocation(TypedDict):
    """Optional geo-coordinate attached to a pellet."""

    latitude: float
    longitude: float


class PelletData(TypedDict):
    """Immutable tagging event."""

    id: PelletId
    target_license_plate: LicensePlate
    created_by: UserId
    created_at: ISODatetime
    type: PelletType
    reason: str
    location: NotRequired[PelletLocation | None]


# =============================================================================
# Badges
# =============================================================================


class BadgeCriteria(TypedDict):
    """Single threshold criterion of a badge."""

    type: CriterionType
    threshold: int


class BadgeDefinition(TypedDict):
    """Static badge catalog entry."""

    id: BadgeId
    name: str
    description: str
    icon: str
    rarity: BadgeRarity
    criteria: BadgeCriteria


class EarnedBadge(TypedDict):
    """A (user, badge) award with its timestamp."""

    user_id: UserId
    badge_id: BadgeId
    earned_at: ISODatetime


class StatsSnapshot(TypedDict):
    """Cumulative counters consulted by badge evaluation (never persisted)."""

    negative_pellets_received: int
    positive_pellets_received: int
    pellets_given: int
    positive_pellets_given: int
    exp_earned: int


class BadgeEvaluation(TypedDict):
    """Result of evaluating one badge against a snapshot."""

    badge_id: BadgeId
    badge_name: str
    criterion_type: str
    met: bool
    earned: bool
    progress: float  # 0.0 - 1.0
    current_value: int
    threshold: int
    reason: str


# =============================================================================
# Progression
# =============================================================================


class ExpAwardResult(TypedDict):
    """Outcome of an exp award."""

    exp: int
    level: int
    leveled_up: bool
    exp_gained: int


class LevelProgress(TypedDict):
    """Progress toward the next level (for experience bars)."""

    level: int
    current: int  # Exp earned inside the current level
    next: int  # Exp span of the current level (0 at max level)
    progress: int  # Percent 0-100
    is_max_level: bool


# =============================================================================
# Statistics
# =============================================================================


class ReasonCount(TypedDict):
    """Frequency of one tagging reason."""

    reason: str
    count: int


class TrendSummary(TypedDict):
    """Recent vs previous window comparison of tagging activity."""

    recent_negative: int
    recent_positive: int
    previous_negative: int
    previous_positive: int
    negative_change: int  # Percent
    positive_change: int  # Percent
    total_recent: int
    total_previous: int
    negative_percentage: int
    positive_percentage: int
    top_reasons: list[ReasonCount]


class PelletLeaderboardEntry(TypedDict):
    """Pellet count for one license plate."""

    license_plate: LicensePlate
    display_id: str
    count: int


class ExperienceLeaderboardEntry(TypedDict):
    """Exp standing for one user."""

    id: UserId
    name: str
    exp: int
    level: int


# =============================================================================
# Shop
# =============================================================================


class ShopItem(TypedDict):
    """Shop catalog entry."""

    id: str
    name: str
    description: str
    price: float
    type: ShopItemType
    pellet_count: NotRequired[int | None]
    pellet_type: NotRequired[PelletType | None]


# =============================================================================
# Manager results
# =============================================================================


class TagResult(TypedDict):
    """Everything a UI needs after a tagging action."""

    pellet: PelletData
    balance: int
    exp_gained: int
    exp: int
    level: int
    leveled_up: bool
    new_badges: list[BadgeId]
