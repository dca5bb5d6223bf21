"""Progression Manager - Orchestrates tagging, balances, exp and badges.

This manager is the stateful layer on top of the pure engines:
- Loads and saves users through the injected PelletRepository
- Serializes mutations per user with one asyncio.Lock per user id
- Runs the tagging flow: validate → read → debit → exp → badges → record
- Emits notifications after the user has been saved

ARCHITECTURE (Engine vs Manager split):
- EconomyEngine / ProgressionEngine / GamificationEngine / StatisticsEngine:
  pure computation over dicts, no I/O
- ProgressionManager: I/O, locking, persistence ordering, events

Every mutation works on a freshly loaded copy of the user and saves it only
after all steps succeeded, so a failure (NSF, validation) leaves the stored
record untouched.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import TYPE_CHECKING, Any

from .. import const
from ..catalog import load_badge_catalog, load_shop_catalog
from ..config import validate_options
from ..data_builders import build_pellet, build_user
from ..engines.economy_engine import EconomyEngine
from ..engines.gamification_engine import GamificationEngine, normalize_plate
from ..engines.progression_engine import ProgressionEngine
from ..engines.statistics_engine import StatisticsEngine
from ..exceptions import EntityValidationError, UserNotFoundError
from .base_manager import BaseManager

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from ..store import PelletRepository
    from ..type_defs import (
        BadgeDefinition,
        BadgeEvaluation,
        ExpAwardResult,
        ExperienceLeaderboardEntry,
        LevelProgress,
        PelletData,
        PelletLeaderboardEntry,
        ShopItem,
        StatsSnapshot,
        TagResult,
        TrendSummary,
        UserData,
    )

# (signal suffix, payload) pairs queued under the lock, emitted after release
_PendingEvents = list[tuple[str, dict[str, Any]]]


class ProgressionManager(BaseManager):
    """Manager for the pellet economy, exp progression and badges.

    Example:
        manager = ProgressionManager(MemoryStore())
        await manager.register_user({"id": "u1", "license_plate": "ABC123", "state": "CA"})
        result = await manager.tag_driver(
            "u1", license_plate="XYZ789", state="CA",
            pellet_type="negative", reason="Cut me off",
        )
        result["new_badges"]  # ["first-tag"]
    """

    def __init__(
        self,
        repository: PelletRepository,
        *,
        badge_catalog: Iterable[dict[str, Any]] | None = None,
        shop_catalog: Iterable[dict[str, Any]] | None = None,
        options: Mapping[str, Any] | None = None,
    ) -> None:
        """Initialize the ProgressionManager.

        Catalogs and options are validated here so a bad configuration fails
        at startup.

        Args:
            repository: Storage backend for users and events
            badge_catalog: Raw badge definitions (built-in catalog when None)
            shop_catalog: Raw shop items (built-in catalog when None)
            options: Raw options (defaults when None)

        Raises:
            CatalogValidationError: Invalid catalog entry or option
        """
        super().__init__(repository)
        self.options = validate_options(options)
        self.badge_catalog: list[BadgeDefinition] = load_badge_catalog(badge_catalog)
        self.shop_catalog: list[ShopItem] = load_shop_catalog(shop_catalog)
        self._user_locks: dict[str, asyncio.Lock] = {}

    async def async_setup(self) -> None:
        """Set up the ProgressionManager."""
        const.LOGGER.debug(
            "ProgressionManager: ready with %d badges and %d shop items",
            len(self.badge_catalog),
            len(self.shop_catalog),
        )

    # =========================================================================
    # Helpers
    # =========================================================================

    @property
    def _ledger_retention(self) -> dict[str, int]:
        """Ledger pruning kwargs for EconomyEngine balance operations."""
        return {
            "max_ledger_entries": self.options[const.CONF_MAX_LEDGER_ENTRIES],
            "max_ledger_age_days": self.options[const.CONF_MAX_LEDGER_AGE_DAYS],
        }

    def _get_lock(self, user_id: str) -> asyncio.Lock:
        """Get or create the mutation lock for one user.

        Different users never share a lock, so they proceed in parallel.
        """
        if user_id not in self._user_locks:
            self._user_locks[user_id] = asyncio.Lock()
        return self._user_locks[user_id]

    async def _load_user(self, user_id: str) -> UserData:
        user = await self.repository.load_user(user_id)
        if user is None:
            const.LOGGER.error("ProgressionManager: user '%s' not found", user_id)
            raise UserNotFoundError(user_id)
        return user

    async def _fetch_activity(
        self, user: UserData
    ) -> tuple[list[PelletData], list[PelletData]]:
        """Read the pellets the user gave and the pellets their plate received."""
        given = await self.repository.fetch_events_for_user(user[const.DATA_USER_ID])
        plate = user.get(const.DATA_USER_LICENSE_PLATE)
        received = await self.repository.fetch_events_for_plate(plate) if plate else []
        return given, received

    async def _build_snapshot(self, user: UserData) -> StatsSnapshot:
        given, received = await self._fetch_activity(user)
        return GamificationEngine.build_stats_snapshot(user, given, received)

    async def _emit_all(self, events: _PendingEvents) -> None:
        for suffix, payload in events:
            await self.emit(suffix, **payload)

    def _award_badges(
        self,
        user: UserData,
        snapshot: StatsSnapshot,
        pending: _PendingEvents,
        now: datetime | None,
    ) -> list[str]:
        """Run badge evaluation and queue one badge_earned event per new badge."""
        new_badges = GamificationEngine.check_and_award(
            user, snapshot, self.badge_catalog, now=now
        )
        names = {
            badge[const.DATA_BADGE_ID]: badge[const.DATA_BADGE_NAME]
            for badge in self.badge_catalog
        }
        for badge_id in new_badges:
            pending.append(
                (
                    const.SIGNAL_SUFFIX_BADGE_EARNED,
                    {
                        "user_id": user[const.DATA_USER_ID],
                        "badge_id": badge_id,
                        "badge_name": names.get(badge_id, badge_id),
                    },
                )
            )
        return new_badges

    @staticmethod
    def _queue_balance_change(
        pending: _PendingEvents,
        user_id: str,
        pellet_type: str,
        old_balance: int,
        new_balance: int,
        source: str,
        reference_id: str | None,
    ) -> None:
        pending.append(
            (
                const.SIGNAL_SUFFIX_BALANCE_CHANGED,
                {
                    "user_id": user_id,
                    "pellet_type": pellet_type,
                    "old_balance": old_balance,
                    "new_balance": new_balance,
                    "delta": new_balance - old_balance,
                    "source": source,
                    "reference_id": reference_id,
                },
            )
        )

    @staticmethod
    def _queue_level_up(
        pending: _PendingEvents, user_id: str, old_level: int, award: ExpAwardResult
    ) -> None:
        if award["leveled_up"]:
            pending.append(
                (
                    const.SIGNAL_SUFFIX_LEVEL_UP,
                    {
                        "user_id": user_id,
                        "old_level": old_level,
                        "new_level": award["level"],
                        "exp": award["exp"],
                    },
                )
            )

    # =========================================================================
    # Registration
    # =========================================================================

    async def register_user(
        self, user_input: Mapping[str, Any], *, now: datetime | None = None
    ) -> UserData:
        """Create a user with the configured starting balances.

        Raises:
            EntityValidationError: Invalid input or id already registered
        """
        user = build_user(user_input, self.options, now=now)
        user_id = user[const.DATA_USER_ID]
        async with self._get_lock(user_id):
            if await self.repository.load_user(user_id) is not None:
                raise EntityValidationError(
                    field=const.DATA_USER_ID,
                    reason=f"user {user_id} is already registered",
                )
            await self.repository.save_user(user)

        const.LOGGER.info("Registered user %s (%s)", user_id, user[const.DATA_USER_LICENSE_PLATE])
        return user

    # =========================================================================
    # Tagging
    # =========================================================================

    async def tag_driver(
        self,
        user_id: str,
        *,
        license_plate: str,
        pellet_type: str,
        reason: str,
        state: str | None = None,
        location: Mapping[str, Any] | None = None,
        now: datetime | None = None,
    ) -> TagResult:
        """Tag another driver's plate, spending one pellet of `pellet_type`.

        Flow (under the user's lock):
            1. Load user, build and validate the pellet
            2. Read the user's given and received pellets
            3. Debit one pellet (NSF aborts before anything is written)
            4. Award exp per the tagging reward policy
            5. Award badges from the read pellets plus the new one
            6. Store the user and the pellet in one repository write
        Every repository read happens before the debit, so a failure at any
        step leaves both the user and the event log unchanged. Events are
        emitted after the lock is released.

        Returns:
            TagResult with the pellet, new balance, exp/level and new badges

        Raises:
            UserNotFoundError: Unknown user
            EntityValidationError: Invalid plate, reason, type or own plate
            InsufficientBalanceError: No pellet of that type left
        """
        pending: _PendingEvents = []
        async with self._get_lock(user_id):
            user = await self._load_user(user_id)
            pellet = build_pellet(
                user,
                license_plate=license_plate,
                pellet_type=pellet_type,
                reason=reason,
                state=state,
                location=location,
                now=now,
            )
            pellet_id = pellet[const.DATA_PELLET_ID]
            given, received = await self._fetch_activity(user)

            old_balance = EconomyEngine.get_balance(user, pellet_type)
            old_level = ProgressionEngine.level_for_exp(
                int(user.get(const.DATA_USER_EXP) or 0)
            )
            new_balance = EconomyEngine.debit(
                user,
                pellet_type,
                1,
                source=const.LEDGER_SOURCE_TAG,
                reference_id=pellet_id,
                **self._ledger_retention,
            )

            exp_gained = ProgressionEngine.exp_for_tag(
                pellet_type,
                pellet[const.DATA_PELLET_REASON],
                pellet.get(const.DATA_PELLET_LOCATION) is not None,
            )
            award = ProgressionEngine.award_exp(user, exp_gained)

            snapshot = GamificationEngine.build_stats_snapshot(
                user, [*given, pellet], received
            )
            new_badges = self._award_badges(user, snapshot, pending, now)

            await self.repository.record_tag(user, pellet)

        const.LOGGER.debug(
            "ProgressionManager.tag_driver: user=%s tagged %s (%s), balance=%d, +%d exp",
            user_id,
            pellet[const.DATA_PELLET_TARGET_LICENSE_PLATE],
            pellet_type,
            new_balance,
            exp_gained,
        )

        events: _PendingEvents = [
            (const.SIGNAL_SUFFIX_PELLET_TAGGED, {"user_id": user_id, "pellet": pellet})
        ]
        self._queue_balance_change(
            events,
            user_id,
            pellet_type,
            old_balance,
            new_balance,
            const.LEDGER_SOURCE_TAG,
            pellet_id,
        )
        self._queue_level_up(events, user_id, old_level, award)
        await self._emit_all(events + pending)

        return {
            "pellet": pellet,
            "balance": new_balance,
            "exp_gained": exp_gained,
            "exp": award["exp"],
            "level": award["level"],
            "leveled_up": award["leveled_up"],
            "new_badges": new_badges,
        }

    # =========================================================================
    # Badges
    # =========================================================================

    async def check_and_award(
        self, user_id: str, *, now: datetime | None = None
    ) -> list[str]:
        """Award every badge the user newly satisfies.

        Serialized per user, so a duplicate concurrent call observes the
        updated badges and returns [].

        Returns:
            Newly awarded badge ids in catalog order
        """
        pending: _PendingEvents = []
        async with self._get_lock(user_id):
            user = await self._load_user(user_id)
            snapshot = await self._build_snapshot(user)
            new_badges = self._award_badges(user, snapshot, pending, now)
            if new_badges:
                await self.repository.save_user(user)

        await self._emit_all(pending)
        return new_badges

    async def get_badge_progress(self, user_id: str) -> list[BadgeEvaluation]:
        """Return per-badge progress for display, in catalog order."""
        user = await self._load_user(user_id)
        snapshot = await self._build_snapshot(user)
        return GamificationEngine.get_badge_progress(user, snapshot, self.badge_catalog)

    async def get_user_badges(self, user_id: str) -> list[BadgeDefinition]:
        """Return the definitions of the badges the user holds."""
        user = await self._load_user(user_id)
        return GamificationEngine.get_user_badges(user, self.badge_catalog)

    # =========================================================================
    # Economy
    # =========================================================================

    async def debit(
        self,
        user_id: str,
        pellet_type: str,
        amount: int = 1,
        *,
        source: str = const.LEDGER_SOURCE_MANUAL,
        reference_id: str | None = None,
    ) -> int:
        """Remove pellets from a user's balance and save.

        Raises:
            InsufficientBalanceError: Balance below amount (nothing saved)
            InvalidAmountError: Amount not a positive int
        """
        async with self._get_lock(user_id):
            user = await self._load_user(user_id)
            old_balance = EconomyEngine.get_balance(user, pellet_type)
            new_balance = EconomyEngine.debit(
                user,
                pellet_type,
                amount,
                source=source,
                reference_id=reference_id,
                **self._ledger_retention,
            )
            await self.repository.save_user(user)

        pending: _PendingEvents = []
        self._queue_balance_change(
            pending, user_id, pellet_type, old_balance, new_balance, source, reference_id
        )
        await self._emit_all(pending)
        return new_balance

    async def credit(
        self,
        user_id: str,
        pellet_type: str,
        amount: int,
        *,
        source: str = const.LEDGER_SOURCE_MANUAL,
        reference_id: str | None = None,
    ) -> int:
        """Add pellets to a user's balance and save.

        Raises:
            InvalidAmountError: Amount not a positive int
        """
        async with self._get_lock(user_id):
            user = await self._load_user(user_id)
            old_balance = EconomyEngine.get_balance(user, pellet_type)
            new_balance = EconomyEngine.credit(
                user,
                pellet_type,
                amount,
                source=source,
                reference_id=reference_id,
                **self._ledger_retention,
            )
            await self.repository.save_user(user)

        pending: _PendingEvents = []
        self._queue_balance_change(
            pending, user_id, pellet_type, old_balance, new_balance, source, reference_id
        )
        await self._emit_all(pending)
        return new_balance

    def get_shop_item(self, item_id: str) -> ShopItem:
        """Return a shop catalog entry.

        Raises:
            EntityValidationError: Unknown item id
        """
        for item in self.shop_catalog:
            if item[const.DATA_SHOP_ITEM_ID] == item_id:
                return item
        raise EntityValidationError(
            field=const.DATA_SHOP_ITEM_ID, reason=f"unknown shop item {item_id!r}"
        )

    async def purchase(self, user_id: str, item_id: str) -> int | None:
        """Apply a completed shop purchase.

        Payment itself is handled by the purchase provider; this only applies
        the item's effect on the balances.

        Returns:
            New balance of the credited pellet type, or None for donations
        """
        item = self.get_shop_item(item_id)
        return await self._apply_item(user_id, item)

    async def redeem_store_package(self, user_id: str, identifier: str) -> int | None:
        """Apply a purchase provider package by its identifier.

        The identifier prefix selects the effect and its trailing digits the
        pellet count ("pellet_neg_10" credits 10 negative pellets).

        Raises:
            EntityValidationError: Balance package without a pellet count
        """
        category = EconomyEngine.categorize_package(identifier)
        if category == const.SHOP_CATEGORY_DONATION:
            item_type, pellet_type = const.SHOP_ITEM_TYPE_DONATION, None
        elif category == const.SHOP_CATEGORY_ERASE:
            item_type, pellet_type = const.SHOP_ITEM_TYPE_ERASE, const.PELLET_TYPE_NEGATIVE
        elif category == const.SHOP_CATEGORY_PURCHASE_POSITIVE:
            item_type, pellet_type = const.SHOP_ITEM_TYPE_PURCHASE, const.PELLET_TYPE_POSITIVE
        else:
            item_type, pellet_type = const.SHOP_ITEM_TYPE_PURCHASE, const.PELLET_TYPE_NEGATIVE

        pellet_count = EconomyEngine.pellet_count_from_identifier(identifier)
        if item_type != const.SHOP_ITEM_TYPE_DONATION and pellet_count <= 0:
            raise EntityValidationError(
                field=const.DATA_SHOP_ITEM_PELLET_COUNT,
                reason=f"package {identifier!r} has no pellet count",
            )

        item: ShopItem = {
            const.DATA_SHOP_ITEM_ID: identifier,
            const.DATA_SHOP_ITEM_NAME: identifier,
            const.DATA_SHOP_ITEM_DESCRIPTION: "",
            const.DATA_SHOP_ITEM_PRICE: 0.0,
            const.DATA_SHOP_ITEM_TYPE: item_type,
            const.DATA_SHOP_ITEM_PELLET_COUNT: pellet_count,
            const.DATA_SHOP_ITEM_PELLET_TYPE: pellet_type,
        }  # type: ignore[typeddict-item]
        return await self._apply_item(user_id, item)

    async def _apply_item(self, user_id: str, item: ShopItem) -> int | None:
        item_id = item[const.DATA_SHOP_ITEM_ID]
        async with self._get_lock(user_id):
            user = await self._load_user(user_id)
            if item[const.DATA_SHOP_ITEM_TYPE] == const.SHOP_ITEM_TYPE_ERASE:
                pellet_type = const.PELLET_TYPE_NEGATIVE
            else:
                pellet_type = item.get(const.DATA_SHOP_ITEM_PELLET_TYPE) or (
                    const.PELLET_TYPE_NEGATIVE
                )
            old_balance = EconomyEngine.get_balance(user, pellet_type)
            new_balance = EconomyEngine.apply_shop_item(
                user, item, **self._ledger_retention
            )
            if new_balance is not None:
                await self.repository.save_user(user)

        const.LOGGER.info("User %s purchased %s", user_id, item_id)
        if new_balance is None:
            return None

        source = (
            const.LEDGER_SOURCE_ERASE
            if item[const.DATA_SHOP_ITEM_TYPE] == const.SHOP_ITEM_TYPE_ERASE
            else const.LEDGER_SOURCE_PURCHASE
        )
        pending: _PendingEvents = []
        self._queue_balance_change(
            pending, user_id, pellet_type, old_balance, new_balance, source, item_id
        )
        await self._emit_all(pending)
        return new_balance

    # =========================================================================
    # Progression
    # =========================================================================

    async def award_exp(self, user_id: str, amount: int) -> ExpAwardResult:
        """Add experience to a user and save.

        Raises:
            InvalidAmountError: Amount not a positive int
        """
        pending: _PendingEvents = []
        async with self._get_lock(user_id):
            user = await self._load_user(user_id)
            old_level = ProgressionEngine.level_for_exp(
                int(user.get(const.DATA_USER_EXP) or 0)
            )
            award = ProgressionEngine.award_exp(user, amount)
            await self.repository.save_user(user)

        self._queue_level_up(pending, user_id, old_level, award)
        await self._emit_all(pending)
        return award

    async def get_level_progress(self, user_id: str) -> LevelProgress:
        """Return the experience bar data for a user."""
        user = await self._load_user(user_id)
        return ProgressionEngine.level_progress(int(user.get(const.DATA_USER_EXP) or 0))

    # =========================================================================
    # Statistics
    # =========================================================================

    async def get_trend_summary(
        self, plate: str | None = None, now: datetime | None = None
    ) -> TrendSummary | None:
        """Summarize tagging trends for one plate, or for the whole log.

        Returns:
            TrendSummary, or None when there are no events
        """
        if plate:
            pellets = await self.repository.fetch_events_for_plate(normalize_plate(plate))
        else:
            pellets = await self.repository.fetch_all_events()
        return StatisticsEngine.summarize(
            pellets,
            now,
            window_days=self.options[const.CONF_TREND_WINDOW_DAYS],
            top_reasons_limit=self.options[const.CONF_TOP_REASONS_LIMIT],
        )

    async def get_pellet_leaderboard(
        self,
        pellet_type: str = const.PELLET_TYPE_ALL,
        sort_order: str = const.SORT_ORDER_DESC,
    ) -> list[PelletLeaderboardEntry]:
        """Rank license plates by pellets received.

        Raises:
            ValueError: Unknown pellet type filter or sort order
        """
        if pellet_type not in (*const.PELLET_TYPES, const.PELLET_TYPE_ALL):
            raise ValueError(f"Unknown pellet type filter: {pellet_type!r}")
        if sort_order not in const.SORT_ORDERS:
            raise ValueError(f"Unknown sort order: {sort_order!r}")
        pellets = await self.repository.fetch_all_events()
        return StatisticsEngine.pellet_leaderboard(pellets, pellet_type, sort_order)

    async def get_experience_leaderboard(
        self, sort_order: str = const.SORT_ORDER_DESC
    ) -> list[ExperienceLeaderboardEntry]:
        """Rank users by experience.

        Raises:
            ValueError: Unknown sort order
        """
        if sort_order not in const.SORT_ORDERS:
            raise ValueError(f"Unknown sort order: {sort_order!r}")
        users = await self.repository.fetch_all_users()
        return StatisticsEngine.experience_leaderboard(users, sort_order)
