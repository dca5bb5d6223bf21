"""Tests for ProgressionManager - orchestration over the in-memory store.

Test Categories:
- Registration
- Tagging flow (debit, event, exp, badges, save)
- All-or-nothing failure behavior
- Per-user serialization of concurrent calls
- Shop purchases and store packages
- Statistics and leaderboards
- Event notifications
"""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from pellet_progression import const
from pellet_progression.exceptions import (
    CatalogValidationError,
    EntityValidationError,
    InsufficientBalanceError,
    InvalidAmountError,
    UserNotFoundError,
)
from pellet_progression.managers import ProgressionManager
from pellet_progression.store import MemoryStore, PelletRepository
from tests.helpers import FIXED_NOW, make_badge, make_pellet, make_user


async def _register(
    manager: ProgressionManager, user_id: str = "u1", plate: str = "ABC123"
) -> None:
    await manager.register_user(
        {
            const.DATA_USER_ID: user_id,
            const.DATA_USER_LICENSE_PLATE: plate,
            const.DATA_USER_STATE: "CA",
        }
    )


class _UnreliableStore(MemoryStore):
    """MemoryStore whose `failing` operation raises like a lost connection."""

    def __init__(self, failing: str) -> None:
        super().__init__()
        self.failing = failing

    def _check(self, operation: str) -> None:
        if operation == self.failing:
            raise RuntimeError(f"{operation}: storage unavailable")

    async def fetch_events_for_user(self, user_id: str) -> list[Any]:
        self._check("fetch_events_for_user")
        return await super().fetch_events_for_user(user_id)

    async def fetch_events_for_plate(self, license_plate: str) -> list[Any]:
        self._check("fetch_events_for_plate")
        return await super().fetch_events_for_plate(license_plate)

    async def record_tag(self, user: Any, pellet: Any) -> None:
        self._check("record_tag")
        await super().record_tag(user, pellet)


async def _tag(
    manager: ProgressionManager,
    user_id: str = "u1",
    plate: str = "XYZ789",
    pellet_type: str = const.PELLET_TYPE_NEGATIVE,
    reason: str = "Cut me off",
    **kwargs: Any,
) -> dict[str, Any]:
    return await manager.tag_driver(  # type: ignore[return-value]
        user_id,
        license_plate=plate,
        state="CA",
        pellet_type=pellet_type,
        reason=reason,
        **kwargs,
    )


# =============================================================================
# Test: Setup
# =============================================================================


class TestSetup:
    """Tests for construction and registration."""

    def test_memory_store_satisfies_protocol(self, store: MemoryStore) -> None:
        """MemoryStore implements the repository protocol."""
        assert isinstance(store, PelletRepository)

    def test_bad_catalog_fails_at_construction(self, store: MemoryStore) -> None:
        """Invalid catalogs fail before any user is touched."""
        bad = [make_badge("x", "mystery_criterion", 1)]

        with pytest.raises(CatalogValidationError):
            ProgressionManager(store, badge_catalog=bad)

    async def test_register_user(
        self, manager: ProgressionManager, store: MemoryStore
    ) -> None:
        """Registered users are stored with starting balances."""
        await manager.async_setup()
        await _register(manager)

        user = await store.load_user("u1")
        assert user is not None
        assert user[const.DATA_USER_LICENSE_PLATE] == "CA-ABC123"
        assert user[const.DATA_USER_PELLET_COUNT] == 10
        assert user[const.DATA_USER_POSITIVE_PELLET_COUNT] == 5

    async def test_register_twice_rejected(self, manager: ProgressionManager) -> None:
        """User ids are unique."""
        await _register(manager)

        with pytest.raises(EntityValidationError):
            await _register(manager)

    async def test_unknown_user(self, manager: ProgressionManager) -> None:
        """Operations on unknown users raise UserNotFoundError."""
        with pytest.raises(UserNotFoundError):
            await _tag(manager, user_id="ghost")


# =============================================================================
# Test: Tagging
# =============================================================================


class TestTagDriver:
    """Tests for the full tagging flow."""

    async def test_first_tag(
        self, manager: ProgressionManager, store: MemoryStore
    ) -> None:
        """One negative tag: 9/5 balance, 25 exp, first-tag badge, event stored."""
        await _register(manager)

        result = await _tag(manager, now=FIXED_NOW)

        assert result["balance"] == 9
        assert result["exp_gained"] == 25
        assert result["exp"] == 25
        assert result["level"] == 1
        assert result["leveled_up"] is False
        assert result["new_badges"] == ["first-tag"]
        assert result["pellet"][const.DATA_PELLET_TARGET_LICENSE_PLATE] == "CA-XYZ789"

        user = await store.load_user("u1")
        assert user is not None
        assert user[const.DATA_USER_PELLET_COUNT] == 9
        assert user[const.DATA_USER_POSITIVE_PELLET_COUNT] == 5
        assert user[const.DATA_USER_BADGES] == ["first-tag"]
        assert user[const.DATA_USER_BADGES_EARNED]["first-tag"] == FIXED_NOW.isoformat()
        events = await store.fetch_all_events()
        assert [e[const.DATA_PELLET_ID] for e in events] == [
            result["pellet"][const.DATA_PELLET_ID]
        ]

    async def test_positive_tag_with_bonuses(self, manager: ProgressionManager) -> None:
        """Positive tag with location and a detailed reason earns 45 exp."""
        await _register(manager)

        result = await _tag(
            manager,
            pellet_type=const.PELLET_TYPE_POSITIVE,
            reason="Let me merge onto the highway",
            location={"latitude": 34.05, "longitude": -118.24},
        )

        assert result["balance"] == 4
        assert result["exp_gained"] == 45
        assert result["new_badges"] == ["first-tag", "first-positive"]

    async def test_receiving_badge_for_target(self, manager: ProgressionManager) -> None:
        """The tagged driver earns received-pellet badges on their next check."""
        catalog = [make_badge("road-menace", const.BADGE_CRITERION_NEGATIVE_PELLETS_RECEIVED, 2)]
        manager = ProgressionManager(manager.repository, badge_catalog=catalog)
        await _register(manager, "u1", "ABC123")
        await _register(manager, "u2", "XYZ789")

        await _tag(manager, "u1", "XYZ789")
        assert await manager.check_and_award("u2") == []
        await _tag(manager, "u1", "xyz789")

        assert await manager.check_and_award("u2") == ["road-menace"]
        assert await manager.check_and_award("u2") == []

    async def test_level_up(self, manager: ProgressionManager) -> None:
        """Crossing 100 exp reports a level-up."""
        await _register(manager)
        for _ in range(3):
            result = await _tag(manager)
            assert result["leveled_up"] is False

        result = await _tag(manager)

        assert result["exp"] == 100
        assert result["level"] == 2
        assert result["leveled_up"] is True

    async def test_out_of_pellets(
        self, manager: ProgressionManager, store: MemoryStore
    ) -> None:
        """The 11th negative tag fails and creates no event."""
        await _register(manager)
        for _ in range(10):
            await _tag(manager)

        with pytest.raises(InsufficientBalanceError) as exc_info:
            await _tag(manager)

        assert exc_info.value.current_balance == 0
        user = await store.load_user("u1")
        assert user is not None
        assert user[const.DATA_USER_PELLET_COUNT] == 0
        assert len(await store.fetch_all_events()) == 10

    @pytest.mark.parametrize(
        "failing",
        ["fetch_events_for_user", "fetch_events_for_plate", "record_tag"],
    )
    async def test_storage_failure_writes_nothing(self, failing: str) -> None:
        """A storage error anywhere in tagging leaves balance and log unchanged."""
        store = _UnreliableStore(failing)
        manager = ProgressionManager(store)
        await _register(manager)
        signals: list[dict[str, Any]] = []
        manager.listen(const.SIGNAL_SUFFIX_PELLET_TAGGED, signals.append)

        with pytest.raises(RuntimeError):
            await _tag(manager)

        user = await store.load_user("u1")
        assert user is not None
        assert user[const.DATA_USER_PELLET_COUNT] == 10
        assert user[const.DATA_USER_EXP] == 0
        assert user[const.DATA_USER_BADGES] == []
        assert await store.fetch_all_events() == []
        assert signals == []

    async def test_own_plate_without_state_rejected(
        self, manager: ProgressionManager, store: MemoryStore
    ) -> None:
        """Leaving out the state cannot be used to tag your own plate."""
        await _register(manager, "u1", "ABC123")

        with pytest.raises(EntityValidationError):
            await manager.tag_driver(
                "u1",
                license_plate="ABC123",
                pellet_type=const.PELLET_TYPE_NEGATIVE,
                reason="Cut me off",
            )

        assert await store.fetch_all_events() == []

    async def test_prefixed_registration_receives_tags(
        self, manager: ProgressionManager
    ) -> None:
        """A driver registered as "CA-XYZ789" is credited for tags on XYZ789 in CA."""
        catalog = [make_badge("road-menace", const.BADGE_CRITERION_NEGATIVE_PELLETS_RECEIVED, 1)]
        manager = ProgressionManager(manager.repository, badge_catalog=catalog)
        await _register(manager, "u1", "ABC123")
        await manager.register_user(
            {const.DATA_USER_ID: "u2", const.DATA_USER_LICENSE_PLATE: "ca-xyz789"}
        )

        await _tag(manager, "u1", "XYZ789")

        assert await manager.check_and_award("u2") == ["road-menace"]

    async def test_validation_failure_leaves_state(
        self, manager: ProgressionManager, store: MemoryStore
    ) -> None:
        """Tagging your own plate writes nothing."""
        await _register(manager)
        before = await store.load_user("u1")

        with pytest.raises(EntityValidationError):
            await _tag(manager, plate="abc123")

        assert await store.load_user("u1") == before
        assert await store.fetch_all_events() == []

    async def test_concurrent_tags_are_serialized(
        self, manager: ProgressionManager, store: MemoryStore
    ) -> None:
        """Concurrent tags by one user never overspend or lose updates."""
        await _register(manager)

        results = await asyncio.gather(
            *(_tag(manager) for _ in range(12)), return_exceptions=True
        )

        failures = [r for r in results if isinstance(r, InsufficientBalanceError)]
        assert len(failures) == 2
        user = await store.load_user("u1")
        assert user is not None
        assert user[const.DATA_USER_PELLET_COUNT] == 0
        assert user[const.DATA_USER_EXP] == 250
        assert len(await store.fetch_all_events()) == 10

    async def test_concurrent_check_and_award_awards_once(
        self, manager: ProgressionManager, store: MemoryStore
    ) -> None:
        """Duplicate concurrent checks award a new badge exactly once."""
        await _register(manager)
        await store.append_event(make_pellet(created_by="u1"))

        first, second = await asyncio.gather(
            manager.check_and_award("u1"), manager.check_and_award("u1")
        )

        assert sorted([first, second], key=len) == [[], ["first-tag"]]


# =============================================================================
# Test: Economy passthroughs
# =============================================================================


class TestEconomy:
    """Tests for manual balance changes and the shop."""

    async def test_ledger_age_option(self) -> None:
        """max_ledger_age_days prunes old ledger entries on the next change."""
        user = make_user(user_id="u1")
        user[const.DATA_USER_LEDGER] = [
            {
                const.DATA_LEDGER_TIMESTAMP: "2020-01-01T00:00:00+00:00",
                const.DATA_LEDGER_PELLET_TYPE: const.PELLET_TYPE_NEGATIVE,
                const.DATA_LEDGER_AMOUNT: 10,
                const.DATA_LEDGER_BALANCE_AFTER: 10,
                const.DATA_LEDGER_SOURCE: const.LEDGER_SOURCE_REGISTRATION,
                const.DATA_LEDGER_REFERENCE_ID: "u1",
            }
        ]
        store = MemoryStore([user])
        manager = ProgressionManager(
            store, options={const.CONF_MAX_LEDGER_AGE_DAYS: 30}
        )

        await manager.credit("u1", const.PELLET_TYPE_NEGATIVE, 1)

        stored = await store.load_user("u1")
        assert stored is not None
        assert [e[const.DATA_LEDGER_SOURCE] for e in stored[const.DATA_USER_LEDGER]] == [
            const.LEDGER_SOURCE_MANUAL
        ]

    async def test_debit_and_credit(self, manager: ProgressionManager) -> None:
        """Manual operations persist balances."""
        await _register(manager)

        assert await manager.credit("u1", const.PELLET_TYPE_POSITIVE, 3) == 8
        assert await manager.debit("u1", const.PELLET_TYPE_POSITIVE, 8) == 0
        with pytest.raises(InsufficientBalanceError):
            await manager.debit("u1", const.PELLET_TYPE_POSITIVE)
        with pytest.raises(InvalidAmountError):
            await manager.credit("u1", const.PELLET_TYPE_POSITIVE, 0)

    async def test_purchase_items(self, manager: ProgressionManager) -> None:
        """Purchase, erase and donation items from the built-in shop."""
        await _register(manager)

        assert await manager.purchase("u1", "pellet-10") == 20
        assert await manager.purchase("u1", "positive-pellet-5") == 10
        assert await manager.purchase("u1", "erase-1") == 21
        assert await manager.purchase("u1", "donation-small") is None

    async def test_unknown_shop_item(self, manager: ProgressionManager) -> None:
        """Unknown item ids are rejected."""
        await _register(manager)

        with pytest.raises(EntityValidationError):
            await manager.purchase("u1", "pellet-1000")

    async def test_redeem_store_package(
        self, manager: ProgressionManager, store: MemoryStore
    ) -> None:
        """Provider package identifiers map to balance credits."""
        await _register(manager)

        assert await manager.redeem_store_package("u1", "pellet_pos_25") == 30
        assert await manager.redeem_store_package("u1", "pellet_neg_5") == 15
        assert await manager.redeem_store_package("u1", "erase_1") == 16
        assert await manager.redeem_store_package("u1", "tip_jar") is None

        user = await store.load_user("u1")
        assert user is not None
        sources = [e[const.DATA_LEDGER_SOURCE] for e in user[const.DATA_USER_LEDGER]]
        assert sources[-3:] == [
            const.LEDGER_SOURCE_PURCHASE,
            const.LEDGER_SOURCE_PURCHASE,
            const.LEDGER_SOURCE_ERASE,
        ]

    async def test_package_without_count(self, manager: ProgressionManager) -> None:
        """Balance packages need a trailing pellet count."""
        await _register(manager)

        with pytest.raises(EntityValidationError):
            await manager.redeem_store_package("u1", "pellet_neg_bundle")


# =============================================================================
# Test: Progression and statistics
# =============================================================================


class TestQueries:
    """Tests for read-only queries."""

    async def test_award_exp_and_progress(self, manager: ProgressionManager) -> None:
        """Exp awards persist and drive level progress."""
        await _register(manager)

        award = await manager.award_exp("u1", 175)
        progress = await manager.get_level_progress("u1")

        assert award["leveled_up"] is True
        assert progress["level"] == 2
        assert progress["progress"] == 50

    async def test_badge_progress_and_listing(self, manager: ProgressionManager) -> None:
        """Badge progress covers the catalog; listing returns held badges."""
        await _register(manager)
        await _tag(manager)

        progress = await manager.get_badge_progress("u1")
        badges = await manager.get_user_badges("u1")

        assert len(progress) == len(manager.badge_catalog)
        assert progress[0]["badge_id"] == "first-tag"
        assert progress[0]["earned"] is True
        assert [b[const.DATA_BADGE_ID] for b in badges] == ["first-tag"]

    async def test_trend_summary(self) -> None:
        """Trend summaries for the whole log or one plate."""
        user = make_user(user_id="u1")
        events = [make_pellet(target="CA-AAA111", days_ago=d) for d in (1, 2, 40)]
        events.append(make_pellet(target="CA-BBB222", days_ago=1))
        manager = ProgressionManager(MemoryStore([user], events))

        overall = await manager.get_trend_summary(now=FIXED_NOW)
        plate = await manager.get_trend_summary("ca-aaa111", now=FIXED_NOW)

        assert overall is not None
        assert overall["recent_negative"] == 3
        assert plate is not None
        assert plate["recent_negative"] == 2
        assert plate["negative_change"] == 100
        assert await manager.get_trend_summary("CA-NONE00", now=FIXED_NOW) is None

    async def test_leaderboards(self, manager: ProgressionManager) -> None:
        """Leaderboards reflect tags and exp."""
        await _register(manager, "u1", "ABC123")
        await _register(manager, "u2", "DEF456")
        await _tag(manager, "u1", "XYZ789")
        await _tag(manager, "u2", "XYZ789")
        await _tag(manager, "u2", "QRS111", pellet_type=const.PELLET_TYPE_POSITIVE)

        pellets = await manager.get_pellet_leaderboard()
        exp = await manager.get_experience_leaderboard()

        assert [(e["license_plate"], e["count"]) for e in pellets] == [
            ("CA-XYZ789", 2),
            ("CA-QRS111", 1),
        ]
        assert [e["id"] for e in exp] == ["u2", "u1"]

    async def test_leaderboard_rejects_bad_filters(
        self, manager: ProgressionManager
    ) -> None:
        """Unknown filters raise ValueError."""
        with pytest.raises(ValueError):
            await manager.get_pellet_leaderboard("neutral")
        with pytest.raises(ValueError):
            await manager.get_experience_leaderboard("sideways")


# =============================================================================
# Test: Notifications
# =============================================================================


class TestNotifications:
    """Tests for emitted events."""

    async def test_tag_signals(
        self,
        manager: ProgressionManager,
        signal_log: list[tuple[str, dict[str, Any]]],
    ) -> None:
        """Tagging emits tagged, balance, then badge events in order."""
        await _register(manager)

        await _tag(manager)

        assert [suffix for suffix, _ in signal_log] == [
            const.SIGNAL_SUFFIX_PELLET_TAGGED,
            const.SIGNAL_SUFFIX_BALANCE_CHANGED,
            const.SIGNAL_SUFFIX_BADGE_EARNED,
        ]
        balance = signal_log[1][1]
        assert balance["old_balance"] == 10
        assert balance["new_balance"] == 9
        assert balance["delta"] == -1
        assert signal_log[2][1]["badge_id"] == "first-tag"

    async def test_level_up_signal(
        self,
        manager: ProgressionManager,
        signal_log: list[tuple[str, dict[str, Any]]],
    ) -> None:
        """Level-ups are announced with old and new level."""
        await _register(manager)

        await manager.award_exp("u1", 250)

        level_events = [p for s, p in signal_log if s == const.SIGNAL_SUFFIX_LEVEL_UP]
        assert level_events == [
            {"user_id": "u1", "old_level": 1, "new_level": 3, "exp": 250}
        ]

    async def test_failing_listener_does_not_break_operation(
        self, manager: ProgressionManager, store: MemoryStore
    ) -> None:
        """A raising listener is logged; the operation still succeeds."""
        received: list[dict[str, Any]] = []

        def _broken(payload: dict[str, Any]) -> None:
            raise RuntimeError("listener bug")

        async def _async_listener(payload: dict[str, Any]) -> None:
            received.append(payload)

        manager.listen(const.SIGNAL_SUFFIX_PELLET_TAGGED, _broken)
        manager.listen(const.SIGNAL_SUFFIX_PELLET_TAGGED, _async_listener)
        await _register(manager)

        result = await _tag(manager)

        assert result["balance"] == 9
        assert len(received) == 1
        user = await store.load_user("u1")
        assert user is not None
        assert user[const.DATA_USER_PELLET_COUNT] == 9

    async def test_unsubscribe(self, manager: ProgressionManager) -> None:
        """Unsubscribed listeners are no longer called."""
        calls: list[dict[str, Any]] = []
        unsubscribe = manager.listen(const.SIGNAL_SUFFIX_BALANCE_CHANGED, calls.append)
        await _register(manager)

        await manager.credit("u1", const.PELLET_TYPE_NEGATIVE, 1)
        unsubscribe()
        await manager.credit("u1", const.PELLET_TYPE_NEGATIVE, 1)

        assert len(calls) == 1
