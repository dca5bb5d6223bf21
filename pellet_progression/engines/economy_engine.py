"""Economy Engine - Pure logic for pellet balances and the balance ledger.

This engine provides stateless, pure Python functions for:
- Amount validation (positive integers only, never clamped)
- Sufficient balance validation (NSF checks)
- Debits and credits against the negative/positive pellet balances
- Ledger entry creation and pruning
- Shop item application and store package classification

ARCHITECTURE: This is a pure logic engine with NO I/O.
All functions are static methods that operate on passed-in data.
The user dict passed in is mutated only when the operation succeeds;
persisting it is the caller's job (see ProgressionManager).
"""

from __future__ import annotations

from datetime import datetime, timedelta
import re
from typing import TYPE_CHECKING

from .. import const
from ..exceptions import InsufficientBalanceError, InvalidAmountError
from ..utils.dt_utils import dt_now_iso, dt_now_utc, dt_parse

if TYPE_CHECKING:
    from ..type_defs import LedgerEntry, ShopItem, UserData


# Re-export exceptions for engine consumers
__all__ = ["EconomyEngine", "InsufficientBalanceError", "InvalidAmountError"]

_TRAILING_DIGITS = re.compile(r"(\d+)$")


class EconomyEngine:
    """Pure logic engine for pellet balance operations.

    All methods are static - no instance state.

    Transaction Sources (for ledger entries):
        - LEDGER_SOURCE_TAG: Pellet spent on tagging a driver
        - LEDGER_SOURCE_PURCHASE: Pellets bought in the shop
        - LEDGER_SOURCE_ERASE: Erase item credited to the negative balance
        - LEDGER_SOURCE_MANUAL: Administrative adjustment
        - LEDGER_SOURCE_REGISTRATION: Starting balances

    Reference IDs provide additional context (pellet_id, shop item id, etc.).
    """

    DEFAULT_MAX_LEDGER_ENTRIES: int = const.DEFAULT_MAX_LEDGER_ENTRIES

    # =========================================================================
    # Validation
    # =========================================================================

    @staticmethod
    def validate_amount(amount: object, operation: str) -> int:
        """Validate that an amount is a positive integer.

        Zero, negative, non-integer and boolean amounts are caller defects:
        they are logged and rejected, never clamped.

        Args:
            amount: Value to validate
            operation: Operation name for the error message

        Returns:
            The amount, typed as int

        Raises:
            InvalidAmountError: If amount is not a positive int
        """
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            const.LOGGER.error(
                "EconomyEngine.%s: rejected invalid amount %r", operation, amount
            )
            raise InvalidAmountError(amount, operation)
        return amount

    @staticmethod
    def balance_key(pellet_type: str) -> str:
        """Return the user field holding the balance for `pellet_type`.

        Raises:
            ValueError: If pellet_type is not "negative" or "positive"
        """
        try:
            return const.BALANCE_KEY_BY_PELLET_TYPE[pellet_type]
        except KeyError:
            raise ValueError(f"Unknown pellet type: {pellet_type!r}") from None

    @staticmethod
    def get_balance(user: UserData, pellet_type: str) -> int:
        """Return the user's current balance for `pellet_type` (missing → 0)."""
        key = EconomyEngine.balance_key(pellet_type)
        return int(user.get(key) or 0)  # type: ignore[misc]

    @staticmethod
    def validate_sufficient_balance(balance: int, amount: int) -> bool:
        """Check if balance is sufficient for a debit.

        Args:
            balance: Current balance
            amount: Amount to debit (positive value)

        Returns:
            True if balance >= amount, False otherwise (NSF)
        """
        return balance >= amount

    # =========================================================================
    # Balance Operations
    # =========================================================================

    @staticmethod
    def debit(
        user: UserData,
        pellet_type: str,
        amount: int = 1,
        *,
        source: str = const.LEDGER_SOURCE_TAG,
        reference_id: str | None = None,
        max_ledger_entries: int = DEFAULT_MAX_LEDGER_ENTRIES,
        max_ledger_age_days: int | None = None,
    ) -> int:
        """Remove pellets from a user's balance.

        All-or-nothing: on any failure the user dict is left untouched and the
        caller must not create the corresponding pellet event.

        Args:
            user: User dict (mutated on success)
            pellet_type: "negative" or "positive"
            amount: Pellets to remove (positive int, default 1)
            source: Ledger transaction source
            reference_id: Optional related entity ID (pellet_id, etc.)
            max_ledger_entries: Ledger size cap applied after appending
            max_ledger_age_days: Ledger age limit in days (None or 0 keeps all)

        Returns:
            New balance after the debit

        Raises:
            InvalidAmountError: If amount is not a positive int
            ValueError: If pellet_type is unknown
            InsufficientBalanceError: If balance < amount (NSF)
        """
        amount = EconomyEngine.validate_amount(amount, "debit")
        key = EconomyEngine.balance_key(pellet_type)
        current_balance = EconomyEngine.get_balance(user, pellet_type)
        user_id = str(user.get(const.DATA_USER_ID, ""))

        if not EconomyEngine.validate_sufficient_balance(current_balance, amount):
            const.LOGGER.warning(
                "EconomyEngine.debit: NSF for user=%s, type=%s, balance=%d, requested=%d",
                user_id,
                pellet_type,
                current_balance,
                amount,
            )
            raise InsufficientBalanceError(
                user_id=user_id,
                pellet_type=pellet_type,
                current_balance=current_balance,
                requested_amount=amount,
            )

        new_balance = current_balance - amount
        entry = EconomyEngine.create_ledger_entry(
            pellet_type=pellet_type,
            delta=-amount,
            balance_after=new_balance,
            source=source,
            reference_id=reference_id,
        )
        user[key] = new_balance  # type: ignore[literal-required]
        ledger = EconomyEngine.ensure_ledger(user)
        ledger.append(entry)
        EconomyEngine.prune_ledger(
            ledger, max_entries=max_ledger_entries, max_age_days=max_ledger_age_days
        )

        const.LOGGER.debug(
            "EconomyEngine.debit: user=%s, type=%s, amount=%d, old=%d, new=%d, source=%s",
            user_id,
            pellet_type,
            amount,
            current_balance,
            new_balance,
            source,
        )
        return new_balance

    @staticmethod
    def credit(
        user: UserData,
        pellet_type: str,
        amount: int,
        *,
        source: str = const.LEDGER_SOURCE_PURCHASE,
        reference_id: str | None = None,
        max_ledger_entries: int = DEFAULT_MAX_LEDGER_ENTRIES,
        max_ledger_age_days: int | None = None,
    ) -> int:
        """Add pellets to a user's balance.

        Args:
            user: User dict (mutated)
            pellet_type: "negative" or "positive"
            amount: Pellets to add (positive int)
            source: Ledger transaction source
            reference_id: Optional related entity ID (shop item id, etc.)
            max_ledger_entries: Ledger size cap applied after appending
            max_ledger_age_days: Ledger age limit in days (None or 0 keeps all)

        Returns:
            New balance after the credit

        Raises:
            InvalidAmountError: If amount is not a positive int
            ValueError: If pellet_type is unknown
        """
        amount = EconomyEngine.validate_amount(amount, "credit")
        key = EconomyEngine.balance_key(pellet_type)
        current_balance = EconomyEngine.get_balance(user, pellet_type)
        new_balance = current_balance + amount

        user[key] = new_balance  # type: ignore[literal-required]
        ledger = EconomyEngine.ensure_ledger(user)
        ledger.append(
            EconomyEngine.create_ledger_entry(
                pellet_type=pellet_type,
                delta=amount,
                balance_after=new_balance,
                source=source,
                reference_id=reference_id,
            )
        )
        EconomyEngine.prune_ledger(
            ledger, max_entries=max_ledger_entries, max_age_days=max_ledger_age_days
        )

        const.LOGGER.debug(
            "EconomyEngine.credit: user=%s, type=%s, amount=%d, old=%d, new=%d, source=%s",
            user.get(const.DATA_USER_ID),
            pellet_type,
            amount,
            current_balance,
            new_balance,
            source,
        )
        return new_balance

    # =========================================================================
    # Ledger
    # =========================================================================

    @staticmethod
    def ensure_ledger(user: UserData) -> list[LedgerEntry]:
        """Return the user's ledger list, creating it if missing."""
        ledger = user.get(const.DATA_USER_LEDGER)
        if not isinstance(ledger, list):
            ledger = []
            user[const.DATA_USER_LEDGER] = ledger  # type: ignore[literal-required]
        return ledger

    @staticmethod
    def create_ledger_entry(
        pellet_type: str,
        delta: int,
        balance_after: int,
        source: str,
        reference_id: str | None = None,
    ) -> LedgerEntry:
        """Create an immutable ledger entry for a transaction.

        Args:
            pellet_type: Balance the transaction applied to
            delta: Signed amount (negative for debits)
            balance_after: Balance after the transaction
            source: Transaction source (LEDGER_SOURCE_*)
            reference_id: Optional ID of related entity

        Returns:
            LedgerEntry TypedDict with transaction details
        """
        return {
            const.DATA_LEDGER_TIMESTAMP: dt_now_iso(),
            const.DATA_LEDGER_PELLET_TYPE: pellet_type,
            const.DATA_LEDGER_AMOUNT: delta,
            const.DATA_LEDGER_BALANCE_AFTER: balance_after,
            const.DATA_LEDGER_SOURCE: source,
            const.DATA_LEDGER_REFERENCE_ID: reference_id,
        }  # type: ignore[return-value]

    @staticmethod
    def prune_ledger(
        ledger: list[LedgerEntry],
        max_entries: int = DEFAULT_MAX_LEDGER_ENTRIES,
        max_age_days: int | None = None,
        now_utc: datetime | None = None,
    ) -> list[LedgerEntry]:
        """Trim ledger to maximum entries, keeping most recent.

        Modifies the list in place and returns it for convenience.
        Newest entries are at the END of the list (append order).

        Args:
            ledger: List of ledger entries to prune
            max_entries: Maximum entries to keep
            max_age_days: Optional age-based retention window in days
            now_utc: Optional current time override for deterministic tests

        Returns:
            The pruned ledger list (same object, modified in place)
        """
        if max_age_days is not None and max_age_days > 0:
            cutoff = (now_utc or dt_now_utc()) - timedelta(days=max_age_days)
            retained: list[LedgerEntry] = []
            for entry in ledger:
                parsed = dt_parse(entry.get(const.DATA_LEDGER_TIMESTAMP))
                # Entries with unreadable timestamps are kept
                if parsed is None or parsed >= cutoff:
                    retained.append(entry)
            if len(retained) != len(ledger):
                ledger[:] = retained

        if len(ledger) > max_entries:
            del ledger[: len(ledger) - max_entries]
        return ledger

    # =========================================================================
    # Shop
    # =========================================================================

    @staticmethod
    def apply_shop_item(
        user: UserData,
        item: ShopItem,
        max_ledger_entries: int = DEFAULT_MAX_LEDGER_ENTRIES,
        max_ledger_age_days: int | None = None,
    ) -> int | None:
        """Apply a completed shop purchase to the user's balances.

        - purchase: credits `pellet_count` pellets of `pellet_type`
        - erase: credits `pellet_count` negative pellets. The tagged events stay
          in history; erase is a balance credit, not event deletion.
        - donation: no balance change

        Args:
            user: User dict (mutated for purchase/erase)
            item: Validated shop catalog entry
            max_ledger_entries: Ledger size cap
            max_ledger_age_days: Ledger age limit in days (None or 0 keeps all)

        Returns:
            New balance of the credited pellet type, or None for donations
        """
        item_type = item.get(const.DATA_SHOP_ITEM_TYPE)
        item_id = item.get(const.DATA_SHOP_ITEM_ID)

        if item_type == const.SHOP_ITEM_TYPE_DONATION:
            const.LOGGER.debug(
                "EconomyEngine.apply_shop_item: donation %s for user %s",
                item_id,
                user.get(const.DATA_USER_ID),
            )
            return None

        if item_type == const.SHOP_ITEM_TYPE_ERASE:
            pellet_type = const.PELLET_TYPE_NEGATIVE
            source = const.LEDGER_SOURCE_ERASE
        else:
            pellet_type = item.get(const.DATA_SHOP_ITEM_PELLET_TYPE) or (
                const.PELLET_TYPE_NEGATIVE
            )
            source = const.LEDGER_SOURCE_PURCHASE

        return EconomyEngine.credit(
            user,
            pellet_type,
            item.get(const.DATA_SHOP_ITEM_PELLET_COUNT),  # type: ignore[arg-type]
            source=source,
            reference_id=item_id,
            max_ledger_entries=max_ledger_entries,
            max_ledger_age_days=max_ledger_age_days,
        )

    @staticmethod
    def categorize_package(identifier: str) -> str:
        """Classify a purchase provider package identifier.

        Examples:
            categorize_package("pellet_neg_10") → "purchase_neg"
            categorize_package("pellet_pos_5") → "purchase_pos"
            categorize_package("erase_1") → "erase"
            categorize_package("tip_jar") → "donation"
        """
        if identifier.startswith(const.SHOP_PACKAGE_PREFIX_NEGATIVE):
            return const.SHOP_CATEGORY_PURCHASE_NEGATIVE
        if identifier.startswith(const.SHOP_PACKAGE_PREFIX_POSITIVE):
            return const.SHOP_CATEGORY_PURCHASE_POSITIVE
        if identifier.startswith(const.SHOP_PACKAGE_PREFIX_ERASE):
            return const.SHOP_CATEGORY_ERASE
        return const.SHOP_CATEGORY_DONATION

    @staticmethod
    def pellet_count_from_identifier(identifier: str) -> int:
        """Extract the trailing pellet count from a package identifier.

        Examples:
            pellet_count_from_identifier("pellet_neg_25") → 25
            pellet_count_from_identifier("donation_small") → 0
        """
        match = _TRAILING_DIGITS.search(identifier)
        return int(match.group(1)) if match else 0
