"""Exception hierarchy for the pellet progression engine.

These exceptions represent business-rule violations and configuration defects.
They carry no UI or transport types so that any caller (RPC handler, UI layer,
test) can map them to its own error surface.

Mapping cheatsheet
------------------
- InsufficientBalanceError: recoverable, surface as "buy more pellets"
- InvalidAmountError: caller defect, log and reject
- CatalogValidationError: bad catalog/options, fail at load time
- EntityValidationError: invalid user or pellet input
- UserNotFoundError: repository has no such user
"""

from __future__ import annotations


class PelletProgressionError(Exception):
    """Base class for all engine errors."""


class InsufficientBalanceError(PelletProgressionError):
    """Raised when a debit would result in a negative balance.

    Attributes:
        user_id: The user attempting the debit
        pellet_type: Balance that was debited ("negative" or "positive")
        current_balance: Current balance for that pellet type
        requested_amount: Amount attempted to debit
        shortfall: How much more is needed (requested - current)
    """

    def __init__(
        self,
        user_id: str,
        pellet_type: str,
        current_balance: int,
        requested_amount: int,
    ) -> None:
        """Initialize InsufficientBalanceError.

        Args:
            user_id: The user attempting the debit
            pellet_type: Balance that was debited
            current_balance: Current balance for that pellet type
            requested_amount: Amount attempted to debit
        """
        self.user_id = user_id
        self.pellet_type = pellet_type
        self.current_balance = current_balance
        self.requested_amount = requested_amount
        self.shortfall = requested_amount - current_balance
        super().__init__(
            f"Insufficient {pellet_type} pellets for user {user_id}: "
            f"balance={current_balance}, requested={requested_amount}, "
            f"shortfall={self.shortfall}"
        )


class InvalidAmountError(PelletProgressionError, ValueError):
    """Raised when an amount is not a positive integer."""

    def __init__(self, amount: object, operation: str) -> None:
        """Initialize InvalidAmountError.

        Args:
            amount: The rejected value
            operation: Operation that received it (e.g., "debit", "award_exp")
        """
        self.amount = amount
        self.operation = operation
        super().__init__(
            f"{operation} amount must be a positive integer, got {amount!r}"
        )


class CatalogValidationError(PelletProgressionError):
    """Raised when a badge/shop catalog or option set fails validation."""

    def __init__(self, catalog: str, message: str, entry_id: str | None = None) -> None:
        """Initialize CatalogValidationError.

        Args:
            catalog: Which catalog failed ("badges", "shop", "options")
            message: Validation error text
            entry_id: Offending entry id, when known
        """
        self.catalog = catalog
        self.entry_id = entry_id
        location = f" entry '{entry_id}'" if entry_id else ""
        super().__init__(f"Invalid {catalog} catalog{location}: {message}")


class EntityValidationError(PelletProgressionError):
    """Validation error with field-specific information.

    Attributes:
        field: The DATA_* key of the field that failed
        reason: Human-readable explanation
    """

    def __init__(self, field: str, reason: str) -> None:
        """Initialize EntityValidationError.

        Args:
            field: The DATA_* key of the field that failed validation
            reason: Human-readable explanation
        """
        self.field = field
        self.reason = reason
        super().__init__(f"{field}: {reason}")


class UserNotFoundError(PelletProgressionError, LookupError):
    """Raised when the repository has no user with the given id."""

    def __init__(self, user_id: str) -> None:
        """Initialize UserNotFoundError."""
        self.user_id = user_id
        super().__init__(f"User not found: {user_id}")
