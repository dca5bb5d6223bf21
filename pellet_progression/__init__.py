"""Pellet progression and scoring engine.

Turns a stream of license-plate tagging events into pellet balances,
experience levels, badges and trend statistics.
"""

from .catalog import load_badge_catalog, load_shop_catalog
from .config import validate_options
from .engines import (
    EconomyEngine,
    GamificationEngine,
    ProgressionEngine,
    StatisticsEngine,
)
from .exceptions import (
    CatalogValidationError,
    EntityValidationError,
    InsufficientBalanceError,
    InvalidAmountError,
    PelletProgressionError,
    UserNotFoundError,
)
from .managers import ProgressionManager
from .store import MemoryStore, PelletRepository

__all__ = [
    "CatalogValidationError",
    "EconomyEngine",
    "EntityValidationError",
    "GamificationEngine",
    "InsufficientBalanceError",
    "InvalidAmountError",
    "MemoryStore",
    "PelletProgressionError",
    "PelletRepository",
    "ProgressionEngine",
    "ProgressionManager",
    "StatisticsEngine",
    "UserNotFoundError",
    "load_badge_catalog",
    "load_shop_catalog",
    "validate_options",
]
