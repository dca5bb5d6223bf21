"""Engine modules for the pellet progression engine.

Contains specialized computation engines:
- economy_engine: Pellet balance transactions and ledger management
- progression_engine: Exp awards and the level curve
- gamification_engine: Badge evaluation and awarding
- statistics_engine: Trend summaries and leaderboards
"""

from .economy_engine import EconomyEngine, InsufficientBalanceError
from .gamification_engine import GamificationEngine, normalize_plate
from .progression_engine import ProgressionEngine
from .statistics_engine import StatisticsEngine

__all__ = [
    "EconomyEngine",
    "GamificationEngine",
    "InsufficientBalanceError",
    "ProgressionEngine",
    "StatisticsEngine",
    "normalize_plate",
]
