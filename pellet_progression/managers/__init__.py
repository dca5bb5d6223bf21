"""Manager modules for the pellet progression engine.

Managers orchestrate workflows and coordinate between engines.
They are stateful, event-aware, and own persistence ordering.
"""

from .base_manager import BaseManager
from .progression_manager import ProgressionManager

__all__ = [
    "BaseManager",
    "ProgressionManager",
]
