"""Shared fixtures for pellet progression tests."""

from __future__ import annotations

from typing import Any

import pytest

from pellet_progression import const
from pellet_progression.managers import ProgressionManager
from pellet_progression.store import MemoryStore


@pytest.fixture
def store() -> MemoryStore:
    """Empty in-memory repository."""
    return MemoryStore()


@pytest.fixture
def manager(store: MemoryStore) -> ProgressionManager:
    """Manager over the empty store with built-in catalogs and default options."""
    return ProgressionManager(store)


@pytest.fixture
def signal_log(manager: ProgressionManager) -> list[tuple[str, dict[str, Any]]]:
    """Record every signal the manager emits, in emission order."""
    log: list[tuple[str, dict[str, Any]]] = []
    for suffix in (
        const.SIGNAL_SUFFIX_PELLET_TAGGED,
        const.SIGNAL_SUFFIX_BALANCE_CHANGED,
        const.SIGNAL_SUFFIX_LEVEL_UP,
        const.SIGNAL_SUFFIX_BADGE_EARNED,
    ):
        manager.listen(
            suffix, lambda payload, suffix=suffix: log.append((suffix, payload))
        )
    return log
