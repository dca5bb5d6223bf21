# File: store.py
"""Persistence boundary for the pellet progression engine.

The engines never touch storage. Managers talk to a `PelletRepository`,
an async protocol any backend (SQL, document store, RPC) can implement.
`MemoryStore` is the in-process implementation used by tests and local runs.
"""

from __future__ import annotations

import copy
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from . import const
from .engines.gamification_engine import normalize_plate

if TYPE_CHECKING:
    from .type_defs import PelletData, UserData


@runtime_checkable
class PelletRepository(Protocol):
    """Async storage interface used by ProgressionManager.

    Users are loaded and saved as whole records. Pellet events are append-only.
    """

    async def load_user(self, user_id: str) -> UserData | None:
        """Return the user record, or None if unknown."""

    async def save_user(self, user: UserData) -> None:
        """Insert or replace the user record."""

    async def fetch_events_for_user(self, user_id: str) -> list[PelletData]:
        """Return events created by the user, oldest first."""

    async def fetch_events_for_plate(self, license_plate: str) -> list[PelletData]:
        """Return events targeting the plate (case-insensitive), oldest first."""

    async def append_event(self, pellet: PelletData) -> None:
        """Append a new event to the log."""

    async def record_tag(self, user: UserData, pellet: PelletData) -> None:
        """Save the debited user and append its new event as one write.

        Either both are stored or neither is.
        """

    async def fetch_all_events(self) -> list[PelletData]:
        """Return the whole event log, oldest first."""

    async def fetch_all_users(self) -> list[UserData]:
        """Return every user record."""


class MemoryStore:
    """In-memory PelletRepository.

    Records are deep-copied on the way in and out so callers never share
    mutable state with the store; a failed operation that mutated its copy
    leaves the stored record untouched.
    """

    def __init__(
        self,
        users: list[UserData] | None = None,
        events: list[PelletData] | None = None,
    ) -> None:
        """Initialize the store, optionally seeded with users and events."""
        self._users: dict[str, UserData] = {}
        self._events: list[PelletData] = []
        for user in users or []:
            self._users[user[const.DATA_USER_ID]] = copy.deepcopy(user)
        for pellet in events or []:
            self._events.append(copy.deepcopy(pellet))

    async def load_user(self, user_id: str) -> UserData | None:
        user = self._users.get(user_id)
        return copy.deepcopy(user) if user is not None else None

    async def save_user(self, user: UserData) -> None:
        self._users[user[const.DATA_USER_ID]] = copy.deepcopy(user)
        const.LOGGER.debug("MemoryStore: saved user %s", user[const.DATA_USER_ID])

    async def fetch_events_for_user(self, user_id: str) -> list[PelletData]:
        return [
            copy.deepcopy(pellet)
            for pellet in self._events
            if pellet.get(const.DATA_PELLET_CREATED_BY) == user_id
        ]

    async def fetch_events_for_plate(self, license_plate: str) -> list[PelletData]:
        plate = normalize_plate(license_plate)
        return [
            copy.deepcopy(pellet)
            for pellet in self._events
            if normalize_plate(pellet.get(const.DATA_PELLET_TARGET_LICENSE_PLATE))
            == plate
        ]

    async def append_event(self, pellet: PelletData) -> None:
        self._events.append(copy.deepcopy(pellet))

    async def record_tag(self, user: UserData, pellet: PelletData) -> None:
        stored_user = copy.deepcopy(user)
        stored_pellet = copy.deepcopy(pellet)
        self._users[stored_user[const.DATA_USER_ID]] = stored_user
        self._events.append(stored_pellet)
        const.LOGGER.debug(
            "MemoryStore: recorded pellet %s for user %s",
            stored_pellet[const.DATA_PELLET_ID],
            stored_user[const.DATA_USER_ID],
        )

    async def fetch_all_events(self) -> list[PelletData]:
        return copy.deepcopy(self._events)

    async def fetch_all_users(self) -> list[UserData]:
        return [copy.deepcopy(user) for user in self._users.values()]
