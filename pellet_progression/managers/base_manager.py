"""Base manager class for pellet progression managers."""

from __future__ import annotations

from abc import ABC, abstractmethod
import inspect
from typing import TYPE_CHECKING, Any

from .. import const

if TYPE_CHECKING:
    from collections.abc import Callable

    from ..store import PelletRepository


class BaseManager(ABC):
    """Base class for managers with instance-scoped event support.

    Provides:
    - Instance-scoped event emitting (emit)
    - Instance-scoped event listening (listen), returning an unsubscribe callable

    Listeners receive the payload as a single dict argument and may be sync or
    async. A listener that raises is logged and skipped; it never fails the
    operation that emitted the event.

    Subclasses must implement:
    - async_setup(): Subscribe to events, initialize state
    """

    def __init__(self, repository: PelletRepository) -> None:
        """Initialize manager.

        Args:
            repository: Storage backend for users and pellet events
        """
        self.repository = repository
        self._listeners: dict[str, list[Callable[[dict[str, Any]], Any]]] = {}

    async def emit(self, suffix: str, **payload: Any) -> None:
        """Emit an event to every listener of `suffix`, in subscription order.

        Args:
            suffix: Signal suffix constant (e.g., const.SIGNAL_SUFFIX_LEVEL_UP)
            **payload: Event data passed to listeners as one dict

        Example:
            await self.emit(
                const.SIGNAL_SUFFIX_BALANCE_CHANGED,
                user_id=user_id,
                pellet_type="negative",
                old_balance=10,
                new_balance=9,
                delta=-1,
                source="tag",
            )
        """
        listeners = list(self._listeners.get(suffix, ()))
        const.LOGGER.debug(
            "Emitting event '%s' to %d listeners with payload keys: %s",
            suffix,
            len(listeners),
            list(payload.keys()),
        )
        for callback in listeners:
            try:
                result = callback(dict(payload))
                if inspect.isawaitable(result):
                    await result
            except Exception:
                const.LOGGER.exception(
                    "Listener %r failed for event '%s'", callback, suffix
                )

    def listen(
        self, suffix: str, callback: Callable[[dict[str, Any]], Any]
    ) -> Callable[[], None]:
        """Subscribe to an event.

        Args:
            suffix: Signal suffix constant to listen for
            callback: Called with the payload dict; sync or async

        Returns:
            Callable that removes the subscription
        """
        self._listeners.setdefault(suffix, []).append(callback)
        const.LOGGER.debug(
            "Manager %s: listener added for event '%s'",
            self.__class__.__name__,
            suffix,
        )

        def _unsubscribe() -> None:
            callbacks = self._listeners.get(suffix, [])
            if callback in callbacks:
                callbacks.remove(callback)

        return _unsubscribe

    @abstractmethod
    async def async_setup(self) -> None:
        """Set up the manager (subscribe to events, initialize state)."""
