"""Fan-out dispatcher for connection loop events.

Multiplexes one event stream to N async observers, each error-isolated.
One observer failing does not affect the others or the session.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Generic, TypeVar

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Fanout(Generic[T]):
    """Delivers each event to all registered observers in registration order."""

    def __init__(self, name: str = "event") -> None:
        self._name = name
        self._observers: list[Callable[[T], Awaitable[None]]] = []

    def add(self, callback: Callable[[T], Awaitable[None]]) -> None:
        """Register an async observer."""
        self._observers.append(callback)

    def has_observers(self) -> bool:
        return len(self._observers) > 0

    async def publish(self, event: T) -> None:
        """Dispatch *event* to every observer.

        If an observer raises, the exception is logged and the remaining
        observers still receive the event.
        """
        for observer in list(self._observers):
            try:
                await observer(event)
            except Exception:
                logger.warning("Observer %s failed for %s", observer, self._name, exc_info=True)
