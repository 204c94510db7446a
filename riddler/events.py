"""
Event Log - RiddleSolved notifications.

Keeps a bounded in-memory history (newest last) and fans each event out
to subscribers. A failing subscriber is logged and skipped; the state
change that produced the event has already happened.
"""

import time
import logging
from dataclasses import dataclass, field, asdict
from typing import Callable

from .constitution import REGISTRY_LAWS

logger = logging.getLogger("riddler.events")


@dataclass(frozen=True)
class RiddleSolved:
    riddle_id: int
    solver: str = ""
    timestamp: float = field(default_factory=time.time)

    name = "RiddleSolved"

    def to_dict(self) -> dict:
        return {"event": self.name, **asdict(self)}


class EventLog:
    """Notification channel between the registry and whoever listens."""

    def __init__(self, max_history: int = REGISTRY_LAWS.MAX_EVENT_HISTORY):
        self._history: list[RiddleSolved] = []
        self._subscribers: list[Callable[[RiddleSolved], None]] = []
        self._max_history = max_history
        self.emitted = 0

    def subscribe(self, fn: Callable[[RiddleSolved], None]):
        self._subscribers.append(fn)

    def unsubscribe(self, fn: Callable[[RiddleSolved], None]):
        if fn in self._subscribers:
            self._subscribers.remove(fn)

    def emit(self, event: RiddleSolved):
        self._history.append(event)
        self.emitted += 1
        if len(self._history) > self._max_history:
            self._history = self._history[-self._max_history:]
        logger.info(f"EVENT {event.name}(riddle_id={event.riddle_id})")

        for fn in list(self._subscribers):
            try:
                fn(event)
            except Exception as e:
                logger.error(f"Subscriber {getattr(fn, '__name__', fn)!r} failed on {event.name}: {e}")

    def recent(self, limit: int = 50) -> list[RiddleSolved]:
        return self._history[-limit:] if limit > 0 else []

    def __len__(self) -> int:
        return len(self._history)
