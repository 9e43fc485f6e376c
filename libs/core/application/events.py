"""Synchronous publish/subscribe for lifecycle and connectivity events."""

from __future__ import annotations

import logging
import threading
from collections import defaultdict, deque
from typing import Any, Callable

logger = logging.getLogger(__name__)

Event = dict[str, Any]
EventHandler = Callable[[Event], None]

WILDCARD = "*"

CONNECTIVITY_CHANGED = "connectivity.changed"
ACCIDENT_PENDING = "accident.pending"
ACCIDENT_CONFIRMED = "accident.confirmed"
ACCIDENT_CANCELLED = "accident.cancelled"
ACCIDENT_REARMED = "accident.rearmed"
ACCIDENT_PERSISTENCE_FAILED = "accident.persistence_failed"
ACCIDENT_NOTIFICATION_FAILED = "accident.notification_failed"
VEHICLE_TYPE_CHANGED = "vehicle.type_changed"


class EventBus:
    """Manages event publishing and subscription."""

    def __init__(self) -> None:
        self._subscribers: dict[str, list[EventHandler]] = defaultdict(list)
        self._lock = threading.Lock()

    def subscribe(self, event_type: str, handler: EventHandler) -> None:
        """Subscribe to an event type, or to every event with ``"*"``."""
        with self._lock:
            if handler not in self._subscribers[event_type]:
                self._subscribers[event_type].append(handler)

    def unsubscribe(self, event_type: str, handler: EventHandler) -> None:
        with self._lock:
            handlers = self._subscribers.get(event_type)
            if handlers and handler in handlers:
                handlers.remove(handler)
                if not handlers:
                    del self._subscribers[event_type]

    def publish(self, event_type: str, **fields: Any) -> Event:
        event: Event = {"type": event_type, **fields}
        with self._lock:
            handlers = [
                *self._subscribers.get(event_type, ()),
                *self._subscribers.get(WILDCARD, ()),
            ]

        for handler in handlers:
            try:
                handler(event)
            except Exception:
                logger.exception("Error in event handler for %s", event_type)
        return event


class RecentEventLog:
    """Bounded in-memory record of published events for polling clients."""

    def __init__(self, maxlen: int = 200) -> None:
        self._events: deque[Event] = deque(maxlen=maxlen)
        self._lock = threading.Lock()

    def __call__(self, event: Event) -> None:
        with self._lock:
            self._events.append(dict(event))

    def list(self, limit: int | None = None) -> list[Event]:
        with self._lock:
            events = list(self._events)
        if limit is not None:
            return events[-limit:] if limit > 0 else []
        return events

    def clear(self) -> None:
        with self._lock:
            self._events.clear()
