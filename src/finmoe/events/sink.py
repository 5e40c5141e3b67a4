"""Event sink - fire-and-forget notifications for live viewers.

Publishing is synchronous and must not block. Delivery failures are the
sink's own problem; callers additionally guard every publish so a
broken sink never fails a request.
"""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel

from finmoe.core.types import EventType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Event:
    """One published notification."""
    type: EventType
    data: Dict[str, Any]
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type.value, "data": self.data, "timestamp": self.timestamp.isoformat()}


def to_payload(data: Any) -> Dict[str, Any]:
    """JSON-ready dict for a pydantic model or a plain mapping."""
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json")
    return dict(data)


class EventSink(ABC):
    """Destination for pipeline events."""

    @abstractmethod
    def publish(self, event_type: EventType, data: Any) -> None:
        """Publish one event. Must not block."""


class LoggingEventSink(EventSink):
    """Writes every event as one JSON log line."""

    def __init__(self, level: int = logging.DEBUG):
        self._level = level

    def publish(self, event_type: EventType, data: Any) -> None:
        event = Event(type=EventType(event_type), data=to_payload(data))
        logger.log(self._level, json.dumps(event.to_dict(), default=str))


class InMemoryEventSink(EventSink):
    """Keeps events in order and fans them out to local subscribers."""

    def __init__(self, max_events: Optional[int] = None):
        self.events: List[Event] = []
        self._max_events = max_events
        self._subscribers: List[Callable[[Event], None]] = []

    def subscribe(self, callback: Callable[[Event], None]) -> None:
        self._subscribers.append(callback)

    def publish(self, event_type: EventType, data: Any) -> None:
        event = Event(type=EventType(event_type), data=to_payload(data))
        self.events.append(event)
        if self._max_events is not None and len(self.events) > self._max_events:
            del self.events[: len(self.events) - self._max_events]

        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception as e:
                logger.error(f"Event subscriber failed on {event.type.value}: {e}")

    def of_type(self, event_type: EventType) -> List[Event]:
        return [e for e in self.events if e.type == event_type]
