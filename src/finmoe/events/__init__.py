"""Event publication."""

from finmoe.events.sink import Event, EventSink, InMemoryEventSink, LoggingEventSink

__all__ = ["Event", "EventSink", "InMemoryEventSink", "LoggingEventSink"]
