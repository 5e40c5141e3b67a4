"""Core types."""

from finmoe.core.types import (
    EventType,
    LogLevel,
    Priority,
    RequestStatus,
    Specialization,
    Verdict,
    WorkerStatus,
    can_transition,
)

__all__ = [
    "EventType",
    "LogLevel",
    "Priority",
    "RequestStatus",
    "Specialization",
    "Verdict",
    "WorkerStatus",
    "can_transition",
]
