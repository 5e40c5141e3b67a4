"""Core types and enums."""

from enum import Enum


class Specialization(str, Enum):
    """Expert specializations, one worker each."""
    CREDIT = "credit"
    FRAUD = "fraud"
    ESG = "esg"


class WorkerStatus(str, Enum):
    """Worker status derived from load and queue."""
    IDLE = "idle"
    PROCESSING = "processing"
    OVERLOADED = "overloaded"


class Priority(str, Enum):
    """Request priority."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class RequestStatus(str, Enum):
    """Request lifecycle states.

    Transitions are monotonic: pending -> processing -> completed | failed.
    """
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (RequestStatus.COMPLETED, RequestStatus.FAILED)


_STATUS_ORDER = {
    RequestStatus.PENDING: 0,
    RequestStatus.PROCESSING: 1,
    RequestStatus.COMPLETED: 2,
    RequestStatus.FAILED: 2,
}


def can_transition(current: RequestStatus, target: RequestStatus) -> bool:
    """Whether a request may move from ``current`` to ``target``.

    Staying in place is allowed for non-terminal states so partial
    updates that do not touch the status stay valid.
    """
    if current.is_terminal:
        return current == target
    return _STATUS_ORDER[target] >= _STATUS_ORDER[current]


class Verdict(str, Enum):
    """Final aggregated decision."""
    APPROVED = "Approved"
    DECLINED = "Declined"


class LogLevel(str, Enum):
    """Levels of the pipeline's domain log trail."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    SUCCESS = "success"


class EventType(str, Enum):
    """Event names published to the event sink."""
    NEW_REQUEST = "new_request"
    REQUEST_UPDATED = "request_updated"
    AGENT_UPDATED = "agent_updated"
    NEW_LOG = "new_log"
