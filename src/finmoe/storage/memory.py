"""Request, worker and log persistence.

The lifecycle manager only talks to the ``Storage`` interface. The
in-memory backend keeps a bounded history of requests (oldest evicted
first) and a bounded ring of system log entries.

Storage enforces the request invariants itself: status only moves
forward and ``assigned_agents`` is written once.
"""

from abc import ABC, abstractmethod
from collections import OrderedDict, deque
from typing import Any, Dict, Iterable, List, Optional
import logging

from pydantic import ValidationError as PydanticValidationError

from finmoe.common.constants import StorageConstants
from finmoe.common.exceptions import (
    InvalidTransitionError,
    RequestNotFoundError,
    UnknownWorkerError,
    ValidationError,
)
from finmoe.core.types import RequestStatus, can_transition
from finmoe.data.schemas.request import Request
from finmoe.data.schemas.system_log import SystemLog
from finmoe.data.schemas.worker import Worker

logger = logging.getLogger(__name__)

_MUTABLE_REQUEST_FIELDS = {"status", "processing_time", "assigned_agents"}
_IMMUTABLE_WORKER_FIELDS = {"id", "specialization"}


class Storage(ABC):
    """Abstract persistence backend."""

    @abstractmethod
    def get_workers(self) -> List[Worker]:
        """All workers in registration order."""

    @abstractmethod
    def update_worker(self, worker_id: str, **changes: Any) -> Worker:
        """Apply a partial update to a worker.

        Raises:
            UnknownWorkerError: worker was never registered
            ValidationError: immutable field or inconsistent snapshot
        """

    @abstractmethod
    def add_request(self, request: Request) -> Request:
        """Store a new request."""

    @abstractmethod
    def update_request(self, request_id: str, **changes: Any) -> Request:
        """Apply a partial update to a request.

        Raises:
            RequestNotFoundError: unknown or evicted request
            InvalidTransitionError: backwards status move or reassignment
        """

    @abstractmethod
    def get_request(self, request_id: str) -> Optional[Request]:
        """A request by id, or None."""

    @abstractmethod
    def get_requests(self) -> List[Request]:
        """Recent requests, newest first."""

    @abstractmethod
    def append_log(self, entry: SystemLog) -> SystemLog:
        """Append a system log entry."""

    @abstractmethod
    def get_logs(self, limit: int = StorageConstants.DEFAULT_LOG_PAGE) -> List[SystemLog]:
        """Most recent log entries, oldest first."""


class InMemoryStorage(Storage):
    """Process-local storage backend."""

    def __init__(
        self,
        workers: Iterable[Worker] = (),
        max_requests: int = StorageConstants.MAX_REQUEST_HISTORY,
        max_logs: int = StorageConstants.MAX_LOG_HISTORY,
    ):
        self._workers: "OrderedDict[str, Worker]" = OrderedDict((w.id, w) for w in workers)
        self._requests: "OrderedDict[str, Request]" = OrderedDict()
        self._logs: deque = deque(maxlen=max_logs)
        self._max_requests = max_requests

    def register_worker(self, worker: Worker) -> Worker:
        self._workers[worker.id] = worker
        return worker

    def get_workers(self) -> List[Worker]:
        return list(self._workers.values())

    def update_worker(self, worker_id: str, **changes: Any) -> Worker:
        current = self._workers.get(worker_id)
        if current is None:
            raise UnknownWorkerError(worker_id)

        rejected = (set(changes) - set(Worker.model_fields)) | (set(changes) & _IMMUTABLE_WORKER_FIELDS)
        if rejected:
            raise ValidationError(
                f"Fields {sorted(rejected)} cannot be updated",
                details={"worker_id": worker_id},
            )

        try:
            updated = Worker.model_validate(
                {**current.model_dump(exclude={"is_scaling"}), **changes}
            )
        except PydanticValidationError as e:
            raise ValidationError(
                f"Invalid update for worker {worker_id}",
                details={"errors": e.errors(include_url=False)},
            ) from e
        self._workers[worker_id] = updated
        return updated

    def add_request(self, request: Request) -> Request:
        if request.id in self._requests:
            raise ValidationError(
                f"Request {request.id} already exists", details={"request_id": request.id}
            )
        self._requests[request.id] = request
        while len(self._requests) > self._max_requests:
            evicted_id, _ = self._requests.popitem(last=False)
            logger.debug(f"Evicted request {evicted_id} from history")
        return request

    def update_request(self, request_id: str, **changes: Any) -> Request:
        current = self._requests.get(request_id)
        if current is None:
            raise RequestNotFoundError(request_id)

        unknown = set(changes) - _MUTABLE_REQUEST_FIELDS
        if unknown:
            raise ValidationError(
                f"Fields {sorted(unknown)} cannot be updated",
                details={"request_id": request_id},
            )

        status = changes.get("status")
        if status is not None:
            status = RequestStatus(status)
            if not can_transition(current.status, status):
                raise InvalidTransitionError(request_id, current.status.value, status.value)
            changes["status"] = status

        agents = changes.get("assigned_agents")
        if agents is not None:
            agents = list(agents)
            if current.assigned_agents and agents != current.assigned_agents:
                raise InvalidTransitionError(
                    request_id,
                    current.status.value,
                    current.status.value,
                    details={"reason": "assigned_agents already set"},
                )
            changes["assigned_agents"] = agents

        processing_time = changes.get("processing_time")
        if processing_time is not None and processing_time < 0:
            raise ValidationError(
                "processing_time must be non-negative",
                details={"request_id": request_id, "processing_time": processing_time},
            )

        updated = current.model_copy(update=changes)
        self._requests[request_id] = updated
        return updated

    def get_request(self, request_id: str) -> Optional[Request]:
        return self._requests.get(request_id)

    def get_requests(self) -> List[Request]:
        return list(reversed(self._requests.values()))

    def append_log(self, entry: SystemLog) -> SystemLog:
        self._logs.append(entry)
        return entry

    def get_logs(self, limit: int = StorageConstants.DEFAULT_LOG_PAGE) -> List[SystemLog]:
        if limit <= 0:
            return []
        return list(self._logs)[-limit:]
