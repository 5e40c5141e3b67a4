"""Data schemas - canonical Pydantic definitions."""

from finmoe.data.schemas.request import Request, new_request_id
from finmoe.data.schemas.worker import Worker
from finmoe.data.schemas.system_log import SystemLog

__all__ = [
    "Request",
    "new_request_id",
    "Worker",
    "SystemLog",
]
