"""Inbound API - request submission and system views."""

from finmoe.api.schemas import SubmitRequest, SubmitResponse, SystemStatusResponse
from finmoe.api.service import DispatchService, create_service

__all__ = [
    "SubmitRequest",
    "SubmitResponse",
    "SystemStatusResponse",
    "DispatchService",
    "create_service",
]
