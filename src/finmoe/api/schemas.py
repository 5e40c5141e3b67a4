"""API Schemas - inbound submit and system views."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from finmoe.core.types import Priority, RequestStatus


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================

class SubmitRequest(BaseModel):
    """Inbound submission: a request type label, a priority, optional data."""
    type: str = Field(..., min_length=1, max_length=200, description="Request type label")
    priority: Priority = Field(default=Priority.MEDIUM)
    payload: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("type")
    @classmethod
    def _strip_type(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("type must not be blank")
        return value

    model_config = {
        "json_schema_extra": {
            "example": {
                "type": "Loan Application",
                "priority": "high",
                "payload": {"amount": 25000, "term_months": 36},
            }
        }
    }


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class SubmitResponse(BaseModel):
    """Acknowledgement: processing continues in the background."""
    request_id: str = Field(..., description="Identifier to follow the request")
    status: RequestStatus = Field(default=RequestStatus.PENDING)
    accepted_at: datetime = Field(...)


class SystemStatusResponse(BaseModel):
    """Snapshot of workers, recent requests and metrics."""
    kill_switch: bool
    force_fallback_routing: bool
    in_flight: int = Field(..., ge=0)
    workers: List[Dict[str, Any]]
    recent_requests: List[Dict[str, Any]]
    metrics: Dict[str, Any]
    last_decision: Optional[str] = None
