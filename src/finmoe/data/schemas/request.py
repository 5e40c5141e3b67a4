"""Request schema - canonical definition."""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from finmoe.core.types import Priority, RequestStatus


def new_request_id() -> str:
    """Generate a request identifier."""
    return f"req_{uuid4().hex[:12]}"


class Request(BaseModel):
    """Classification request entity.

    ``assigned_agents`` is written once, at routing time. Status only
    moves forward: pending -> processing -> completed | failed.
    """
    id: str = Field(default_factory=new_request_id, description="Request identifier")
    type: str = Field(..., min_length=1, description="Free-text request type label")
    priority: Priority = Field(default=Priority.MEDIUM, description="Request priority")
    status: RequestStatus = Field(default=RequestStatus.PENDING, description="Lifecycle status")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation time"
    )
    processing_time: Optional[float] = Field(
        default=None, ge=0.0, description="Seconds from dispatch to completion"
    )
    assigned_agents: List[str] = Field(
        default_factory=list, description="Worker ids chosen by the router"
    )
    payload: Dict[str, Any] = Field(
        default_factory=dict, description="Application/transaction/company data for the experts"
    )

    model_config = {
        "json_schema_extra": {
            "example": {
                "id": "req_3f9a1c2b7d4e",
                "type": "Loan Application",
                "priority": "high",
                "status": "completed",
                "timestamp": "2026-01-25T10:30:00Z",
                "processing_time": 2.4,
                "assigned_agents": ["credit-agent"],
                "payload": {"amount": 25000, "term_months": 36},
            }
        }
    }
