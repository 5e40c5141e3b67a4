"""System log schema - the pipeline's domain log trail."""

from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from finmoe.core.types import LogLevel


class SystemLog(BaseModel):
    """One entry of the explanatory log trail shown to operators."""
    id: str = Field(default_factory=lambda: f"log_{uuid4().hex[:12]}")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    level: LogLevel = Field(default=LogLevel.INFO)
    message: str = Field(...)
    source: str = Field(..., description="Component that emitted the entry")
    request_id: Optional[str] = Field(default=None, description="Related request, if any")
