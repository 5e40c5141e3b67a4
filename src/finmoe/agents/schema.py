"""Expert Output Schema - fields shared by every specialization.

Each specialization defines a tagged variant with explicit optional
domain fields in its own ``schema`` module. Downstream code reads those
fields and never branches on raw, untyped provider output.
"""

from datetime import datetime, timezone

from pydantic import BaseModel, Field

from finmoe.common.constants import ParsingConstants
from finmoe.core.types import Specialization


class AnalysisResult(BaseModel):
    """Fields every expert produces."""

    specialization: Specialization
    worker_id: str = Field(..., description="Worker that produced the analysis")
    analysis: str = Field(..., description="Raw model text")
    processed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    processing_time: float = Field(default=0.0, ge=0.0, description="Seconds")
    score: float = Field(
        default=ParsingConstants.DEFAULT_SCORE,
        description="Headline score; the fixed default when nothing was extracted"
    )
    confidence: float = Field(default=ParsingConstants.DEFAULT_CONFIDENCE, ge=0.0, le=100.0)
    reasoning: str = Field(default="Analysis completed")
    structured: bool = Field(
        default=False, description="True when the response decoded as JSON"
    )
    is_stub: bool = Field(
        default=False, description="Produced under the kill switch, no provider call made"
    )

    def has_signals(self) -> bool:
        """Whether any decision-relevant domain field was extracted."""
        return False
