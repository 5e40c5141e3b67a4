"""Credit Agent Output Schema."""

from typing import Literal, Optional

from pydantic import Field

from finmoe.agents.schema import AnalysisResult
from finmoe.core.types import Specialization


class CreditAnalysis(AnalysisResult):
    """Output from the Credit Agent.

    ``credit_score`` is only set for values in the 300-850 range.
    """

    specialization: Literal[Specialization.CREDIT] = Specialization.CREDIT
    credit_score: Optional[int] = Field(default=None, ge=300, le=850)
    risk_level: Optional[Literal["low", "medium", "high"]] = None

    model_config = {
        "json_schema_extra": {
            "example": {
                "worker_id": "credit-agent",
                "analysis": "{\"score\": 712, \"risk_level\": \"Low\", \"confidence\": 82}",
                "score": 712,
                "credit_score": 712,
                "risk_level": "low",
                "confidence": 82,
                "structured": True,
            }
        }
    }

    def has_signals(self) -> bool:
        return self.credit_score is not None or self.risk_level is not None
