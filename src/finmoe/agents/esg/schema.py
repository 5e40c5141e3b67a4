"""ESG Agent Output Schema."""

from typing import Literal, Optional

from pydantic import Field

from finmoe.agents.schema import AnalysisResult
from finmoe.core.types import Specialization


class ESGAnalysis(AnalysisResult):
    """Output from the ESG Agent."""

    specialization: Literal[Specialization.ESG] = Specialization.ESG
    environmental_score: Optional[float] = Field(default=None, ge=0.0, le=100.0)
    social_score: Optional[float] = Field(default=None, ge=0.0, le=100.0)
    governance_score: Optional[float] = Field(default=None, ge=0.0, le=100.0)
    overall_rating: Optional[str] = None

    @property
    def pillar_mean(self) -> Optional[float]:
        """Mean of the pillar scores that were reported."""
        pillars = [
            s for s in (self.environmental_score, self.social_score, self.governance_score)
            if s is not None
        ]
        if not pillars:
            return None
        return sum(pillars) / len(pillars)

    def has_signals(self) -> bool:
        return self.pillar_mean is not None or self.overall_rating is not None
