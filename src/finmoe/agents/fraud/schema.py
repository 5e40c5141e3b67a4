"""Fraud Agent Output Schema."""

from typing import Literal, Optional

from pydantic import Field

from finmoe.agents.schema import AnalysisResult
from finmoe.core.types import Specialization


class FraudAnalysis(AnalysisResult):
    """Output from the Fraud Agent.

    ``fraud_probability`` is always on a 0-1 scale, whatever the model wrote.
    """

    specialization: Literal[Specialization.FRAUD] = Specialization.FRAUD
    fraud_probability: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    risk_level: Optional[Literal["low", "medium", "high"]] = None
    recommended_action: Optional[str] = None

    def has_signals(self) -> bool:
        return self.fraud_probability is not None
