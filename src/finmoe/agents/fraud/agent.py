"""Fraud Agent - fraud indicators for claims and transactions."""

from typing import Any, Dict

from finmoe.agents import parsing
from finmoe.agents.base import ExpertAgent
from finmoe.agents.fraud.schema import FraudAnalysis
from finmoe.common.constants import WorkerConstants
from finmoe.common.exceptions import ParseError
from finmoe.core.types import Specialization
from finmoe.data.schemas.request import Request


class FraudAgent(ExpertAgent):
    """Fraud Detection Expert."""

    specialization = Specialization.FRAUD
    worker_id = WorkerConstants.FRAUD_AGENT_ID
    result_type = FraudAnalysis
    MAX_TOKENS = 400
    TEMPERATURE = 0.2

    def build_prompt(self, request: Request) -> str:
        return f"""You are a Fraud Detection Expert Agent. Analyze this request for potential fraud indicators.

Request:
{self._render_request(request)}

Analyze for:
1. Unusual patterns
2. Risk indicators
3. Fraud probability (0-100%)
4. Recommended action

Respond in JSON format with: fraud_probability, risk_level, indicators, confidence, recommended_action"""

    @classmethod
    def _from_structured(cls, text: str, data: Dict[str, Any]) -> FraudAnalysis:
        probability = parsing.normalize_probability(
            parsing.first_present(data, ("fraud_probability", "probability", "fraud_score"))
        )
        if probability is None:
            raise ParseError("Fraud JSON carries no fraud probability")

        action = parsing.as_text(data.get("recommended_action"))
        return FraudAnalysis(
            worker_id=cls.worker_id,
            fraud_probability=probability,
            risk_level=parsing.normalize_risk_level(data.get("risk_level")),
            recommended_action=action,
            score=round(probability * 100, 1),
            **cls._common_fields(text, data),
        )

    @classmethod
    def _from_text(cls, text: str) -> FraudAnalysis:
        probability = parsing.find_fraud_probability(text)
        fields = cls._text_fields(text)
        if probability is not None:
            fields["score"] = round(probability * 100, 1)
        return FraudAnalysis(
            worker_id=cls.worker_id,
            fraud_probability=probability,
            risk_level=parsing.find_risk_level(text),
            **fields,
        )
