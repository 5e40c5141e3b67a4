"""Credit Agent - credit risk assessment for loan and credit requests."""

from typing import Any, Dict, Optional

from finmoe.agents import parsing
from finmoe.agents.base import ExpertAgent
from finmoe.agents.credit.schema import CreditAnalysis
from finmoe.common.constants import ParsingConstants, WorkerConstants
from finmoe.common.exceptions import ParseError
from finmoe.core.types import Specialization
from finmoe.data.schemas.request import Request


class CreditAgent(ExpertAgent):
    """Credit Check Expert."""

    specialization = Specialization.CREDIT
    worker_id = WorkerConstants.CREDIT_AGENT_ID
    result_type = CreditAnalysis
    MAX_TOKENS = 400
    TEMPERATURE = 0.3

    def build_prompt(self, request: Request) -> str:
        return f"""You are a Credit Check Expert Agent. Analyze this request for credit risk assessment.

Request:
{self._render_request(request)}

Please provide:
1. A credit score recommendation (300-850)
2. Risk level (Low/Medium/High)
3. Key factors influencing the decision
4. Confidence level (0-100%)

Respond in JSON format with: score, risk_level, key_factors, confidence, reasoning"""

    @classmethod
    def _from_structured(cls, text: str, data: Dict[str, Any]) -> CreditAnalysis:
        raw_score = parsing.coerce_number(
            parsing.first_present(data, ("credit_score", "score"))
        )
        credit_score: Optional[int] = None
        if parsing.is_credit_score(raw_score):
            credit_score = int(round(raw_score))
        risk_level = parsing.normalize_risk_level(
            parsing.first_present(data, ("risk_level", "risk", "risk_assessment"))
        )
        if credit_score is None and risk_level is None:
            raise ParseError("Credit JSON carries neither a score nor a risk level")

        return CreditAnalysis(
            worker_id=cls.worker_id,
            credit_score=credit_score,
            risk_level=risk_level,
            score=raw_score if raw_score is not None else ParsingConstants.DEFAULT_SCORE,
            **cls._common_fields(text, data),
        )

    @classmethod
    def _from_text(cls, text: str) -> CreditAnalysis:
        credit_score = parsing.find_credit_score(text)
        if credit_score is None:
            found = parsing.find_score(text)
            if parsing.is_credit_score(found):
                credit_score = found
        return CreditAnalysis(
            worker_id=cls.worker_id,
            credit_score=credit_score,
            risk_level=parsing.find_risk_level(text),
            **cls._text_fields(text),
        )
