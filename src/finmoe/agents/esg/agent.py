"""ESG Agent - environmental, social and governance evaluation."""

from typing import Any, Dict, Optional

from finmoe.agents import parsing
from finmoe.agents.base import ExpertAgent
from finmoe.agents.esg.schema import ESGAnalysis
from finmoe.common.constants import WorkerConstants
from finmoe.common.exceptions import ParseError
from finmoe.core.types import Specialization
from finmoe.data.schemas.request import Request

PILLARS = ("environmental", "social", "governance")


def _pillar(value: Any) -> Optional[float]:
    number = parsing.coerce_number(value)
    if number is None or not 0 <= number <= 100:
        return None
    return number


class ESGAgent(ExpertAgent):
    """ESG Analysis Expert."""

    specialization = Specialization.ESG
    worker_id = WorkerConstants.ESG_AGENT_ID
    result_type = ESGAnalysis
    MAX_TOKENS = 500
    TEMPERATURE = 0.4

    def build_prompt(self, request: Request) -> str:
        return f"""You are an ESG (Environmental, Social, Governance) Analysis Expert Agent. Evaluate this request for ESG factors.

Request:
{self._render_request(request)}

Provide ESG assessment:
1. Environmental score (0-100)
2. Social score (0-100)
3. Governance score (0-100)
4. Overall ESG rating
5. Key strengths and concerns

Respond in JSON format with: environmental_score, social_score, governance_score, overall_rating, confidence, key_findings"""

    @classmethod
    def _from_structured(cls, text: str, data: Dict[str, Any]) -> ESGAnalysis:
        pillars = {
            name: _pillar(parsing.first_present(data, (f"{name}_score", name)))
            for name in PILLARS
        }
        rating = parsing.as_text(parsing.first_present(data, ("overall_rating", "rating")))
        if rating is None and all(v is None for v in pillars.values()):
            raise ParseError("ESG JSON carries neither pillar scores nor a rating")

        result = ESGAnalysis(
            worker_id=cls.worker_id,
            environmental_score=pillars["environmental"],
            social_score=pillars["social"],
            governance_score=pillars["governance"],
            overall_rating=rating,
            **cls._common_fields(text, data),
        )
        if result.pillar_mean is not None:
            result = result.model_copy(update={"score": round(result.pillar_mean)})
        return result

    @classmethod
    def _from_text(cls, text: str) -> ESGAnalysis:
        pillars = parsing.find_esg_pillars(text)
        result = ESGAnalysis(
            worker_id=cls.worker_id,
            environmental_score=pillars.get("environmental"),
            social_score=pillars.get("social"),
            governance_score=pillars.get("governance"),
            overall_rating=parsing.find_esg_rating(text),
            **cls._text_fields(text),
        )
        if result.pillar_mean is not None:
            result = result.model_copy(update={"score": round(result.pillar_mean)})
        return result
