"""Expert registry - worker id to agent class."""

from typing import Dict, Type

from finmoe.agents.base import ExpertAgent
from finmoe.agents.credit.agent import CreditAgent
from finmoe.agents.esg.agent import ESGAgent
from finmoe.agents.fraud.agent import FraudAgent
from finmoe.agents.schema import AnalysisResult
from finmoe.common.exceptions import UnknownWorkerError
from finmoe.core.types import Specialization

AGENT_CLASSES: Dict[str, Type[ExpertAgent]] = {
    CreditAgent.worker_id: CreditAgent,
    FraudAgent.worker_id: FraudAgent,
    ESGAgent.worker_id: ESGAgent,
}

_BY_SPECIALIZATION: Dict[Specialization, Type[ExpertAgent]] = {
    cls.specialization: cls for cls in AGENT_CLASSES.values()
}


def agent_class_for(worker_id: str) -> Type[ExpertAgent]:
    """Agent class for a worker id.

    Raises:
        UnknownWorkerError: no expert handles this worker id
    """
    try:
        return AGENT_CLASSES[worker_id]
    except KeyError:
        raise UnknownWorkerError(worker_id) from None


def parse_analysis(specialization: Specialization, text: str) -> AnalysisResult:
    """Parse raw model text into the specialization's tagged variant."""
    return _BY_SPECIALIZATION[Specialization(specialization)].parse(text)
