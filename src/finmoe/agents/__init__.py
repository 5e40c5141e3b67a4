"""Expert agents for FinMoE."""

from finmoe.agents.base import ExpertAgent
from finmoe.agents.schema import AnalysisResult
from finmoe.agents.credit.agent import CreditAgent
from finmoe.agents.credit.schema import CreditAnalysis
from finmoe.agents.fraud.agent import FraudAgent
from finmoe.agents.fraud.schema import FraudAnalysis
from finmoe.agents.esg.agent import ESGAgent
from finmoe.agents.esg.schema import ESGAnalysis
from finmoe.agents.registry import AGENT_CLASSES, agent_class_for, parse_analysis

__all__ = [
    "ExpertAgent",
    "AnalysisResult",
    "CreditAgent",
    "CreditAnalysis",
    "FraudAgent",
    "FraudAnalysis",
    "ESGAgent",
    "ESGAnalysis",
    "AGENT_CLASSES",
    "agent_class_for",
    "parse_analysis",
]
