"""ESG Agent - module init."""

from finmoe.agents.esg.agent import ESGAgent
from finmoe.agents.esg.schema import ESGAnalysis

__all__ = ["ESGAgent", "ESGAnalysis"]
