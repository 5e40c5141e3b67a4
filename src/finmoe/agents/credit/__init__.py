"""Credit Agent - module init."""

from finmoe.agents.credit.agent import CreditAgent
from finmoe.agents.credit.schema import CreditAnalysis

__all__ = ["CreditAgent", "CreditAnalysis"]
