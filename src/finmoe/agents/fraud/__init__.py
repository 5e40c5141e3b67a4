"""Fraud Agent - module init."""

from finmoe.agents.fraud.agent import FraudAgent
from finmoe.agents.fraud.schema import FraudAnalysis

__all__ = ["FraudAgent", "FraudAnalysis"]
