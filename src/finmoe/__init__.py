"""FinMoE - Mixture-of-Experts dispatch for financial classification requests."""

__version__ = "0.1.0"
__author__ = "FinMoE Team"

# Core exports
from finmoe.core.types import Priority, RequestStatus, Specialization, Verdict

__all__ = [
    "Priority",
    "RequestStatus",
    "Specialization",
    "Verdict",
]
