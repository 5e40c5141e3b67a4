"""Orchestration - routing, load tracking, request lifecycle and aggregation.

Components:
- AgentLoadModel: synthetic per-worker load, queue and status
- RoutingDecisionEngine: inference-assisted routing with keyword fallback
- RequestLifecycleManager: drives each request to a terminal state
- DecisionAggregator: many expert analyses in, one verdict out
"""

from finmoe.orchestration.decision_context import Decision, RoutingDecision
from finmoe.orchestration.load_model import AgentLoadModel, LoadChange, WorkerState
from finmoe.orchestration.router import RoutingDecisionEngine, fallback_route
from finmoe.orchestration.aggregator import DecisionAggregator, DecisionSignals
from finmoe.orchestration.lifecycle import LifecycleOutcome, RequestLifecycleManager

__all__ = [
    # Decision records
    "Decision",
    "RoutingDecision",
    # Load model
    "AgentLoadModel",
    "LoadChange",
    "WorkerState",
    # Routing
    "RoutingDecisionEngine",
    "fallback_route",
    # Aggregation
    "DecisionAggregator",
    "DecisionSignals",
    # Lifecycle
    "LifecycleOutcome",
    "RequestLifecycleManager",
]
