"""Decision records that flow between orchestration components.

Frozen dataclasses: once the router or the aggregator returns one, no
other component can modify it.
"""

from dataclasses import dataclass
from typing import Tuple

from finmoe.core.types import Verdict


@dataclass(frozen=True)
class RoutingDecision:
    """Workers chosen for a request and why."""
    selected_agents: Tuple[str, ...]
    reasoning: str
    used_fallback: bool = False


@dataclass(frozen=True)
class Decision:
    """Aggregated verdict with a human-readable rationale."""
    verdict: Verdict
    rationale: str
    explicit: bool = False

    def summary(self) -> str:
        """Log line format consumed by the dashboard."""
        return f"FINAL DECISION: {self.verdict.value} — {self.rationale}"
