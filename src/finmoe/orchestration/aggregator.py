"""Decision Aggregator - many expert analyses in, one verdict out.

Order of precedence:
1. An explicit "decision ... approved/declined/rejected" statement found
   in the concatenated raw analysis texts is honoured verbatim; a
   negated one ("not approved") is ignored.
2. Declined if fraud probability >= 0.6, credit risk is high, or the
   credit score is below 600.
3. Approved otherwise.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from finmoe.agents.credit.schema import CreditAnalysis
from finmoe.agents.esg.schema import ESGAnalysis
from finmoe.agents.fraud.schema import FraudAnalysis
from finmoe.agents.registry import parse_analysis
from finmoe.agents.schema import AnalysisResult
from finmoe.common.constants import DecisionConstants
from finmoe.core.types import Verdict
from finmoe.orchestration.decision_context import Decision

logger = logging.getLogger(__name__)

EXPLICIT_DECISION_PATTERN = re.compile(
    r"\bdecision\b[^\n]*?\b(approved?|declined?|reject(?:ed)?)\b",
    re.IGNORECASE,
)
_NEGATION = re.compile(r"\b(?:not|no|never|cannot)\b|n't\b", re.IGNORECASE)

_POSITIVE_RATING = re.compile(
    r"\b(excellent|very good|good|strong|positive|high|leader|leading|a{1,3}[+-]?)(?![\w+-])",
    re.IGNORECASE,
)
_NEGATIVE_RATING = re.compile(
    r"\b(poor|weak|negative|low|laggard|bad|fail(?:ing)?|not good|c{1,3}[+-]?)(?![\w+-])",
    re.IGNORECASE,
)

_RISK_ORDER = {"low": 0, "medium": 1, "high": 2}

GENERIC_APPROVED_RATIONALE = "No decisive risk signals extracted from expert analyses"
GENERIC_DECLINED_RATIONALE = "Declined on expert recommendation"
STUB_RATIONALE = "Kill switch active, decision based on simulated analyses"


def rating_is_positive(rating: Optional[str]) -> bool:
    """Whether a free-text ESG rating reads as favourable."""
    if not rating:
        return False
    if _NEGATIVE_RATING.search(rating):
        return False
    return bool(_POSITIVE_RATING.search(rating))


@dataclass
class DecisionSignals:
    """Decision-relevant facts extracted from one set of analyses."""
    fraud_probability: Optional[float] = None
    credit_risk_level: Optional[str] = None
    credit_score: Optional[int] = None
    esg_healthy: Optional[bool] = None
    notes: List[str] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        return (
            self.fraud_probability is None
            and self.credit_risk_level is None
            and self.credit_score is None
            and self.esg_healthy is None
        )

    def decline_reasons(self) -> List[str]:
        reasons = []
        if (self.fraud_probability is not None
                and self.fraud_probability >= DecisionConstants.FRAUD_DECLINE_PROBABILITY):
            reasons.append("fraud")
        if self.credit_risk_level == DecisionConstants.CREDIT_DECLINE_RISK_LEVEL:
            reasons.append("credit risk")
        if (self.credit_score is not None
                and self.credit_score < DecisionConstants.CREDIT_DECLINE_SCORE_BELOW):
            reasons.append("credit score")
        return reasons

    def rationale_parts(self) -> List[str]:
        parts = []
        if self.fraud_probability is not None:
            parts.append(f"Fraud probability {self.fraud_probability:.0%}")
        if self.credit_risk_level is not None:
            parts.append(f"Credit risk {self.credit_risk_level}")
        if self.credit_score is not None:
            parts.append(f"Credit score {self.credit_score}")
        if self.esg_healthy is not None:
            parts.append("ESG healthy" if self.esg_healthy else "ESG concerns")
        return parts


class DecisionAggregator:
    """Combines heterogeneous expert results into a single Decision."""

    def aggregate(self, results: Sequence[AnalysisResult]) -> Optional[Decision]:
        """Aggregate successful analyses.

        Returns:
            The decision, or None when there is nothing to aggregate
        """
        if not results:
            return None

        signals = self.extract_signals(results)
        parts = signals.rationale_parts()

        explicit = self.find_explicit_decision(results)
        if explicit is not None:
            verdict, phrase = explicit
            rationale = DecisionConstants.RATIONALE_SEPARATOR.join(
                [f"Explicit expert decision: \"{phrase}\""] + parts
            )
            return Decision(verdict=verdict, rationale=rationale, explicit=True)

        verdict = Verdict.DECLINED if signals.decline_reasons() else Verdict.APPROVED
        if parts:
            rationale = DecisionConstants.RATIONALE_SEPARATOR.join(parts)
        elif all(r.is_stub for r in results):
            rationale = STUB_RATIONALE
        elif verdict == Verdict.APPROVED:
            rationale = GENERIC_APPROVED_RATIONALE
        else:
            rationale = GENERIC_DECLINED_RATIONALE
        return Decision(verdict=verdict, rationale=rationale)

    @staticmethod
    def find_explicit_decision(results: Sequence[AnalysisResult]):
        """First explicit decision statement across all raw texts, if any.

        A negated statement ("decision: not approved") is skipped and left
        to the numeric rules.
        """
        combined = "\n".join(r.analysis for r in results)
        for match in EXPLICIT_DECISION_PATTERN.finditer(combined):
            if _NEGATION.search(combined, match.start(), match.start(1)):
                logger.debug(f"Ignoring negated decision statement: {match.group(0)!r}")
                continue
            word = match.group(1).lower()
            verdict = Verdict.APPROVED if word.startswith("approve") else Verdict.DECLINED
            return verdict, match.group(0).strip()
        return None

    def extract_signals(self, results: Sequence[AnalysisResult]) -> DecisionSignals:
        """Worst-case signal per specialization across all results."""
        signals = DecisionSignals()
        for result in results:
            result = self._typed(result)

            if isinstance(result, FraudAnalysis):
                if result.fraud_probability is not None:
                    signals.fraud_probability = max(
                        result.fraud_probability, signals.fraud_probability or 0.0
                    )

            elif isinstance(result, CreditAnalysis):
                if result.risk_level is not None:
                    current = signals.credit_risk_level
                    if current is None or _RISK_ORDER[result.risk_level] > _RISK_ORDER[current]:
                        signals.credit_risk_level = result.risk_level
                if result.credit_score is not None:
                    if signals.credit_score is None or result.credit_score < signals.credit_score:
                        signals.credit_score = result.credit_score

            elif isinstance(result, ESGAnalysis):
                healthy = self._esg_healthy(result)
                if healthy is not None:
                    signals.esg_healthy = healthy if signals.esg_healthy is None else (
                        signals.esg_healthy and healthy
                    )

        return signals

    @staticmethod
    def _typed(result: AnalysisResult) -> AnalysisResult:
        if result.has_signals() or result.is_stub:
            return result
        try:
            return parse_analysis(result.specialization, result.analysis)
        except Exception as e:
            logger.warning(
                f"Could not re-parse {result.worker_id} analysis: {type(e).__name__}: {e}"
            )
            return result

    @staticmethod
    def _esg_healthy(result: ESGAnalysis) -> Optional[bool]:
        mean = result.pillar_mean
        if mean is not None and mean >= DecisionConstants.ESG_HEALTHY_MEAN:
            return True
        if rating_is_positive(result.overall_rating):
            return True
        if mean is None and result.overall_rating is None:
            return None
        return False
