"""Tests for the Decision Aggregator."""

import pytest

from finmoe.agents import CreditAgent, CreditAnalysis, ESGAnalysis, FraudAgent, FraudAnalysis
from finmoe.core.types import Verdict
from finmoe.orchestration.aggregator import (
    GENERIC_APPROVED_RATIONALE,
    STUB_RATIONALE,
    DecisionAggregator,
    rating_is_positive,
)


@pytest.fixture
def aggregator():
    return DecisionAggregator()


def _fraud(probability=None, text="{}"):
    return FraudAnalysis(worker_id="fraud-agent", analysis=text, fraud_probability=probability)


def _credit(score=None, risk=None, text="{}"):
    return CreditAnalysis(worker_id="credit-agent", analysis=text, credit_score=score, risk_level=risk)


def _esg(text="{}", **fields):
    return ESGAnalysis(worker_id="esg-agent", analysis=text, **fields)


class TestThresholds:
    """Numeric decline rules."""

    def test_high_fraud_and_high_risk_declined(self, aggregator):
        decision = aggregator.aggregate([_fraud(0.75), _credit(risk="high")])

        assert decision.verdict == Verdict.DECLINED
        assert "Fraud probability 75%" in decision.rationale
        assert "Credit risk high" in decision.rationale
        assert " | " in decision.rationale

    def test_fraud_at_threshold_declined(self, aggregator):
        assert aggregator.aggregate([_fraud(0.6)]).verdict == Verdict.DECLINED

    def test_fraud_below_threshold_approved(self, aggregator):
        assert aggregator.aggregate([_fraud(0.59)]).verdict == Verdict.APPROVED

    def test_low_credit_score_declined(self, aggregator):
        decision = aggregator.aggregate([_credit(score=580, risk="medium")])

        assert decision.verdict == Verdict.DECLINED
        assert "Credit score 580" in decision.rationale

    def test_credit_score_600_approved(self, aggregator):
        assert aggregator.aggregate([_credit(score=600)]).verdict == Verdict.APPROVED

    def test_worst_signal_across_results(self, aggregator):
        decision = aggregator.aggregate([_fraud(0.1), _fraud(0.7)])

        assert decision.verdict == Verdict.DECLINED
        assert "Fraud probability 70%" in decision.rationale

    def test_esg_does_not_decline(self, aggregator):
        decision = aggregator.aggregate([_esg(environmental_score=10.0, social_score=20.0)])

        assert decision.verdict == Verdict.APPROVED
        assert decision.rationale == "ESG concerns"


class TestEsgHealth:
    """ESG composite health."""

    def test_mean_at_50_is_healthy(self, aggregator):
        signals = aggregator.extract_signals([
            _esg(environmental_score=40.0, social_score=60.0, governance_score=50.0)
        ])
        assert signals.esg_healthy is True

    def test_positive_rating_is_healthy(self, aggregator):
        signals = aggregator.extract_signals([_esg(environmental_score=20.0, overall_rating="Strong")])
        assert signals.esg_healthy is True

    @pytest.mark.parametrize("rating, expected", [
        ("Good", True),
        ("AA", True),
        ("Excellent overall", True),
        ("Poor", False),
        ("Not good", False),
        ("B", False),
        (None, False),
    ])
    def test_rating_reading(self, rating, expected):
        assert rating_is_positive(rating) is expected


class TestExplicitDecision:
    """Explicit decision statements win over heuristics."""

    def test_explicit_approval_overrides_fraud(self, aggregator):
        result = _fraud(0.9, text="Final decision: Approved after manual checks.")

        decision = aggregator.aggregate([result])

        assert decision.verdict == Verdict.APPROVED
        assert decision.explicit is True
        assert "Fraud probability 90%" in decision.rationale

    def test_explicit_decline_overrides_clean_signals(self, aggregator):
        results = [_fraud(0.05), _credit(score=780, text="Decision: REJECTED due to identity mismatch")]

        decision = aggregator.aggregate(results)

        assert decision.verdict == Verdict.DECLINED
        assert decision.explicit is True

    def test_word_without_decision_is_not_explicit(self, aggregator):
        decision = aggregator.aggregate([_fraud(0.8, text="Recommend: approve with caution")])

        assert decision.verdict == Verdict.DECLINED
        assert decision.explicit is False

    @pytest.mark.parametrize("text", [
        "Decision: not approved, escalate",
        "Final decision: NOT approved",
        "Decision: we can't approve this yet",
    ])
    def test_negated_statement_is_not_explicit(self, aggregator, text):
        decision = aggregator.aggregate([_fraud(0.9, text=text)])

        assert decision.verdict == Verdict.DECLINED
        assert decision.explicit is False
        assert decision.rationale == "Fraud probability 90%"

    def test_later_plain_statement_still_counts(self, aggregator):
        text = "Decision: not approved yet.\nAfter review, decision: declined."

        decision = aggregator.aggregate([_fraud(0.1, text=text)])

        assert decision.verdict == Verdict.DECLINED
        assert decision.explicit is True
        assert "decision: declined" in decision.rationale


class TestFallbacks:
    """Missing signals, raw text and empty input."""

    def test_no_results_gives_no_decision(self, aggregator):
        assert aggregator.aggregate([]) is None

    def test_no_signals_gives_generic_approval(self, aggregator):
        decision = aggregator.aggregate([_fraud(text="Nothing stands out."), _credit(text="Looks fine.")])

        assert decision.verdict == Verdict.APPROVED
        assert decision.rationale == GENERIC_APPROVED_RATIONALE

    def test_stub_results_noted(self, aggregator):
        stub = FraudAnalysis(
            worker_id="fraud-agent",
            analysis="Kill switch active: simulated fraud analysis.",
            is_stub=True,
        )

        decision = aggregator.aggregate([stub])

        assert decision.verdict == Verdict.APPROVED
        assert decision.rationale == STUB_RATIONALE

    def test_raw_text_reparsed_when_fields_missing(self, aggregator):
        result = _fraud(text='```json\n{"fraud_probability": "82%"}\n```')

        decision = aggregator.aggregate([result])

        assert decision.verdict == Verdict.DECLINED
        assert "Fraud probability 82%" in decision.rationale

    def test_parsed_agent_output_aggregates(self, aggregator):
        results = [
            CreditAgent.parse('{"credit_score": 720, "risk_level": "Low"}'),
            FraudAgent.parse("Fraud probability: 12%"),
        ]

        decision = aggregator.aggregate(results)

        assert decision.verdict == Verdict.APPROVED
        assert decision.rationale == "Fraud probability 12% | Credit risk low | Credit score 720"

    def test_summary_line(self, aggregator):
        decision = aggregator.aggregate([_fraud(0.75), _credit(risk="high")])

        assert decision.summary().startswith("FINAL DECISION: Declined — ")
