"""Unit tests for the decision policy."""

import pytest

from payrisk.domains.fraud.config import PolicySettings
from payrisk.domains.fraud.errors import ValidationError
from payrisk.domains.fraud.models import (
    Address,
    Decision,
    RiskFactor,
    RiskFactorType,
    RiskLevel,
    TransactionContext,
)
from payrisk.domains.fraud.policy import DecisionPolicy

POLICY = DecisionPolicy()


def _factor(factor_type: RiskFactorType, score: float, weight: float) -> RiskFactor:
    return RiskFactor.build(factor_type, score, weight, "test")


def _context(**kwargs) -> TransactionContext:
    defaults = {"transaction_id": "txn-1", "user_id": "user-1", "amount": 1_000}
    defaults.update(kwargs)
    return TransactionContext(**defaults)


class TestAggregate:
    def test_weighted_mean(self):
        factors = [
            _factor(RiskFactorType.VELOCITY, 80, 0.5),
            _factor(RiskFactorType.AMOUNT, 20, 0.5),
        ]
        assert POLICY.aggregate(factors) == 50.0

    def test_weights_need_not_sum_to_one(self):
        factors = [
            _factor(RiskFactorType.VELOCITY, 90, 0.3),
            _factor(RiskFactorType.AMOUNT, 30, 0.1),
        ]
        assert POLICY.aggregate(factors) == 75.0

    def test_zero_weight_ignored(self):
        factors = [
            _factor(RiskFactorType.VELOCITY, 80, 0.25),
            _factor(RiskFactorType.DEVICE, 0, 0.0),
        ]
        assert POLICY.aggregate(factors) == 80.0

    def test_no_weight_returns_none(self):
        assert POLICY.aggregate([]) is None
        assert POLICY.aggregate([_factor(RiskFactorType.DEVICE, 50, 0.0)]) is None


class TestDecide:
    @pytest.mark.parametrize(
        "score,expected",
        [
            (0.0, Decision.APPROVE),
            (29.99, Decision.APPROVE),
            (30.0, Decision.REVIEW),
            (70.0, Decision.REVIEW),
            (70.01, Decision.DECLINE),
            (100.0, Decision.DECLINE),
        ],
    )
    def test_thresholds(self, score, expected):
        assert POLICY.decide(score, []) == expected

    def test_severity_override_forces_review(self):
        factors = [_factor(RiskFactorType.DEVICE, 95, 0.3)]
        assert POLICY.decide(20.0, factors) == Decision.REVIEW

    def test_light_factor_does_not_override(self):
        factors = [_factor(RiskFactorType.DEVICE, 95, 0.2)]
        assert POLICY.decide(20.0, factors) == Decision.APPROVE

    def test_override_never_downgrades_decline(self):
        factors = [_factor(RiskFactorType.DEVICE, 95, 0.5)]
        assert POLICY.decide(85.0, factors) == Decision.DECLINE

    def test_tunable_thresholds(self):
        policy = DecisionPolicy(PolicySettings(approve_below=10.0, decline_above=50.0))
        assert policy.decide(20.0, []) == Decision.REVIEW
        assert policy.decide(60.0, []) == Decision.DECLINE

    def test_inverted_thresholds_rejected(self):
        with pytest.raises(ValueError):
            DecisionPolicy(PolicySettings(approve_below=80.0, decline_above=20.0))


class TestRiskLevel:
    @pytest.mark.parametrize(
        "score,expected",
        [
            (10.0, RiskLevel.LOW),
            (30.0, RiskLevel.MEDIUM),
            (65.0, RiskLevel.HIGH),
            (80.0, RiskLevel.CRITICAL),
        ],
    )
    def test_levels(self, score, expected):
        assert POLICY.risk_level(score) == expected


class TestConfidence:
    def test_bounded(self):
        factors = [_factor(t, 100 if i % 2 else 0, 0.2) for i, t in enumerate(RiskFactorType)]
        confidence = POLICY.confidence(factors, _context())
        assert 0.0 <= confidence <= 1.0

    def test_no_evidence_is_capped(self):
        factors = [_factor(RiskFactorType.DEVICE, 50, 0.0)]
        assert POLICY.confidence(factors, _context()) <= 0.3

    def test_agreement_raises_confidence(self):
        agreeing = [_factor(t, 40, 0.2) for t in list(RiskFactorType)[:5]]
        split = [
            _factor(t, 0 if i % 2 else 100, 0.2)
            for i, t in enumerate(list(RiskFactorType)[:5])
        ]
        context = _context()
        assert POLICY.confidence(agreeing, context) > POLICY.confidence(split, context)

    def test_more_evidence_raises_confidence(self):
        context = _context()
        one = [_factor(RiskFactorType.VELOCITY, 40, 0.2)]
        many = [_factor(t, 40, 0.2) for t in list(RiskFactorType)[:5]]
        assert POLICY.confidence(many, context) > POLICY.confidence(one, context)

    def test_complete_context_raises_confidence(self):
        factors = [_factor(RiskFactorType.VELOCITY, 40, 0.2)]
        bare = _context()
        complete = _context(
            device_fingerprint="fp-1",
            billing_address=Address(country="US"),
            ip_address="93.184.216.34",
            user_agent="Mozilla/5.0",
        )
        assert POLICY.confidence(factors, complete) > POLICY.confidence(factors, bare)


class TestRecommendations:
    def test_high_factor_recommendation(self):
        factors = [_factor(RiskFactorType.VELOCITY, 85, 0.25)]
        recommendations = POLICY.recommendations(factors, Decision.REVIEW)
        assert any("step-up authentication" in r for r in recommendations)
        assert "Hold for manual review" in recommendations

    def test_moderate_factor_has_no_recommendation(self):
        factors = [_factor(RiskFactorType.DEVICE, 70, 0.2)]
        assert POLICY.recommendations(factors, Decision.APPROVE) == ["Approve transaction"]

    def test_validation_issues_listed(self):
        issues = [ValidationError("amount", "must be positive, got 0")]
        recommendations = POLICY.recommendations([], Decision.REVIEW, issues)
        assert "Invalid input amount: must be positive, got 0" in recommendations
