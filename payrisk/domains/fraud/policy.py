"""Turns weighted risk factors into an overall score, decision and confidence."""

import statistics
from collections.abc import Sequence

from .config import PolicySettings
from .errors import ValidationError
from .models import Decision, RiskFactor, RiskFactorType, RiskLevel, TransactionContext

_FACTOR_RECOMMENDATIONS = {
    RiskFactorType.VELOCITY: "High velocity detected - require step-up authentication",
    RiskFactorType.GEOGRAPHIC: "Unusual geographic location - manual review recommended",
    RiskFactorType.DEVICE: "Unknown or suspicious device - require device verification",
    RiskFactorType.AMOUNT: "Unusually large amount - confirm with customer",
    RiskFactorType.PAYMENT_METHOD: "Unfamiliar payment method - verify instrument ownership",
    RiskFactorType.BEHAVIORAL: "Spending deviates from history - monitor account",
    RiskFactorType.TIME_PATTERN: "Transaction at unusual hour - monitor account",
    RiskFactorType.REPUTATION: "Poor reputation signal - manual review recommended",
}

_DECISION_RECOMMENDATIONS = {
    Decision.APPROVE: "Approve transaction",
    Decision.REVIEW: "Hold for manual review",
    Decision.DECLINE: "Decline transaction",
}

# Number of weighted factors treated as full evidence
_FULL_EVIDENCE = 5


class DecisionPolicy:
    """Tunable thresholds applied to evaluator output.

    - overall score: weighted mean of factor scores, clamped to 0-100
    - decision: < approve_below approve, > decline_above decline, review between
    - severity override: any factor with score >= override_min_score and
      weight >= override_min_weight lifts an approval to review
    - confidence: evidence count, agreement between factors and context
      completeness, zero-weight factors excluded
    """

    def __init__(self, settings: PolicySettings | None = None) -> None:
        self.settings = settings or PolicySettings()
        if self.settings.approve_below > self.settings.decline_above:
            raise ValueError("approve_below must not exceed decline_above")

    def aggregate(self, factors: Sequence[RiskFactor]) -> float | None:
        """Weighted mean score, or None when no factor carries weight."""
        total_weight = sum(f.weight for f in factors)
        if total_weight <= 0:
            return None
        score = sum(f.score * f.weight for f in factors) / total_weight
        return round(max(0.0, min(100.0, score)), 2)

    def risk_level(self, score: float) -> RiskLevel:
        s = self.settings
        if score >= s.critical_from:
            return RiskLevel.CRITICAL
        if score >= s.high_from:
            return RiskLevel.HIGH
        if score >= s.medium_from:
            return RiskLevel.MEDIUM
        return RiskLevel.LOW

    def overriding_factors(self, factors: Sequence[RiskFactor]) -> list[RiskFactor]:
        s = self.settings
        return [
            f
            for f in factors
            if f.score >= s.override_min_score and f.weight >= s.override_min_weight
        ]

    def decide(self, score: float, factors: Sequence[RiskFactor]) -> Decision:
        s = self.settings
        if score > s.decline_above:
            return Decision.DECLINE
        if score < s.approve_below and not self.overriding_factors(factors):
            return Decision.APPROVE
        return Decision.REVIEW

    def confidence(self, factors: Sequence[RiskFactor], context: TransactionContext) -> float:
        evidence = [f for f in factors if f.weight > 0]
        completeness = self._completeness(context)

        if not evidence:
            return round(
                min(self.settings.no_evidence_confidence_cap, 0.1 + 0.2 * completeness), 4
            )

        count = min(len(evidence) / _FULL_EVIDENCE, 1.0)
        if len(evidence) > 1:
            spread = statistics.pstdev(f.score for f in evidence)
            agreement = 1.0 - min(spread / 50.0, 1.0)
        else:
            agreement = 0.5

        confidence = 0.15 + 0.35 * count + 0.3 * agreement + 0.2 * completeness
        return round(max(0.0, min(1.0, confidence)), 4)

    @staticmethod
    def _completeness(context: TransactionContext) -> float:
        present = [
            bool(context.device_fingerprint),
            context.billing_country is not None,
            bool(context.ip_address),
            bool(context.user_agent),
        ]
        return sum(present) / len(present)

    def recommendations(
        self,
        factors: Sequence[RiskFactor],
        decision: Decision,
        issues: Sequence[ValidationError] = (),
    ) -> list[str]:
        recommendations: list[str] = []
        for factor in factors:
            if factor.score > self.settings.recommendation_threshold:
                text = _FACTOR_RECOMMENDATIONS.get(factor.type)
                if text and text not in recommendations:
                    recommendations.append(text)
        recommendations.append(_DECISION_RECOMMENDATIONS[decision])
        for issue in issues:
            recommendations.append(f"Invalid input {issue.field}: {issue.message}")
        return recommendations
