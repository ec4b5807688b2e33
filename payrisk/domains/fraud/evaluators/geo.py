"""Geographic risk from billing country and client address."""

import ipaddress

from ..config import FraudConfig
from ..history import ScoringInputs
from ..model_updater import WeightTable
from ..models import RiskFactor, RiskFactorType, TransactionContext
from .base import RiskEvaluator


def _non_routable(ip: str) -> bool:
    try:
        address = ipaddress.ip_address(ip)
    except ValueError:
        return True
    return (
        address.is_private
        or address.is_loopback
        or address.is_reserved
        or address.is_link_local
        or address.is_unspecified
    )


class GeographicEvaluator(RiskEvaluator):
    evaluator_id = "geographic"
    factor_type = RiskFactorType.GEOGRAPHIC

    def evaluate(
        self,
        context: TransactionContext,
        inputs: ScoringInputs,
        weights: WeightTable,
        config: FraudConfig,
    ) -> RiskFactor:
        cfg = config.geo
        country = context.billing_country
        reasons: list[str] = []

        if country is None:
            score = cfg.missing_billing_score
            reasons.append("missing_billing_country")
        else:
            score = cfg.baseline_score
            if country in {c.upper() for c in cfg.high_risk_countries}:
                score += cfg.high_risk_country_boost
                reasons.append("high_risk_country")
            history = inputs.user_history
            if history and history.countries and country not in {
                c.upper() for c in history.countries
            }:
                score += cfg.new_country_boost
                reasons.append("new_country")

        if context.ip_address and _non_routable(context.ip_address):
            score += cfg.non_routable_ip_boost
            reasons.append("non_routable_ip")

        if reasons:
            description = "Geographic signals: " + ", ".join(reasons)
        else:
            description = "No geographic anomalies"
        return self._factor(
            score,
            weights,
            description,
            {"billing_country": country, "reasons": reasons},
        )
