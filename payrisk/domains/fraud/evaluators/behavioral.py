"""Spending behaviour relative to the user's amount history."""

import statistics

from ..config import FraudConfig
from ..history import ScoringInputs
from ..model_updater import WeightTable
from ..models import RiskFactor, RiskFactorType, TransactionContext
from .base import RiskEvaluator


class BehavioralEvaluator(RiskEvaluator):
    evaluator_id = "behavioral"
    factor_type = RiskFactorType.BEHAVIORAL

    def evaluate(
        self,
        context: TransactionContext,
        inputs: ScoringInputs,
        weights: WeightTable,
        config: FraudConfig,
    ) -> RiskFactor:
        cfg = config.behavioral
        history = inputs.user_history
        amounts = history.amounts if history else []

        shipping = context.shipping_address
        mismatch = bool(
            shipping
            and shipping.country
            and context.billing_country
            and shipping.country.strip().upper() != context.billing_country
        )
        mismatch_boost = cfg.address_mismatch_boost if mismatch else 0.0

        if len(amounts) < cfg.min_history:
            return self._factor(
                cfg.neutral_score + mismatch_boost,
                weights,
                "Insufficient spending history",
                {"history_size": len(amounts), "address_mismatch": mismatch},
            )

        mean = statistics.fmean(amounts)
        stdev = statistics.pstdev(amounts)
        if stdev == 0:
            z = 0.0 if context.amount <= mean else cfg.flat_history_zscore
        else:
            z = max(0.0, (context.amount - mean) / stdev)

        return self._factor(
            cfg.base_score + z * cfg.score_per_zscore + mismatch_boost,
            weights,
            f"Amount is {z:.1f} standard deviations above the user's mean",
            {
                "mean_amount": round(mean, 2),
                "zscore": round(z, 3),
                "address_mismatch": mismatch,
            },
        )
