"""Velocity risk from the tracker's per-window checks."""

from ..config import FraudConfig
from ..history import ScoringInputs
from ..model_updater import WeightTable
from ..models import RiskFactor, RiskFactorType, TransactionContext
from ..velocity import WindowAggregate, threshold_utilisation
from .base import RiskEvaluator


class VelocityEvaluator(RiskEvaluator):
    """Any exceeded window pushes the score above 50; otherwise it stays low."""

    evaluator_id = "velocity"
    factor_type = RiskFactorType.VELOCITY

    def evaluate(
        self,
        context: TransactionContext,
        inputs: ScoringInputs,
        weights: WeightTable,
        config: FraudConfig,
    ) -> RiskFactor:
        checks = inputs.velocity_checks
        if not checks:
            return self._informational(
                0.0,
                "Velocity unavailable: no identifying keys",
                {"unavailable": True},
            )

        exceeded = [c for c in checks if c.exceeded]
        if exceeded:
            # Checks arrive shortest window first
            tightest = exceeded[0]
            score = 50.0 + tightest.risk_score / 2.0
            return self._factor(
                score,
                weights,
                f"Velocity threshold exceeded in {', '.join(c.time_window for c in exceeded)}",
                {
                    "exceeded_windows": [c.time_window for c in exceeded],
                    "window": tightest.time_window,
                    "transaction_count": tightest.transaction_count,
                    "total_amount": tightest.total_amount,
                    "identifier_kind": tightest.identifier_kind,
                },
            )

        utilisation = max(
            threshold_utilisation(
                WindowAggregate(
                    transaction_count=c.transaction_count,
                    total_amount=c.total_amount,
                    unique_devices=c.unique_devices,
                    unique_locations=c.unique_locations,
                ),
                c.thresholds,
            )
            for c in checks
        )
        score = config.velocity.below_threshold_max_score * min(1.0, utilisation)
        return self._factor(
            score,
            weights,
            "Velocity within limits",
            {"max_utilisation": round(utilisation, 4)},
        )
