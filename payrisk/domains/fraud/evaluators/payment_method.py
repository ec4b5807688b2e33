"""Payment method familiarity."""

from ..config import FraudConfig
from ..history import ScoringInputs
from ..model_updater import WeightTable
from ..models import RiskFactor, RiskFactorType, TransactionContext
from .base import RiskEvaluator


class PaymentMethodEvaluator(RiskEvaluator):
    evaluator_id = "payment_method"
    factor_type = RiskFactorType.PAYMENT_METHOD

    def evaluate(
        self,
        context: TransactionContext,
        inputs: ScoringInputs,
        weights: WeightTable,
        config: FraudConfig,
    ) -> RiskFactor:
        cfg = config.payment_method
        method = context.payment_method_id.strip()
        if not method:
            return self._factor(cfg.missing_method_score, weights, "No payment method supplied")

        history = inputs.user_history
        if history is None or not history.payment_method_ids:
            return self._factor(
                cfg.neutral_score,
                weights,
                "No payment method history",
                {"payment_method_id": method},
            )

        if method in history.payment_method_ids:
            return self._factor(
                cfg.known_method_score,
                weights,
                "Previously used payment method",
                {"payment_method_id": method},
            )
        return self._factor(
            cfg.new_method_score,
            weights,
            "First use of this payment method",
            {"payment_method_id": method, "known_methods": len(history.payment_method_ids)},
        )
