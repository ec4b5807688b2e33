"""Transaction amount risk."""

from ..config import FraudConfig
from ..history import ScoringInputs
from ..model_updater import WeightTable
from ..models import RiskFactor, RiskFactorType, TransactionContext
from .base import RiskEvaluator


class AmountEvaluator(RiskEvaluator):
    """Saturating curve over the amount relative to a baseline.

    ``score = 100 * r / (r + k)`` with ``r = amount / baseline``: strictly
    increasing in the amount, 0 for non-positive amounts, approaching 100.
    """

    evaluator_id = "amount"
    factor_type = RiskFactorType.AMOUNT

    def evaluate(
        self,
        context: TransactionContext,
        inputs: ScoringInputs,
        weights: WeightTable,
        config: FraudConfig,
    ) -> RiskFactor:
        cfg = config.amount
        amount = context.amount
        if amount <= 0:
            return self._factor(
                0.0,
                weights,
                "Non-positive amount",
                {"amount": amount},
            )

        ratio = amount / cfg.baseline_amount
        score = 100.0 * ratio / (ratio + cfg.saturation)
        return self._factor(
            score,
            weights,
            f"Amount {amount} is {ratio:.2f}x the {cfg.baseline_amount} baseline",
            {"amount": amount, "baseline": cfg.baseline_amount, "ratio": round(ratio, 4)},
        )
