"""Abstract base class for risk factor evaluators."""

from abc import ABC, abstractmethod

from ..config import FraudConfig
from ..history import ScoringInputs
from ..model_updater import WeightTable
from ..models import RiskFactor, RiskFactorType, TransactionContext


class RiskEvaluator(ABC):
    """One risk dimension of a transaction.

    Evaluators are synchronous and pure: every collaborator read happens
    up front in HistoryLoader, so an evaluator only looks at the context,
    the preloaded inputs and the current weight table.
    """

    evaluator_id: str
    factor_type: RiskFactorType

    @abstractmethod
    def evaluate(
        self,
        context: TransactionContext,
        inputs: ScoringInputs,
        weights: WeightTable,
        config: FraudConfig,
    ) -> RiskFactor:
        """Score this dimension and return a RiskFactor."""
        ...

    def _factor(
        self,
        score: float,
        weights: WeightTable,
        description: str,
        evidence: dict | None = None,
    ) -> RiskFactor:
        """Convenience: a factor carrying this evaluator's current weight."""
        return RiskFactor.build(
            self.factor_type,
            score,
            weights.weight_for(self.factor_type),
            description,
            evidence,
        )

    def _informational(
        self, score: float, description: str, evidence: dict | None = None
    ) -> RiskFactor:
        """Convenience: a zero-weight factor that does not move the score."""
        return RiskFactor.build(self.factor_type, score, 0.0, description, evidence)
