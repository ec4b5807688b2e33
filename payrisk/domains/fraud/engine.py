"""Risk scoring engine: context -> collaborator reads -> evaluators -> policy."""

from collections.abc import Iterable, Mapping, Sequence
from datetime import UTC, datetime
from typing import Any

import structlog

from payrisk.config import settings

from .config import FraudConfig, default_config
from .evaluators import ALL_EVALUATORS, RiskEvaluator
from .fingerprint import DeviceFingerprintGenerator
from .history import HistoryLoader, HistoryStore
from .model_updater import ModelUpdater
from .models import (
    Decision,
    DeviceFingerprint,
    DeviceObservation,
    RiskFactor,
    RiskFactorType,
    RiskLevel,
    RiskScore,
    TrainingExample,
    TransactionContext,
    VelocityCheck,
)
from .policy import DecisionPolicy
from .velocity import VelocityTracker

logger = structlog.get_logger()

FALLBACK_SCORE = 50.0
FALLBACK_CONFIDENCE = 0.1


class RiskScoringEngine:
    """Scores transactions for fraud risk.

    Constructed once with its collaborators and shared by callers. Scoring
    holds no engine-wide lock: velocity state is striped inside the tracker
    and weights are read as an immutable snapshot from the model updater.
    """

    def __init__(
        self,
        config: FraudConfig | None = None,
        policy: DecisionPolicy | None = None,
        velocity_tracker: VelocityTracker | None = None,
        fingerprint_generator: DeviceFingerprintGenerator | None = None,
        model_updater: ModelUpdater | None = None,
        history_store: HistoryStore | None = None,
        evaluators: Sequence[RiskEvaluator] | None = None,
        lookup_timeout_seconds: float | None = None,
    ) -> None:
        self._config = config or default_config
        self._policy = policy or DecisionPolicy(self._config.policy)
        self._velocity = velocity_tracker or VelocityTracker(
            self._config, shard_count=settings.velocity_shard_count
        )
        self._fingerprints = fingerprint_generator or DeviceFingerprintGenerator(self._config)
        self._model_updater = model_updater or ModelUpdater(self._config)
        self._evaluators = list(evaluators if evaluators is not None else ALL_EVALUATORS)
        self._loader = HistoryLoader(
            self._velocity,
            history_store,
            timeout_seconds=(
                lookup_timeout_seconds
                if lookup_timeout_seconds is not None
                else settings.history_lookup_timeout_seconds
            ),
        )
        logger.info(
            "risk_scoring_engine_initialized",
            evaluators=[e.evaluator_id for e in self._evaluators],
            history_store=type(history_store).__name__ if history_store else None,
        )

    @property
    def velocity_tracker(self) -> VelocityTracker:
        return self._velocity

    @property
    def model_updater(self) -> ModelUpdater:
        return self._model_updater

    async def analyze_transaction(
        self, context: TransactionContext | Mapping[str, Any]
    ) -> RiskScore:
        """Score a transaction. Never raises.

        Malformed input still yields a complete RiskScore routed to review with
        reduced confidence; an unexpected internal failure yields a neutral
        review score with minimal confidence.
        """
        try:
            if not isinstance(context, TransactionContext):
                context = TransactionContext.model_validate(context)
            return await self._analyze(context)
        except Exception:
            transaction_id = _transaction_id_of(context)
            logger.exception("transaction_analysis_failed", transaction_id=transaction_id)
            return self._fallback_score(transaction_id)

    async def _analyze(self, context: TransactionContext) -> RiskScore:
        cfg = self._config
        issues = context.validation_issues()
        for issue in issues:
            logger.warning(
                "transaction_validation_issue",
                transaction_id=context.transaction_id,
                field=issue.field,
                reason=issue.message,
            )

        inputs = await self._loader.load(context)
        weights = self._model_updater.weights

        factors: list[RiskFactor] = []
        for evaluator in self._evaluators:
            try:
                factors.append(evaluator.evaluate(context, inputs, weights, cfg))
            except Exception:
                logger.exception(
                    "evaluator_failed",
                    evaluator_id=evaluator.evaluator_id,
                    transaction_id=context.transaction_id,
                )
                factors.append(
                    RiskFactor.build(
                        evaluator.factor_type,
                        FALLBACK_SCORE,
                        0.0,
                        f"{evaluator.evaluator_id} evaluation failed",
                        {"failed": True},
                    )
                )

        score = self._policy.aggregate(factors)
        if score is None:
            score = FALLBACK_SCORE
            decision = Decision.REVIEW
        else:
            decision = self._policy.decide(score, factors)
        confidence = self._policy.confidence(factors, context)

        # Malformed input is never auto-decided in either direction
        if issues:
            decision = Decision.REVIEW
            confidence = min(confidence, cfg.policy.validation_confidence_cap)

        result = RiskScore(
            transaction_id=context.transaction_id,
            overall_score=score,
            risk_level=self._policy.risk_level(score),
            decision=decision,
            confidence=confidence,
            factors=factors,
            recommendations=self._policy.recommendations(factors, decision, issues),
            model_version=f"weights-v{weights.version}",
            computed_at=datetime.now(UTC),
        )

        logger.info(
            "transaction_scored",
            transaction_id=context.transaction_id,
            user_id=context.user_id,
            overall_score=score,
            decision=decision.value,
            confidence=confidence,
            unavailable=inputs.unavailable,
            validation_issues=len(issues),
        )
        return result

    def _fallback_score(self, transaction_id: str) -> RiskScore:
        return RiskScore(
            transaction_id=transaction_id,
            overall_score=FALLBACK_SCORE,
            risk_level=RiskLevel.MEDIUM,
            decision=Decision.REVIEW,
            confidence=FALLBACK_CONFIDENCE,
            factors=[
                RiskFactor.build(
                    RiskFactorType.REPUTATION,
                    FALLBACK_SCORE,
                    0.0,
                    "Analysis failed - manual review required",
                    {"failed": True},
                )
            ],
            recommendations=["Analysis failed - manual review required"],
        )

    def generate_device_fingerprint(
        self,
        attributes: Mapping[str, Any] | None,
        observation: DeviceObservation | None = None,
        user_id: str | None = None,
    ) -> DeviceFingerprint:
        return self._fingerprints.generate_device_fingerprint(
            attributes, observation=observation, user_id=user_id
        )

    def check_velocity(
        self,
        user_id: str | None,
        customer_id: str | None = None,
        payment_method_id: str | None = None,
    ) -> list[VelocityCheck]:
        return self._velocity.check_velocity(user_id, customer_id, payment_method_id)

    def record_transaction(self, context: TransactionContext) -> None:
        """Add a scored transaction to the velocity aggregates.

        Called by the caller once a decision has been acted on; scoring itself
        never records.
        """
        self._velocity.record_transaction(
            context.user_id,
            customer_id=context.customer_id,
            payment_method_id=context.payment_method_id,
            amount=context.amount,
            device_id=context.device_fingerprint,
            location=context.ip_address or context.billing_country,
        )

    def update_fraud_model(self, examples: Iterable[TrainingExample | Mapping]) -> None:
        self._model_updater.update_fraud_model(examples)


def _transaction_id_of(context: Any) -> str:
    if isinstance(context, TransactionContext):
        return context.transaction_id
    if isinstance(context, Mapping):
        value = context.get("transaction_id")
        return value if isinstance(value, str) else ""
    return ""
