"""Bounded online recalibration of factor weights from labeled outcomes.

Readers take a reference to an immutable WeightTable; a batch update builds a
complete new table and swaps the reference under a writer lock, so a
concurrent scorer sees either the old or the new weight set, never a mix.

The adjustment step is hidden behind the WeightAdjuster protocol. Whatever an
adjuster proposes, the updater clamps each per-batch change to
``max_step_per_batch`` and keeps weights within ``[min_weight, max_weight]``.
"""

import math
import threading
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Protocol

import structlog
from pydantic import ValidationError as PydanticValidationError

from .config import FraudConfig, ModelSettings, default_config
from .errors import ModelUpdateError
from .models import Outcome, RiskFactorType, TrainingExample

logger = structlog.get_logger()


@dataclass(frozen=True)
class WeightTable:
    weights: Mapping[RiskFactorType, float] = field(default_factory=dict)
    version: int = 0

    @classmethod
    def from_mapping(cls, weights: Mapping[str, float], version: int = 0) -> "WeightTable":
        normalized: dict[RiskFactorType, float] = {}
        for key, value in weights.items():
            factor_type = RiskFactorType(key)
            value = float(value)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"Weight for {factor_type} must be in [0, 1], got {value}")
            normalized[factor_type] = value
        return cls(weights=MappingProxyType(normalized), version=version)

    def weight_for(self, factor_type: RiskFactorType) -> float:
        return self.weights.get(factor_type, 0.0)

    def as_dict(self) -> dict[str, float]:
        return {t.value: w for t, w in self.weights.items()}


class WeightAdjuster(Protocol):
    """Proposes a new weight per factor type for a validated batch."""

    def propose(
        self, current: WeightTable, examples: Sequence[TrainingExample]
    ) -> Mapping[RiskFactorType, float]: ...


class GradientWeightAdjuster:
    """One averaged gradient step on the squared error of the weighted-mean score.

    For each example the current weights predict ``p`` (the weighted mean of its
    factor scores, scaled to 0-1). A factor's weight moves in proportion to
    ``(label - p) * factor_score * confidence``: factors that scored high on
    under-predicted fraud gain weight, factors that scored high on
    over-predicted legitimate traffic lose it.
    """

    def __init__(self, learning_rate: float = 0.1) -> None:
        self._learning_rate = learning_rate

    def propose(
        self, current: WeightTable, examples: Sequence[TrainingExample]
    ) -> Mapping[RiskFactorType, float]:
        gradient: dict[RiskFactorType, float] = {}
        for example in examples:
            label = 1.0 if example.actual_outcome.strip().lower() == Outcome.FRAUD else 0.0
            total_weight = sum(current.weight_for(f.type) for f in example.features)
            if total_weight > 0:
                predicted = (
                    sum(f.score / 100.0 * current.weight_for(f.type) for f in example.features)
                    / total_weight
                )
            else:
                predicted = 0.5
            error = label - predicted
            for factor in example.features:
                gradient[factor.type] = gradient.get(factor.type, 0.0) + (
                    error * (factor.score / 100.0) * example.confidence
                )

        proposed = dict(current.weights)
        for factor_type, value in gradient.items():
            step = self._learning_rate * value / len(examples)
            proposed[factor_type] = current.weight_for(factor_type) + step
        return proposed


def _coerce_batch(examples: Iterable[TrainingExample | Mapping]) -> list[TrainingExample]:
    if examples is None or isinstance(examples, (str, bytes, Mapping)):
        raise ModelUpdateError("Training batch must be a sequence of examples")

    batch: list[TrainingExample] = []
    for index, example in enumerate(examples):
        if isinstance(example, TrainingExample):
            batch.append(example)
            continue
        try:
            batch.append(TrainingExample.model_validate(example))
        except PydanticValidationError as exc:
            raise ModelUpdateError(f"Example {index} is malformed: {exc}") from exc
    return batch


def validate_batch(batch: Sequence[TrainingExample]) -> list[str]:
    """Every problem in the batch, one message per problem."""
    problems: list[str] = []
    labels = {o.value for o in Outcome}
    for index, example in enumerate(batch):
        if not example.transaction_id.strip():
            problems.append(f"example {index}: missing transaction_id")
        if not example.features:
            problems.append(f"example {index}: no features")
        if example.actual_outcome.strip().lower() not in labels:
            problems.append(
                f"example {index}: unrecognized outcome {example.actual_outcome!r}"
            )
        if not (math.isfinite(example.confidence) and 0.0 <= example.confidence <= 1.0):
            problems.append(
                f"example {index}: confidence {example.confidence} outside [0, 1]"
            )
    return problems


class ModelUpdater:
    """Single-writer owner of the factor weight table."""

    def __init__(
        self,
        config: FraudConfig | None = None,
        adjuster: WeightAdjuster | None = None,
        initial_weights: Mapping[str, float] | None = None,
    ) -> None:
        self._config = config or default_config
        self._settings: ModelSettings = self._config.model
        self._adjuster = adjuster or GradientWeightAdjuster(self._settings.learning_rate)
        self._weights = WeightTable.from_mapping(
            initial_weights if initial_weights is not None else self._settings.initial_weights
        )
        self._write_lock = threading.Lock()

    @property
    def weights(self) -> WeightTable:
        return self._weights

    @property
    def version(self) -> int:
        return self._weights.version

    def update_fraud_model(self, examples: Iterable[TrainingExample | Mapping]) -> None:
        """Apply a labeled batch atomically, or raise ModelUpdateError and change nothing."""
        batch = _coerce_batch(examples)
        problems = validate_batch(batch)
        if problems:
            logger.warning("model_update_rejected", problems=problems, batch_size=len(batch))
            raise ModelUpdateError("Training batch rejected: " + "; ".join(problems))

        if not batch:
            logger.info("model_update_skipped", reason="empty_batch")
            return

        with self._write_lock:
            current = self._weights
            try:
                proposed = self._adjuster.propose(current, batch)
            except Exception as exc:
                logger.exception("weight_adjuster_failed")
                raise ModelUpdateError(f"Weight adjustment failed: {exc}") from exc

            updated = self._bounded(current, proposed)
            self._weights = WeightTable(
                weights=MappingProxyType(updated), version=current.version + 1
            )

        logger.info(
            "model_updated",
            version=self._weights.version,
            batch_size=len(batch),
            fraud_count=sum(
                1 for e in batch if e.actual_outcome.strip().lower() == Outcome.FRAUD
            ),
            weights=self._weights.as_dict(),
        )

    def _bounded(
        self, current: WeightTable, proposed: Mapping[RiskFactorType, float]
    ) -> dict[RiskFactorType, float]:
        cfg = self._settings
        updated = dict(current.weights)
        for key, value in proposed.items():
            factor_type = RiskFactorType(key)
            value = float(value)
            if not math.isfinite(value):
                raise ModelUpdateError(f"Adjuster proposed non-finite weight for {factor_type}")
            previous = current.weight_for(factor_type)
            step = max(-cfg.max_step_per_batch, min(cfg.max_step_per_batch, value - previous))
            updated[factor_type] = max(cfg.min_weight, min(cfg.max_weight, previous + step))
        return updated
