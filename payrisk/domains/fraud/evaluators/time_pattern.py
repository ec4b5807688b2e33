"""Time-of-day deviation from the user's habitual transaction hours."""

import math
from datetime import UTC, datetime

from ..config import FraudConfig
from ..history import ScoringInputs
from ..model_updater import WeightTable
from ..models import RiskFactor, RiskFactorType, TransactionContext
from .base import RiskEvaluator

_HOURS_PER_RADIAN = 24.0 / (2.0 * math.pi)


def _hour_angle(moment: datetime) -> float:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    moment = moment.astimezone(UTC)
    hours = moment.hour + moment.minute / 60.0 + moment.second / 3600.0
    return hours / _HOURS_PER_RADIAN


def circular_hour_stats(times: list[datetime]) -> tuple[float, float]:
    """Mean angle (radians) and mean resultant length R of the hours of day.

    Hours wrap at midnight, so 23:00 and 01:00 average to 00:00, not noon.
    """
    angles = [_hour_angle(t) for t in times]
    c = sum(math.cos(a) for a in angles) / len(angles)
    s = sum(math.sin(a) for a in angles) / len(angles)
    return math.atan2(s, c), math.hypot(c, s)


class TimePatternEvaluator(RiskEvaluator):
    evaluator_id = "time_pattern"
    factor_type = RiskFactorType.TIME_PATTERN

    def evaluate(
        self,
        context: TransactionContext,
        inputs: ScoringInputs,
        weights: WeightTable,
        config: FraudConfig,
    ) -> RiskFactor:
        cfg = config.time_pattern
        history = inputs.user_history
        times = history.transaction_times if history else []

        if len(times) < cfg.min_history:
            return self._factor(
                cfg.neutral_score,
                weights,
                "Insufficient history for time pattern",
                {"history_size": len(times)},
            )

        mean_angle, resultant = circular_hour_stats(times)
        if resultant < 1e-9:
            return self._factor(
                cfg.neutral_score,
                weights,
                "No habitual transaction hour",
                {"history_size": len(times)},
            )

        spread_hours = math.sqrt(-2.0 * math.log(min(resultant, 1.0))) * _HOURS_PER_RADIAN
        spread_hours = max(spread_hours, cfg.min_spread_hours)

        angle = _hour_angle(context.timestamp_utc)
        delta = math.atan2(math.sin(angle - mean_angle), math.cos(angle - mean_angle))
        deviation_hours = abs(delta) * _HOURS_PER_RADIAN
        z = deviation_hours / spread_hours

        return self._factor(
            z * cfg.score_per_deviation,
            weights,
            f"Transaction {deviation_hours:.1f}h from usual hour",
            {
                "usual_hour": round((mean_angle * _HOURS_PER_RADIAN) % 24.0, 2),
                "deviation_hours": round(deviation_hours, 2),
                "spread_hours": round(spread_hours, 2),
            },
        )
