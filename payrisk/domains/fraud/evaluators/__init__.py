"""Risk evaluators package.

Exports ALL_EVALUATORS (one instance per factor type, in scoring order)
and the individual evaluator classes.
"""

from .amount import AmountEvaluator
from .base import RiskEvaluator
from .behavioral import BehavioralEvaluator
from .device import DeviceEvaluator
from .geo import GeographicEvaluator
from .payment_method import PaymentMethodEvaluator
from .time_pattern import TimePatternEvaluator, circular_hour_stats
from .velocity import VelocityEvaluator

# All evaluator instances in scoring order
ALL_EVALUATORS: list[RiskEvaluator] = [
    VelocityEvaluator(),
    GeographicEvaluator(),
    DeviceEvaluator(),
    BehavioralEvaluator(),
    PaymentMethodEvaluator(),
    AmountEvaluator(),
    TimePatternEvaluator(),
]

__all__ = [
    "ALL_EVALUATORS",
    "AmountEvaluator",
    "BehavioralEvaluator",
    "DeviceEvaluator",
    "GeographicEvaluator",
    "PaymentMethodEvaluator",
    "RiskEvaluator",
    "TimePatternEvaluator",
    "VelocityEvaluator",
    "circular_hour_stats",
]
