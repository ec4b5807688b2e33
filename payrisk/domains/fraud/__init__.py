"""Fraud risk scoring domain."""

from .config import FraudConfig, default_config
from .engine import RiskScoringEngine
from .errors import (
    FraudEngineError,
    LookupTimeoutError,
    ModelUpdateError,
    ValidationError,
    VelocityCheckError,
)
from .evaluators import ALL_EVALUATORS
from .fingerprint import DeviceFingerprintGenerator
from .history import HistoryStore, InMemoryHistoryStore
from .model_updater import ModelUpdater, WeightTable
from .models import (
    Address,
    Decision,
    DeviceFingerprint,
    DeviceObservation,
    RiskFactor,
    RiskFactorType,
    RiskLevel,
    RiskScore,
    TrainingExample,
    TransactionContext,
    UserHistory,
    VelocityCheck,
)
from .policy import DecisionPolicy
from .velocity import VelocityTracker

__all__ = [
    "ALL_EVALUATORS",
    "Address",
    "Decision",
    "DecisionPolicy",
    "DeviceFingerprint",
    "DeviceFingerprintGenerator",
    "DeviceObservation",
    "FraudConfig",
    "FraudEngineError",
    "HistoryStore",
    "InMemoryHistoryStore",
    "LookupTimeoutError",
    "ModelUpdateError",
    "ModelUpdater",
    "RiskFactor",
    "RiskFactorType",
    "RiskLevel",
    "RiskScore",
    "RiskScoringEngine",
    "TrainingExample",
    "TransactionContext",
    "UserHistory",
    "ValidationError",
    "VelocityCheck",
    "VelocityCheckError",
    "VelocityTracker",
    "WeightTable",
    "default_config",
]
