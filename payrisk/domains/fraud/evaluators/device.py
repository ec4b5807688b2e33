"""Device trust risk."""

from ..config import FraudConfig
from ..fingerprint import AUTOMATION_USER_AGENT
from ..history import ScoringInputs
from ..model_updater import WeightTable
from ..models import RiskFactor, RiskFactorType, TransactionContext
from .base import RiskEvaluator


class DeviceEvaluator(RiskEvaluator):
    """Low trust and risk indicators on the stored fingerprint raise the score."""

    evaluator_id = "device"
    factor_type = RiskFactorType.DEVICE

    def evaluate(
        self,
        context: TransactionContext,
        inputs: ScoringInputs,
        weights: WeightTable,
        config: FraudConfig,
    ) -> RiskFactor:
        cfg = config.device
        automation = bool(
            context.user_agent and AUTOMATION_USER_AGENT.search(context.user_agent)
        )
        automation_penalty = cfg.indicator_penalty_score if automation else 0.0

        if not context.device_fingerprint:
            return self._factor(
                cfg.missing_fingerprint_score + automation_penalty,
                weights,
                "No device fingerprint provided",
                {"automation_user_agent": automation},
            )

        if "device" in inputs.unavailable:
            return self._factor(
                cfg.missing_fingerprint_score + automation_penalty,
                weights,
                "Device history unavailable",
                {"fingerprint_id": context.device_fingerprint, "unavailable": True},
            )

        device = inputs.device
        if device is None:
            return self._factor(
                cfg.unknown_device_score + automation_penalty,
                weights,
                "Unrecognized device",
                {"fingerprint_id": context.device_fingerprint, "automation_user_agent": automation},
            )

        score = (1.0 - device.trust_score) * 100.0
        score += len(device.risk_indicators) * cfg.indicator_penalty_score
        if automation and "automation_user_agent" not in device.risk_indicators:
            score += automation_penalty
        return self._factor(
            score,
            weights,
            f"Known device, trust {device.trust_score:.2f}",
            {
                "fingerprint_id": device.id,
                "trust_score": device.trust_score,
                "risk_indicators": list(device.risk_indicators),
            },
        )
