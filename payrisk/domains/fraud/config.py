"""Fraud scoring configuration with sensible defaults."""

import os
from dataclasses import dataclass, field


@dataclass(frozen=True)
class VelocityThresholds:
    """Limits for one velocity window. Amounts are in minor units."""

    transactions: int
    amount: int
    devices: int
    locations: int


def _default_windows() -> dict[str, VelocityThresholds]:
    return {
        "1h": VelocityThresholds(transactions=5, amount=100_000, devices=2, locations=2),
        "24h": VelocityThresholds(transactions=20, amount=500_000, devices=3, locations=3),
        "7d": VelocityThresholds(transactions=100, amount=2_000_000, devices=5, locations=5),
        "30d": VelocityThresholds(transactions=500, amount=10_000_000, devices=10, locations=10),
    }


@dataclass
class VelocitySettings:
    windows: dict[str, VelocityThresholds] = field(default_factory=_default_windows)
    # Ring buffer capacity per (identifier, window) key
    buffer_capacity: int = 2048
    # Risk reaches 100 at this multiple of a threshold
    saturation_multiple: float = 3.0
    # Ceiling for the velocity factor when no window is exceeded
    below_threshold_max_score: float = 25.0


@dataclass
class AmountSettings:
    # Minor units ($100.00)
    baseline_amount: int = 10_000
    # Score is 50 when amount == baseline * saturation
    saturation: float = 4.0


@dataclass
class DeviceSettings:
    missing_fingerprint_score: float = 40.0
    unknown_device_score: float = 60.0
    indicator_penalty_score: float = 15.0
    base_trust: float = 0.5
    clean_history_bonus: float = 0.2
    indicator_trust_penalty: float = 0.1
    max_age_bonus: float = 0.3
    age_bonus_per_day: float = 0.01
    max_frequency_bonus: float = 0.1
    frequency_bonus_per_observation: float = 0.01
    # Trust ceiling once half the expected attributes are missing
    incomplete_trust_ceiling: float = 0.6
    hash_name: str = "sha256"


@dataclass
class TimePatternSettings:
    neutral_score: float = 20.0
    min_history: int = 5
    # Floor for circular spread in hours, avoids divide-by-zero on rigid users
    min_spread_hours: float = 1.0
    score_per_deviation: float = 25.0


@dataclass
class GeoSettings:
    high_risk_countries: tuple[str, ...] = ()
    missing_billing_score: float = 30.0
    baseline_score: float = 15.0
    new_country_boost: float = 30.0
    high_risk_country_boost: float = 50.0
    non_routable_ip_boost: float = 20.0


@dataclass
class BehavioralSettings:
    neutral_score: float = 25.0
    min_history: int = 3
    base_score: float = 10.0
    score_per_zscore: float = 20.0
    # Z-score used for any increase over a history of identical amounts
    flat_history_zscore: float = 3.0
    address_mismatch_boost: float = 15.0


@dataclass
class PaymentMethodSettings:
    neutral_score: float = 20.0
    known_method_score: float = 10.0
    new_method_score: float = 55.0
    missing_method_score: float = 50.0


@dataclass
class ModelSettings:
    learning_rate: float = 0.1
    # Largest change any single batch may apply to one weight
    max_step_per_batch: float = 0.05
    min_weight: float = 0.0
    max_weight: float = 1.0
    initial_weights: dict[str, float] = field(
        default_factory=lambda: {
            "velocity": 0.25,
            "geographic": 0.20,
            "device": 0.20,
            "behavioral": 0.15,
            "payment_method": 0.10,
            "amount": 0.05,
            "time_pattern": 0.05,
            "reputation": 0.05,
        }
    )


@dataclass
class PolicySettings:
    approve_below: float = 30.0
    decline_above: float = 70.0
    # Severity override: one extreme, heavily weighted factor forces review
    override_min_score: float = 90.0
    override_min_weight: float = 0.3
    medium_from: float = 30.0
    high_from: float = 60.0
    critical_from: float = 80.0
    recommendation_threshold: float = 70.0
    validation_confidence_cap: float = 0.3
    no_evidence_confidence_cap: float = 0.3


@dataclass
class FraudConfig:
    velocity: VelocitySettings = field(default_factory=VelocitySettings)
    amount: AmountSettings = field(default_factory=AmountSettings)
    device: DeviceSettings = field(default_factory=DeviceSettings)
    time_pattern: TimePatternSettings = field(default_factory=TimePatternSettings)
    geo: GeoSettings = field(default_factory=GeoSettings)
    behavioral: BehavioralSettings = field(default_factory=BehavioralSettings)
    payment_method: PaymentMethodSettings = field(default_factory=PaymentMethodSettings)
    model: ModelSettings = field(default_factory=ModelSettings)
    policy: PolicySettings = field(default_factory=PolicySettings)

    @classmethod
    def from_env(cls) -> "FraudConfig":
        """Load config with env var overrides. Env vars use FRAUD_ prefix."""
        config = cls()

        # Amount overrides
        if v := os.getenv("FRAUD_AMOUNT_BASELINE"):
            config.amount.baseline_amount = int(v)
        if v := os.getenv("FRAUD_AMOUNT_SATURATION"):
            config.amount.saturation = float(v)

        # Velocity overrides
        if v := os.getenv("FRAUD_VELOCITY_BUFFER_CAPACITY"):
            config.velocity.buffer_capacity = int(v)
        if v := os.getenv("FRAUD_VELOCITY_TXN_1H_MAX"):
            current = config.velocity.windows["1h"]
            config.velocity.windows["1h"] = VelocityThresholds(
                transactions=int(v),
                amount=current.amount,
                devices=current.devices,
                locations=current.locations,
            )
        if v := os.getenv("FRAUD_VELOCITY_AMOUNT_24H_MAX"):
            current = config.velocity.windows["24h"]
            config.velocity.windows["24h"] = VelocityThresholds(
                transactions=current.transactions,
                amount=int(v),
                devices=current.devices,
                locations=current.locations,
            )

        # Geo overrides
        if v := os.getenv("FRAUD_HIGH_RISK_COUNTRIES"):
            config.geo.high_risk_countries = tuple(
                c.strip().upper() for c in v.split(",") if c.strip()
            )

        # Policy overrides
        if v := os.getenv("FRAUD_POLICY_APPROVE_BELOW"):
            config.policy.approve_below = float(v)
        if v := os.getenv("FRAUD_POLICY_DECLINE_ABOVE"):
            config.policy.decline_above = float(v)

        # Model overrides
        if v := os.getenv("FRAUD_MODEL_LEARNING_RATE"):
            config.model.learning_rate = float(v)
        if v := os.getenv("FRAUD_MODEL_MAX_STEP"):
            config.model.max_step_per_batch = float(v)

        return config


# Module-level default instance
default_config = FraudConfig()
