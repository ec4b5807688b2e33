"""Pydantic models for the fraud domain."""

import ipaddress
import re
from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

from .config import VelocityThresholds
from .errors import ValidationError

_CURRENCY_RE = re.compile(r"^[A-Z]{3}$")


class RiskFactorType(StrEnum):
    VELOCITY = "velocity"
    GEOGRAPHIC = "geographic"
    DEVICE = "device"
    BEHAVIORAL = "behavioral"
    PAYMENT_METHOD = "payment_method"
    AMOUNT = "amount"
    TIME_PATTERN = "time_pattern"
    REPUTATION = "reputation"


class RiskLevel(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class Severity(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class Decision(StrEnum):
    APPROVE = "approve"
    REVIEW = "review"
    DECLINE = "decline"


class Outcome(StrEnum):
    FRAUD = "fraud"
    LEGITIMATE = "legitimate"


def severity_for_score(score: float) -> Severity:
    if score >= 90:
        return Severity.CRITICAL
    if score > 80:
        return Severity.HIGH
    if score > 60:
        return Severity.MEDIUM
    return Severity.LOW


class Address(BaseModel):
    model_config = ConfigDict(frozen=True)

    line1: str = ""
    line2: str | None = None
    city: str = ""
    state: str = ""
    postal_code: str = ""
    country: str = ""


class TransactionContext(BaseModel):
    """Immutable scoring input.

    Field types are loose: a malformed context must still be
    scoreable, so problems are reported by ``validation_issues`` rather than
    rejected at construction.
    """

    model_config = ConfigDict(frozen=True)

    transaction_id: str = ""
    user_id: str = ""
    customer_id: str | None = None
    amount: int = 0
    currency: str = "USD"
    payment_method_id: str = ""
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    ip_address: str = ""
    user_agent: str = ""
    device_fingerprint: str | None = None
    billing_address: Address | None = None
    shipping_address: Address | None = None
    merchant_id: str | None = None
    metadata: dict = Field(default_factory=dict)

    @property
    def timestamp_utc(self) -> datetime:
        if self.timestamp.tzinfo is None:
            return self.timestamp.replace(tzinfo=UTC)
        return self.timestamp.astimezone(UTC)

    @property
    def billing_country(self) -> str | None:
        if self.billing_address and self.billing_address.country:
            return self.billing_address.country.strip().upper()
        return None

    def validation_issues(self) -> list[ValidationError]:
        issues: list[ValidationError] = []
        if not self.transaction_id.strip():
            issues.append(ValidationError("transaction_id", "must not be empty"))
        if not self.user_id.strip():
            issues.append(ValidationError("user_id", "must not be empty"))
        if self.amount <= 0:
            issues.append(ValidationError("amount", f"must be positive, got {self.amount}"))
        if not _CURRENCY_RE.match(self.currency):
            issues.append(ValidationError("currency", f"not an ISO-4217 code: {self.currency!r}"))
        if not self.payment_method_id.strip():
            issues.append(ValidationError("payment_method_id", "must not be empty"))
        if self.ip_address:
            try:
                ipaddress.ip_address(self.ip_address)
            except ValueError:
                issues.append(
                    ValidationError("ip_address", f"not an IP address: {self.ip_address!r}")
                )
        return issues


class RiskFactor(BaseModel):
    type: RiskFactorType
    score: float = Field(ge=0.0, le=100.0)
    weight: float = Field(ge=0.0, le=1.0)
    description: str = ""
    severity: Severity = Severity.LOW
    evidence: dict = Field(default_factory=dict)

    @classmethod
    def build(
        cls,
        factor_type: RiskFactorType,
        score: float,
        weight: float,
        description: str,
        evidence: dict | None = None,
    ) -> "RiskFactor":
        """Clamp score and weight into range and derive severity."""
        score = max(0.0, min(100.0, float(score)))
        weight = max(0.0, min(1.0, float(weight)))
        return cls(
            type=factor_type,
            score=round(score, 2),
            weight=weight,
            description=description,
            severity=severity_for_score(score),
            evidence=evidence or {},
        )


class RiskScore(BaseModel):
    transaction_id: str
    overall_score: float = Field(ge=0.0, le=100.0)
    risk_level: RiskLevel
    decision: Decision
    confidence: float = Field(ge=0.0, le=1.0)
    factors: list[RiskFactor] = []
    recommendations: list[str] = []
    model_version: str = "weights-v0"
    computed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class BrowserInfo(BaseModel):
    user_agent: str = ""
    language: str = "en"
    timezone: str = "UTC"
    platform: str = "unknown"
    cookies_enabled: bool = False
    do_not_track: bool = False


class ScreenInfo(BaseModel):
    width: int = 0
    height: int = 0
    color_depth: int = 0
    pixel_ratio: float = 1.0


class NetworkInfo(BaseModel):
    connection_type: str = "unknown"
    downlink: float = 0.0
    effective_type: str = "unknown"


class DeviceObservation(BaseModel):
    """What the caller's persistence layer knows about a fingerprint."""

    first_seen: datetime
    last_seen: datetime | None = None
    observation_count: int = 1
    risk_indicators: list[str] = []


class DeviceFingerprint(BaseModel):
    id: str
    user_id: str | None = None
    browser_info: BrowserInfo = Field(default_factory=BrowserInfo)
    screen_info: ScreenInfo = Field(default_factory=ScreenInfo)
    network_info: NetworkInfo = Field(default_factory=NetworkInfo)
    first_seen: datetime
    last_seen: datetime
    trust_score: float = Field(ge=0.0, le=1.0)
    risk_indicators: list[str] = []
    attribute_completeness: float = Field(default=0.0, ge=0.0, le=1.0)


class VelocityCheck(BaseModel):
    user_id: str = ""
    customer_id: str | None = None
    payment_method_id: str | None = None
    time_window: str
    identifier_kind: str | None = None
    transaction_count: int = 0
    total_amount: int = 0
    unique_devices: int = 0
    unique_locations: int = 0
    risk_score: float = Field(default=0.0, ge=0.0, le=100.0)
    exceeded: bool = False
    thresholds: VelocityThresholds


class TrainingExample(BaseModel):
    """A labeled outcome. Validity is checked by the model updater."""

    transaction_id: str = ""
    features: list[RiskFactor] = []
    actual_outcome: str = ""
    confidence: float = 0.0


class UserHistory(BaseModel):
    transaction_times: list[datetime] = []
    amounts: list[int] = []
    payment_method_ids: set[str] = set()
    countries: set[str] = set()
