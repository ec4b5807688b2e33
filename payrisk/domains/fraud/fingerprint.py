"""Device fingerprinting: stable identity and trust score from client attributes.

The identity hash is computed over a canonical JSON encoding of the supplied
attributes: keys are normalized to snake_case and sorted, so the same device
reported with a different key order or spelling (``userAgent`` vs
``user_agent``) always maps to the same id. When two spellings of one key are
both supplied the snake_case one wins. Volatile network measurements are left
out of the hash.
"""

import hashlib
import json
import re
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

import structlog

from .config import DeviceSettings, FraudConfig, default_config
from .models import (
    BrowserInfo,
    DeviceFingerprint,
    DeviceObservation,
    NetworkInfo,
    ScreenInfo,
)

logger = structlog.get_logger()

EXPECTED_ATTRIBUTES: tuple[str, ...] = (
    "user_agent",
    "language",
    "timezone",
    "platform",
    "screen_width",
    "screen_height",
    "color_depth",
    "pixel_ratio",
    "cookies_enabled",
    "do_not_track",
)

VOLATILE_ATTRIBUTES = frozenset({"downlink", "effective_type", "rtt", "battery_level"})

AUTOMATION_USER_AGENT = re.compile(
    r"headless|phantomjs|selenium|webdriver|puppeteer|playwright|python-requests"
    r"|curl/|wget/|go-http-client|scrapy|crawler|spider|\bbot\b",
    re.IGNORECASE,
)
_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")

MIN_DIGEST_BITS = 128


def normalize_key(key: Any) -> str:
    """``screenWidth`` -> ``screen_width``; other keys are lowercased and stripped."""
    text = str(key).strip()
    return _CAMEL_BOUNDARY.sub("_", text).replace("-", "_").replace(" ", "_").lower()


def _normalize_mapping(mapping: Mapping[Any, Any], keep=None) -> dict[str, Any]:
    """Normalize keys, resolving spellings that collide on the same name.

    The key already spelled in normalized form wins; otherwise the first key in
    sorted order does, so the result never depends on insertion order.
    """
    normalized: dict[str, Any] = {}
    for key, value in sorted(mapping.items(), key=lambda item: str(item[0])):
        name = normalize_key(key)
        if keep is not None and not keep(name, value):
            continue
        if name in normalized and str(key).strip() != name:
            continue
        normalized[name] = value
    return normalized


def _canonical_value(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, bool) or value is None or isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else value
    if isinstance(value, Mapping):
        return {k: _canonical_value(v) for k, v in _normalize_mapping(value).items()}
    if isinstance(value, (list, tuple)):
        return [_canonical_value(v) for v in value]
    if isinstance(value, (set, frozenset)):
        return sorted(str(_canonical_value(v)) for v in value)
    return str(value)


def _is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _as_int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _as_float(value: Any, default: float) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


class DeviceFingerprintGenerator:
    """Derives a deterministic device id and a trust score."""

    def __init__(self, config: FraudConfig | None = None, hash_name: str | None = None) -> None:
        self._config = config or default_config
        self._hash_name = hash_name or self._config.device.hash_name
        digest_bits = hashlib.new(self._hash_name).digest_size * 8
        if digest_bits < MIN_DIGEST_BITS:
            raise ValueError(
                f"Fingerprint hash {self._hash_name} has a {digest_bits}-bit digest, "
                f"at least {MIN_DIGEST_BITS} bits required"
            )

    @property
    def hash_name(self) -> str:
        return self._hash_name

    def canonicalize(self, attributes: Mapping[str, Any]) -> dict[str, Any]:
        """Normalized, hash-relevant view of the attributes (missing values dropped)."""
        relevant = _normalize_mapping(
            attributes,
            keep=lambda name, value: name not in VOLATILE_ATTRIBUTES and not _is_missing(value),
        )
        return {name: _canonical_value(value) for name, value in relevant.items()}

    def compute_id(self, attributes: Mapping[str, Any]) -> str:
        payload = json.dumps(
            self.canonicalize(attributes),
            sort_keys=True,
            separators=(",", ":"),
            ensure_ascii=True,
        )
        return hashlib.new(self._hash_name, payload.encode("utf-8")).hexdigest()

    def generate_device_fingerprint(
        self,
        attributes: Mapping[str, Any] | None,
        observation: DeviceObservation | None = None,
        user_id: str | None = None,
        now: datetime | None = None,
    ) -> DeviceFingerprint:
        """Build a fingerprint. Never raises; bad input yields a low-trust result."""
        now = now or datetime.now(UTC)
        if now.tzinfo is None:
            now = now.replace(tzinfo=UTC)
        try:
            return self._generate(attributes, observation, user_id, now)
        except Exception:
            logger.exception("device_fingerprint_failed", user_id=user_id)
            return DeviceFingerprint(
                id=hashlib.new(self._hash_name, repr(attributes).encode("utf-8")).hexdigest(),
                user_id=user_id,
                first_seen=now,
                last_seen=now,
                trust_score=0.0,
                risk_indicators=["fingerprint_generation_failed"],
            )

    def _generate(
        self,
        attributes: Mapping[str, Any] | None,
        observation: DeviceObservation | None,
        user_id: str | None,
        now: datetime,
    ) -> DeviceFingerprint:
        indicators: list[str] = []
        if not isinstance(attributes, Mapping):
            if attributes is not None:
                indicators.append("invalid_attribute_payload")
            attributes = {}

        raw = _normalize_mapping(attributes)
        canonical = self.canonicalize(attributes)
        fingerprint_id = self.compute_id(attributes)

        present = sum(1 for name in EXPECTED_ATTRIBUTES if name in canonical)
        completeness = present / len(EXPECTED_ATTRIBUTES)

        indicators.extend(self._risk_indicators(canonical, completeness))
        if observation:
            for indicator in observation.risk_indicators:
                if indicator not in indicators:
                    indicators.append(indicator)

        trust = self._trust_score(indicators, completeness, observation, now)

        fingerprint = DeviceFingerprint(
            id=fingerprint_id,
            user_id=user_id,
            browser_info=BrowserInfo(
                user_agent=str(canonical.get("user_agent", "")),
                language=str(canonical.get("language", "en")),
                timezone=str(canonical.get("timezone", "UTC")),
                platform=str(canonical.get("platform", "unknown")),
                cookies_enabled=_as_bool(canonical.get("cookies_enabled", False)),
                do_not_track=_as_bool(canonical.get("do_not_track", False)),
            ),
            screen_info=ScreenInfo(
                width=_as_int(canonical.get("screen_width")),
                height=_as_int(canonical.get("screen_height")),
                color_depth=_as_int(canonical.get("color_depth")),
                pixel_ratio=_as_float(canonical.get("pixel_ratio"), 1.0),
            ),
            network_info=NetworkInfo(
                connection_type=str(raw.get("connection_type") or "unknown"),
                downlink=_as_float(raw.get("downlink"), 0.0),
                effective_type=str(raw.get("effective_type") or "unknown"),
            ),
            first_seen=observation.first_seen if observation else now,
            last_seen=now,
            trust_score=trust,
            risk_indicators=indicators,
            attribute_completeness=round(completeness, 4),
        )

        logger.debug(
            "device_fingerprint_generated",
            fingerprint_id=fingerprint_id,
            trust_score=trust,
            completeness=completeness,
            indicators=indicators,
        )
        return fingerprint

    def _risk_indicators(self, canonical: dict[str, Any], completeness: float) -> list[str]:
        indicators = []
        if completeness <= 0.5:
            indicators.append("incomplete_attribute_set")

        user_agent = canonical.get("user_agent")
        if not user_agent:
            indicators.append("missing_user_agent")
        elif AUTOMATION_USER_AGENT.search(str(user_agent)):
            indicators.append("automation_user_agent")

        if _as_bool(canonical.get("webdriver", False)):
            indicators.append("webdriver_flag")

        for dimension in ("screen_width", "screen_height"):
            if dimension in canonical:
                size = _as_int(canonical[dimension], -1)
                if size <= 0 or size > 16_384:
                    indicators.append("implausible_screen_geometry")
                    break
        return indicators

    def _trust_score(
        self,
        indicators: list[str],
        completeness: float,
        observation: DeviceObservation | None,
        now: datetime,
    ) -> float:
        cfg: DeviceSettings = self._config.device
        trust = cfg.base_trust

        if observation:
            first_seen = observation.first_seen
            if first_seen.tzinfo is None:
                first_seen = first_seen.replace(tzinfo=UTC)
            age_days = max(0.0, (now - first_seen).total_seconds() / 86_400)
            trust += min(cfg.max_age_bonus, age_days * cfg.age_bonus_per_day)
            trust += min(
                cfg.max_frequency_bonus,
                max(observation.observation_count, 0) * cfg.frequency_bonus_per_observation,
            )

        if not indicators:
            trust += cfg.clean_history_bonus
        else:
            trust -= len(indicators) * cfg.indicator_trust_penalty

        if completeness <= 0.5:
            trust = min(trust, cfg.incomplete_trust_ceiling)

        return round(max(0.0, min(1.0, trust)), 4)
