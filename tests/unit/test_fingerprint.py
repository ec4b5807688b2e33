"""Unit tests for device fingerprinting."""

from datetime import UTC, datetime, timedelta
from unittest.mock import patch

import pytest

from payrisk.domains.fraud.fingerprint import DeviceFingerprintGenerator, normalize_key
from payrisk.domains.fraud.models import DeviceObservation

NOW = datetime(2026, 1, 15, 14, 0, 0, tzinfo=UTC)


@pytest.fixture
def generator() -> DeviceFingerprintGenerator:
    return DeviceFingerprintGenerator()


class TestNormalizeKey:
    def test_camel_case(self):
        assert normalize_key("screenWidth") == "screen_width"
        assert normalize_key("userAgent") == "user_agent"

    def test_snake_case_unchanged(self):
        assert normalize_key("screen_width") == "screen_width"

    def test_whitespace_and_dashes(self):
        assert normalize_key(" color-depth ") == "color_depth"


class TestFingerprintIdentity:
    def test_deterministic_under_key_reordering(self, generator, device_attributes):
        reordered = dict(reversed(list(device_attributes.items())))
        first = generator.generate_device_fingerprint(device_attributes, now=NOW)
        second = generator.generate_device_fingerprint(reordered, now=NOW)
        assert first.id == second.id

    def test_key_spelling_does_not_change_id(self, generator, device_attributes):
        snake = {normalize_key(k): v for k, v in device_attributes.items()}
        assert generator.compute_id(snake) == generator.compute_id(device_attributes)

    def test_colliding_spellings_resolved_independent_of_order(self, generator):
        camel_first = {"userAgent": "Agent/A", "user_agent": "Agent/B"}
        snake_first = {"user_agent": "Agent/B", "userAgent": "Agent/A"}
        assert generator.compute_id(camel_first) == generator.compute_id(snake_first)
        assert generator.compute_id(camel_first) == generator.compute_id({"user_agent": "Agent/B"})
        fingerprint = generator.generate_device_fingerprint(camel_first, now=NOW)
        assert fingerprint.browser_info.user_agent == "Agent/B"

    def test_volatile_attributes_excluded(self, generator, device_attributes):
        with_network = {**device_attributes, "downlink": 9.5, "rtt": 50}
        assert generator.compute_id(with_network) == generator.compute_id(device_attributes)

    def test_different_devices_differ(self, generator, device_attributes):
        other = {**device_attributes, "screenWidth": 1366}
        assert generator.compute_id(other) != generator.compute_id(device_attributes)

    def test_no_collisions_across_distinct_attribute_sets(self, generator, device_attributes):
        ids = set()
        for width in range(800, 1300):
            for platform in ("Win32", "MacIntel"):
                attributes = {**device_attributes, "screenWidth": width, "platform": platform}
                ids.add(generator.compute_id(attributes))
        assert len(ids) == 1000

    def test_id_is_sha256_hex(self, generator, device_attributes):
        fingerprint_id = generator.compute_id(device_attributes)
        assert len(fingerprint_id) == 64
        int(fingerprint_id, 16)

    def test_short_digest_rejected(self):
        with pytest.raises(ValueError):
            DeviceFingerprintGenerator(hash_name="shake_128")


class TestTrustScore:
    def test_complete_clean_device(self, generator, device_attributes):
        fingerprint = generator.generate_device_fingerprint(device_attributes, now=NOW)
        assert fingerprint.risk_indicators == []
        assert fingerprint.trust_score == pytest.approx(0.7)
        assert fingerprint.attribute_completeness == 1.0

    def test_empty_attributes_are_low_trust(self, generator):
        fingerprint = generator.generate_device_fingerprint({}, now=NOW)
        assert fingerprint.trust_score < 0.8
        assert "incomplete_attribute_set" in fingerprint.risk_indicators
        assert "missing_user_agent" in fingerprint.risk_indicators

    def test_established_device_gains_trust(self, generator, device_attributes):
        observation = DeviceObservation(first_seen=NOW - timedelta(days=60), observation_count=40)
        fingerprint = generator.generate_device_fingerprint(
            device_attributes, observation=observation, now=NOW
        )
        assert fingerprint.trust_score == 1.0
        assert fingerprint.first_seen == observation.first_seen

    def test_automation_user_agent_flagged(self, generator, device_attributes):
        attributes = {**device_attributes, "userAgent": "Mozilla/5.0 HeadlessChrome/120.0"}
        fingerprint = generator.generate_device_fingerprint(attributes, now=NOW)
        assert "automation_user_agent" in fingerprint.risk_indicators
        assert fingerprint.trust_score == pytest.approx(0.4)

    def test_observation_indicators_merged(self, generator, device_attributes):
        observation = DeviceObservation(
            first_seen=NOW, observation_count=1, risk_indicators=["chargeback_history"]
        )
        fingerprint = generator.generate_device_fingerprint(
            device_attributes, observation=observation, now=NOW
        )
        assert "chargeback_history" in fingerprint.risk_indicators

    def test_trust_bounded(self, generator, device_attributes):
        attributes = {
            "userAgent": "python-requests/2.31",
            "webdriver": True,
            "screenWidth": 0,
        }
        fingerprint = generator.generate_device_fingerprint(attributes, now=NOW)
        assert 0.0 <= fingerprint.trust_score <= 1.0
        assert "implausible_screen_geometry" in fingerprint.risk_indicators
        assert "webdriver_flag" in fingerprint.risk_indicators


class TestGracefulDegradation:
    def test_non_mapping_input(self, generator):
        fingerprint = generator.generate_device_fingerprint("not-a-dict", now=NOW)
        assert "invalid_attribute_payload" in fingerprint.risk_indicators
        assert fingerprint.trust_score < 0.5

    def test_none_input(self, generator):
        fingerprint = generator.generate_device_fingerprint(None, now=NOW)
        assert fingerprint.id
        assert fingerprint.trust_score < 0.8

    def test_internal_failure_returns_zero_trust(self, generator, device_attributes):
        with patch.object(generator, "_generate", side_effect=RuntimeError("boom")):
            fingerprint = generator.generate_device_fingerprint(device_attributes, now=NOW)
        assert fingerprint.trust_score == 0.0
        assert fingerprint.risk_indicators == ["fingerprint_generation_failed"]

    def test_naive_now_treated_as_utc(self, generator, device_attributes):
        fingerprint = generator.generate_device_fingerprint(
            device_attributes, now=datetime(2026, 1, 15, 14, 0, 0)
        )
        assert fingerprint.last_seen.tzinfo is not None
