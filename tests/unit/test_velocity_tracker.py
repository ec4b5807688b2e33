"""Unit tests for the sharded velocity tracker."""

import threading
from datetime import UTC, datetime, timedelta

import pytest

from payrisk.domains.fraud.config import FraudConfig, VelocityThresholds
from payrisk.domains.fraud.errors import VelocityCheckError
from payrisk.domains.fraud.velocity import (
    VelocityTracker,
    WindowAggregate,
    is_exceeded,
    parse_window,
    threshold_utilisation,
    velocity_risk,
)

LIMITS = VelocityThresholds(transactions=5, amount=100_000, devices=2, locations=2)


class TestParseWindow:
    def test_units(self):
        assert parse_window("15m") == timedelta(minutes=15)
        assert parse_window("1h") == timedelta(hours=1)
        assert parse_window("7d") == timedelta(days=7)
        assert parse_window("2w") == timedelta(weeks=2)

    @pytest.mark.parametrize("label", ["", "h", "1x", "-1h", "0h"])
    def test_invalid(self, label):
        with pytest.raises(ValueError):
            parse_window(label)


class TestRiskHelpers:
    def test_utilisation_uses_largest_ratio(self):
        aggregate = WindowAggregate(transaction_count=1, total_amount=150_000)
        assert threshold_utilisation(aggregate, LIMITS) == pytest.approx(1.5)

    def test_at_threshold_not_exceeded(self):
        assert not is_exceeded(WindowAggregate(transaction_count=5), LIMITS)
        assert is_exceeded(WindowAggregate(transaction_count=6), LIMITS)

    def test_risk_scales_from_threshold_to_saturation(self):
        assert velocity_risk(1.0, 3.0) == 0.0
        assert velocity_risk(2.0, 3.0) == pytest.approx(50.0)
        assert velocity_risk(3.0, 3.0) == pytest.approx(100.0)
        assert velocity_risk(10.0, 3.0) == 100.0


class TestCheckVelocity:
    def test_requires_an_identifier(self, velocity_tracker):
        with pytest.raises(VelocityCheckError):
            velocity_tracker.check_velocity("", "", "")
        with pytest.raises(VelocityCheckError):
            velocity_tracker.check_velocity(None, None, None)

    def test_one_check_per_window(self, velocity_tracker):
        checks = velocity_tracker.check_velocity("user-1")
        assert [c.time_window for c in checks] == ["1h", "24h", "7d", "30d"]
        assert all(c.transaction_count == 0 and not c.exceeded for c in checks)

    def test_count_threshold_exceeded(self, velocity_tracker):
        for _ in range(6):
            velocity_tracker.record_transaction("user-1", amount=1_000)
        checks = {c.time_window: c for c in velocity_tracker.check_velocity("user-1")}
        assert checks["1h"].exceeded
        assert checks["1h"].transaction_count == 6
        assert checks["1h"].risk_score == pytest.approx(10.0)
        assert not checks["24h"].exceeded

    def test_amount_threshold_exceeded(self, velocity_tracker):
        velocity_tracker.record_transaction("user-1", amount=300_000)
        check = velocity_tracker.check_velocity("user-1")[0]
        assert check.exceeded
        assert check.risk_score == 100.0

    def test_unique_devices_and_locations(self, velocity_tracker):
        for i in range(3):
            velocity_tracker.record_transaction(
                "user-1", amount=100, device_id=f"dev-{i}", location="198.51.100.1"
            )
        check = velocity_tracker.check_velocity("user-1")[0]
        assert check.unique_devices == 3
        assert check.unique_locations == 1
        assert check.exceeded

    def test_reports_riskiest_identifier(self, velocity_tracker):
        for i in range(6):
            velocity_tracker.record_transaction(f"user-{i}", payment_method_id="pm-shared")
        check = velocity_tracker.check_velocity("user-new", payment_method_id="pm-shared")[0]
        assert check.identifier_kind == "payment_method"
        assert check.transaction_count == 6
        assert check.exceeded

    def test_thresholds_reported(self, velocity_tracker):
        check = velocity_tracker.check_velocity("user-1")[0]
        assert check.thresholds == LIMITS


class TestRollingWindows:
    def test_expired_entries_pruned(self, velocity_tracker, clock):
        velocity_tracker.record_transaction("user-1", amount=500)
        clock.advance(3601)
        assert velocity_tracker.snapshot("user", "user-1", "1h").transaction_count == 0
        assert velocity_tracker.snapshot("user", "user-1", "24h").transaction_count == 1

    def test_empty_keys_dropped(self, velocity_tracker, clock):
        velocity_tracker.record_transaction("user-1", amount=500)
        assert velocity_tracker.active_keys() == 4
        clock.advance(timedelta(days=31).total_seconds())
        assert velocity_tracker.sweep() == 4
        assert velocity_tracker.active_keys() == 0

    def test_future_timestamp_clamped_to_now(self, velocity_tracker, clock):
        future = datetime.fromtimestamp(clock.now + timedelta(days=365).total_seconds(), UTC)
        velocity_tracker.record_transaction("user-1", amount=500, timestamp=future)
        velocity_tracker.record_transaction("user-1", amount=500)
        assert velocity_tracker.snapshot("user", "user-1", "1h").transaction_count == 2
        clock.advance(timedelta(days=31).total_seconds())
        assert velocity_tracker.sweep() == 4
        assert velocity_tracker.active_keys() == 0

    def test_every_identifier_recorded(self, velocity_tracker):
        velocity_tracker.record_transaction("user-1", customer_id="cus-1", payment_method_id="pm-1")
        assert velocity_tracker.active_keys() == 12
        assert velocity_tracker.snapshot("customer", "cus-1", "7d").transaction_count == 1

    def test_unknown_window_rejected(self, velocity_tracker):
        with pytest.raises(ValueError):
            velocity_tracker.snapshot("user", "user-1", "5h")

    def test_record_requires_an_identifier(self, velocity_tracker):
        with pytest.raises(VelocityCheckError):
            velocity_tracker.record_transaction("", customer_id="  ")

    def test_custom_windows(self, clock):
        config = FraudConfig()
        config.velocity.windows = {"10m": LIMITS}
        tracker = VelocityTracker(config, shard_count=1, clock=clock)
        assert tracker.windows == ["10m"]

    def test_invalid_shard_count(self):
        with pytest.raises(ValueError):
            VelocityTracker(shard_count=0)


class TestConcurrency:
    def test_no_lost_updates_across_threads(self, velocity_tracker):
        def worker():
            for _ in range(50):
                velocity_tracker.record_transaction("user-1", amount=10)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        aggregate = velocity_tracker.snapshot("user", "user-1", "30d")
        assert aggregate.transaction_count == 400
        assert aggregate.total_amount == 4_000
