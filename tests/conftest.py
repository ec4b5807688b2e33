"""Shared test fixtures for payrisk tests."""

from datetime import UTC, datetime

import pytest

from payrisk.domains.fraud.config import FraudConfig
from payrisk.domains.fraud.engine import RiskScoringEngine
from payrisk.domains.fraud.history import InMemoryHistoryStore
from payrisk.domains.fraud.models import Address, TransactionContext
from payrisk.domains.fraud.velocity import VelocityTracker

NOW = datetime(2026, 1, 15, 14, 0, 0, tzinfo=UTC)


class FakeClock:
    """Manually advanced epoch-seconds clock."""

    def __init__(self, start: float = NOW.timestamp()) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def config() -> FraudConfig:
    return FraudConfig()


@pytest.fixture
def velocity_tracker(config, clock) -> VelocityTracker:
    return VelocityTracker(config, shard_count=8, clock=clock)


@pytest.fixture
def history_store() -> InMemoryHistoryStore:
    return InMemoryHistoryStore()


@pytest.fixture
def engine(config, velocity_tracker, history_store) -> RiskScoringEngine:
    return RiskScoringEngine(
        config=config,
        velocity_tracker=velocity_tracker,
        history_store=history_store,
        lookup_timeout_seconds=0.2,
    )


@pytest.fixture
def sample_context() -> TransactionContext:
    return TransactionContext(
        transaction_id="txn-1",
        user_id="user-1",
        amount=5_000,
        currency="USD",
        payment_method_id="pm-1",
        timestamp=NOW,
        ip_address="93.184.216.34",
        user_agent="Mozilla/5.0 (Macintosh; Intel Mac OS X 14_2) Safari/605.1.15",
        billing_address=Address(line1="1 Main St", city="Boston", country="US"),
    )


@pytest.fixture
def device_attributes() -> dict:
    return {
        "userAgent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) Chrome/120.0",
        "language": "en-US",
        "timezone": "America/New_York",
        "platform": "Win32",
        "screenWidth": 1920,
        "screenHeight": 1080,
        "colorDepth": 24,
        "pixelRatio": 1.0,
        "cookiesEnabled": True,
        "doNotTrack": False,
    }
