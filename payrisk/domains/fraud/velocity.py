"""Rolling, time-windowed transaction aggregates per identifying key.

State lives in a sharded map keyed by ``(identifier_kind, identifier, window)``.
Each shard owns a lock and a dict of fixed-capacity ring buffers, so updates
to one key are atomic while unrelated keys on other shards never contend.
Expired entries are pruned lazily on read and write; a key whose buffer
empties is dropped, which bounds memory to keys with recent activity.

Critical sections never await, so the tracker is safe to share between
threads and asyncio tasks alike.
"""

import re
import threading
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

import structlog

from .config import FraudConfig, VelocityThresholds, default_config
from .errors import VelocityCheckError
from .models import VelocityCheck

logger = structlog.get_logger()

IDENTIFIER_KINDS: tuple[str, ...] = ("user", "customer", "payment_method")

_WINDOW_RE = re.compile(r"^(\d+)([mhdw])$")
_WINDOW_UNITS = {
    "m": timedelta(minutes=1),
    "h": timedelta(hours=1),
    "d": timedelta(days=1),
    "w": timedelta(weeks=1),
}


def parse_window(label: str) -> timedelta:
    """``"24h"`` -> ``timedelta(hours=24)``. Units: m(inutes), h, d, w."""
    match = _WINDOW_RE.match(label)
    if not match:
        raise ValueError(f"Invalid velocity window label: {label!r}")
    amount, unit = match.groups()
    span = int(amount) * _WINDOW_UNITS[unit]
    if span <= timedelta(0):
        raise ValueError(f"Velocity window must be positive: {label!r}")
    return span


@dataclass(frozen=True, slots=True)
class VelocityEntry:
    timestamp: float
    amount: int
    device: str | None
    location: str | None


@dataclass(frozen=True)
class WindowAggregate:
    transaction_count: int = 0
    total_amount: int = 0
    unique_devices: int = 0
    unique_locations: int = 0


class _Shard:
    __slots__ = ("lock", "buffers")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.buffers: dict[tuple[str, str, str], deque[VelocityEntry]] = {}


def threshold_utilisation(aggregate: WindowAggregate, thresholds: VelocityThresholds) -> float:
    """Largest ratio of an aggregate to its threshold (1.0 == at the limit)."""
    ratios = []
    for value, limit in (
        (aggregate.transaction_count, thresholds.transactions),
        (aggregate.total_amount, thresholds.amount),
        (aggregate.unique_devices, thresholds.devices),
        (aggregate.unique_locations, thresholds.locations),
    ):
        if limit > 0:
            ratios.append(value / limit)
    return max(ratios, default=0.0)


def is_exceeded(aggregate: WindowAggregate, thresholds: VelocityThresholds) -> bool:
    return any(
        limit > 0 and value > limit
        for value, limit in (
            (aggregate.transaction_count, thresholds.transactions),
            (aggregate.total_amount, thresholds.amount),
            (aggregate.unique_devices, thresholds.devices),
            (aggregate.unique_locations, thresholds.locations),
        )
    )


def velocity_risk(utilisation: float, saturation_multiple: float) -> float:
    """0 at the threshold, rising linearly to 100 at ``saturation_multiple`` x threshold."""
    if utilisation <= 1.0:
        return 0.0
    span = max(saturation_multiple - 1.0, 1e-9)
    return min(100.0, (utilisation - 1.0) / span * 100.0)


class VelocityTracker:
    """Sharded sliding-window counters for user, customer and payment-method keys."""

    def __init__(
        self,
        config: FraudConfig | None = None,
        shard_count: int = 64,
        clock: Callable[[], float] | None = None,
    ) -> None:
        if shard_count < 1:
            raise ValueError("shard_count must be at least 1")
        self._config = config or default_config
        cfg = self._config.velocity
        windows = [(label, parse_window(label), limits) for label, limits in cfg.windows.items()]
        windows.sort(key=lambda w: w[1])
        self._windows: list[tuple[str, float, VelocityThresholds]] = [
            (label, span.total_seconds(), limits) for label, span, limits in windows
        ]
        self._capacity = cfg.buffer_capacity
        self._shards = [_Shard() for _ in range(shard_count)]
        self._clock = clock or time.time
        logger.info(
            "velocity_tracker_initialized",
            windows=[w[0] for w in self._windows],
            shard_count=shard_count,
            buffer_capacity=self._capacity,
        )

    @property
    def windows(self) -> list[str]:
        """Configured window labels, shortest first."""
        return [label for label, _, _ in self._windows]

    def _shard(self, key: tuple[str, str, str]) -> _Shard:
        return self._shards[hash(key) % len(self._shards)]

    @staticmethod
    def _identifiers(
        user_id: str | None,
        customer_id: str | None,
        payment_method_id: str | None,
    ) -> list[tuple[str, str]]:
        pairs = zip(IDENTIFIER_KINDS, (user_id, customer_id, payment_method_id), strict=True)
        return [(kind, value.strip()) for kind, value in pairs if value and value.strip()]

    @staticmethod
    def _prune(buffer: deque[VelocityEntry], cutoff: float) -> None:
        while buffer and buffer[0].timestamp < cutoff:
            buffer.popleft()

    def record_transaction(
        self,
        user_id: str | None,
        customer_id: str | None = None,
        payment_method_id: str | None = None,
        amount: int = 0,
        device_id: str | None = None,
        location: str | None = None,
        timestamp: datetime | None = None,
    ) -> None:
        """Append one transaction to every supplied identifier's windows."""
        identifiers = self._identifiers(user_id, customer_id, payment_method_id)
        if not identifiers:
            raise VelocityCheckError(
                "Cannot record velocity without user_id, customer_id or payment_method_id"
            )

        now = self._clock()
        recorded_at = now
        if timestamp is not None:
            recorded_at = timestamp.timestamp()
            # Clamp future-dated entries to now
            if recorded_at > now:
                logger.warning(
                    "velocity_timestamp_in_future",
                    user_id=user_id,
                    skew_seconds=round(recorded_at - now, 3),
                )
                recorded_at = now
        entry = VelocityEntry(
            timestamp=recorded_at,
            amount=max(int(amount), 0),
            device=device_id or None,
            location=location or None,
        )

        for kind, identifier in identifiers:
            for label, span, _ in self._windows:
                key = (kind, identifier, label)
                shard = self._shard(key)
                with shard.lock:
                    buffer = shard.buffers.get(key)
                    if buffer is None:
                        buffer = deque(maxlen=self._capacity)
                        shard.buffers[key] = buffer
                    buffer.append(entry)
                    self._prune(buffer, now - span)
                    if not buffer:
                        del shard.buffers[key]

    def snapshot(
        self,
        kind: str,
        identifier: str,
        window: str,
        now: float | None = None,
    ) -> WindowAggregate:
        """Current aggregate for a single (identifier, window) key."""
        span = next((s for label, s, _ in self._windows if label == window), None)
        if span is None:
            raise ValueError(f"Unknown velocity window: {window!r}")

        now = self._clock() if now is None else now
        cutoff = now - span
        key = (kind, identifier, window)
        shard = self._shard(key)
        with shard.lock:
            buffer = shard.buffers.get(key)
            if buffer is None:
                return WindowAggregate()
            self._prune(buffer, cutoff)
            if not buffer:
                del shard.buffers[key]
                return WindowAggregate()
            # Concurrent writers may append slightly out of order; filter as well as prune
            entries = [e for e in buffer if e.timestamp >= cutoff]

        return WindowAggregate(
            transaction_count=len(entries),
            total_amount=sum(e.amount for e in entries),
            unique_devices=len({e.device for e in entries if e.device}),
            unique_locations=len({e.location for e in entries if e.location}),
        )

    def check_velocity(
        self,
        user_id: str | None,
        customer_id: str | None = None,
        payment_method_id: str | None = None,
    ) -> list[VelocityCheck]:
        """One VelocityCheck per configured window, shortest first.

        Each window reports the identifier whose aggregate carries the most risk.
        """
        identifiers = self._identifiers(user_id, customer_id, payment_method_id)
        if not identifiers:
            raise VelocityCheckError(
                "Velocity check requires at least one of user_id, customer_id, payment_method_id"
            )

        now = self._clock()
        saturation = self._config.velocity.saturation_multiple
        checks: list[VelocityCheck] = []

        for label, _, thresholds in self._windows:
            best: tuple[float, bool, int, str, WindowAggregate] | None = None
            for kind, identifier in identifiers:
                aggregate = self.snapshot(kind, identifier, label, now=now)
                risk = velocity_risk(threshold_utilisation(aggregate, thresholds), saturation)
                exceeded = is_exceeded(aggregate, thresholds)
                candidate = (risk, exceeded, aggregate.transaction_count, kind, aggregate)
                if best is None or candidate[:3] > best[:3]:
                    best = candidate

            risk, exceeded, _, kind, aggregate = best
            checks.append(
                VelocityCheck(
                    user_id=user_id or "",
                    customer_id=customer_id or None,
                    payment_method_id=payment_method_id or None,
                    time_window=label,
                    identifier_kind=kind,
                    transaction_count=aggregate.transaction_count,
                    total_amount=aggregate.total_amount,
                    unique_devices=aggregate.unique_devices,
                    unique_locations=aggregate.unique_locations,
                    risk_score=round(risk, 2),
                    exceeded=exceeded,
                    thresholds=thresholds,
                )
            )

        exceeded_windows = [c.time_window for c in checks if c.exceeded]
        if exceeded_windows:
            logger.info(
                "velocity_threshold_exceeded",
                user_id=user_id,
                windows=exceeded_windows,
            )
        return checks

    def sweep(self) -> int:
        """Prune every key and drop empty buffers. Returns keys removed."""
        now = self._clock()
        spans = {label: span for label, span, _ in self._windows}
        removed = 0
        for shard in self._shards:
            with shard.lock:
                for key in list(shard.buffers):
                    buffer = shard.buffers[key]
                    self._prune(buffer, now - spans[key[2]])
                    if not buffer:
                        del shard.buffers[key]
                        removed += 1
        return removed

    def active_keys(self) -> int:
        total = 0
        for shard in self._shards:
            with shard.lock:
                total += len(shard.buffers)
        return total
