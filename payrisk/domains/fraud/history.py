"""Collaborator reads gathered once per scoring call.

The historical store is read-only and may be slow or absent. Every lookup is
bounded by a timeout; a timeout or store failure is logged and treated as
"no data available", never propagated.
"""

import asyncio
from collections.abc import Awaitable
from dataclasses import dataclass, field
from typing import Protocol, TypeVar, runtime_checkable

import structlog

from .errors import LookupTimeoutError, VelocityCheckError
from .models import DeviceFingerprint, TransactionContext, UserHistory, VelocityCheck
from .velocity import VelocityTracker

logger = structlog.get_logger()

T = TypeVar("T")


@runtime_checkable
class HistoryStore(Protocol):
    """Read-only historical transaction/device store keyed by user and device."""

    async def get_user_history(self, user_id: str) -> UserHistory | None: ...

    async def get_device(self, fingerprint_id: str) -> DeviceFingerprint | None: ...


class InMemoryHistoryStore:
    """Dict-backed HistoryStore for embedding and tests."""

    def __init__(
        self,
        users: dict[str, UserHistory] | None = None,
        devices: dict[str, DeviceFingerprint] | None = None,
    ) -> None:
        self._users = dict(users or {})
        self._devices = dict(devices or {})

    def put_user(self, user_id: str, history: UserHistory) -> None:
        self._users[user_id] = history

    def put_device(self, fingerprint: DeviceFingerprint) -> None:
        self._devices[fingerprint.id] = fingerprint

    async def get_user_history(self, user_id: str) -> UserHistory | None:
        return self._users.get(user_id)

    async def get_device(self, fingerprint_id: str) -> DeviceFingerprint | None:
        return self._devices.get(fingerprint_id)


@dataclass
class ScoringInputs:
    """Everything evaluators may read besides the context itself."""

    user_history: UserHistory | None = None
    device: DeviceFingerprint | None = None
    velocity_checks: list[VelocityCheck] = field(default_factory=list)
    unavailable: list[str] = field(default_factory=list)


class HistoryLoader:
    """Loads ScoringInputs for a context; never raises."""

    def __init__(
        self,
        velocity_tracker: VelocityTracker,
        history_store: HistoryStore | None = None,
        timeout_seconds: float = 0.25,
    ) -> None:
        self._velocity_tracker = velocity_tracker
        self._history_store = history_store
        self._timeout = timeout_seconds

    async def _bounded(self, lookup: str, call: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(call, timeout=self._timeout)
        except TimeoutError as exc:
            raise LookupTimeoutError(lookup, self._timeout) from exc

    async def _safe_lookup(
        self, lookup: str, call: Awaitable[T], inputs: ScoringInputs
    ) -> T | None:
        try:
            return await self._bounded(lookup, call)
        except LookupTimeoutError as exc:
            logger.warning("history_lookup_timeout", lookup=lookup, timeout=exc.timeout_seconds)
        except Exception:
            logger.warning("history_lookup_failed", lookup=lookup, exc_info=True)
        inputs.unavailable.append(lookup)
        return None

    async def _user_history(
        self, context: TransactionContext, inputs: ScoringInputs
    ) -> UserHistory | None:
        if not context.user_id:
            return None
        if self._history_store is None:
            inputs.unavailable.append("user_history")
            return None
        return await self._safe_lookup(
            "user_history", self._history_store.get_user_history(context.user_id), inputs
        )

    async def _device(
        self, context: TransactionContext, inputs: ScoringInputs
    ) -> DeviceFingerprint | None:
        if not context.device_fingerprint:
            return None
        if self._history_store is None:
            inputs.unavailable.append("device")
            return None
        return await self._safe_lookup(
            "device", self._history_store.get_device(context.device_fingerprint), inputs
        )

    async def load(self, context: TransactionContext) -> ScoringInputs:
        inputs = ScoringInputs()

        try:
            inputs.velocity_checks = self._velocity_tracker.check_velocity(
                context.user_id,
                context.customer_id,
                context.payment_method_id,
            )
        except VelocityCheckError:
            logger.warning("velocity_keys_missing", transaction_id=context.transaction_id)
            inputs.unavailable.append("velocity")

        inputs.user_history, inputs.device = await asyncio.gather(
            self._user_history(context, inputs),
            self._device(context, inputs),
        )
        return inputs
