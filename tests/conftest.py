"""Shared fixtures for pod-logger tests.

Provides pod factories shaped like kubernetes-asyncio ``V1Pod`` objects and
an in-memory lease store so election tests run without a cluster.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from types import SimpleNamespace
from typing import Any

import pytest

from podlogger.election.lease import LeaseLock, LeaseRecord
from podlogger.errors import LeaseConflictError, LeaseError
from podlogger.models.pod import PodPhase, PodState

# ---------------------------------------------------------------------------
# Pod factories
# ---------------------------------------------------------------------------


def make_api_pod(
    name: str = "web-0",
    node_name: str | None = "node-1",
    phase: str | None = "Running",
    namespace: str = "default",
) -> Any:
    """Build an object with the attribute shape of a ``V1Pod``."""
    return SimpleNamespace(
        metadata=SimpleNamespace(name=name, namespace=namespace),
        spec=SimpleNamespace(node_name=node_name),
        status=SimpleNamespace(phase=phase),
    )


def make_pod_list(*pods: Any) -> Any:
    return SimpleNamespace(items=list(pods))


def make_pod_states(count: int) -> list[PodState]:
    phases = list(PodPhase)
    return [
        PodState(name=f"pod-{i}", node_name=f"node-{i % 3}" if i % 4 else "", phase=phases[i % len(phases)])
        for i in range(count)
    ]


# ---------------------------------------------------------------------------
# In-memory lease
# ---------------------------------------------------------------------------


@dataclass
class LeaseStore:
    """A single lease shared by every InMemoryLeaseLock built on it."""

    record: LeaseRecord | None = None
    version: int = 0
    fail_reads: bool = False
    fail_writes: bool = False
    hang_calls: bool = False
    writes: int = 0


class InMemoryLeaseLock(LeaseLock):
    """LeaseLock over a LeaseStore with version-checked updates."""

    def __init__(self, store: LeaseStore, identity: str) -> None:
        self._store = store
        self._identity = identity
        self._seen_version: int | None = None

    @property
    def identity(self) -> str:
        return self._identity

    def describe(self) -> str:
        return "memory/leader-election"

    async def get(self) -> LeaseRecord | None:
        await asyncio.sleep(0)
        await self._maybe_hang()
        if self._store.fail_reads:
            raise LeaseError("injected read failure")
        self._seen_version = self._store.version
        return self._store.record

    async def create(self, record: LeaseRecord) -> None:
        await asyncio.sleep(0)
        await self._maybe_hang()
        if self._store.fail_writes:
            raise LeaseError("injected write failure")
        if self._store.record is not None:
            raise LeaseConflictError("already exists")
        self._commit(record)

    async def update(self, record: LeaseRecord) -> None:
        await asyncio.sleep(0)
        await self._maybe_hang()
        if self._store.fail_writes:
            raise LeaseError("injected write failure")
        if self._seen_version != self._store.version:
            raise LeaseConflictError("stale version")
        self._commit(record)

    async def _maybe_hang(self) -> None:
        # Stands in for an API call that never answers
        if self._store.hang_calls:
            await asyncio.sleep(3600)

    def _commit(self, record: LeaseRecord) -> None:
        self._store.record = record
        self._store.version += 1
        self._store.writes += 1
        self._seen_version = self._store.version


@pytest.fixture
def lease_store() -> LeaseStore:
    return LeaseStore()


class CallbackRecorder:
    """Collects elector callbacks in the order they fire."""

    def __init__(self) -> None:
        self.events: list[tuple[str, str]] = []

    def started(self) -> None:
        self.events.append(("started", ""))

    def stopped(self) -> None:
        self.events.append(("stopped", ""))

    def new_leader(self, identity: str) -> None:
        self.events.append(("new_leader", identity))

    def names(self) -> list[str]:
        return [name for name, _ in self.events]


async def wait_until(predicate: Any, timeout: float = 3.0, interval: float = 0.01) -> None:
    """Poll *predicate* until it is truthy or *timeout* elapses."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(interval)
