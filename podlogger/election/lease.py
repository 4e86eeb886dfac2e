"""Lease lock backends for leader election.

LeaseRecord          -- holder, duration and timestamps of a lease.
LeaseLock            -- ABC the elector drives: get / create / update.
KubernetesLeaseLock  -- coordination.k8s.io/v1 Lease implementation with
                        resourceVersion-based optimistic concurrency.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

import aiohttp
import structlog
from kubernetes_asyncio import client as k8s_client  # type: ignore[import-untyped]
from kubernetes_asyncio.client.exceptions import ApiException  # type: ignore[import-untyped]

from podlogger.errors import LeaseConflictError, LeaseError

_log = structlog.get_logger(component="election.lease")

_MICRO_TIME_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


@dataclass(frozen=True)
class LeaseRecord:
    """Leader election state stored in the lease object."""

    holder_identity: str
    lease_duration_seconds: float
    acquire_time: datetime | None = None
    renew_time: datetime | None = None
    lease_transitions: int = 0


class LeaseLock(ABC):
    """Storage for a single named lease.

    ``create`` and ``update`` raise ``LeaseConflictError`` when another
    writer got there first, and ``LeaseError`` for any other failure.
    """

    @property
    @abstractmethod
    def identity(self) -> str:
        """Candidate identity this replica campaigns under."""

    @abstractmethod
    def describe(self) -> str:
        """Human-readable lease location for logs."""

    @abstractmethod
    async def get(self) -> LeaseRecord | None:
        """Return the current record, or None if the lease does not exist."""

    @abstractmethod
    async def create(self, record: LeaseRecord) -> None:
        """Create the lease holding *record*."""

    @abstractmethod
    async def update(self, record: LeaseRecord) -> None:
        """Replace the lease contents with *record*."""


def _format_micro_time(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.astimezone(UTC).strftime(_MICRO_TIME_FORMAT)


def _parse_micro_time(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


class KubernetesLeaseLock(LeaseLock):
    """Lease lock backed by a ``coordination.k8s.io/v1`` Lease.

    Args:
        coordination_v1: ``CoordinationV1Api`` bound to an ApiClient.
        name:            Lease object name.
        namespace:       Namespace holding the lease.
        identity:        This replica's candidate identity.
    """

    def __init__(self, coordination_v1: Any, name: str, namespace: str, identity: str) -> None:
        if not identity:
            raise ValueError("Lease lock identity must not be empty")
        self._api = coordination_v1
        self._name = name
        self._namespace = namespace
        self._identity = identity
        # Last lease object read or written; its resourceVersion guards replace()
        self._lease: Any = None

    @property
    def identity(self) -> str:
        return self._identity

    def describe(self) -> str:
        return f"{self._namespace}/{self._name}"

    async def get(self) -> LeaseRecord | None:
        try:
            lease = await self._api.read_namespaced_lease(self._name, self._namespace)
        except ApiException as exc:
            if exc.status == 404:
                self._lease = None
                return None
            raise LeaseError(f"read lease {self.describe()}: {exc.status} {exc.reason}") from exc
        except (aiohttp.ClientError, TimeoutError) as exc:
            raise LeaseError(f"read lease {self.describe()}: {exc}") from exc

        self._lease = lease
        return self._to_record(lease.spec)

    async def create(self, record: LeaseRecord) -> None:
        body = k8s_client.V1Lease(
            metadata=k8s_client.V1ObjectMeta(name=self._name, namespace=self._namespace),
            spec=self._to_spec(record),
        )
        try:
            self._lease = await self._api.create_namespaced_lease(self._namespace, body)
        except ApiException as exc:
            if exc.status == 409:
                raise LeaseConflictError(f"lease {self.describe()} already exists") from exc
            raise LeaseError(f"create lease {self.describe()}: {exc.status} {exc.reason}") from exc
        except (aiohttp.ClientError, TimeoutError) as exc:
            raise LeaseError(f"create lease {self.describe()}: {exc}") from exc
        _log.debug("lease_created", lease=self.describe(), holder=record.holder_identity)

    async def update(self, record: LeaseRecord) -> None:
        if self._lease is None:
            raise LeaseError(f"lease {self.describe()} not initialized; get or create it first")
        self._lease.spec = self._to_spec(record)
        try:
            self._lease = await self._api.replace_namespaced_lease(self._name, self._namespace, self._lease)
        except ApiException as exc:
            if exc.status == 409:
                raise LeaseConflictError(f"lease {self.describe()} was modified concurrently") from exc
            raise LeaseError(f"update lease {self.describe()}: {exc.status} {exc.reason}") from exc
        except (aiohttp.ClientError, TimeoutError) as exc:
            raise LeaseError(f"update lease {self.describe()}: {exc}") from exc

    @staticmethod
    def _to_spec(record: LeaseRecord) -> k8s_client.V1LeaseSpec:
        return k8s_client.V1LeaseSpec(
            holder_identity=record.holder_identity,
            lease_duration_seconds=max(1, math.ceil(record.lease_duration_seconds)),
            acquire_time=_format_micro_time(record.acquire_time),
            renew_time=_format_micro_time(record.renew_time),
            lease_transitions=record.lease_transitions,
        )

    @staticmethod
    def _to_record(spec: Any) -> LeaseRecord:
        if spec is None:
            return LeaseRecord(holder_identity="", lease_duration_seconds=0)
        return LeaseRecord(
            holder_identity=spec.holder_identity or "",
            lease_duration_seconds=float(spec.lease_duration_seconds or 0),
            acquire_time=_parse_micro_time(spec.acquire_time),
            renew_time=_parse_micro_time(spec.renew_time),
            lease_transitions=spec.lease_transitions or 0,
        )
