"""Fixtures for integration tests: fake cluster connections and APIs."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from kubernetes_asyncio import client as k8s_client
from kubernetes_asyncio.client.exceptions import ApiException

from podlogger.models.config import ElectionSettings, OutputConfig, PodLoggerConfig
from tests.conftest import make_api_pod, make_pod_list


@pytest.fixture(autouse=True)
def _quiet_logging_setup(monkeypatch: pytest.MonkeyPatch) -> None:
    # setup_logging binds stderr at configure time; pytest swaps stderr per test
    monkeypatch.setattr("podlogger.app.setup_logging", lambda level="info": None)


def _clone(lease: Any, resource_version: str | None = None) -> Any:
    """Copy a V1Lease so the caller and the fake server never share objects."""
    spec = lease.spec
    return k8s_client.V1Lease(
        metadata=k8s_client.V1ObjectMeta(
            name=lease.metadata.name,
            namespace=lease.metadata.namespace,
            resource_version=resource_version or lease.metadata.resource_version,
        ),
        spec=k8s_client.V1LeaseSpec(
            holder_identity=spec.holder_identity,
            lease_duration_seconds=spec.lease_duration_seconds,
            acquire_time=spec.acquire_time,
            renew_time=spec.renew_time,
            lease_transitions=spec.lease_transitions,
        ),
    )


class FakeCoordinationApi:
    """Stores one Lease object the way the API server would, with resourceVersion checks."""

    def __init__(self) -> None:
        self.lease: Any = None
        self._version = 0

    async def read_namespaced_lease(self, name: str, namespace: str) -> Any:
        if self.lease is None:
            raise ApiException(status=404, reason="Not Found")
        return _clone(self.lease)

    async def create_namespaced_lease(self, namespace: str, body: Any) -> Any:
        if self.lease is not None:
            raise ApiException(status=409, reason="Conflict")
        return self._store(body)

    async def replace_namespaced_lease(self, name: str, namespace: str, body: Any) -> Any:
        if self.lease is None:
            raise ApiException(status=404, reason="Not Found")
        if body.metadata.resource_version != self.lease.metadata.resource_version:
            raise ApiException(status=409, reason="Conflict")
        return self._store(body)

    def _store(self, body: Any) -> Any:
        self._version += 1
        self.lease = _clone(body, resource_version=str(self._version))
        return _clone(self.lease)


class FakeConnection:
    """Stands in for ClusterConnection."""

    def __init__(self, in_cluster: bool, pods: list[Any], coordination: FakeCoordinationApi | None = None) -> None:
        self.in_cluster = in_cluster
        self.core = MagicMock()
        self.core.list_pod_for_all_namespaces = AsyncMock(return_value=make_pod_list(*pods))
        self.coordination = coordination or FakeCoordinationApi()
        self.close = AsyncMock()

    def core_v1(self) -> Any:
        return self.core

    def coordination_v1(self) -> Any:
        return self.coordination


@pytest.fixture
def cluster_pods() -> list[Any]:
    return [
        make_api_pod(name="a", node_name="n1", phase="Running"),
        make_api_pod(name="b", node_name=None, phase="Pending"),
    ]


def make_config(log_file: str, identity: str = "pod-a", run_once: bool = False) -> PodLoggerConfig:
    return PodLoggerConfig(
        election=ElectionSettings(
            identity=identity,
            lease_duration=0.6,
            renew_deadline=0.4,
            retry_period=0.05,
        ),
        output=OutputConfig(log_file=log_file),
        run_once=run_once,
    )
