"""Kubernetes client construction.

Credentials are loaded into an explicit ``Configuration`` rather than the
kubernetes-asyncio module default, so every component receives its API
objects through its constructor.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog
from kubernetes_asyncio import client as k8s_client  # type: ignore[import-untyped]
from kubernetes_asyncio import config as k8s_config  # type: ignore[import-untyped]

from podlogger.errors import ClusterConfigError

_log = structlog.get_logger(component="cluster.client")


@dataclass
class ClusterConnection:
    """An open API client plus the mode it was configured in."""

    api_client: k8s_client.ApiClient
    in_cluster: bool

    def core_v1(self) -> k8s_client.CoreV1Api:
        return k8s_client.CoreV1Api(self.api_client)

    def coordination_v1(self) -> k8s_client.CoordinationV1Api:
        return k8s_client.CoordinationV1Api(self.api_client)

    async def close(self) -> None:
        await self.api_client.close()


async def connect(kubeconfig: str) -> ClusterConnection:
    """Build an API client from in-cluster config, falling back to *kubeconfig*.

    Raises:
        ClusterConfigError: neither source yields usable credentials.
    """
    configuration = k8s_client.Configuration()
    try:
        k8s_config.load_incluster_config(client_configuration=configuration)
        in_cluster = True
        _log.info("k8s client configured from in-cluster service account")
    except k8s_config.ConfigException:
        try:
            await k8s_config.load_kube_config(config_file=kubeconfig, client_configuration=configuration)
        except (k8s_config.ConfigException, OSError) as exc:
            raise ClusterConfigError(f"failed to load kubeconfig {kubeconfig}: {exc}") from exc
        in_cluster = False
        _log.info("k8s client configured from kubeconfig", kubeconfig=kubeconfig)

    return ClusterConnection(api_client=k8s_client.ApiClient(configuration), in_cluster=in_cluster)
