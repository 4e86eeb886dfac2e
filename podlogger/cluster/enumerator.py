"""Cluster-wide pod enumeration."""

from __future__ import annotations

from typing import Any

import aiohttp
import structlog
from kubernetes_asyncio.client.exceptions import ApiException  # type: ignore[import-untyped]

from podlogger.errors import ClusterQueryError
from podlogger.models.pod import PodState

_log = structlog.get_logger(component="cluster.enumerator")


class PodEnumerator:
    """Lists every pod in every namespace with a single API call.

    No pagination and no retry: a failed request surfaces immediately as
    ``ClusterQueryError`` and the caller abandons its pass.
    """

    def __init__(self, core_v1: Any) -> None:
        self._core_v1 = core_v1

    async def list_pods(self) -> list[PodState]:
        try:
            pod_list = await self._core_v1.list_pod_for_all_namespaces()
        except (ApiException, aiohttp.ClientError, TimeoutError) as exc:
            _log.error("pod_list_failed", error=str(exc))
            raise ClusterQueryError("list pods for all namespaces", exc) from exc

        pods = [PodState.from_api(item) for item in pod_list.items or []]
        _log.debug("pods_listed", count=len(pods))
        return pods
