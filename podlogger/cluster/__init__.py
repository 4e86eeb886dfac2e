"""Kubernetes API access for pod-logger.

Submodules
----------
client     -- connect(): in-cluster vs kubeconfig detection, ApiClient construction.
enumerator -- PodEnumerator: cluster-wide pod listing.
"""

from podlogger.cluster.client import ClusterConnection, connect
from podlogger.cluster.enumerator import PodEnumerator

__all__ = ["ClusterConnection", "PodEnumerator", "connect"]
