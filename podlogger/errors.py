"""Exception hierarchy shared across pod-logger components."""

from __future__ import annotations


class PodLoggerError(Exception):
    """Base class for every error raised by pod-logger."""


class ClusterConfigError(PodLoggerError):
    """Raised when neither in-cluster nor kubeconfig credentials can be loaded."""


class ClusterQueryError(PodLoggerError):
    """Raised when a request to the Kubernetes API fails."""

    def __init__(self, operation: str, cause: Exception) -> None:
        super().__init__(f"{operation} failed: {cause}")
        self.operation = operation
        self.cause = cause


class LogFileError(PodLoggerError):
    """Raised when the pod status log file cannot be opened."""

    def __init__(self, path: str, cause: Exception) -> None:
        super().__init__(f"cannot open log file {path}: {cause}")
        self.path = path
        self.cause = cause


class LeaseError(PodLoggerError):
    """Raised when the lease backend cannot be read or written."""


class LeaseConflictError(LeaseError):
    """Raised when a lease write loses an optimistic-concurrency race."""
