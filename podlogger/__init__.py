"""pod-logger: leader-elected pod status logging for Kubernetes clusters."""

__version__ = "0.1.0"
