"""Core data structures for pod-logger."""

from podlogger.models.config import PodLoggerConfig
from podlogger.models.pod import PodPhase, PodSnapshot, PodState, format_status

__all__ = [
    "PodLoggerConfig",
    "PodPhase",
    "PodSnapshot",
    "PodState",
    "format_status",
]
