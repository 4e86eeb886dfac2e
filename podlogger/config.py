"""Configuration loading from environment variables."""

from __future__ import annotations

import os
import socket
from pathlib import Path

from podlogger.election.elector import ElectionConfig
from podlogger.models.config import (
    ClusterConfig,
    ElectionSettings,
    LogConfig,
    MetricsConfig,
    OutputConfig,
    PodLoggerConfig,
)


def _env(key: str, default: str = "") -> str:
    return os.environ.get(f"PODLOGGER_{key}", default)


def _env_bool(key: str, default: bool = False) -> bool:
    val = _env(key, str(default).lower())
    return val.lower() in ("true", "1", "yes")


def _env_int(key: str, default: int, min_val: int | None = None, max_val: int | None = None) -> int:
    val = int(_env(key, str(default)))
    if min_val is not None:
        val = max(val, min_val)
    if max_val is not None:
        val = min(val, max_val)
    return val


def _env_float(key: str, default: float) -> float:
    return float(_env(key, str(default)))


def _validate_log_level(value: str) -> str:
    valid = {"debug", "info", "warning", "error"}
    if value.lower() not in valid:
        raise ValueError(f"Invalid log level: {value}. Must be one of {valid}")
    return value.lower()


def _default_kubeconfig() -> str:
    explicit = _env("KUBECONFIG") or os.environ.get("KUBECONFIG", "")
    if explicit:
        # KUBECONFIG may hold a path list; the first entry wins
        return explicit.split(os.pathsep)[0]
    return str(Path.home() / ".kube" / "config")


def _default_identity() -> str:
    # Inside a pod the hostname is the pod name
    return os.environ.get("POD_NAME") or socket.gethostname()


def load_config() -> PodLoggerConfig:
    """Load configuration from PODLOGGER_* environment variables and POD_NAME."""
    lease_duration = _env_float("LEASE_DURATION", 15.0)
    renew_deadline = _env_float("RENEW_DEADLINE", 10.0)
    retry_period = _env_float("RETRY_PERIOD", 2.0)
    # Raises ValueError for any timing the elector would reject later
    ElectionConfig(lease_duration=lease_duration, renew_deadline=renew_deadline, retry_period=retry_period)

    return PodLoggerConfig(
        cluster=ClusterConfig(
            kubeconfig=_default_kubeconfig(),
        ),
        election=ElectionSettings(
            identity=_default_identity(),
            lease_name=_env("LEASE_NAME", "leader-election"),
            lease_namespace=_env("LEASE_NAMESPACE", "default"),
            lease_duration=lease_duration,
            renew_deadline=renew_deadline,
            retry_period=retry_period,
            release_on_cancel=_env_bool("RELEASE_ON_CANCEL", True),
        ),
        output=OutputConfig(
            log_file=_env("LOG_FILE", "pod_status.log"),
        ),
        log=LogConfig(
            level=_validate_log_level(_env("LOG_LEVEL", "info")),
        ),
        metrics=MetricsConfig(
            port=_env_int("METRICS_PORT", 0, min_val=0, max_val=65535),
        ),
    )
