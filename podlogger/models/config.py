"""Configuration data structures."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class ClusterConfig:
    """How to reach the Kubernetes API when not running in-cluster."""

    kubeconfig: str = ""


@dataclass
class ElectionSettings:
    """Lease-based leader election settings."""

    identity: str = ""
    lease_name: str = "leader-election"
    lease_namespace: str = "default"
    lease_duration: float = 15.0
    renew_deadline: float = 10.0
    retry_period: float = 2.0
    release_on_cancel: bool = True


@dataclass
class OutputConfig:
    """Where pod status lines are appended."""

    log_file: str = "pod_status.log"


@dataclass
class LogConfig:
    """Logging configuration."""

    level: str = "info"


@dataclass
class MetricsConfig:
    """Prometheus exporter configuration. Port 0 disables the exporter."""

    port: int = 0


@dataclass
class PodLoggerConfig:
    """Top-level pod-logger configuration."""

    cluster: ClusterConfig = field(default_factory=ClusterConfig)
    election: ElectionSettings = field(default_factory=ElectionSettings)
    output: OutputConfig = field(default_factory=OutputConfig)
    log: LogConfig = field(default_factory=LogConfig)
    metrics: MetricsConfig = field(default_factory=MetricsConfig)
    run_once: bool = False
