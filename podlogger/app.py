"""Application bootstrap for pod-logger.

Startup order: config → logging → metrics → K8s client → logging pipeline
              → (in-cluster) leadership coordinator

In-cluster the coordinator campaigns for the lease and runs one logging pass
per leadership term.  Outside a cluster there is nobody to coordinate with,
so a single unguarded pass runs immediately.

Either way the process then runs until a stop signal arrives; SIGTERM and
SIGINT set the stop event and everything unwinds from there.
"""

from __future__ import annotations

import asyncio
import signal
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

from podlogger import __version__
from podlogger.cluster.client import connect
from podlogger.cluster.enumerator import PodEnumerator
from podlogger.config import load_config
from podlogger.election.coordinator import LeadershipCoordinator
from podlogger.election.elector import ElectionConfig, LeaderCallbacks, LeaderElector
from podlogger.election.lease import KubernetesLeaseLock
from podlogger.errors import ClusterConfigError, ClusterQueryError, LogFileError
from podlogger.models.config import PodLoggerConfig
from podlogger.observability.logging import bind_replica, get_logger, setup_logging
from podlogger.observability.metrics import start_metrics_server
from podlogger.pipeline.concurrent_logger import ConcurrentLogger
from podlogger.pipeline.logging_pass import LoggingPass

if TYPE_CHECKING:
    import structlog


class _ComponentError(Exception):
    """Raised when a mandatory component fails to start."""

    def __init__(self, component: str, cause: Exception) -> None:
        super().__init__(f"Component '{component}' failed to start: {cause}")
        self.component = component
        self.cause = cause


class PodLoggerApp:
    """Application root.  Owns the cluster connection and the logging pipeline.

    Args:
        config:    Pre-built configuration; loaded from the environment if None.
        connector: Coroutine function returning a cluster connection for a
                   kubeconfig path.
        sink:      Receives every pod status line surfaced by a pass.
    """

    def __init__(
        self,
        config: PodLoggerConfig | None = None,
        connector: Callable[[str], Awaitable[Any]] = connect,
        sink: Callable[[str], None] = print,
    ) -> None:
        self.config = config
        self._connector = connector
        self._sink = sink

        self._connection: Any = None
        self._logging_pass: LoggingPass | None = None
        self._coordinator: LeadershipCoordinator | None = None
        self._log: structlog.stdlib.BoundLogger | None = None

    @property
    def coordinator(self) -> LeadershipCoordinator | None:
        return self._coordinator

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Bring up every component needed before the first pass.

        Raises _ComponentError if a mandatory component cannot start.
        """
        # --- 1. Configuration -------------------------------------------
        if self.config is None:
            try:
                self.config = load_config()
            except ValueError as exc:
                raise _ComponentError("config", exc) from exc

        # --- 2. Logging -------------------------------------------------
        setup_logging(self.config.log.level)
        bind_replica(self.config.election.identity)
        self._log = get_logger("app")
        self._log.info("pod-logger starting", version=__version__, identity=self.config.election.identity)

        # --- 3. Metrics -------------------------------------------------
        self._start_metrics()

        # --- 4. Kubernetes client ----------------------------------------
        await self._start_k8s_client()

        # --- 5. Logging pipeline ------------------------------------------
        self._build_pipeline()

    def _start_metrics(self) -> None:
        assert self._log is not None
        assert self.config is not None
        port = self.config.metrics.port
        if port == 0:
            self._log.debug("metrics exporter disabled")
            return
        try:
            start_metrics_server(port)
        except OSError as exc:
            # Metrics are optional; logging works without them
            self._log.warning("metrics exporter failed to start", port=port, error=str(exc))
            return
        self._log.info("metrics exporter started", port=port)

    async def _start_k8s_client(self) -> None:
        assert self._log is not None
        assert self.config is not None
        self._log.debug("starting k8s client")
        try:
            self._connection = await self._connector(self.config.cluster.kubeconfig)
        except ClusterConfigError as exc:
            raise _ComponentError("k8s_client", exc) from exc

    def _build_pipeline(self) -> None:
        assert self._log is not None
        assert self.config is not None
        enumerator = PodEnumerator(self._connection.core_v1())
        logger = ConcurrentLogger(self.config.output.log_file, sink=self._sink)
        self._logging_pass = LoggingPass(enumerator, logger)
        self._log.info("logging pipeline ready", log_file=self.config.output.log_file)

    def _build_coordinator(self) -> LeadershipCoordinator:
        assert self.config is not None
        assert self._logging_pass is not None
        settings = self.config.election
        lock = KubernetesLeaseLock(
            self._connection.coordination_v1(),
            name=settings.lease_name,
            namespace=settings.lease_namespace,
            identity=settings.identity,
        )
        election_config = ElectionConfig(
            lease_duration=settings.lease_duration,
            renew_deadline=settings.renew_deadline,
            retry_period=settings.retry_period,
            release_on_cancel=settings.release_on_cancel,
        )

        def _elector_factory(callbacks: LeaderCallbacks) -> LeaderElector:
            return LeaderElector(lock, election_config, callbacks)

        return LeadershipCoordinator(
            identity=settings.identity,
            logging_pass=self._logging_pass,
            elector_factory=_elector_factory,
        )

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    async def run(self, stop: asyncio.Event) -> None:
        """Run in the detected mode until *stop* is set."""
        assert self._log is not None
        assert self.config is not None

        if self._connection.in_cluster:
            try:
                self._coordinator = self._build_coordinator()
            except ValueError as exc:
                raise _ComponentError("coordinator", exc) from exc
            await self._coordinator.run(stop)
            return

        self._log.info("running locally, skipping leader election")
        await self._run_unguarded_pass()
        if self.config.run_once:
            return
        await stop.wait()

    async def _run_unguarded_pass(self) -> None:
        assert self._log is not None
        assert self._logging_pass is not None
        try:
            await self._logging_pass()
        except (ClusterQueryError, LogFileError) as exc:
            self._log.error("logging pass aborted", error=str(exc))
        except Exception:
            self._log.exception("logging pass crashed")

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    async def stop(self) -> None:
        """Close the API client.  Safe to call on an app that never started."""
        if self._connection is None:
            return
        log = self._log or get_logger("app")
        try:
            await self._connection.close()
        except Exception as exc:
            log.debug("k8s client close raised (non-fatal)", error=str(exc))
        self._connection = None
        log.info("pod-logger stopped")


# ---------------------------------------------------------------------------
# Async entrypoint
# ---------------------------------------------------------------------------


async def main(config: PodLoggerConfig | None = None) -> None:
    """Create the app, register OS signals, run until shutdown is requested."""
    app = PodLoggerApp(config)
    loop = asyncio.get_running_loop()
    stop = asyncio.Event()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, stop.set)

    try:
        await app.start()
        await app.run(stop)
    except _ComponentError as exc:
        log = get_logger("app")
        log.critical(
            "fatal startup error",
            component=exc.component,
            error=str(exc.cause),
        )
        raise SystemExit(1) from exc
    finally:
        await app.stop()
