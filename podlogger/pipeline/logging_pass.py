"""One logging pass: enumerate the cluster's pods, then log each of them."""

from __future__ import annotations

import time

import structlog

from podlogger.cluster.enumerator import PodEnumerator
from podlogger.errors import ClusterQueryError, LogFileError
from podlogger.observability.metrics import pass_duration_seconds, passes_total
from podlogger.pipeline.concurrent_logger import ConcurrentLogger, PassReport

_log = structlog.get_logger(component="pipeline.logging_pass")


class LoggingPass:
    """Callable that performs a full pass.

    Enumeration and file-open failures abort the pass and propagate to the
    caller; individual write failures are already absorbed by the logger.
    """

    def __init__(self, enumerator: PodEnumerator, logger: ConcurrentLogger) -> None:
        self._enumerator = enumerator
        self._logger = logger

    async def __call__(self) -> PassReport:
        started = time.monotonic()
        try:
            pods = await self._enumerator.list_pods()
            report = await self._logger.run(pods)
        except (ClusterQueryError, LogFileError):
            passes_total.labels(outcome="aborted").inc()
            raise
        finally:
            pass_duration_seconds.observe(time.monotonic() - started)

        passes_total.labels(outcome="completed").inc()
        _log.info("logging_pass_completed", pods=report.delivered, failed_writes=report.failed)
        return report
