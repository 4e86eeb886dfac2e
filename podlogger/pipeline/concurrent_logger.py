"""Concurrent fan-out of pod status lines into a shared append-only file.

One asyncio task per pod formats its line, appends it under an exclusive
write lock and publishes it on a result queue sized so producers never wait.
A closer task joins the worker group and then enqueues the close marker; the
consumer drains the queue until it sees that marker.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import TextIO

import structlog

from podlogger.errors import LogFileError
from podlogger.models.pod import PodSnapshot, PodState, format_status
from podlogger.observability.metrics import pod_lines_total

_log = structlog.get_logger(component="pipeline.concurrent_logger")

_CLOSED = object()


def open_append(path: Path) -> TextIO:
    """Open *path* for appending, creating it if missing."""
    return open(path, "a", encoding="utf-8")


def _write_line(handle: TextIO, line: str) -> None:
    handle.write(line + "\n")
    handle.flush()


@dataclass
class PassReport:
    """Outcome of one pass through the concurrent logger."""

    lines: list[str] = field(default_factory=list)
    written: int = 0
    failed: int = 0

    @property
    def delivered(self) -> int:
        """Lines received on the result channel, failed writes included."""
        return len(self.lines)


class ConcurrentLogger:
    """Writes one status line per pod to *log_path* with one worker per pod.

    Args:
        log_path: File the lines are appended to.
        sink:     Called with every drained line; defaults to ``print``.
        opener:   Returns a writable text handle for *log_path*.
    """

    def __init__(
        self,
        log_path: str | Path,
        sink: Callable[[str], None] = print,
        opener: Callable[[Path], TextIO] = open_append,
    ) -> None:
        self._path = Path(log_path)
        self._sink = sink
        self._opener = opener

    @property
    def log_path(self) -> Path:
        return self._path

    async def run(self, pods: Sequence[PodState]) -> PassReport:
        """Log every pod in *pods* and return once all lines are drained.

        Raises:
            LogFileError: the log file could not be opened; nothing was written.
        """
        try:
            handle = await asyncio.to_thread(self._opener, self._path)
        except OSError as exc:
            _log.error("log_file_open_failed", path=str(self._path), error=str(exc))
            raise LogFileError(str(self._path), exc) from exc

        report = PassReport()
        try:
            write_lock = asyncio.Lock()
            # One slot per worker plus one for the close marker
            results: asyncio.Queue[object] = asyncio.Queue(maxsize=len(pods) + 1)

            async def _close_when_done() -> None:
                async with asyncio.TaskGroup() as workers:
                    for pod in pods:
                        workers.create_task(self._log_pod(pod, handle, write_lock, results, report))
                results.put_nowait(_CLOSED)

            closer = asyncio.create_task(_close_when_done(), name="concurrent-logger-closer")
            drain = asyncio.create_task(self._drain(results, report), name="concurrent-logger-drain")
            try:
                await closer
            except BaseException:
                drain.cancel()
                raise
            await drain
        finally:
            await asyncio.to_thread(handle.close)

        _log.info(
            "pass_logged",
            path=str(self._path),
            pods=len(pods),
            written=report.written,
            failed=report.failed,
        )
        return report

    async def _log_pod(
        self,
        pod: PodState,
        handle: TextIO,
        write_lock: asyncio.Lock,
        results: asyncio.Queue[object],
        report: PassReport,
    ) -> None:
        snapshot = PodSnapshot(pod)
        line = format_status(snapshot.state())

        async with write_lock:
            try:
                await asyncio.to_thread(_write_line, handle, line)
            except (OSError, ValueError) as exc:
                report.failed += 1
                pod_lines_total.labels(result="failed").inc()
                _log.warning("pod_line_write_failed", pod=snapshot.name, error=str(exc))
            else:
                report.written += 1
                pod_lines_total.labels(result="written").inc()
                _log.debug("pod_line_written", line=line)

        # Delivered whether or not the write succeeded
        results.put_nowait(line)

    async def _drain(self, results: asyncio.Queue[object], report: PassReport) -> None:
        while True:
            item = await results.get()
            if item is _CLOSED:
                return
            line = str(item)
            report.lines.append(line)
            self._sink(line)
