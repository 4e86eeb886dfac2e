"""Pod observation data structures.

PodState     -- frozen value holding the fields pod-logger records.
PodSnapshot  -- thread-safe holder of one PodState; updates replace the whole
                state, reads never observe a half-applied update.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from enum import StrEnum
from typing import Any


class PodPhase(StrEnum):
    """Lifecycle phase reported in ``status.phase``."""

    PENDING = "Pending"
    RUNNING = "Running"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    UNKNOWN = "Unknown"

    @classmethod
    def parse(cls, value: str | None) -> PodPhase:
        """Map an API phase string to a member; anything unrecognised is UNKNOWN."""
        if not value:
            return cls.UNKNOWN
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


@dataclass(frozen=True)
class PodState:
    """The observed fields of one pod at one point in time."""

    name: str
    node_name: str = ""
    phase: PodPhase = PodPhase.UNKNOWN
    namespace: str = ""

    @classmethod
    def from_api(cls, pod: Any) -> PodState:
        """Build a state from a ``V1Pod`` (or any object with the same attributes)."""
        metadata = getattr(pod, "metadata", None)
        spec = getattr(pod, "spec", None)
        status = getattr(pod, "status", None)
        return cls(
            name=str(getattr(metadata, "name", None) or ""),
            namespace=str(getattr(metadata, "namespace", None) or ""),
            node_name=str(getattr(spec, "node_name", None) or ""),
            phase=PodPhase.parse(getattr(status, "phase", None)),
        )


class _ReadWriteLock:
    """Many concurrent readers or one writer; a waiting writer blocks new readers."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            while self._writer or self._readers:
                self._cond.wait()
            self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class PodSnapshot:
    """Thread-safe wrapper around a single pod's observed state.

    Each accessor takes the read lock on its own, so two accessor calls in a
    row may straddle an ``update``.  Use :meth:`state` when every field must
    come from the same observation.
    """

    def __init__(self, state: PodState) -> None:
        self._lock = _ReadWriteLock()
        self._state = state

    def update(self, state: PodState) -> None:
        """Replace the snapshot with *state*; no field is merged."""
        with self._lock.write():
            self._state = state

    def state(self) -> PodState:
        with self._lock.read():
            return self._state

    @property
    def name(self) -> str:
        with self._lock.read():
            return self._state.name

    @property
    def node_name(self) -> str:
        """Node the pod is bound to, or an empty string."""
        with self._lock.read():
            return self._state.node_name

    @property
    def phase(self) -> PodPhase:
        with self._lock.read():
            return self._state.phase

    @property
    def is_scheduled(self) -> bool:
        with self._lock.read():
            return self._state.node_name != ""

    def __repr__(self) -> str:
        return f"PodSnapshot({self.state()!r})"


def format_status(state: PodState) -> str:
    """Render the log line for one pod, without the trailing newline."""
    return f"Pod Name: {state.name}, Node: {state.node_name}, Phase: {state.phase}"
