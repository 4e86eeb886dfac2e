"""Leadership coordinator: gates logging passes behind leader election.

The coordinator is an explicit state machine over ``follower``,
``acquiring`` and ``leader``.  Elector callbacks are its only inputs; each
one is mapped to an event and checked against the transition table, so an
out-of-order callback can never start a pass.

A pass starts exactly once per transition into ``leader``.  Losing the lease
does not cancel a pass that is already running; the replica waits for it to
finish before it campaigns again.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from enum import StrEnum
from typing import Any, Protocol

import structlog

from podlogger.election.elector import LeaderCallbacks
from podlogger.errors import ClusterQueryError, LogFileError
from podlogger.observability.metrics import is_leader, leadership_transitions_total

_log = structlog.get_logger(component="election.coordinator")


class LeadershipState(StrEnum):
    """Where this replica stands in the election."""

    FOLLOWER = "follower"
    ACQUIRING = "acquiring"
    LEADER = "leader"


class LeadershipEvent(StrEnum):
    """Inputs to the leadership state machine."""

    CAMPAIGN = "campaign"
    STARTED_LEADING = "started_leading"
    STOPPED_LEADING = "stopped_leading"


_TRANSITIONS: dict[tuple[LeadershipState, LeadershipEvent], LeadershipState] = {
    (LeadershipState.FOLLOWER, LeadershipEvent.CAMPAIGN): LeadershipState.ACQUIRING,
    (LeadershipState.ACQUIRING, LeadershipEvent.STARTED_LEADING): LeadershipState.LEADER,
    (LeadershipState.ACQUIRING, LeadershipEvent.STOPPED_LEADING): LeadershipState.FOLLOWER,
    (LeadershipState.LEADER, LeadershipEvent.STOPPED_LEADING): LeadershipState.FOLLOWER,
}


class Elector(Protocol):
    """The part of ``LeaderElector`` the coordinator drives."""

    async def run(self, stop: asyncio.Event) -> None: ...


class LeadershipCoordinator:
    """Runs one logging pass per leadership term.

    Args:
        identity:        This replica's candidate identity (for logs only).
        logging_pass:    Zero-argument coroutine function performing one pass.
        elector_factory: Builds the elector from the coordinator's callbacks.
    """

    def __init__(
        self,
        identity: str,
        logging_pass: Callable[[], Awaitable[Any]],
        elector_factory: Callable[[LeaderCallbacks], Elector],
    ) -> None:
        self._identity = identity
        self._logging_pass = logging_pass
        self._state = LeadershipState.FOLLOWER
        self._leader_identity = ""
        self._passes_started = 0
        self._pass_task: asyncio.Task[None] | None = None
        self._elector = elector_factory(
            LeaderCallbacks(
                on_started_leading=self.on_started_leading,
                on_stopped_leading=self.on_stopped_leading,
                on_new_leader=self.on_new_leader,
            )
        )

    @property
    def state(self) -> LeadershipState:
        return self._state

    @property
    def leader_identity(self) -> str:
        """Most recently observed leader, empty until one is seen."""
        return self._leader_identity

    @property
    def passes_started(self) -> int:
        return self._passes_started

    @property
    def pass_in_flight(self) -> bool:
        return self._pass_task is not None and not self._pass_task.done()

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _transition(self, event: LeadershipEvent) -> bool:
        target = _TRANSITIONS.get((self._state, event))
        if target is None:
            _log.warning("ignoring leadership event", state=self._state.value, leadership_event=event.value)
            return False
        _log.debug("leadership transition", source=self._state.value, target=target.value)
        self._state = target
        leadership_transitions_total.labels(state=target.value).inc()
        is_leader.set(1 if target is LeadershipState.LEADER else 0)
        return True

    def campaign(self) -> bool:
        return self._transition(LeadershipEvent.CAMPAIGN)

    def on_started_leading(self) -> None:
        if not self._transition(LeadershipEvent.STARTED_LEADING):
            return
        _log.info("I am the leader, starting to log pod statuses", identity=self._identity)
        self._passes_started += 1
        self._pass_task = asyncio.create_task(self._run_pass(), name=f"logging-pass-{self._passes_started}")

    def on_stopped_leading(self) -> None:
        was_leader = self._state is LeadershipState.LEADER
        if not self._transition(LeadershipEvent.STOPPED_LEADING):
            return
        if was_leader:
            _log.info(
                "lost leadership, stopping pod status logging",
                identity=self._identity,
                pass_in_flight=self.pass_in_flight,
            )

    def on_new_leader(self, identity: str) -> None:
        self._leader_identity = identity
        if identity == self._identity:
            _log.info("I am still the leader", identity=identity)
        else:
            _log.info("new leader elected", leader=identity)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def run(self, stop: asyncio.Event) -> None:
        """Campaign term after term until *stop* is set."""
        while not stop.is_set():
            self.campaign()
            try:
                await self._elector.run(stop)
            finally:
                if self._state is not LeadershipState.FOLLOWER:
                    self.on_stopped_leading()
                await self.wait_for_pass()
        _log.info("leadership coordinator stopped", identity=self._identity, passes=self._passes_started)

    async def wait_for_pass(self) -> None:
        """Wait for the in-flight pass, if any, to finish."""
        task = self._pass_task
        if task is None:
            return
        await asyncio.shield(task)
        self._pass_task = None

    async def _run_pass(self) -> None:
        try:
            await self._logging_pass()
        except (ClusterQueryError, LogFileError) as exc:
            _log.error("logging pass aborted", error=str(exc))
        except Exception:
            _log.exception("logging pass crashed")
