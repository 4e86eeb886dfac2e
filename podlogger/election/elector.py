"""Lease-based leader elector.

Campaigns for a ``LeaseLock`` on behalf of one identity and reports
leadership changes through three synchronous callbacks.  One call to
``LeaderElector.run`` covers one term: it returns once leadership is lost or
the stop event is set, whichever happens first.

Timing follows the usual lease protocol:

* a non-holder retries every ``retry_period`` (jittered) until the lease is
  free or expired;
* a holder renews every ``retry_period`` and gives up leadership if no
  renewal succeeds within ``renew_deadline``.  A lease call still pending at
  the deadline is abandoned, so a hung API server cannot extend a term;
* a lease held by another identity is considered expired once
  ``lease_duration`` has passed since this replica last saw the record
  change.  Expiry is judged on the local monotonic clock, never on the
  remote timestamps, so clock skew between replicas does not matter.
"""

from __future__ import annotations

import asyncio
import random
import time
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import UTC, datetime

import structlog

from podlogger.election.lease import LeaseLock, LeaseRecord
from podlogger.errors import LeaseConflictError, LeaseError

_log = structlog.get_logger(component="election.elector")

JITTER_FACTOR = 1.2


@dataclass(frozen=True)
class ElectionConfig:
    """Lease timing, in seconds."""

    lease_duration: float = 15.0
    renew_deadline: float = 10.0
    retry_period: float = 2.0
    release_on_cancel: bool = True

    def __post_init__(self) -> None:
        if self.retry_period <= 0:
            raise ValueError(f"Retry period must be positive, got {self.retry_period}")
        if self.lease_duration <= self.renew_deadline:
            raise ValueError(
                f"Lease duration ({self.lease_duration}s) must be greater than renew deadline ({self.renew_deadline}s)"
            )
        if self.renew_deadline <= JITTER_FACTOR * self.retry_period:
            raise ValueError(
                f"Renew deadline ({self.renew_deadline}s) must be greater than {JITTER_FACTOR} x retry period"
                f" ({self.retry_period}s)"
            )


@dataclass(frozen=True)
class LeaderCallbacks:
    """Hooks fired by the elector.  They must not block."""

    on_started_leading: Callable[[], None]
    on_stopped_leading: Callable[[], None]
    on_new_leader: Callable[[str], None]


class LeaderElector:
    """Runs the acquire / renew / release protocol over a lease lock."""

    def __init__(
        self,
        lock: LeaseLock,
        config: ElectionConfig,
        callbacks: LeaderCallbacks,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._lock = lock
        self._config = config
        self._callbacks = callbacks
        self._clock = clock

        self._observed_record: LeaseRecord | None = None
        self._observed_at = 0.0
        self._reported_leader = ""

    @property
    def identity(self) -> str:
        return self._lock.identity

    @property
    def observed_leader(self) -> str:
        """Holder identity from the last lease read, empty if none."""
        return self._observed_record.holder_identity if self._observed_record else ""

    def is_leader(self) -> bool:
        return self.observed_leader == self.identity

    async def run(self, stop: asyncio.Event) -> None:
        """Campaign, lead until the lease is lost, then return.

        ``on_stopped_leading`` fires only if leadership was actually held.
        """
        if not await self._acquire(stop):
            return

        self._callbacks.on_started_leading()
        try:
            await self._renew(stop)
        finally:
            if stop.is_set() and self._config.release_on_cancel:
                await self._release()
            self._callbacks.on_stopped_leading()

    # ------------------------------------------------------------------
    # Protocol loops
    # ------------------------------------------------------------------

    async def _acquire(self, stop: asyncio.Event) -> bool:
        _log.info("attempting to acquire leader lease", lease=self._lock.describe(), identity=self.identity)
        while not stop.is_set():
            period = self._config.retry_period
            if await self._attempt(stop, timeout=period):
                _log.info("successfully acquired lease", lease=self._lock.describe())
                return True
            if await _sleep(stop, period + random.uniform(0, JITTER_FACTOR * period)):
                break
        return False

    async def _renew(self, stop: asyncio.Event) -> None:
        while not stop.is_set():
            deadline = self._clock() + self._config.renew_deadline
            renewed = False
            while (remaining := deadline - self._clock()) > 0:
                # A hung call is cut off at the deadline, not just checked after it
                if await self._attempt(stop, timeout=remaining):
                    renewed = True
                    break
                if stop.is_set() or await _sleep(stop, min(self._config.retry_period, remaining)):
                    return
            if not renewed:
                _log.warning("failed to renew lease before deadline", lease=self._lock.describe())
                return
            if await _sleep(stop, self._config.retry_period):
                return

    async def _release(self) -> None:
        if not self.is_leader() or self._observed_record is None:
            return
        released = replace(
            self._observed_record,
            holder_identity="",
            lease_duration_seconds=1,
            renew_time=datetime.now(tz=UTC),
        )
        try:
            async with asyncio.timeout(self._config.renew_deadline):
                await self._lock.update(released)
        except LeaseError as exc:
            _log.warning("failed to release lease", lease=self._lock.describe(), error=str(exc))
            return
        except TimeoutError:
            _log.warning("timed out releasing lease", lease=self._lock.describe())
            return
        self._observe(released)
        _log.info("lease released", lease=self._lock.describe())

    # ------------------------------------------------------------------
    # Single attempt
    # ------------------------------------------------------------------

    async def _attempt(self, stop: asyncio.Event, timeout: float) -> bool:
        """Run one acquire-or-renew, abandoned after *timeout* or on *stop*."""
        attempt = asyncio.create_task(self._try_acquire_or_renew())
        stopped = asyncio.create_task(stop.wait())
        try:
            done, _ = await asyncio.wait({attempt, stopped}, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
        finally:
            attempt.cancel()
            stopped.cancel()
        if attempt in done:
            return attempt.result()
        if not stop.is_set():
            _log.warning("lease call timed out", lease=self._lock.describe(), timeout=timeout)
        return False

    async def _try_acquire_or_renew(self) -> bool:
        now = datetime.now(tz=UTC)
        desired = LeaseRecord(
            holder_identity=self.identity,
            lease_duration_seconds=self._config.lease_duration,
            acquire_time=now,
            renew_time=now,
        )

        try:
            current = await self._lock.get()
        except LeaseError as exc:
            _log.warning("error retrieving lease", lease=self._lock.describe(), error=str(exc))
            return False

        if current is None:
            try:
                await self._lock.create(desired)
            except LeaseConflictError:
                _log.debug("lease created concurrently by another candidate", lease=self._lock.describe())
                return False
            except LeaseError as exc:
                _log.warning("error creating lease", lease=self._lock.describe(), error=str(exc))
                return False
            self._observe(desired)
            return True

        if current != self._observed_record:
            self._observe(current)

        holder = current.holder_identity
        if holder and holder != self.identity:
            expires_at = self._observed_at + max(current.lease_duration_seconds, 0)
            if self._clock() < expires_at:
                _log.debug("lease is held by another candidate", lease=self._lock.describe(), holder=holder)
                return False

        if holder == self.identity:
            desired = replace(
                desired,
                acquire_time=current.acquire_time,
                lease_transitions=current.lease_transitions,
            )
        else:
            desired = replace(desired, lease_transitions=current.lease_transitions + 1)

        try:
            await self._lock.update(desired)
        except LeaseConflictError:
            _log.debug("lease updated concurrently by another candidate", lease=self._lock.describe())
            return False
        except LeaseError as exc:
            _log.warning("error updating lease", lease=self._lock.describe(), error=str(exc))
            return False

        self._observe(desired)
        return True

    def _observe(self, record: LeaseRecord) -> None:
        self._observed_record = record
        self._observed_at = self._clock()
        holder = record.holder_identity
        if holder and holder != self._reported_leader:
            self._reported_leader = holder
            self._callbacks.on_new_leader(holder)


async def _sleep(stop: asyncio.Event, seconds: float) -> bool:
    """Wait *seconds* or until *stop* is set.  Returns True if stopped."""
    try:
        await asyncio.wait_for(stop.wait(), timeout=seconds)
    except TimeoutError:
        return False
    return True
