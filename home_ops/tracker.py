"""Trigger-then-converge tracking of externally reconciled resources.

The tracker records a baseline marker for every resource, asks the controller to
reconcile each one, then polls until the marker moves away from its baseline or
the session deadline passes. Detection always compares against the baseline, so
a marker that changes several times between two polls is still seen once.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from typing import Callable, Iterable, List, Optional, TypeVar

from home_ops.adapters.base import StatusReader, SyncTrigger
from home_ops.errors import EmptyResourceSetError, ReadError, TriggerError
from home_ops.log import kv
from home_ops.models import Baseline, Outcome, OutcomeState, ReadyState, ResourceRef, TrackingSession

DEFAULT_POLL_INTERVAL = 2.0
DEFAULT_MAX_WORKERS = 8
TIMED_OUT_MESSAGE = "timed out waiting for sync"

T = TypeVar("T")


class ConvergenceTracker:
    def __init__(
        self,
        reader: StatusReader,
        sync_trigger: SyncTrigger,
        *,
        interval: float = DEFAULT_POLL_INTERVAL,
        max_workers: int = DEFAULT_MAX_WORKERS,
        clock: Callable[[], float] = time.monotonic,
        sleep: Optional[Callable[[float], None]] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if interval <= 0:
            raise ValueError("poll interval must be positive")
        self.reader = reader
        self.sync_trigger = sync_trigger
        self.interval = interval
        self.max_workers = max(1, max_workers)
        self.clock = clock
        self.logger = logger or logging.getLogger("home_ops.resync")
        self._cancel = threading.Event()
        self._sleep = sleep or self._wait

    # ------------------------------------------------------------ Core helpers
    def _wait(self, seconds: float) -> None:
        self._cancel.wait(seconds)

    def _map(self, func: Callable[[ResourceRef], T], refs: List[ResourceRef]) -> List[T]:
        if len(refs) <= 1 or self.max_workers == 1:
            return [func(ref) for ref in refs]
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(refs))) as pool:
            return list(pool.map(func, refs))

    def cancel(self) -> None:
        """Stop an in-progress poll at its next check or wait.

        The flag is reset by the next :meth:`start_session`.
        """
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    # ---------------------------------------------------------------- Baseline
    def start_session(self, resources: Iterable[ResourceRef], timeout: float) -> TrackingSession:
        refs = frozenset(resources)
        if not refs:
            raise EmptyResourceSetError("[Track] No resources to track")
        self._cancel.clear()

        now = self.clock()
        session = TrackingSession(resources=refs, deadline=now + timeout, started_at=now)
        ordered = session.ordered()
        for ref, marker in zip(ordered, self._map(self._read_baseline, ordered)):
            session.baselines[ref] = Baseline(ref=ref, marker=marker)
        self.logger.debug(f"[Track] Captured {len(ordered)} baseline(s) {kv(timeout=timeout)}")
        return session

    def _read_baseline(self, ref: ResourceRef) -> Optional[str]:
        try:
            return self.reader.read(ref).marker
        except ReadError as exc:
            self.logger.debug(f"[Track] Baseline unreadable, treating as never synced {kv(namespace=ref.namespace, secret=ref.name, error=exc)}")
            return None

    # ----------------------------------------------------------------- Trigger
    def trigger(self, session: TrackingSession) -> None:
        self._map(partial(self._fire, session), session.pending())

    def _fire(self, session: TrackingSession, ref: ResourceRef) -> None:
        if session.is_resolved(ref):
            return
        self.logger.info(f"[Trigger] Triggering resync {kv(namespace=ref.namespace, secret=ref.name)}")
        try:
            self.sync_trigger.fire(ref)
        except TriggerError as exc:
            if session.record(Outcome(ref=ref, state=OutcomeState.FAILED, message=str(exc))):
                self.logger.warning(f"[Trigger] Resync request failed {kv(namespace=ref.namespace, secret=ref.name, error=exc)}")

    # -------------------------------------------------------------------- Poll
    def poll_until_converged(self, session: TrackingSession) -> TrackingSession:
        try:
            while True:
                if self.cancelled:
                    return self._abandon(session)
                pending = session.pending()
                if not pending:
                    break
                if self.clock() >= session.deadline:
                    self.logger.warning(f"[Track] Timeout reached with {len(pending)} resource(s) still pending")
                    break
                self._map(partial(self._observe, session), pending)
                if session.pending() and not self.cancelled:
                    self._sleep(self.interval)
        except KeyboardInterrupt:
            return self._abandon(session)

        for ref in session.pending():
            session.record(Outcome(ref=ref, state=OutcomeState.TIMED_OUT, message=TIMED_OUT_MESSAGE))
        return session

    def _abandon(self, session: TrackingSession) -> TrackingSession:
        session.cancelled = True
        self.logger.warning(f"[Track] Tracking cancelled with {len(session.pending())} resource(s) unresolved")
        return session

    def _observe(self, session: TrackingSession, ref: ResourceRef) -> None:
        try:
            status = self.reader.read(ref)
        except ReadError as exc:
            self.logger.debug(f"[Track] Status read failed {kv(namespace=ref.namespace, secret=ref.name, error=exc)}")
            return

        baseline = session.baselines.get(ref)
        if status.marker == (baseline.marker if baseline else None):
            return

        state = OutcomeState.SYNCED if status.ready is ReadyState.TRUE else OutcomeState.FAILED
        if session.record(Outcome(ref=ref, state=state, message=status.message)):
            self.logger.debug(f"[Track] Secret synced {kv(namespace=ref.namespace, secret=ref.name, ready=status.ready.value)}")
