# --- test import path bootstrap (flat layout) ---
import sys as _sys
from pathlib import Path as _Path

_ROOT = _Path(__file__).resolve().parents[1]
if str(_ROOT) not in _sys.path:
    _sys.path.insert(0, str(_ROOT))
# --- end bootstrap ---

from typing import Callable, Dict, List, Optional, Union

import pytest

from home_ops.errors import DiscoveryError, TriggerError
from home_ops.models import ReadyState, ResourceRef, SyncStatus
from home_ops.tracker import ConvergenceTracker

StatusScript = Union[SyncStatus, Exception, Callable[[float], Union[SyncStatus, Exception]]]


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.now += seconds


class FakeCluster:
    """In-memory lister, reader and trigger driven by a fake clock.

    ``statuses`` maps each ref to a status, an exception to raise, or a function
    of elapsed time returning either.
    """

    def __init__(self, clock: FakeClock, statuses: Dict[ResourceRef, StatusScript]) -> None:
        self.clock = clock
        self.statuses = statuses
        self.fired: List[ResourceRef] = []
        self.reads: List[ResourceRef] = []
        self.fail_triggers: Dict[ResourceRef, str] = {}
        self.discovery_error: Optional[str] = None

    def list(self, namespace: Optional[str] = None, name: Optional[str] = None) -> List[ResourceRef]:
        if self.discovery_error:
            raise DiscoveryError(self.discovery_error)
        refs = [ref for ref in self.statuses if namespace in (None, ref.namespace) and name in (None, ref.name)]
        return sorted(refs)

    def read(self, ref: ResourceRef) -> SyncStatus:
        self.reads.append(ref)
        entry = self.statuses[ref]
        if callable(entry) and not isinstance(entry, (SyncStatus, Exception)):
            entry = entry(self.clock())
        if isinstance(entry, Exception):
            raise entry
        return entry

    def fire(self, ref: ResourceRef) -> None:
        self.fired.append(ref)
        if ref in self.fail_triggers:
            raise TriggerError(self.fail_triggers[ref])


def changes_at(when: float, before: Optional[str], after: str, ready: ReadyState = ReadyState.TRUE, message: str = "secret synced"):
    """Status script whose marker flips from ``before`` to ``after`` at ``when``."""

    def script(now: float) -> SyncStatus:
        if now >= when:
            return SyncStatus(marker=after, ready=ready, message=message)
        return SyncStatus(marker=before, ready=ReadyState.TRUE, message="")

    return script


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_tracker(clock: FakeClock):
    def factory(cluster: FakeCluster, **kwargs) -> ConvergenceTracker:
        kwargs.setdefault("interval", 2.0)
        kwargs.setdefault("max_workers", 1)
        return ConvergenceTracker(cluster, cluster, clock=clock, sleep=clock.sleep, **kwargs)

    return factory
