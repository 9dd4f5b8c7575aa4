from __future__ import annotations

import enum
import threading
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional


@dataclass(frozen=True, order=True)
class ResourceRef:
    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


class ReadyState(enum.Enum):
    TRUE = "True"
    FALSE = "False"
    UNKNOWN = "Unknown"

    @classmethod
    def parse(cls, value: Optional[str]) -> "ReadyState":
        for state in cls:
            if state.value == value:
                return state
        return cls.UNKNOWN


@dataclass(frozen=True)
class SyncStatus:
    """One observation of a resource's convergence signal."""

    marker: Optional[str]
    ready: ReadyState = ReadyState.UNKNOWN
    message: str = ""


@dataclass(frozen=True)
class Baseline:
    ref: ResourceRef
    marker: Optional[str]


class OutcomeState(enum.Enum):
    SYNCED = "Synced"
    FAILED = "Failed"
    TIMED_OUT = "TimedOut"


@dataclass(frozen=True)
class Outcome:
    ref: ResourceRef
    state: OutcomeState
    message: str = ""


@dataclass
class TrackingSession:
    """State of one trigger-then-converge run.

    ``outcomes`` only ever grows through :meth:`record`, which holds the session
    lock across the membership check and the write so concurrent pollers cannot
    both resolve the same resource.
    """

    resources: FrozenSet[ResourceRef]
    deadline: float
    started_at: float
    baselines: Dict[ResourceRef, Baseline] = field(default_factory=dict)
    outcomes: Dict[ResourceRef, Outcome] = field(default_factory=dict)
    cancelled: bool = False
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def record(self, outcome: Outcome) -> bool:
        if outcome.ref not in self.resources:
            raise KeyError(f"{outcome.ref} is not tracked by this session")
        with self._lock:
            if outcome.ref in self.outcomes:
                return False
            self.outcomes[outcome.ref] = outcome
            return True

    def is_resolved(self, ref: ResourceRef) -> bool:
        with self._lock:
            return ref in self.outcomes

    def pending(self) -> List[ResourceRef]:
        with self._lock:
            return sorted(ref for ref in self.resources if ref not in self.outcomes)

    def ordered(self) -> List[ResourceRef]:
        return sorted(self.resources)
