from __future__ import annotations

from typing import List, Optional

from home_ops.models import ResourceRef, SyncStatus


class ResourceLister:
    def list(self, namespace: Optional[str] = None, name: Optional[str] = None) -> List[ResourceRef]:
        """Return matching resources; raises ``DiscoveryError``."""
        raise NotImplementedError


class StatusReader:
    def read(self, ref: ResourceRef) -> SyncStatus:
        """Return the current status; raises ``ReadError`` when unreachable."""
        raise NotImplementedError


class SyncTrigger:
    def fire(self, ref: ResourceRef) -> None:
        """Ask the controller to reconcile ``ref``; raises ``TriggerError``."""
        raise NotImplementedError
