"""Helpers for reading External Secrets Operator objects."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from home_ops.models import ReadyState, ResourceRef, SyncStatus

GROUP = "external-secrets.io"
DEFAULT_VERSION = "v1"
KIND_PLURAL = "externalsecrets"
FORCE_SYNC_ANNOTATION = "force-sync"


def ref_from_object(obj: Dict[str, Any]) -> Optional[ResourceRef]:
    metadata = obj.get("metadata") or {}
    namespace = metadata.get("namespace")
    name = metadata.get("name")
    if not namespace or not name:
        return None
    return ResourceRef(namespace=str(namespace), name=str(name))


def refs_from_list(data: Dict[str, Any], name: Optional[str] = None) -> List[ResourceRef]:
    refs = []
    for item in data.get("items") or []:
        ref = ref_from_object(item)
        if ref is None:
            continue
        if name and ref.name != name:
            continue
        refs.append(ref)
    return sorted(set(refs))


def ready_condition(obj: Dict[str, Any]) -> Dict[str, Any]:
    conditions: Iterable[Dict[str, Any]] = (obj.get("status") or {}).get("conditions") or []
    for condition in conditions:
        if condition.get("type") == "Ready":
            return condition
    return {}


def status_from_object(obj: Dict[str, Any]) -> SyncStatus:
    condition = ready_condition(obj)
    marker = (obj.get("status") or {}).get("refreshTime")
    return SyncStatus(
        marker=str(marker) if marker else None,
        ready=ReadyState.parse(condition.get("status")),
        message=str(condition.get("message") or ""),
    )
