"""ExternalSecret backend talking to the Kubernetes API through ``kubectl proxy``.

Start a proxy with ``kubectl proxy --port 8001`` and point ``--api-url`` at
``http://127.0.0.1:8001``. Authentication is left to the proxy.
"""

from __future__ import annotations

import time
from typing import Any, Callable, Dict, List, Optional

import requests

from home_ops.adapters.base import ResourceLister, StatusReader, SyncTrigger
from home_ops.adapters.externalsecrets import DEFAULT_VERSION, FORCE_SYNC_ANNOTATION, GROUP, KIND_PLURAL, refs_from_list, status_from_object
from home_ops.errors import DiscoveryError, ReadError, TriggerError
from home_ops.models import ResourceRef, SyncStatus

REQUEST_TIMEOUT = 10
MERGE_PATCH = "application/merge-patch+json"


class ApiProxyBackend(ResourceLister, StatusReader, SyncTrigger):
    def __init__(
        self,
        base_url: str,
        *,
        version: str = DEFAULT_VERSION,
        session: Optional[requests.Session] = None,
        timeout: float = REQUEST_TIMEOUT,
        now: Callable[[], float] = time.time,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.version = version
        self.session = session or requests.Session()
        self.timeout = timeout
        self.now = now

    def url(self, namespace: Optional[str] = None, name: Optional[str] = None) -> str:
        path = f"{self.base_url}/apis/{GROUP}/{self.version}"
        if namespace:
            path = f"{path}/namespaces/{namespace}"
        path = f"{path}/{KIND_PLURAL}"
        if name:
            path = f"{path}/{name}"
        return path

    def get_json(self, url: str) -> Dict[str, Any]:
        response = self.session.get(url, timeout=self.timeout)
        response.raise_for_status()
        data = response.json()
        if not isinstance(data, dict):
            raise ValueError(f"{url} returned a non-object JSON document")
        return data

    def list(self, namespace: Optional[str] = None, name: Optional[str] = None) -> List[ResourceRef]:
        if name and not namespace:
            raise DiscoveryError("[Discover] --secret requires --namespace")
        try:
            data = self.get_json(self.url(namespace))
        except (requests.RequestException, ValueError) as exc:
            raise DiscoveryError(f"[Discover] Unable to list ExternalSecrets: {exc}") from exc
        return refs_from_list(data, name=name)

    def read(self, ref: ResourceRef) -> SyncStatus:
        try:
            data = self.get_json(self.url(ref.namespace, ref.name))
        except (requests.RequestException, ValueError) as exc:
            raise ReadError(f"unable to read {ref}: {exc}") from exc
        return status_from_object(data)

    def fire(self, ref: ResourceRef) -> None:
        patch = {"metadata": {"annotations": {FORCE_SYNC_ANNOTATION: str(int(self.now()))}}}
        try:
            response = self.session.patch(
                self.url(ref.namespace, ref.name),
                json=patch,
                headers={"Content-Type": MERGE_PATCH},
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            raise TriggerError(f"patch failed: {exc}") from exc
