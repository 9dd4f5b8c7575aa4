from __future__ import annotations

import json
import os
import shutil
import subprocess
import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from home_ops.adapters.base import ResourceLister, StatusReader, SyncTrigger
from home_ops.adapters.externalsecrets import FORCE_SYNC_ANNOTATION, refs_from_list, status_from_object
from home_ops.errors import DiscoveryError, ReadError, ResyncError, TriggerError
from home_ops.models import ResourceRef, SyncStatus

DEFAULT_KUBECONFIG = Path.home() / ".kube/config"


def ensure_command(name: str) -> None:
    if shutil.which(name) is None:
        raise ResyncError(f"[Deps] {name} is required but not found in PATH")


def build_env(kubeconfig: Optional[str] = None, default_path: Path = DEFAULT_KUBECONFIG) -> Dict[str, str]:
    env = os.environ.copy()
    value = kubeconfig or os.environ.get("KUBECONFIG")
    if not value and default_path.exists():
        value = str(default_path)
    if value:
        env["KUBECONFIG"] = value
    return env


class KubectlBackend(ResourceLister, StatusReader, SyncTrigger):
    """ExternalSecret lister, status reader and sync trigger backed by kubectl."""

    def __init__(
        self,
        *,
        kubectl: str = "kubectl",
        context: Optional[str] = None,
        env: Optional[Dict[str, str]] = None,
        now: Callable[[], float] = time.time,
    ) -> None:
        self.kubectl = kubectl
        self.context = context
        self.env = env if env is not None else build_env()
        self.now = now

    # ------------------------------------------------------------ Core helpers
    def run(self, args: List[str], *, check: bool = True) -> subprocess.CompletedProcess[str]:
        cmd = [self.kubectl]
        if self.context:
            cmd.extend(["--context", self.context])
        cmd.extend(args)
        return subprocess.run(
            cmd,
            check=check,
            text=True,
            capture_output=True,
            env=self.env,
        )

    def get_json(self, args: List[str]) -> Dict[str, Any]:
        output = self.run([*args, "-o", "json"]).stdout
        data = json.loads(output or "{}")
        if not isinstance(data, dict):
            raise ValueError("kubectl returned a non-object JSON document")
        return data

    @staticmethod
    def describe_failure(exc: Exception) -> str:
        if isinstance(exc, subprocess.CalledProcessError) and exc.stderr:
            return exc.stderr.strip()
        return str(exc)

    # --------------------------------------------------------------- Discovery
    def list(self, namespace: Optional[str] = None, name: Optional[str] = None) -> List[ResourceRef]:
        if name and not namespace:
            raise DiscoveryError("[Discover] --secret requires --namespace")
        scope = ["-n", namespace] if namespace else ["--all-namespaces"]
        try:
            data = self.get_json(["get", "externalsecrets", *scope])
        except (subprocess.CalledProcessError, OSError, ValueError) as exc:
            raise DiscoveryError(f"[Discover] Unable to list ExternalSecrets: {self.describe_failure(exc)}") from exc
        return refs_from_list(data, name=name)

    # ------------------------------------------------------------------ Status
    def read(self, ref: ResourceRef) -> SyncStatus:
        try:
            data = self.get_json(["-n", ref.namespace, "get", "externalsecret", ref.name])
        except (subprocess.CalledProcessError, OSError, ValueError) as exc:
            raise ReadError(f"unable to read {ref}: {self.describe_failure(exc)}") from exc
        return status_from_object(data)

    # ----------------------------------------------------------------- Trigger
    def fire(self, ref: ResourceRef) -> None:
        stamp = str(int(self.now()))
        try:
            self.run(
                [
                    "-n",
                    ref.namespace,
                    "annotate",
                    "externalsecret",
                    ref.name,
                    f"{FORCE_SYNC_ANNOTATION}={stamp}",
                    "--overwrite",
                ]
            )
        except (subprocess.CalledProcessError, OSError) as exc:
            raise TriggerError(f"annotate failed: {self.describe_failure(exc)}") from exc
