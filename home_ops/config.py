from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from home_ops.adapters.externalsecrets import DEFAULT_VERSION
from home_ops.errors import ConfigError
from home_ops.tracker import DEFAULT_MAX_WORKERS, DEFAULT_POLL_INTERVAL

BACKENDS = ("kubectl", "proxy")

ENV_VARS = {
    "timeout": "RESYNC_TIMEOUT",
    "interval": "RESYNC_POLL_INTERVAL",
    "max_workers": "RESYNC_MAX_WORKERS",
    "backend": "RESYNC_BACKEND",
    "api_url": "RESYNC_API_URL",
    "api_version": "RESYNC_API_VERSION",
    "kubeconfig": "KUBECONFIG",
    "context": "KUBE_CONTEXT",
}


@dataclass(frozen=True)
class ResyncSettings:
    timeout: float = 120.0
    interval: float = DEFAULT_POLL_INTERVAL
    max_workers: int = DEFAULT_MAX_WORKERS
    backend: str = "kubectl"
    api_url: Optional[str] = None
    api_version: str = DEFAULT_VERSION
    kubeconfig: Optional[str] = None
    context: Optional[str] = None

    def with_overrides(self, **overrides: Any) -> "ResyncSettings":
        values = {key: value for key, value in overrides.items() if value is not None}
        return coerce(replace(self, **values))

    def validate(self) -> "ResyncSettings":
        if self.timeout <= 0:
            raise ConfigError(f"[Config] timeout must be positive, got {self.timeout}")
        if self.interval <= 0:
            raise ConfigError(f"[Config] interval must be positive, got {self.interval}")
        if self.max_workers < 1:
            raise ConfigError(f"[Config] max_workers must be at least 1, got {self.max_workers}")
        if self.backend not in BACKENDS:
            raise ConfigError(f"[Config] backend must be one of {', '.join(BACKENDS)}, got '{self.backend}'")
        if self.backend == "proxy" and not self.api_url:
            raise ConfigError("[Config] the proxy backend requires api_url (RESYNC_API_URL or --api-url)")
        return self


def coerce(settings: ResyncSettings) -> ResyncSettings:
    try:
        return replace(
            settings,
            timeout=float(settings.timeout),
            interval=float(settings.interval),
            max_workers=int(settings.max_workers),
        )
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"[Config] invalid numeric setting: {exc}") from exc


def load_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise ConfigError(f"[Config] Config file {path} does not exist")
    with path.open("r", encoding="utf-8") as handle:
        try:
            data = yaml.safe_load(handle) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"[Config] {path} is not valid YAML: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"[Config] {path} must be a YAML map")

    known = {field.name for field in fields(ResyncSettings)}
    normalized = {str(key).replace("-", "_"): value for key, value in data.items()}
    unknown = sorted(set(normalized) - known)
    if unknown:
        raise ConfigError(f"[Config] {path} has unknown keys: {', '.join(unknown)}")
    return normalized


def from_env(environ: Mapping[str, str]) -> Dict[str, Any]:
    return {key: environ[var] for key, var in ENV_VARS.items() if environ.get(var)}


def load_settings(
    config_path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
    **overrides: Any,
) -> ResyncSettings:
    """Resolve settings from defaults, a YAML file, the environment and CLI overrides, in that order."""
    settings = ResyncSettings()
    if config_path is not None:
        settings = settings.with_overrides(**load_file(config_path))
    settings = settings.with_overrides(**from_env(os.environ if environ is None else environ))
    return settings.with_overrides(**overrides).validate()
