"""Force-resync ExternalSecrets and track their status until completion.

Every matching ExternalSecret gets a ``force-sync`` annotation; the run then
waits until each one's ``status.refreshTime`` moves past the value it had before
the annotation, and reports the secret as Synced (Ready=True), Failed, or
TimedOut. The exit status is non-zero if any secret did not sync.
"""

from __future__ import annotations

import argparse
import json
import logging
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Union

from home_ops.adapters.base import ResourceLister
from home_ops.adapters.kubectl import KubectlBackend, build_env, ensure_command
from home_ops.adapters.proxy import ApiProxyBackend
from home_ops.config import BACKENDS, ResyncSettings, load_settings
from home_ops.errors import ConfigError, EmptyResourceSetError, ResyncError
from home_ops.log import build_logger
from home_ops.reporter import Report, empty_report, exit_code, format_json, format_summary, format_table, render
from home_ops.tracker import ConvergenceTracker

Backend = Union[KubectlBackend, ApiProxyBackend]


@dataclass(frozen=True)
class ResyncResult:
    report: Optional[Report]
    exit_code: int
    elapsed: float = 0.0
    triggered: int = 0


def build_backend(settings: ResyncSettings) -> Backend:
    if settings.backend == "proxy":
        if not settings.api_url:
            raise ConfigError("[Config] the proxy backend requires api_url (RESYNC_API_URL or --api-url)")
        return ApiProxyBackend(settings.api_url, version=settings.api_version)
    ensure_command("kubectl")
    return KubectlBackend(context=settings.context, env=build_env(settings.kubeconfig))


def run_resync(
    lister: ResourceLister,
    tracker: ConvergenceTracker,
    *,
    namespace: Optional[str] = None,
    name: Optional[str] = None,
    timeout: float = 120.0,
    wait: bool = True,
    logger: Optional[logging.Logger] = None,
) -> ResyncResult:
    logger = logger or logging.getLogger("home_ops.resync")

    logger.info("[Discover] Discovering ExternalSecrets...")
    refs = lister.list(namespace=namespace, name=name)
    try:
        session = tracker.start_session(refs, timeout)
    except EmptyResourceSetError:
        logger.warning("[Discover] No ExternalSecrets found")
        return ResyncResult(report=empty_report(), exit_code=0)
    logger.info(f"[Discover] Found {len(session.resources)} ExternalSecret(s)")

    tracker.trigger(session)
    if not wait:
        logger.info("[Resync] Resync triggered for all secrets (--no-wait specified, skipping status tracking)")
        return ResyncResult(report=None, exit_code=0, triggered=len(session.pending()))

    logger.info(f"[Track] Waiting for sync to complete (timeout: {int(timeout)}s)...")
    tracker.poll_until_converged(session)
    report = render(session)
    return ResyncResult(report=report, exit_code=exit_code(report), elapsed=tracker.clock() - session.started_at)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Force resync ExternalSecrets and track their status until completion.")
    parser.add_argument("-n", "--namespace", help="Only resync secrets in this namespace")
    parser.add_argument("-s", "--secret", help="Only resync a specific ExternalSecret (requires --namespace)")
    parser.add_argument("-t", "--timeout", type=float, help="Timeout in seconds waiting for sync (default: 120)")
    parser.add_argument("-w", "--no-wait", action="store_true", help="Trigger resync but don't wait for completion")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("-o", "--output", choices=("table", "json"), default="table", help="Report format")
    parser.add_argument("--interval", type=float, help="Seconds between status polls (default: 2)")
    parser.add_argument("--config", type=Path, help="YAML file with resync settings")
    parser.add_argument("--backend", choices=BACKENDS, help="Cluster access backend (default: kubectl)")
    parser.add_argument("--api-url", help="Kubernetes API URL for the proxy backend, e.g. from 'kubectl proxy'")
    parser.add_argument("--context", help="kubectl context to use")
    args = parser.parse_args(argv)
    if args.secret and not args.namespace:
        parser.error("--secret requires --namespace")
    return args


def print_report(result: ResyncResult, output: str, logger: logging.Logger) -> None:
    report = result.report
    if report is None:
        if output == "json":
            print(json.dumps({"waited": False, "triggered": result.triggered}, indent=2))
        return
    if output == "json":
        print(format_json(report, result.elapsed))
        return
    if not report.rows:
        return
    print(f"\n{format_table(report, use_color=sys.stdout.isatty())}\n")
    logger.info(f"[Resync] {format_summary(report, result.elapsed)}")


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    logger = build_logger(args.verbose)
    try:
        settings = load_settings(
            args.config,
            timeout=args.timeout,
            interval=args.interval,
            backend=args.backend,
            api_url=args.api_url,
            context=args.context,
        )
        backend = build_backend(settings)
        tracker = ConvergenceTracker(
            backend,
            backend,
            interval=settings.interval,
            max_workers=settings.max_workers,
            logger=logger,
        )
        result = run_resync(
            backend,
            tracker,
            namespace=args.namespace,
            name=args.secret,
            timeout=settings.timeout,
            wait=not args.no_wait,
            logger=logger,
        )
    except (ResyncError, subprocess.CalledProcessError) as exc:
        message = str(exc)
        if isinstance(exc, subprocess.CalledProcessError) and exc.stderr:
            message = f"{message}\n{exc.stderr.strip()}"
        logger.error(message)
        raise SystemExit(1) from exc
    except KeyboardInterrupt as exc:
        logger.warning("[Resync] Interrupted before tracking started; triggers already sent are not rolled back")
        raise SystemExit(130) from exc

    print_report(result, args.output, logger)
    raise SystemExit(result.exit_code)


if __name__ == "__main__":  # pragma: no cover
    main()
