from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, List

from home_ops.log import kv
from home_ops.models import OutcomeState, TrackingSession
from home_ops.tracker import TIMED_OUT_MESSAGE

COL_NS = 20
COL_NAME = 35
COL_STATUS = 8
COL_MESSAGE = 40

STATE_COLORS = {
    OutcomeState.SYNCED: "\033[32m",
    OutcomeState.FAILED: "\033[31m",
    OutcomeState.TIMED_OUT: "\033[33m",
}
RESET = "\033[0m"


@dataclass(frozen=True)
class Row:
    namespace: str
    name: str
    state: OutcomeState
    message: str


@dataclass(frozen=True)
class Counts:
    synced: int = 0
    failed: int = 0
    timed_out: int = 0
    total: int = 0


@dataclass(frozen=True)
class Report:
    rows: List[Row]
    counts: Counts


def render(session: TrackingSession) -> Report:
    """Build the per-resource report for a finished (or cancelled) session.

    Resources the session never resolved are reported as timed out.
    """
    rows: List[Row] = []
    for ref in session.ordered():
        outcome = session.outcomes.get(ref)
        if outcome is None:
            rows.append(Row(ref.namespace, ref.name, OutcomeState.TIMED_OUT, TIMED_OUT_MESSAGE))
        else:
            rows.append(Row(ref.namespace, ref.name, outcome.state, outcome.message))
    return Report(rows=rows, counts=count(rows))


def empty_report() -> Report:
    return Report(rows=[], counts=Counts())


def count(rows: List[Row]) -> Counts:
    return Counts(
        synced=sum(1 for row in rows if row.state is OutcomeState.SYNCED),
        failed=sum(1 for row in rows if row.state is OutcomeState.FAILED),
        timed_out=sum(1 for row in rows if row.state is OutcomeState.TIMED_OUT),
        total=len(rows),
    )


def exit_code(report: Report) -> int:
    if report.counts.failed or report.counts.timed_out:
        return 1
    return 0


def format_table(report: Report, use_color: bool = False) -> str:
    lines = [
        f"  {'NAMESPACE':<{COL_NS}} {'NAME':<{COL_NAME}} {'STATUS':<{COL_STATUS}} MESSAGE",
        f"  {'-' * COL_NS} {'-' * COL_NAME} {'-' * COL_STATUS} {'-' * COL_MESSAGE}",
    ]
    for row in report.rows:
        status = f"{row.state.value:<{COL_STATUS}}"
        if use_color:
            status = f"{STATE_COLORS[row.state]}{status}{RESET}"
        lines.append(f"  {row.namespace:<{COL_NS}} {row.name:<{COL_NAME}} {status} {row.message}".rstrip())
    return "\n".join(lines)


def format_summary(report: Report, elapsed: float) -> str:
    counts = report.counts
    fields = kv(total=counts.total, synced=counts.synced, failed=counts.failed, timed_out=counts.timed_out)
    return f"Resync complete in {int(elapsed)}s {fields}"


def to_dict(report: Report, elapsed: float) -> Dict[str, Any]:
    return {
        "elapsedSeconds": round(elapsed, 3),
        "counts": {
            "total": report.counts.total,
            "synced": report.counts.synced,
            "failed": report.counts.failed,
            "timedOut": report.counts.timed_out,
        },
        "resources": [
            {"namespace": row.namespace, "name": row.name, "state": row.state.value, "message": row.message}
            for row in report.rows
        ],
    }


def format_json(report: Report, elapsed: float) -> str:
    return json.dumps(to_dict(report, elapsed), indent=2)
