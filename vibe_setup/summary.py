from __future__ import annotations

import logging
from typing import Any, Dict, List, Sequence, Tuple

from .lib.command import Runner
from .pipeline import Outcome, RunReport

logger = logging.getLogger(__name__)

Fact = Tuple[str, str]


def gather_facts(items: Sequence[Dict[str, Any]], runner: Runner) -> List[Fact]:
    """Run each ``{label, run}`` command; keep the first line of output that succeeded.

    A tool that is missing or fails simply contributes nothing.
    """

    facts: List[Fact] = []
    for item in items:
        argv = [str(a) for a in item["run"]]
        r = runner(argv, check=False, quiet=True)
        lines = (r.stdout or "").strip().splitlines()
        if r.returncode == 0 and lines:
            facts.append((str(item["label"]), lines[0].strip()))
        else:
            logger.debug("No value for %s (rc=%s)", item["label"], r.returncode)
    return facts


def summary_lines(
    report: RunReport,
    *,
    notes: Sequence[str] = (),
    facts: Sequence[Fact] = (),
) -> List[str]:
    """Human-readable end-of-run summary.

    Failures are listed, not fatal: the operator fixes or reruns the
    failed subset, and already-satisfied steps are skipped next time.
    """

    lines: List[str] = []
    counts = ", ".join(
        f"{o.value}={report.count(o)}" for o in Outcome if report.count(o)
    )
    lines.append(f"Steps: {counts or 'none'}")

    if report.would_apply:
        lines.append(f"Would change ({len(report.would_apply)}):")
        lines.extend(f"  - {desc}" for _, desc in report.would_apply)

    if report.warnings:
        lines.append(f"Warnings during setup ({len(report.warnings)}):")
        lines.extend(f"  - {name}: {msg}" for name, msg in report.warnings)

    if report.errors:
        lines.append(f"Errors during setup ({len(report.errors)}):")
        required = set(report.required_failures())
        for name, msg in report.errors:
            tag = "" if name in required else " (optional)"
            lines.append(f"  - {name}{tag}: {msg}")
        lines.append("Rerun after fixing the errors above; completed steps will be skipped.")

    if facts:
        lines.append("Machine info:")
        lines.extend(f"  {label}: {value}" for label, value in facts)

    if notes:
        lines.append("Post-install steps:")
        lines.extend(f"  {i}. {n}" for i, n in enumerate(notes, start=1))

    return lines


def log_summary(report: RunReport, *, notes: Sequence[str] = (), facts: Sequence[Fact] = ()) -> None:
    for line in summary_lines(report, notes=notes, facts=facts):
        if line.startswith("Errors"):
            logger.error(line)
        elif line.startswith("Warnings"):
            logger.warning(line)
        else:
            logger.info(line)
