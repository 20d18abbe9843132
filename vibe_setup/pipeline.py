from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Sequence, Tuple

from .errors import StepWarning

logger = logging.getLogger(__name__)


class RunMode(str, enum.Enum):
    NORMAL = "normal"
    DRY_RUN = "dry_run"


class Severity(str, enum.Enum):
    REQUIRED = "required"
    OPTIONAL = "optional"


class Outcome(str, enum.Enum):
    SKIPPED = "skipped"
    APPLIED = "applied"
    WOULD_APPLY = "would_apply"
    FAILED = "failed"
    WARNED = "warned"
    UNVERIFIED = "unverified"


@dataclass(frozen=True)
class ProvisioningStep:
    """One unit of desired machine state.

    ``check`` must be a pure query (binary presence, package-manager state,
    file contents) and is safe to call any number of times. ``apply`` is
    expected, but not guaranteed, to make a later ``check`` return True.
    """

    name: str
    check: Callable[[], bool]
    apply: Callable[[], Any]
    severity: Severity = Severity.REQUIRED
    description: str = ""

    def describe(self) -> str:
        return self.description or self.name


@dataclass
class RunReport:
    steps_attempted: List[str] = field(default_factory=list)
    warnings: List[Tuple[str, str]] = field(default_factory=list)
    errors: List[Tuple[str, str]] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    would_apply: List[Tuple[str, str]] = field(default_factory=list)
    outcomes: Dict[str, Outcome] = field(default_factory=dict)
    severities: Dict[str, Severity] = field(default_factory=dict)

    def record(self, step: ProvisioningStep, outcome: Outcome, *, attempted: bool = True) -> None:
        """Note the outcome; ``attempted=False`` for a failure raised before apply ran."""

        self.outcomes[step.name] = outcome
        self.severities[step.name] = step.severity
        if outcome == Outcome.SKIPPED:
            self.skipped.append(step.name)
        elif outcome == Outcome.WOULD_APPLY:
            self.would_apply.append((step.name, step.describe()))
        elif attempted:
            self.steps_attempted.append(step.name)

    def count(self, outcome: Outcome) -> int:
        return sum(1 for o in self.outcomes.values() if o == outcome)

    def required_failures(self) -> List[str]:
        return [
            name
            for name, o in self.outcomes.items()
            if o == Outcome.FAILED and self.severities.get(name) == Severity.REQUIRED
        ]


@dataclass
class RunContext:
    """Owned by the top-level run; passed explicitly into every step."""

    mode: RunMode = RunMode.NORMAL
    report: RunReport = field(default_factory=RunReport)
    verify: bool = False

    @property
    def dry_run(self) -> bool:
        return self.mode == RunMode.DRY_RUN


def _error_text(e: BaseException) -> str:
    msg = str(e).strip()
    return msg or type(e).__name__


def run_step(step: ProvisioningStep, ctx: RunContext) -> Outcome:
    """Apply one step at most once, converting failures into report entries."""

    report = ctx.report

    try:
        satisfied = bool(step.check())
    except Exception as e:
        logger.error("[%s] check failed: %s", step.name, _error_text(e))
        report.errors.append((step.name, f"check failed: {_error_text(e)}"))
        report.record(step, Outcome.FAILED, attempted=False)
        return Outcome.FAILED

    if satisfied:
        logger.info("[%s] already satisfied", step.name)
        report.record(step, Outcome.SKIPPED)
        return Outcome.SKIPPED

    if ctx.dry_run:
        logger.info("[dry-run] Would %s", step.describe())
        report.record(step, Outcome.WOULD_APPLY)
        return Outcome.WOULD_APPLY

    logger.info("[%s] applying", step.name)
    try:
        result = step.apply()
    except StepWarning as w:
        logger.warning("[%s] %s", step.name, _error_text(w))
        report.warnings.append((step.name, _error_text(w)))
        report.record(step, Outcome.WARNED)
        return Outcome.WARNED
    except Exception as e:
        _log_failure(step, _error_text(e))
        report.errors.append((step.name, _error_text(e)))
        report.record(step, Outcome.FAILED)
        return Outcome.FAILED

    if result is False:
        _log_failure(step, "apply reported failure")
        report.errors.append((step.name, "apply reported failure"))
        report.record(step, Outcome.FAILED)
        return Outcome.FAILED

    if ctx.verify:
        try:
            converged = bool(step.check())
        except Exception as e:
            converged = False
            logger.debug("[%s] verification check raised: %s", step.name, _error_text(e))
        if not converged:
            msg = "applied but verification failed"
            logger.warning("[%s] %s", step.name, msg)
            report.warnings.append((step.name, msg))
            report.record(step, Outcome.UNVERIFIED)
            return Outcome.UNVERIFIED

    logger.info("[%s] done", step.name)
    report.record(step, Outcome.APPLIED)
    return Outcome.APPLIED


def _log_failure(step: ProvisioningStep, msg: str) -> None:
    if step.severity == Severity.OPTIONAL:
        logger.warning("[%s] optional step failed: %s", step.name, msg)
    else:
        logger.error("[%s] failed: %s", step.name, msg)


def run_steps(steps: Sequence[ProvisioningStep], ctx: RunContext) -> List[Outcome]:
    """Run steps strictly in order; a failure never stops the next step."""

    return [run_step(step, ctx) for step in steps]


@dataclass(frozen=True)
class StepGroup:
    group_id: str
    title: str
    steps: List[ProvisioningStep]


@dataclass(frozen=True)
class RunResult:
    report: RunReport
    ran_groups: List[str]


def run_groups(groups: Sequence[StepGroup], ctx: RunContext) -> RunResult:
    ran: List[str] = []
    total = len(groups)
    for i, group in enumerate(groups, start=1):
        logger.info("=== %d/%d - %s ===", i, total, group.title)
        run_steps(group.steps, ctx)
        ran.append(group.group_id)
    return RunResult(report=ctx.report, ran_groups=ran)
