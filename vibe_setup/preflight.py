from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from typing import Any, Callable, List, Mapping, Optional, Sequence

from .errors import PreflightError
from .lib.env import is_privileged, system_name

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PreflightCheck:
    name: str
    ok: Callable[[], bool]
    message: str


def run_preflight(checks: Sequence[PreflightCheck]) -> None:
    """Evaluate every check once, raising on the first failure."""

    for c in checks:
        if not c.ok():
            logger.error("Pre-flight check %s failed: %s", c.name, c.message)
            raise PreflightError(c.message)
        logger.debug("Pre-flight check %s passed", c.name)


def build_preflight(
    settings: Mapping[str, Any],
    *,
    system: Optional[Callable[[], str]] = None,
    privileged: Optional[Callable[[], bool]] = None,
    which: Optional[Callable[[str], Optional[str]]] = None,
) -> List[PreflightCheck]:
    """Translate a manifest ``preflight`` mapping into checks.

    Recognized keys: ``os`` (expected ``platform.system()``), ``forbid_root``
    and ``require_commands``.
    """

    system = system or system_name
    privileged = privileged or is_privileged
    which = which or shutil.which

    checks: List[PreflightCheck] = []

    expected_os = settings.get("os")
    if expected_os:
        checks.append(
            PreflightCheck(
                name="os",
                ok=lambda: system() == str(expected_os),
                message=f"This setup is for {expected_os} only (running on {system()}).",
            )
        )

    if settings.get("forbid_root", True):
        checks.append(
            PreflightCheck(
                name="not_root",
                ok=lambda: not privileged(),
                message="Do not run this as root. It will ask for sudo when needed.",
            )
        )

    for cmd in settings.get("require_commands") or []:
        checks.append(
            PreflightCheck(
                name=f"command:{cmd}",
                ok=lambda cmd=cmd: which(str(cmd)) is not None,
                message=f"This setup requires {cmd}, which was not found on PATH.",
            )
        )

    return checks

