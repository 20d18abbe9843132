from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Set

from .manifest import Manifest, expand
from .pipeline import StepGroup
from .steps import build_step
from .toolkit import Toolkit

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RunOptions:
    dry_run: bool = False
    verify: bool = False
    minimal: bool = False
    skip_git: bool = False
    skip_remote: bool = False
    skip_gui_remote: bool = False
    skip_ai: bool = False

    def active_flags(self) -> Set[str]:
        """Names matched against a group's ``skip_when`` tags."""

        names = ("minimal", "skip_git", "skip_remote", "skip_gui_remote", "skip_ai")
        return {n for n in names if getattr(self, n)}


def build_plan(manifest: Manifest, options: RunOptions, tk: Toolkit) -> List[StepGroup]:
    """Select groups for this run and turn their entries into steps.

    Raises ManifestError before anything runs if an entry is invalid.
    """

    groups: List[StepGroup] = []
    active = options.active_flags()
    selected = manifest.select_groups(active)
    for g in manifest.groups:
        if g not in selected:
            reasons = sorted(set(g.get("skip_when") or []) & active)
            logger.info("Skipping %s (--%s)", g["title"], ", --".join(r.replace("_", "-") for r in reasons))

    for g in selected:
        steps = [build_step(expand(entry, tk.variables), tk) for entry in g.get("steps") or []]
        groups.append(StepGroup(group_id=str(g["id"]), title=str(g["title"]), steps=steps))
    return groups
