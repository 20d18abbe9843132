from __future__ import annotations

from typing import Any, Callable, Dict

from ..errors import ManifestError
from ..pipeline import ProvisioningStep
from ..toolkit import Toolkit
from .dotfiles import build_file_block, build_git_clone, build_line_in_file, build_symlink
from .installers import build_apt_repo, build_deb_url, build_github_release, build_script
from .packages import build_apt, build_brew, build_cask, build_npm, build_snap
from .system import (
    build_apt_upgrade,
    build_command,
    build_git_config,
    build_git_identity,
    build_ssh_key,
)

StepBuilder = Callable[[Dict[str, Any], Toolkit], ProvisioningStep]

STEP_KINDS: Dict[str, StepBuilder] = {
    "apt": build_apt,
    "apt_upgrade": build_apt_upgrade,
    "apt_repo": build_apt_repo,
    "brew": build_brew,
    "cask": build_cask,
    "npm": build_npm,
    "snap": build_snap,
    "script": build_script,
    "github_release": build_github_release,
    "deb_url": build_deb_url,
    "git_clone": build_git_clone,
    "line_in_file": build_line_in_file,
    "file_block": build_file_block,
    "symlink": build_symlink,
    "command": build_command,
    "git_config": build_git_config,
    "git_identity": build_git_identity,
    "ssh_key": build_ssh_key,
}


def build_step(entry: Dict[str, Any], tk: Toolkit) -> ProvisioningStep:
    kind = str(entry.get("kind"))
    builder = STEP_KINDS.get(kind)
    if builder is None:
        raise ManifestError(f"step {entry.get('name')}: unknown kind {kind!r}")
    try:
        return builder(entry, tk)
    except (KeyError, TypeError, ValueError) as e:
        if isinstance(e, ManifestError):
            raise
        raise ManifestError(f"step {entry.get('name')}: invalid {kind} entry ({e})") from e


__all__ = ["STEP_KINDS", "StepBuilder", "build_step"]
