from __future__ import annotations

import logging
from typing import Any, Dict

from ..lib.probe import all_present
from ..pipeline import ProvisioningStep
from ..toolkit import Toolkit
from .base import as_list, make_step, require

logger = logging.getLogger(__name__)


def build_apt(entry: Dict[str, Any], tk: Toolkit) -> ProvisioningStep:
    packages = as_list(require(entry, "packages"))
    update_first = bool(entry.get("update", False))

    def apply() -> None:
        # Only what is still missing at apply time.
        todo = tk.apt.missing(packages)
        logger.info("Installing %d missing apt packages: %s", len(todo), " ".join(todo))
        if update_first:
            tk.apt.update()
        tk.apt.install(todo)

    return make_step(
        entry,
        tk,
        apply=apply,
        default_check=lambda: all_present(tk.apt_probe, packages),
        description=f"apt install {' '.join(packages)}",
    )


def _build_brew(entry: Dict[str, Any], tk: Toolkit, *, cask: bool) -> ProvisioningStep:
    packages = as_list(require(entry, "packages"))
    flag = " --cask" if cask else ""

    def apply() -> None:
        manager = tk.brew(cask=cask)
        todo = manager.missing(packages)
        logger.info("Installing %d brew%s packages: %s", len(todo), flag, " ".join(todo))
        manager.install(todo)

    return make_step(
        entry,
        tk,
        apply=apply,
        default_check=lambda: all_present(tk.brew_probe(cask=cask), packages),
        description=f"brew install{flag} {' '.join(packages)}",
    )


def build_brew(entry: Dict[str, Any], tk: Toolkit) -> ProvisioningStep:
    return _build_brew(entry, tk, cask=False)


def build_cask(entry: Dict[str, Any], tk: Toolkit) -> ProvisioningStep:
    return _build_brew(entry, tk, cask=True)


def build_npm(entry: Dict[str, Any], tk: Toolkit) -> ProvisioningStep:
    package = str(require(entry, "package"))
    binary = str(entry.get("binary") or package.rsplit("/", 1)[-1])

    return make_step(
        entry,
        tk,
        apply=lambda: tk.npm.install([package]),
        default_check=lambda: tk.npm.is_installed(binary),
        description=f"npm install -g {package}",
    )


def build_snap(entry: Dict[str, Any], tk: Toolkit) -> ProvisioningStep:
    packages = as_list(require(entry, "packages"))

    def apply() -> None:
        if not tk.path.is_present("snap"):
            raise RuntimeError("snap is not available; install snapd first")
        tk.snap.install([p for p in packages if not tk.snap.is_installed(p)])

    return make_step(
        entry,
        tk,
        apply=apply,
        default_check=lambda: all_present(tk.snap_probe, packages),
        description=f"snap install {' '.join(packages)}",
    )
