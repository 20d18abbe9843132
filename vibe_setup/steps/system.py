from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Dict

from ..errors import ManifestError, StepFailure
from ..pipeline import ProvisioningStep
from ..toolkit import Toolkit
from .base import as_argv_list, make_step, require

logger = logging.getLogger(__name__)

_NOTHING_TO_UPGRADE = re.compile(r"^0 upgraded,", re.MULTILINE)


def build_command(entry: Dict[str, Any], tk: Toolkit) -> ProvisioningStep:
    """Arbitrary commands guarded by an explicit check (``systemsetup``, ``ufw``...)."""

    where = f"step {entry['name']}"
    commands = as_argv_list(require(entry, "run"), where=where)
    ignore = bool(entry.get("ignore_errors", False))
    if "check" not in entry:
        raise ManifestError(f"{where}: command steps need an explicit check")

    def apply() -> None:
        for argv in commands:
            tk.runner(argv, check=not ignore)

    return make_step(
        entry,
        tk,
        apply=apply,
        description="run " + "; ".join(" ".join(argv) for argv in commands),
    )


def build_apt_upgrade(entry: Dict[str, Any], tk: Toolkit) -> ProvisioningStep:
    def check() -> bool:
        r = tk.runner(["apt-get", "-s", "upgrade"], check=False, quiet=True)
        return r.returncode == 0 and _NOTHING_TO_UPGRADE.search(r.stdout) is not None

    def apply() -> None:
        tk.apt.update()
        tk.runner(
            ["sudo", "apt-get", "upgrade", "-y"],
            env={"DEBIAN_FRONTEND": "noninteractive"},
        )

    return make_step(entry, tk, apply=apply, default_check=check, description="apt update && apt upgrade")


def _git_get(tk: Toolkit, key: str) -> str:
    r = tk.runner(["git", "config", "--global", "--get", key], check=False, quiet=True)
    return r.stdout.strip() if r.returncode == 0 else ""


def _git_set(tk: Toolkit, key: str, value: str) -> None:
    tk.runner(["git", "config", "--global", key, value])


def build_git_config(entry: Dict[str, Any], tk: Toolkit) -> ProvisioningStep:
    settings = {str(k): str(v) for k, v in dict(require(entry, "settings")).items()}

    def check() -> bool:
        return all(_git_get(tk, k) == v for k, v in settings.items())

    def apply() -> None:
        for k, v in settings.items():
            if _git_get(tk, k) != v:
                _git_set(tk, k, v)

    return make_step(
        entry,
        tk,
        apply=apply,
        default_check=check,
        description="set git " + ", ".join(f"{k}={v}" for k, v in settings.items()),
    )


def build_git_identity(entry: Dict[str, Any], tk: Toolkit) -> ProvisioningStep:
    """user.name / user.email: taken from CLI answers, else asked interactively."""

    def check() -> bool:
        return bool(_git_get(tk, "user.name")) and bool(_git_get(tk, "user.email"))

    def _answer(key: str, question: str) -> str:
        value = tk.answers.get(key) or tk.prompt(question)
        return str(value or "").strip()

    def apply() -> None:
        name = _git_get(tk, "user.name") or _answer("git_name", "Enter your Git name (e.g. John Doe): ")
        email = _git_get(tk, "user.email") or _answer("git_email", "Enter your Git email: ")
        if not name or not email:
            raise StepFailure("git name/email not provided")
        _git_set(tk, "user.name", name)
        _git_set(tk, "user.email", email)
        logger.info("Git configured: %s <%s>", name, email)

    return make_step(entry, tk, apply=apply, default_check=check, description="prompt for git name/email")


def build_ssh_key(entry: Dict[str, Any], tk: Toolkit) -> ProvisioningStep:
    key_path = Path(str(entry.get("path") or Path(tk.home) / ".ssh/id_ed25519")).expanduser()
    keychain = bool(entry.get("keychain", False))

    def apply() -> None:
        email = _git_get(tk, "user.email") or "dev@localhost"
        key_path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
        tk.runner(["ssh-keygen", "-t", "ed25519", "-C", email, "-f", str(key_path), "-N", ""])

        # ssh-add fails when no agent is running.
        add = ["ssh-add", "--apple-use-keychain", str(key_path)] if keychain else ["ssh-add", str(key_path)]
        if tk.runner(add, check=False).returncode != 0:
            logger.info("ssh-agent not reachable; key not loaded")
        logger.info("SSH key generated at %s (add %s.pub to GitHub)", key_path, key_path)

    return make_step(
        entry,
        tk,
        apply=apply,
        default_check=key_path.exists,
        description=f"generate SSH key {key_path}",
    )
