from __future__ import annotations

import logging
import shlex
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..errors import StepWarning
from ..lib.apt_repo import add_apt_repository
from ..lib.command import run_shell
from ..lib.net import download
from ..pipeline import ProvisioningStep
from ..toolkit import Toolkit
from .base import Check, as_list, make_step, require

logger = logging.getLogger(__name__)

RELEASE_URL = "https://github.com/{repo}/releases/latest/download/{asset}"


def _binary_or_apt_check(entry: Dict[str, Any], tk: Toolkit) -> Optional[Check]:
    binaries = as_list(entry.get("binary"))
    apt_pkg = entry.get("apt_package")
    if binaries:
        return lambda: tk.path.any_present(binaries)
    if apt_pkg:
        return lambda: tk.apt.is_installed(str(apt_pkg))
    return None


def build_script(entry: Dict[str, Any], tk: Toolkit) -> ProvisioningStep:
    """Remote installer piped to a shell (``curl -fsSL url | sh``)."""

    url = str(require(entry, "url"))
    shell = str(entry.get("shell") or "sh")
    args: List[str] = as_list(entry.get("args"))
    env = {str(k): str(v) for k, v in (entry.get("env") or {}).items()}
    sudo = bool(entry.get("sudo", False))

    interpreter = f"sudo -E {shell}" if sudo else shell
    tail = f" -s -- {' '.join(shlex.quote(a) for a in args)}" if args else ""
    script = f"curl --proto '=https' --tlsv1.2 -fsSL {shlex.quote(url)} | {interpreter}{tail}"

    return make_step(
        entry,
        tk,
        apply=lambda: run_shell(script, runner=tk.runner, env=env or None),
        default_check=_binary_or_apt_check(entry, tk),
        description=f"run installer {url}",
    )


def build_apt_repo(entry: Dict[str, Any], tk: Toolkit) -> ProvisioningStep:
    name = str(require(entry, "repo_name"))
    key_url = str(require(entry, "key_url"))
    repo_line = str(require(entry, "repo"))
    packages = as_list(require(entry, "packages"))
    keyring = entry.get("keyring")
    dearmor = bool(entry.get("dearmor", True))

    def apply() -> None:
        add_apt_repository(
            name=name,
            key_url=key_url,
            repo_line=repo_line,
            keyring=str(keyring) if keyring else None,
            dearmor=dearmor,
            runner=tk.runner,
        )
        tk.apt.update()
        tk.apt.install(packages)

    def packages_installed() -> bool:
        return all(tk.apt.is_installed(p) for p in packages)

    return make_step(
        entry,
        tk,
        apply=apply,
        default_check=_binary_or_apt_check(entry, tk) or packages_installed,
        description=f"add apt repo {name} and install {' '.join(packages)}",
    )


def build_github_release(entry: Dict[str, Any], tk: Toolkit) -> ProvisioningStep:
    repo = str(require(entry, "repo"))
    asset_tmpl = str(require(entry, "asset"))
    binary = str(entry.get("binary") or repo.rsplit("/", 1)[-1])
    fmt = str(entry.get("format") or ("deb" if asset_tmpl.endswith(".deb") else "tar"))
    install_dir = str(entry.get("install_dir") or "/usr/local/bin")

    def apply() -> None:
        version = tk.latest_release(repo)
        if not version:
            raise StepWarning(f"Could not fetch {binary} release metadata; skipping")

        asset = asset_tmpl.replace("{version}", version)
        url = RELEASE_URL.format(repo=repo, asset=asset)
        with tempfile.TemporaryDirectory(prefix="vibe-setup-") as tmp:
            dest = Path(tmp) / asset
            if not download(url, dest, runner=tk.runner):
                raise StepWarning(f"Download of {binary} {version} failed; install it manually")
            if fmt == "deb":
                tk.apt.install_deb(str(dest))
            else:
                tk.runner(["tar", "xf", str(dest), "-C", tmp, binary])
                tk.runner(["sudo", "install", str(Path(tmp) / binary), install_dir])
        logger.info("%s %s installed", binary, version)

    return make_step(
        entry,
        tk,
        apply=apply,
        default_check=lambda: tk.path.is_present(binary),
        description=f"install {binary} from the latest {repo} release",
    )


def build_deb_url(entry: Dict[str, Any], tk: Toolkit) -> ProvisioningStep:
    url = str(require(entry, "url"))
    label = str(entry.get("label") or entry["name"])

    def apply() -> None:
        with tempfile.TemporaryDirectory(prefix="vibe-setup-") as tmp:
            dest = Path(tmp) / url.rsplit("/", 1)[-1]
            if not download(url, dest, runner=tk.runner):
                raise StepWarning(f"{label} download failed; install manually")
            tk.apt.install_deb(str(dest))

    checks: List[Check] = []
    if entry.get("apt_package"):
        pkg = str(entry["apt_package"])
        checks.append(lambda: tk.apt.is_installed(pkg))
    for p in as_list(entry.get("path")):
        checks.append(lambda p=p: Path(p).expanduser().exists())
    for b in as_list(entry.get("binary")):
        checks.append(lambda b=b: tk.path.is_present(b))

    return make_step(
        entry,
        tk,
        apply=apply,
        default_check=(lambda: any(c() for c in checks)) if checks else None,
        description=f"download and install {label}",
    )
