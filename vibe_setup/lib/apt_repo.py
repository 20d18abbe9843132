from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Optional

from .command import Runner, run_cmd, run_shell

logger = logging.getLogger(__name__)

FALLBACK_CODENAME = "jammy"

# Pop!_OS and short-lived interim releases are not published by most
# third-party repos; they fall back to the LTS line.
_UNPUBLISHED_CODENAMES = {"cosmic", "disco", "eoan", "impish", "kinetic", "lunar", "mantic"}


def parse_os_release(text: str) -> Dict[str, str]:
    out: Dict[str, str] = {}
    for raw in text.splitlines():
        line = raw.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        out[key.strip()] = value.strip().strip('"').strip("'")
    return out


def ubuntu_codename(os_release_path: str = "/etc/os-release") -> str:
    try:
        info = parse_os_release(Path(os_release_path).read_text(encoding="utf-8"))
    except OSError:
        return FALLBACK_CODENAME
    codename = info.get("UBUNTU_CODENAME") or info.get("VERSION_CODENAME") or ""
    if not codename or codename == "null":
        return FALLBACK_CODENAME
    if "pop" in codename or codename in _UNPUBLISHED_CODENAMES:
        return FALLBACK_CODENAME
    return codename


def dpkg_arch(runner: Runner = run_cmd) -> str:
    r = runner(["dpkg", "--print-architecture"], check=False, quiet=True)
    return r.stdout.strip() if r.returncode == 0 and r.stdout.strip() else "amd64"


def add_apt_repository(
    *,
    name: str,
    key_url: str,
    repo_line: str,
    keyring: Optional[str] = None,
    dearmor: bool = True,
    runner: Runner = run_cmd,
) -> str:
    """Register a signed third-party apt repository.

    Writes the signing key to ``keyring`` (default
    ``/etc/apt/keyrings/<name>.gpg``) and the sources entry to
    ``/etc/apt/sources.list.d/<name>.list``. Returns the sources path.
    """

    keyring = keyring or f"/etc/apt/keyrings/{name}.gpg"
    sources = f"/etc/apt/sources.list.d/{name}.list"

    runner(["sudo", "install", "-m", "0755", "-d", str(Path(keyring).parent)])
    if dearmor:
        run_shell(
            f"curl -fsSL {key_url} | sudo gpg --batch --yes --dearmor -o {keyring}",
            runner=runner,
        )
    else:
        run_shell(f"curl -fsSL {key_url} | sudo dd of={keyring} status=none", runner=runner)
    runner(["sudo", "chmod", "a+r", keyring])
    runner(["sudo", "tee", sources], input_text=repo_line.rstrip() + "\n")
    logger.info("Configured apt repo %s: %s", name, repo_line)
    return sources
