from __future__ import annotations

import json
import logging
import urllib.request
from pathlib import Path
from typing import Callable, Optional

from .command import Runner, run_cmd

logger = logging.getLogger(__name__)

GITHUB_API = "https://api.github.com/repos/{repo}/releases/latest"

ReleaseLookup = Callable[[str], Optional[str]]


def latest_github_release(repo: str, *, timeout_s: float = 15.0) -> Optional[str]:
    """Best-effort latest release version (tag without a leading ``v``).

    Returns None when the metadata cannot be fetched or has no tag.
    """

    req = urllib.request.Request(
        GITHUB_API.format(repo=repo),
        headers={"Accept": "application/vnd.github+json", "User-Agent": "vibe-setup"},
    )
    try:
        with urllib.request.urlopen(req, timeout=timeout_s) as resp:
            data = json.loads(resp.read().decode("utf-8"))
    except Exception as e:
        logger.info("Release lookup for %s failed: %s", repo, e)
        return None

    tag = str((data or {}).get("tag_name") or "").strip()
    if not tag or tag == "null":
        return None
    return tag[1:] if tag.startswith("v") else tag


def download(url: str, dest: str | Path, *, runner: Runner = run_cmd) -> bool:
    """Download ``url`` to ``dest``; True when a non-empty file arrived."""

    p = Path(dest)
    p.parent.mkdir(parents=True, exist_ok=True)
    r = runner(["curl", "-fsSL", "-o", str(p), url], check=False)
    return r.returncode == 0 and p.exists() and p.stat().st_size > 0
