from __future__ import annotations

import getpass
import os
import platform
from dataclasses import dataclass
from pathlib import Path
from typing import MutableMapping, Optional, Sequence

PROFILE_BY_SYSTEM = {
    "Linux": "linux",
    "Darwin": "macos",
}


@dataclass(frozen=True)
class Paths:
    home: str = os.path.expanduser("~")

    def log_default(self, log_name: str) -> str:
        return str(Path(self.home) / log_name)


PATHS = Paths()


def system_name() -> str:
    return platform.system()


def is_privileged() -> bool:
    geteuid = getattr(os, "geteuid", None)
    return geteuid is not None and geteuid() == 0


def current_user() -> str:
    return os.environ.get("USER") or getpass.getuser()


def detect_profile(system: Optional[str] = None) -> Optional[str]:
    """Map the running OS to a shipped profile; None when unsupported."""

    return PROFILE_BY_SYSTEM.get(system or system_name())


def prepend_path(dirs: Sequence[str], environ: MutableMapping[str, str]) -> str:
    """Put ``dirs`` in front of ``environ["PATH"]`` (once each); returns the new PATH."""

    current = [p for p in environ.get("PATH", "").split(os.pathsep) if p]
    front = [d for d in dict.fromkeys(dirs) if d]
    environ["PATH"] = os.pathsep.join(front + [p for p in current if p not in front])
    return environ["PATH"]
