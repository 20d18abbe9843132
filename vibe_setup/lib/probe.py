from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from typing import Callable, Optional, Protocol, Sequence

from .command import Runner, run_cmd

logger = logging.getLogger(__name__)

Which = Callable[[str], Optional[str]]


class SystemProbe(Protocol):
    """Read-only presence test against current machine state."""

    def is_present(self, name: str) -> bool:
        ...


@dataclass(frozen=True)
class PathProbe:
    """Binary available on PATH (``command -v``)."""

    which: Which = shutil.which

    def is_present(self, name: str) -> bool:
        return self.which(name) is not None

    def any_present(self, names: Sequence[str]) -> bool:
        return any(self.is_present(n) for n in names)


@dataclass(frozen=True)
class AptProbe:
    """Package fully installed according to dpkg (status ``install ok installed``)."""

    runner: Runner = run_cmd

    def is_present(self, name: str) -> bool:
        r = self.runner(["dpkg-query", "-W", "-f=${Status}", name], check=False, quiet=True)
        return r.returncode == 0 and r.stdout.strip().endswith("install ok installed")


@dataclass(frozen=True)
class BrewProbe:
    """Homebrew formula (or cask, when ``cask``) installed."""

    runner: Runner = run_cmd
    cask: bool = False

    def is_present(self, name: str) -> bool:
        argv = ["brew", "list"]
        if self.cask:
            argv.append("--cask")
        r = self.runner([*argv, name], check=False, quiet=True)
        return r.returncode == 0


@dataclass(frozen=True)
class SnapProbe:
    runner: Runner = run_cmd

    def is_present(self, name: str) -> bool:
        r = self.runner(["snap", "list", name], check=False, quiet=True)
        return r.returncode == 0


def all_present(probe: SystemProbe, names: Sequence[str]) -> bool:
    return all(probe.is_present(n) for n in names)


def missing(probe: SystemProbe, names: Sequence[str]) -> list[str]:
    return [n for n in names if not probe.is_present(n)]
