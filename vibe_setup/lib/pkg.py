from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Protocol, Sequence

from .command import Runner, run_cmd
from .probe import AptProbe, BrewProbe, PathProbe, SnapProbe, missing

logger = logging.getLogger(__name__)


class PackageManager(Protocol):
    def is_installed(self, name: str) -> bool:
        ...

    def install(self, names: Sequence[str]) -> None:
        ...


@dataclass(frozen=True)
class AptManager:
    runner: Runner = run_cmd

    def is_installed(self, name: str) -> bool:
        return AptProbe(self.runner).is_present(name)

    def missing(self, names: Sequence[str]) -> list[str]:
        return missing(AptProbe(self.runner), names)

    def update(self) -> None:
        self.runner(["sudo", "apt-get", "update", "-y"])

    def install(self, names: Sequence[str]) -> None:
        if not names:
            return
        argv = ["sudo", "apt-get", "install", "-y"]
        self.runner([*argv, *names], env={"DEBIAN_FRONTEND": "noninteractive"})

    def install_deb(self, deb_path: str) -> None:
        """Install a local .deb, letting apt resolve its dependencies."""

        r = self.runner(
            ["sudo", "apt-get", "install", "-y", deb_path],
            check=False,
            env={"DEBIAN_FRONTEND": "noninteractive"},
        )
        if r.returncode != 0:
            logger.info("Direct install of %s failed; trying apt --fix-broken", deb_path)
            self.runner(["sudo", "apt-get", "--fix-broken", "install", "-y"])


@dataclass(frozen=True)
class BrewManager:
    runner: Runner = run_cmd
    cask: bool = False

    def is_installed(self, name: str) -> bool:
        return BrewProbe(self.runner, cask=self.cask).is_present(name)

    def missing(self, names: Sequence[str]) -> list[str]:
        return missing(BrewProbe(self.runner, cask=self.cask), names)

    def install(self, names: Sequence[str]) -> None:
        if not names:
            return
        argv = ["brew", "install"]
        if self.cask:
            argv.append("--cask")
        self.runner([*argv, *names])


@dataclass(frozen=True)
class NpmGlobalManager:
    """Global npm packages; presence is judged by the binary they provide."""

    runner: Runner = run_cmd
    path: PathProbe = field(default_factory=PathProbe)

    def is_installed(self, name: str) -> bool:
        return self.path.is_present(name)

    def install(self, names: Sequence[str]) -> None:
        if not names:
            return
        self.runner(["npm", "install", "-g", *names])


@dataclass(frozen=True)
class SnapManager:
    runner: Runner = run_cmd

    def is_installed(self, name: str) -> bool:
        return SnapProbe(self.runner).is_present(name)

    def install(self, names: Sequence[str]) -> None:
        for name in names:
            self.runner(["sudo", "snap", "install", name])
