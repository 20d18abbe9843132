from __future__ import annotations

import os
import shutil
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional, Sequence

from .lib.command import Runner, run_cmd
from .lib.env import prepend_path
from .lib.files import FileEditor
from .lib.net import ReleaseLookup, latest_github_release
from .lib.pkg import AptManager, BrewManager, NpmGlobalManager, SnapManager
from .lib.probe import AptProbe, BrewProbe, PathProbe, SnapProbe, Which


@dataclass
class Toolkit:
    """Collaborators handed to step builders.

    Everything that touches the machine goes through ``runner`` (commands),
    ``which`` (PATH lookups), ``editor`` (files), ``prompt`` (the operator)
    or ``latest_release`` (network metadata), so a test can swap any of
    them for a fake.
    """

    runner: Runner = run_cmd
    which: Which = shutil.which
    prompt: Callable[[str], str] = input
    latest_release: ReleaseLookup = latest_github_release
    env: Dict[str, str] = field(default_factory=lambda: dict(os.environ))
    home: str = field(default_factory=lambda: os.path.expanduser("~"))
    variables: Dict[str, str] = field(default_factory=dict)
    answers: Dict[str, str] = field(default_factory=dict)
    editor: Optional[FileEditor] = None

    def __post_init__(self) -> None:
        if self.editor is None:
            self.editor = FileEditor(runner=self.runner, home=self.home)

    @property
    def path(self) -> PathProbe:
        return PathProbe(self.which)

    @property
    def apt_probe(self) -> AptProbe:
        return AptProbe(self.runner)

    def brew_probe(self, *, cask: bool = False) -> BrewProbe:
        return BrewProbe(self.runner, cask=cask)

    @property
    def snap_probe(self) -> SnapProbe:
        return SnapProbe(self.runner)

    @property
    def apt(self) -> AptManager:
        return AptManager(self.runner)

    def brew(self, *, cask: bool = False) -> BrewManager:
        return BrewManager(self.runner, cask=cask)

    @property
    def npm(self) -> NpmGlobalManager:
        return NpmGlobalManager(self.runner, self.path)

    @property
    def snap(self) -> SnapManager:
        return SnapManager(self.runner)

    def extend_path(self, dirs: Sequence[str]) -> str:
        """Prepend ``dirs`` to PATH for this process, its children and ``env``.

        Tools installed into user prefixes (``~/.npm-global/bin``,
        ``/opt/homebrew/bin``) are found by later checks in the same run.
        """

        path = prepend_path(dirs, os.environ)
        self.env["PATH"] = path
        return path
