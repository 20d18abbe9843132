from __future__ import annotations

from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

import pytest

from vibe_setup.lib.command import CmdResult
from vibe_setup.toolkit import Toolkit

Response = Union[CmdResult, Callable[[List[str]], CmdResult]]


class FakeRunner:
    """Records every command and answers from a table keyed by argv prefix."""

    def __init__(self, default_rc: int = 0) -> None:
        self.default_rc = default_rc
        self.calls: List[List[str]] = []
        self.inputs: List[Tuple[List[str], Optional[str]]] = []
        self._responses: List[Tuple[Tuple[str, ...], Response]] = []

    def respond(self, prefix: Sequence[str], *, rc: int = 0, stdout: str = "", stderr: str = "") -> None:
        self._responses.append((tuple(prefix), CmdResult(list(prefix), rc, stdout, stderr)))

    def respond_with(self, prefix: Sequence[str], fn: Callable[[List[str]], CmdResult]) -> None:
        self._responses.append((tuple(prefix), fn))

    def __call__(self, argv, *, check=True, env=None, cwd=None, input_text=None, quiet=False):
        argv = list(argv)
        self.calls.append(argv)
        self.inputs.append((argv, input_text))
        result: Optional[CmdResult] = None
        # Last registered match wins.
        for prefix, resp in reversed(self._responses):
            if tuple(argv[: len(prefix)]) == prefix:
                result = resp(argv) if callable(resp) else resp
                break
        if result is None:
            result = CmdResult(argv, self.default_rc, "", "")
        if check and result.returncode != 0:
            raise RuntimeError(f"Command failed ({result.returncode}): {' '.join(argv)}")
        return CmdResult(argv, result.returncode, result.stdout, result.stderr)


class FakePath:
    def __init__(self, present: Sequence[str] = ()) -> None:
        self.present: Dict[str, str] = {n: f"/usr/bin/{n}" for n in present}

    def add(self, name: str) -> None:
        self.present[name] = f"/usr/bin/{name}"

    def __call__(self, name: str) -> Optional[str]:
        return self.present.get(name)


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def which() -> FakePath:
    return FakePath()


@pytest.fixture
def home(tmp_path: Path) -> Path:
    h = tmp_path / "home"
    h.mkdir()
    return h


@pytest.fixture
def tk(runner: FakeRunner, which: FakePath, home: Path) -> Toolkit:
    def no_prompt(question: str) -> str:
        raise AssertionError(f"unexpected prompt: {question}")

    return Toolkit(
        runner=runner,
        which=which,
        prompt=no_prompt,
        latest_release=lambda repo: None,
        env={"SHELL": "/bin/bash", "HOME": str(home)},
        home=str(home),
        variables={
            "home": str(home),
            "user": "dev",
            "shell": "/bin/bash",
            "arch": "amd64",
            "codename": "jammy",
        },
    )
