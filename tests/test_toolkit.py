from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path
from typing import List

import pytest

from vibe_setup.lib.command import CmdResult
from vibe_setup.lib.env import prepend_path
from vibe_setup.main import run
from vibe_setup.manifest import validate_manifest
from vibe_setup.pipeline import Outcome
from vibe_setup.plan import RunOptions
from vibe_setup.toolkit import Toolkit


@pytest.fixture
def system_path(monkeypatch) -> str:
    path = os.pathsep.join(["/usr/bin", "/bin"])
    monkeypatch.setenv("PATH", path)
    return path


def _npm_install_into(home: Path):
    def install(argv: List[str]) -> CmdResult:
        bin_dir = home / ".npm-global" / "bin"
        bin_dir.mkdir(parents=True, exist_ok=True)
        exe = bin_dir / "claude"
        exe.write_text("#!/bin/sh\n")
        exe.chmod(0o755)
        return CmdResult(argv, 0, "", "")

    return install


def _manifest(**extra):
    raw = {
        "preflight": {"forbid_root": False},
        "groups": [
            {
                "id": "ai",
                "title": "AI CLI Tools",
                "steps": [
                    {"name": "claude-code", "kind": "npm", "package": "@anthropic-ai/claude-code", "binary": "claude"},
                ],
            }
        ],
    }
    raw.update(extra)
    return validate_manifest(raw)


def _toolkit(runner, home: Path) -> Toolkit:
    return Toolkit(
        runner=runner,
        which=shutil.which,
        env={"HOME": str(home)},
        home=str(home),
        variables={"home": str(home), "user": "dev"},
    )


def test_prepend_path_moves_existing_entries_to_the_front() -> None:
    environ = {"PATH": "/usr/bin:/bin"}

    assert prepend_path(["/opt/homebrew/bin", "/bin", "/opt/homebrew/bin"], environ) == "/opt/homebrew/bin:/bin:/usr/bin"
    assert environ["PATH"] == "/opt/homebrew/bin:/bin:/usr/bin"


def test_prepend_path_without_path() -> None:
    environ = {}

    assert prepend_path(["/opt/homebrew/bin"], environ) == "/opt/homebrew/bin"


def test_extend_path_is_idempotent(home: Path, system_path: str) -> None:
    tk = Toolkit(env={}, home=str(home))

    tk.extend_path(["/opt/homebrew/bin", "/usr/bin"])
    path = tk.extend_path(["/opt/homebrew/bin"])

    assert path == os.pathsep.join(["/opt/homebrew/bin", "/usr/bin", "/bin"])
    assert os.environ["PATH"] == path
    assert tk.env["PATH"] == path


def test_extend_path_makes_new_binaries_visible(tmp_path: Path, home: Path, system_path: str) -> None:
    brew_bin = tmp_path / "homebrew" / "bin"
    brew_bin.mkdir(parents=True)
    brew = brew_bin / "brew"
    brew.write_text("#!/bin/sh\n")
    brew.chmod(0o755)
    tk = Toolkit(which=shutil.which, env={}, home=str(home))

    assert not tk.path.is_present("brew")
    tk.extend_path([str(brew_bin)])
    assert tk.path.is_present("brew")


def test_npm_tool_is_skipped_on_the_second_run(runner, home: Path, system_path: str) -> None:
    runner.respond_with(["npm", "install", "-g"], _npm_install_into(home))
    manifest = _manifest(path_prepend=["{home}/.npm-global/bin"])

    def once():
        return run(
            manifest=manifest,
            options=RunOptions(),
            toolkit=_toolkit(runner, home),
            system=lambda: "Linux",
            privileged=lambda: False,
        )

    first = once()
    second = once()

    assert first.outcomes["claude-code"] == Outcome.APPLIED
    assert second.outcomes["claude-code"] == Outcome.SKIPPED
    assert runner.calls.count(["npm", "install", "-g", "@anthropic-ai/claude-code"]) == 1
    assert os.environ["PATH"].split(os.pathsep)[0] == str(home / ".npm-global" / "bin")


def test_run_logs_machine_facts(runner, home: Path, system_path: str, caplog) -> None:
    runner.respond(["tailscale", "ip", "-4"], stdout="100.64.0.7\n")
    manifest = _manifest(report=[{"label": "Your Tailscale IP", "run": ["tailscale", "ip", "-4"]}])

    with caplog.at_level(logging.INFO, logger="vibe_setup.summary"):
        run(
            manifest=manifest,
            options=RunOptions(),
            toolkit=_toolkit(runner, home),
            system=lambda: "Linux",
            privileged=lambda: False,
        )

    messages = [r.getMessage() for r in caplog.records]
    assert "Machine info:" in messages
    assert "  Your Tailscale IP: 100.64.0.7" in messages
