from __future__ import annotations

from pathlib import Path

import pytest

from vibe_setup.errors import ManifestError
from vibe_setup.manifest import (
    available_profiles,
    expand,
    load_manifest,
    load_profile,
    validate_manifest,
)
from vibe_setup.pipeline import Outcome, RunContext, RunMode, run_groups, run_step
from vibe_setup.plan import RunOptions, build_plan


def _group_ids(groups):
    return [g.group_id for g in groups]


def test_shipped_profiles() -> None:
    assert available_profiles() == ["linux", "macos"]


@pytest.mark.parametrize("profile", ["linux", "macos"])
def test_shipped_profile_builds(profile: str, tk) -> None:
    manifest = load_profile(profile)
    groups = build_plan(manifest, RunOptions(), tk)

    assert manifest.profile == profile
    assert [g["id"] for g in manifest.groups] == _group_ids(groups)
    assert all(g.steps for g in groups)
    assert manifest.notes


def test_linux_minimal_drops_extras(tk) -> None:
    groups = build_plan(load_profile("linux"), RunOptions(minimal=True), tk)
    ids = _group_ids(groups)

    for dropped in ("cli", "remote", "remote-gui", "security", "system"):
        assert dropped not in ids
    for kept in ("base", "node", "python", "rust", "ai", "cleanup"):
        assert kept in ids


def test_linux_skip_gui_remote_keeps_tailscale(tk) -> None:
    ids = _group_ids(build_plan(load_profile("linux"), RunOptions(skip_gui_remote=True), tk))

    assert "remote" in ids
    assert "remote-gui" not in ids


def test_macos_skip_flags(tk) -> None:
    options = RunOptions(skip_git=True, skip_remote=True, skip_ai=True)
    ids = _group_ids(build_plan(load_profile("macos"), options, tk))

    assert ids == ["homebrew", "essentials"]


def test_unknown_profile() -> None:
    with pytest.raises(ManifestError, match="Unknown profile"):
        load_profile("windows")


def test_placeholders_are_expanded(tk, home: Path) -> None:
    groups = build_plan(load_profile("linux"), RunOptions(), tk)
    steps = {s.name: s for g in groups for s in g.steps}

    assert str(home) in steps["zsh-autosuggestions"].describe()


def test_dry_run_of_shipped_profile_changes_nothing(tk, runner, home: Path) -> None:
    groups = build_plan(load_profile("linux"), RunOptions(dry_run=True), tk)
    ctx = RunContext(mode=RunMode.DRY_RUN)

    run_groups(groups, ctx)

    assert ctx.report.errors == []
    assert ctx.report.count(Outcome.APPLIED) == 0
    assert ctx.report.would_apply
    assert not any(c[:2] == ["sudo", "apt-get"] or c[0] in ("bash", "curl", "ln", "ssh-keygen") for c in runner.calls)
    assert list(home.iterdir()) == []


def test_expand() -> None:
    variables = {"home": "/home/dev", "user": "dev", "codename": "noble"}
    value = {
        "files": ["{home}/.zshrc"],
        "line": 'export PATH="$HOME/.cargo/bin:${PATH}"',
        "asset": "lazygit_{version}.tar.gz",
        "repo": "deb https://download.docker.com/linux/ubuntu {codename} stable",
        "mode": 600,
    }

    assert expand(value, variables) == {
        "files": ["/home/dev/.zshrc"],
        "line": 'export PATH="$HOME/.cargo/bin:${PATH}"',
        "asset": "lazygit_{version}.tar.gz",
        "repo": "deb https://download.docker.com/linux/ubuntu noble stable",
        "mode": 600,
    }


def test_expand_leaves_unknown_variables() -> None:
    assert expand("{arch}", {}) == "{arch}"


def test_select_groups() -> None:
    m = validate_manifest(
        {
            "groups": [
                {"id": "a", "title": "A", "steps": []},
                {"id": "b", "title": "B", "skip_when": ["minimal"], "steps": []},
            ]
        }
    )

    assert [g["id"] for g in m.select_groups(set())] == ["a", "b"]
    assert [g["id"] for g in m.select_groups({"minimal"})] == ["a"]


@pytest.mark.parametrize(
    "raw,message",
    [
        ([], "must be a mapping"),
        ({"groups": []}, "non-empty list"),
        ({"groups": [{"id": "a"}]}, "needs id and title"),
        ({"groups": [{"id": "a", "title": "A", "steps": []}, {"id": "a", "title": "B", "steps": []}]}, "duplicate group"),
        ({"groups": [{"id": "a", "title": "A", "skip_when": "minimal", "steps": []}]}, "skip_when"),
        ({"groups": [{"id": "a", "title": "A", "steps": [{"name": "x"}]}]}, "needs name and kind"),
        (
            {
                "groups": [
                    {"id": "a", "title": "A", "steps": [{"name": "x", "kind": "apt"}]},
                    {"id": "b", "title": "B", "steps": [{"name": "x", "kind": "apt"}]},
                ]
            },
            "duplicate step",
        ),
        ({"groups": [{"id": "a", "title": "A", "steps": []}], "preflight": ["os"]}, "preflight"),
        ({"groups": [{"id": "a", "title": "A", "steps": []}], "path_prepend": "/opt/homebrew/bin"}, "path_prepend"),
        ({"groups": [{"id": "a", "title": "A", "steps": []}], "report": [{"run": ["tailscale", "ip"]}]}, "report"),
        ({"groups": [{"id": "a", "title": "A", "steps": []}], "report": [{"label": "IP", "run": "tailscale ip"}]}, "report"),
    ],
)
def test_validate_manifest_errors(raw, message: str) -> None:
    with pytest.raises(ManifestError, match=message):
        validate_manifest(raw)


def test_load_manifest_rejects_bad_yaml(tmp_path: Path) -> None:
    p = tmp_path / "bad.yaml"
    p.write_text("groups: [unclosed\n")

    with pytest.raises(ManifestError, match="invalid YAML"):
        load_manifest(p)


def test_load_manifest_requires_yaml_suffix(tmp_path: Path) -> None:
    p = tmp_path / "setup.json"
    p.write_text("{}")

    with pytest.raises(ManifestError, match="must be YAML"):
        load_manifest(p)


def test_load_manifest_missing(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_manifest(tmp_path / "nope.yaml")


def test_custom_manifest_defaults(tmp_path: Path) -> None:
    p = tmp_path / "mine.yml"
    p.write_text("groups:\n  - id: a\n    title: A\n    steps: []\n")
    m = load_manifest(p)

    assert m.profile == "mine"
    assert m.log_name == ".vibe-dev-setup.log"
    assert m.preflight == {}
    assert m.notes == []


def test_plan_rejects_bad_entry_before_running(tk) -> None:
    m = validate_manifest(
        {"groups": [{"id": "a", "title": "A", "steps": [{"name": "x", "kind": "teleport"}]}]}
    )

    with pytest.raises(ManifestError):
        build_plan(m, RunOptions(), tk)


def _shipped_step(profile: str, name: str, tk):
    groups = build_plan(load_profile(profile), RunOptions(), tk)
    return next(s for g in groups for s in g.steps if s.name == name)


def test_shipped_profiles_extend_path() -> None:
    linux = expand(load_profile("linux").path_prepend, {"home": "/home/dev"})
    macos = expand(load_profile("macos").path_prepend, {"home": "/Users/dev"})

    assert "/home/dev/.npm-global/bin" in linux
    assert macos[0] == "/opt/homebrew/bin"
    assert "/Users/dev/.npm-global/bin" in macos


def test_macos_reports_tailscale_ip() -> None:
    report = load_profile("macos").report

    assert [r["run"] for r in report] == [["tailscale", "ip", "-4"]]


def test_firmware_updates_converge_without_fwupdmgr(tk, runner) -> None:
    step = _shipped_step("linux", "firmware-updates", tk)

    for _ in range(2):
        ctx = RunContext()
        assert run_step(step, ctx) == Outcome.SKIPPED
        assert ctx.report.errors == []
    assert not any("fwupdmgr" in c for c in runner.calls)


@pytest.mark.parametrize("stderr", ["No updates available\n", "No updatable devices\n"])
def test_firmware_updates_nothing_to_do_is_satisfied(tk, runner, which, stderr: str) -> None:
    which.add("fwupdmgr")
    runner.respond(["fwupdmgr", "get-updates"], rc=2, stderr=stderr)

    assert run_step(_shipped_step("linux", "firmware-updates", tk), RunContext()) == Outcome.SKIPPED


def test_firmware_update_errors_do_not_fail_the_step(tk, runner, which) -> None:
    which.add("fwupdmgr")
    runner.respond(["fwupdmgr", "get-updates"], stdout="Devices with firmware updates: 1\n")
    runner.respond(["sudo", "fwupdmgr"], rc=1)
    ctx = RunContext()

    assert run_step(_shipped_step("linux", "firmware-updates", tk), ctx) == Outcome.APPLIED
    assert ["sudo", "fwupdmgr", "update", "-y"] in runner.calls
    assert ctx.report.errors == []


def test_zshrc_plugins_leaves_custom_plugin_line_alone(tk, runner, home: Path) -> None:
    (home / ".zshrc").write_text("ZSH_THEME=robbyrussell\nplugins=(git docker)\n")
    step = _shipped_step("linux", "zshrc-plugins", tk)

    for _ in range(2):
        assert run_step(step, RunContext()) == Outcome.SKIPPED
    assert not any(c[0] == "sed" for c in runner.calls)


def test_zshrc_plugins_rewrites_default_line(tk, runner, home: Path) -> None:
    (home / ".zshrc").write_text("plugins=(git)\n")

    assert run_step(_shipped_step("linux", "zshrc-plugins", tk), RunContext()) == Outcome.APPLIED
    assert runner.calls[-1][:2] == ["sed", "-i"]
    assert runner.calls[-1][-1] == str(home / ".zshrc")


def test_slack_falls_back_to_snap_when_download_fails(tk, runner, which) -> None:
    which.add("snap")
    runner.respond(["curl"], rc=22)

    assert run_step(_shipped_step("linux", "slack", tk), RunContext()) == Outcome.APPLIED
    assert ["sudo", "snap", "install", "slack"] in runner.calls


def test_telegram_uses_apt_without_snap(tk, runner) -> None:
    runner.respond(["snap", "list"], rc=1)

    assert run_step(_shipped_step("linux", "telegram", tk), RunContext()) == Outcome.APPLIED
    assert ["sudo", "apt-get", "install", "-y", "telegram-desktop"] in runner.calls
    assert not any(c[:2] == ["sudo", "snap"] for c in runner.calls)


def test_telegram_prefers_snap(tk, runner, which) -> None:
    which.add("snap")
    runner.respond(["snap", "list"], rc=1)

    assert run_step(_shipped_step("linux", "telegram", tk), RunContext()) == Outcome.APPLIED
    assert ["sudo", "snap", "install", "telegram-desktop"] in runner.calls
    assert not any(c[:2] == ["sudo", "apt-get"] for c in runner.calls)


def test_homebrew_update_waits_for_brew(tk, runner) -> None:
    step = _shipped_step("macos", "homebrew-update", tk)

    assert step.describe() == "update Homebrew formulae"
    assert run_step(step, RunContext()) == Outcome.SKIPPED
    assert runner.calls == []
