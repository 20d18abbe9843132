from __future__ import annotations

import logging
import re
import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from ..errors import ManifestError
from ..pipeline import ProvisioningStep, Severity
from ..lib.probe import all_present
from ..toolkit import Toolkit

logger = logging.getLogger(__name__)

Check = Callable[[], bool]
Apply = Callable[[], Any]

_VERSION_RE = re.compile(r"(\d+)")


def as_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value]
    return [str(value)]


def as_argv_list(value: Any, *, where: str) -> List[List[str]]:
    """Accept one argv (list of str) or a list of argvs."""

    if not value:
        return []
    if not isinstance(value, list):
        raise ManifestError(f"{where}: expected a command list")
    if all(isinstance(v, str) for v in value):
        return [list(value)]
    out: List[List[str]] = []
    for v in value:
        if not isinstance(v, list):
            raise ManifestError(f"{where}: expected a list of command lists")
        out.append([str(a) for a in v])
    return out


def _major_version(text: str) -> Optional[int]:
    m = _VERSION_RE.search(text or "")
    return int(m.group(1)) if m else None


def _age_seconds(path: Path) -> float:
    try:
        return time.time() - path.stat().st_mtime
    except OSError:
        return float("inf")


def _condition(key: str, value: Any, tk: Toolkit, *, where: str) -> Check:
    if key in {"binary", "binaries"}:
        names = as_list(value)
        return lambda: tk.path.any_present(names)
    if key == "apt":
        names = as_list(value)
        return lambda: all_present(tk.apt_probe, names)
    if key == "brew":
        names = as_list(value)
        return lambda: all_present(tk.brew_probe(), names)
    if key == "cask":
        names = as_list(value)
        return lambda: all_present(tk.brew_probe(cask=True), names)
    if key == "snap":
        names = as_list(value)
        return lambda: all_present(tk.snap_probe, names)
    if key == "path":
        paths = [Path(p).expanduser() for p in as_list(value)]
        return lambda: all(p.exists() for p in paths)
    if key == "absent":
        paths = [Path(p).expanduser() for p in as_list(value)]
        return lambda: not any(p.exists() for p in paths)
    if key == "file_contains":
        path, text = str(value["path"]), str(value["text"])
        return lambda: tk.editor.has_line(path, text)
    if key == "file_matches":
        path, pattern = str(value["path"]), re.compile(str(value["pattern"]), re.MULTILINE)
        return lambda: tk.editor.has_match(path, pattern)
    if key == "modified_within":
        paths = [Path(p).expanduser() for p in as_list(value["path"])]
        max_age = float(value["hours"]) * 3600
        return lambda: any(_age_seconds(p) <= max_age for p in paths)
    if key == "command_succeeds":
        argv = as_list(value)
        return lambda: tk.runner(argv, check=False, quiet=True).returncode == 0
    if key in {"output_contains", "output_matches"}:
        argv = as_list(value["argv"])
        ignore_exit = bool(value.get("ignore_exit", False))
        if key == "output_contains":
            pattern = re.compile(re.escape(str(value["text"])))
        else:
            pattern = re.compile(str(value["pattern"]), re.MULTILINE)

        def _output() -> bool:
            r = tk.runner(argv, check=False, quiet=True)
            if r.returncode == 127 or (r.returncode != 0 and not ignore_exit):
                return False
            out = r.stdout or ""
            if ignore_exit:
                # fwupdmgr and friends report status on stderr.
                out += "\n" + (r.stderr or "")
            return pattern.search(out) is not None

        return _output
    if key == "not":
        inner = build_check(value, tk, where=where)
        return lambda: not inner()
    if key == "env_contains":
        pairs = {str(k): str(v) for k, v in dict(value).items()}
        return lambda: all(text in str(tk.env.get(var, "")) for var, text in pairs.items())
    if key == "min_version":
        argv, major = as_list(value["argv"]), int(value["major"])

        def _min_version() -> bool:
            if not tk.path.is_present(argv[0]):
                return False
            r = tk.runner(argv, check=False, quiet=True)
            found = _major_version(r.stdout) if r.returncode == 0 else None
            return found is not None and found >= major

        return _min_version
    raise ManifestError(f"{where}: unknown check condition {key!r}")


def build_check(rule: Any, tk: Toolkit, *, where: str) -> Check:
    """A mapping means all conditions hold; a list of mappings means any does."""

    if isinstance(rule, list):
        alternatives = [build_check(s, tk, where=where) for s in rule]
        return lambda: any(c() for c in alternatives)
    if not isinstance(rule, dict) or not rule:
        raise ManifestError(f"{where}: check must be a mapping or a list of mappings")
    conditions = [_condition(k, v, tk, where=where) for k, v in rule.items()]
    return lambda: all(c() for c in conditions)


def _then_actions(entry: Dict[str, Any], tk: Toolkit, *, where: str) -> List[Apply]:
    actions: List[Apply] = []
    for item in entry.get("then") or []:
        if isinstance(item, dict):
            argv = as_list(item.get("run"))
            ignore = bool(item.get("ignore_errors", False))
        else:
            argv = as_list(item)
            ignore = False
        if not argv:
            raise ManifestError(f"{where}: empty command in then")
        actions.append(lambda argv=argv, ignore=ignore: tk.runner(argv, check=not ignore))
    return actions


def _with_fallback(apply: Apply, rule: Any, tk: Toolkit, *, where: str) -> Apply:
    """Run ``rule["run"]`` when the primary apply fails or gives up.

    ``when`` (a check) gates the fallback; if it does not hold, the
    primary error stands.
    """

    if not isinstance(rule, dict):
        raise ManifestError(f"{where}: fallback must be a mapping with run")
    commands = as_argv_list(rule.get("run"), where=f"{where} fallback")
    if not commands:
        raise ManifestError(f"{where}: fallback needs run")
    when = build_check(rule["when"], tk, where=where) if "when" in rule else None
    ignore = bool(rule.get("ignore_errors", False))

    def _apply() -> Any:
        try:
            result = apply()
        except Exception as e:
            reason = str(e) or type(e).__name__
            if when is not None and not when():
                raise
        else:
            if result is not False:
                return result
            reason = "apply reported failure"
            if when is not None and not when():
                return result
        logger.info("%s: %s; trying fallback", where, reason)
        for argv in commands:
            tk.runner(argv, check=not ignore)
        return None

    return _apply


def make_step(
    entry: Dict[str, Any],
    tk: Toolkit,
    *,
    apply: Apply,
    default_check: Optional[Check] = None,
    description: str = "",
) -> ProvisioningStep:
    """Wrap a kind's apply with the entry's severity, check override and follow-ups."""

    name = str(entry["name"])
    where = f"step {name}"

    if "check" in entry:
        check = build_check(entry["check"], tk, where=where)
    elif default_check is not None:
        check = default_check
    else:
        raise ManifestError(f"{where}: kind {entry.get('kind')!r} requires an explicit check")

    follow_ups = _then_actions(entry, tk, where=where)
    if "fallback" in entry:
        apply = _with_fallback(apply, entry["fallback"], tk, where=where)

    def _apply() -> Any:
        result = apply()
        for action in follow_ups:
            action()
        return result

    return ProvisioningStep(
        name=name,
        check=check,
        apply=_apply if follow_ups else apply,
        severity=Severity.OPTIONAL if entry.get("optional") else Severity.REQUIRED,
        description=str(entry.get("description") or description or name),
    )


def require(entry: Dict[str, Any], key: str) -> Any:
    value = entry.get(key)
    if value in (None, "", []):
        raise ManifestError(f"step {entry.get('name')}: missing {key!r}")
    return value
