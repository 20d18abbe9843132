from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping

import yaml

from .errors import ManifestError

_VAR_RE = re.compile(r"\{(home|user|arch|codename|shell)\}")


def _manifests_dir() -> Path:
    # vibe_setup/manifest.py -> vibe_setup/manifests
    return Path(__file__).resolve().parent / "manifests"


def available_profiles() -> List[str]:
    return sorted(p.stem for p in _manifests_dir().glob("*.yaml"))


@dataclass(frozen=True)
class Manifest:
    raw: Dict[str, Any]
    source: str = "<memory>"

    @property
    def profile(self) -> str:
        return str(self.raw.get("profile") or Path(self.source).stem)

    @property
    def title(self) -> str:
        return str(self.raw.get("title") or f"Dev setup ({self.profile})")

    @property
    def log_name(self) -> str:
        return str(self.raw.get("log_name") or ".vibe-dev-setup.log")

    @property
    def preflight(self) -> Dict[str, Any]:
        return dict(self.raw.get("preflight") or {})

    @property
    def groups(self) -> List[Dict[str, Any]]:
        return list(self.raw.get("groups") or [])

    @property
    def notes(self) -> List[str]:
        return [str(n) for n in (self.raw.get("notes") or [])]

    @property
    def path_prepend(self) -> List[str]:
        return [str(p) for p in (self.raw.get("path_prepend") or [])]

    @property
    def report(self) -> List[Dict[str, Any]]:
        """End-of-run facts: ``{label, run}`` commands whose output is shown in the summary."""

        return [dict(r) for r in (self.raw.get("report") or [])]

    def select_groups(self, active_flags: Iterable[str]) -> List[Dict[str, Any]]:
        """Groups whose ``skip_when`` tags don't intersect the active run flags."""

        active = set(active_flags)
        return [g for g in self.groups if not (set(g.get("skip_when") or []) & active)]


def validate_manifest(raw: Any, *, source: str = "<memory>") -> Manifest:
    if not isinstance(raw, dict):
        raise ManifestError(f"{source}: manifest must be a mapping")

    groups = raw.get("groups")
    if not isinstance(groups, list) or not groups:
        raise ManifestError(f"{source}: groups must be a non-empty list")

    seen_groups: set[str] = set()
    seen_steps: set[str] = set()
    for gi, group in enumerate(groups):
        if not isinstance(group, dict):
            raise ManifestError(f"{source}: groups[{gi}] must be a mapping")
        gid = group.get("id")
        if not gid or not group.get("title"):
            raise ManifestError(f"{source}: groups[{gi}] needs id and title")
        if gid in seen_groups:
            raise ManifestError(f"{source}: duplicate group id {gid}")
        seen_groups.add(gid)

        skip_when = group.get("skip_when") or []
        if not isinstance(skip_when, list):
            raise ManifestError(f"{source}: group {gid} skip_when must be a list")

        steps = group.get("steps")
        if not isinstance(steps, list):
            raise ManifestError(f"{source}: group {gid} steps must be a list")
        for si, step in enumerate(steps):
            if not isinstance(step, dict) or not step.get("name") or not step.get("kind"):
                raise ManifestError(f"{source}: group {gid} steps[{si}] needs name and kind")
            if step["name"] in seen_steps:
                raise ManifestError(f"{source}: duplicate step name {step['name']}")
            seen_steps.add(step["name"])

    preflight = raw.get("preflight") or {}
    if not isinstance(preflight, dict):
        raise ManifestError(f"{source}: preflight must be a mapping")

    if not isinstance(raw.get("path_prepend") or [], list):
        raise ManifestError(f"{source}: path_prepend must be a list")

    for ri, item in enumerate(raw.get("report") or []):
        if not isinstance(item, dict) or not item.get("label") or not isinstance(item.get("run"), list):
            raise ManifestError(f"{source}: report[{ri}] needs label and a run command list")

    return Manifest(raw=raw, source=source)


def load_manifest(path: str | Path) -> Manifest:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(str(path))
    if p.suffix.lower() not in {".yaml", ".yml"}:
        raise ManifestError(f"{p}: manifest must be YAML")

    try:
        raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ManifestError(f"{p}: invalid YAML: {e}") from e
    return validate_manifest(raw, source=str(p))


def load_profile(profile: str) -> Manifest:
    p = _manifests_dir() / f"{profile}.yaml"
    if not p.exists():
        raise ManifestError(
            f"Unknown profile {profile!r} (available: {', '.join(available_profiles())})"
        )
    return load_manifest(p)


def expand(value: Any, variables: Mapping[str, str]) -> Any:
    """Substitute ``{home}``-style placeholders in strings, lists and mappings.

    Only the known placeholder names are touched, so shell text such as
    ``${PATH}`` passes through unchanged.
    """

    if isinstance(value, str):
        return _VAR_RE.sub(lambda m: str(variables.get(m.group(1), m.group(0))), value)
    if isinstance(value, list):
        return [expand(v, variables) for v in value]
    if isinstance(value, dict):
        return {k: expand(v, variables) for k, v in value.items()}
    return value
