from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List

from ..errors import StepWarning
from ..pipeline import ProvisioningStep
from ..toolkit import Toolkit
from .base import as_list, make_step, require

logger = logging.getLogger(__name__)


def build_line_in_file(entry: Dict[str, Any], tk: Toolkit) -> ProvisioningStep:
    """Append a line to shell rc files that don't already mention ``marker``.

    Only files that already exist are edited unless ``create`` is set.
    """

    files = [Path(f).expanduser() for f in as_list(require(entry, "files"))]
    line = str(require(entry, "line"))
    marker = str(entry.get("marker") or line)
    create = bool(entry.get("create", False))

    def targets() -> List[Path]:
        return files if create else [f for f in files if f.exists()]

    def check() -> bool:
        return all(tk.editor.has_line(f, marker) for f in targets())

    def apply() -> None:
        for f in targets():
            tk.editor.ensure_line(f, line, marker=marker)

    return make_step(
        entry,
        tk,
        apply=apply,
        default_check=check,
        description=f"add {line!r} to {', '.join(str(f) for f in files)}",
    )


def build_file_block(entry: Dict[str, Any], tk: Toolkit) -> ProvisioningStep:
    """Write a config file once, or append a marker-delimited block to it.

    ``append: true`` keeps existing content and adds the block (identified
    by the step name); otherwise the file is only written when absent.
    """

    path = Path(str(require(entry, "path"))).expanduser()
    content = str(require(entry, "content"))
    append = bool(entry.get("append", False))
    mode = int(str(entry["mode"]), 8) if entry.get("mode") else None
    block_id = str(entry.get("block_id") or entry["name"])

    if append:
        return make_step(
            entry,
            tk,
            apply=lambda: tk.editor.ensure_block(path, block_id, content),
            default_check=lambda: tk.editor.has_block(path, block_id),
            description=f"add {block_id} block to {path}",
        )

    return make_step(
        entry,
        tk,
        apply=lambda: tk.editor.write_if_missing(path, content, mode=mode),
        default_check=path.exists,
        description=f"write {path}",
    )


def build_git_clone(entry: Dict[str, Any], tk: Toolkit) -> ProvisioningStep:
    repo = str(require(entry, "repo"))
    dest = Path(str(require(entry, "dest"))).expanduser()

    return make_step(
        entry,
        tk,
        apply=lambda: tk.runner(["git", "clone", "--depth", "1", repo, str(dest)]),
        default_check=dest.exists,
        description=f"clone {repo} into {dest}",
    )


def build_symlink(entry: Dict[str, Any], tk: Toolkit) -> ProvisioningStep:
    """Expose a binary under its usual name (Debian ships ``batcat`` for ``bat``)."""

    binary = str(require(entry, "binary"))
    source = str(require(entry, "source"))
    link = Path(str(entry.get("link") or Path(tk.home) / ".local/bin" / binary)).expanduser()

    def check() -> bool:
        return tk.path.is_present(binary) or link.exists()

    def apply() -> None:
        target = tk.which(source)
        if not target:
            raise StepWarning(f"{source} not found on PATH; cannot link {binary}")
        link.parent.mkdir(parents=True, exist_ok=True)
        tk.runner(["ln", "-sf", target, str(link)])

    return make_step(
        entry,
        tk,
        apply=apply,
        default_check=check,
        description=f"link {link} -> {source}",
    )
