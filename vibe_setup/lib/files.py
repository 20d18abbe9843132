from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .command import Runner, run_cmd

logger = logging.getLogger(__name__)


def _read_text(path: Path) -> Optional[str]:
    try:
        return path.read_text(encoding="utf-8", errors="ignore")
    except (FileNotFoundError, IsADirectoryError, PermissionError):
        return None


def block_markers(block_id: str) -> tuple[str, str]:
    return f"# >>> {block_id} >>>", f"# <<< {block_id} <<<"


@dataclass(frozen=True)
class FileEditor:
    """Idempotent text edits to configuration files.

    Paths outside the user's home (``/etc/...``) are written through
    ``sudo tee`` so the tool itself never needs to run privileged.
    """

    runner: Runner = run_cmd
    home: Optional[str] = None

    def _needs_sudo(self, path: Path) -> bool:
        home = Path(self.home or os.path.expanduser("~"))
        try:
            path.resolve().relative_to(home.resolve())
            return False
        except ValueError:
            return True

    # Queries

    def has_line(self, path: str | Path, marker: str) -> bool:
        txt = _read_text(Path(path))
        return txt is not None and marker in txt

    def has_block(self, path: str | Path, block_id: str) -> bool:
        begin, _ = block_markers(block_id)
        return self.has_line(path, begin)

    def has_match(self, path: str | Path, pattern: re.Pattern[str]) -> bool:
        txt = _read_text(Path(path))
        return txt is not None and pattern.search(txt) is not None

    # Edits

    def _write(self, path: Path, contents: str, *, append: bool, mode: Optional[int] = None) -> None:
        if self._needs_sudo(path):
            argv = ["sudo", "tee"]
            if append:
                argv.append("-a")
            self.runner(["sudo", "mkdir", "-p", str(path.parent)])
            self.runner([*argv, str(path)], input_text=contents)
            if mode is not None:
                self.runner(["sudo", "chmod", format(mode, "o"), str(path)])
            return

        path.parent.mkdir(parents=True, exist_ok=True)
        if append:
            with path.open("a", encoding="utf-8") as f:
                f.write(contents)
        else:
            path.write_text(contents, encoding="utf-8")
        if mode is not None:
            path.chmod(mode)

    def ensure_line(self, path: str | Path, line: str, *, marker: Optional[str] = None) -> bool:
        """Append ``line`` unless ``marker`` (default: the line) already occurs.

        Returns True when the file was changed.
        """

        p = Path(path)
        if self.has_line(p, marker or line):
            return False
        existing = _read_text(p) or ""
        prefix = "" if not existing or existing.endswith("\n") else "\n"
        self._write(p, f"{prefix}{line}\n", append=True)
        logger.info("Appended to %s: %s", str(p), line)
        return True

    def ensure_block(self, path: str | Path, block_id: str, body: str) -> bool:
        """Append a marker-delimited block once; later runs leave it alone."""

        p = Path(path)
        if self.has_block(p, block_id):
            return False
        begin, end = block_markers(block_id)
        existing = _read_text(p) or ""
        prefix = "" if not existing or existing.endswith("\n") else "\n"
        self._write(p, f"{prefix}{begin}\n{body.rstrip()}\n{end}\n", append=True)
        logger.info("Added block %s to %s", block_id, str(p))
        return True

    def write_if_missing(self, path: str | Path, contents: str, *, mode: Optional[int] = None) -> bool:
        p = Path(path)
        if p.exists():
            return False
        self._write(p, contents, append=False, mode=mode)
        logger.info("Wrote %s", str(p))
        return True
