from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

DEFAULT_LOG_NAME = ".vibe-dev-setup.log"

_CONSOLE_MARKERS = {
    logging.DEBUG: "[.]",
    logging.INFO: "[i]",
    logging.WARNING: "[!]",
    logging.ERROR: "[x]",
    logging.CRITICAL: "[x]",
}


class ConsoleFormatter(logging.Formatter):
    """Short status-marker lines for the terminal; the file keeps full records."""

    def format(self, record: logging.LogRecord) -> str:
        marker = _CONSOLE_MARKERS.get(record.levelno, "[i]")
        return f"{marker} {record.getMessage()}"


def configure_logging(
    log_path: Optional[str] = None,
    level: int = logging.INFO,
    also_console: bool = True,
) -> str:
    """Configure logging.

    Every run appends to a log file in the invoking user's home directory
    (``~/.vibe-dev-setup.log`` unless told otherwise). If that location is
    not writable we fall back to a file in the working directory.

    Returns the actual file path being used.
    """

    log_path = log_path or str(Path.home() / DEFAULT_LOG_NAME)

    logger = logging.getLogger()
    logger.setLevel(level)

    # Avoid duplicate handlers if configure_logging() is called multiple times.
    if getattr(logger, "_vibe_setup_configured", False):
        return getattr(logger, "_vibe_setup_log_path", log_path)

    chosen_path = log_path
    handlers: list[logging.Handler] = []

    fmt = logging.Formatter(
        fmt="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S%z",
    )

    file_handler: Optional[logging.Handler] = None
    try:
        Path(os.path.dirname(log_path) or ".").mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
    except OSError:
        fallback = str(Path.cwd() / Path(log_path).name.lstrip("."))
        file_handler = logging.FileHandler(fallback, mode="a", encoding="utf-8")
        chosen_path = fallback
    file_handler.setFormatter(fmt)
    handlers.append(file_handler)

    if also_console:
        console = logging.StreamHandler()
        console.setFormatter(ConsoleFormatter())
        handlers.append(console)

    for h in handlers:
        logger.addHandler(h)

    setattr(logger, "_vibe_setup_configured", True)
    setattr(logger, "_vibe_setup_log_path", chosen_path)

    logging.getLogger(__name__).debug(
        "Logging initialized (requested=%s, actual=%s)", log_path, chosen_path
    )
    return chosen_path
