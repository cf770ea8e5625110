# src/trimatrix/logging_setup.py

from __future__ import annotations

import logging
import sys
from pathlib import Path

LOG_FILE_NAME = "trimatrix.log"
LOG_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

# Per-batch and per-write chatter; the session notifier already reports outcomes.
QUIET_PREFIXES = ("trimatrix.pipeline.", "trimatrix.storage.", "trimatrix.tasks.")

# SDK/transport loggers that log every request at INFO.
NOISY_LIBRARIES = ("httpx", "httpcore", "openai")


class _ConsoleNoiseFilter(logging.Filter):
    """Console gate: app messages through, queue/storage internals from WARNING, libraries from ERROR."""

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        if not name.startswith("trimatrix."):
            # includes "py.warnings" from logging.captureWarnings
            return record.levelno >= logging.ERROR
        if name.startswith(QUIET_PREFIXES):
            return record.levelno >= logging.WARNING
        return True


def setup_logging(
    *,
    log_dir: str | Path = ".local/trimatrix",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> Path:
    """
    Route every record to `<log_dir>/trimatrix.log` and a filtered stderr console.

    Replaces whatever handlers the root logger already had. Returns the log file path.
    """
    log_file = Path(log_dir) / LOG_FILE_NAME
    log_file.parent.mkdir(parents=True, exist_ok=True)
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.addFilter(_ConsoleNoiseFilter())

    to_file = logging.FileHandler(str(log_file), encoding="utf-8")
    to_file.setLevel(file_level)

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        root.removeHandler(h)
    for h in (console, to_file):
        h.setFormatter(formatter)
        root.addHandler(h)

    logging.captureWarnings(True)
    for lib in NOISY_LIBRARIES:
        logging.getLogger(lib).setLevel(logging.WARNING)
    return log_file
