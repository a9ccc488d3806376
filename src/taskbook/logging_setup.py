# src/taskbook/logging_setup.py

from __future__ import annotations

import logging
import sys
from collections.abc import Iterable
from pathlib import Path

LOG_FILE_NAME = "taskbook.log"

# HTTP and SDK loggers that report every request at INFO/DEBUG.
CHATTY_LIBRARIES = ("httpx", "httpcore", "openai")

_FORMAT = logging.Formatter(
    fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)


class _PromptFriendlyFilter(logging.Filter):
    """
    Console filter for the REPL.

    taskbook.* records pass, except taskbook.notify.*: webhook delivery
    runs in background tasks and would interleave with the ">>> " prompt,
    so only its warnings and errors reach the console. Everything else
    (httpx, openai, captured py.warnings) needs ERROR.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if record.name.startswith("taskbook.notify."):
            return record.levelno >= logging.WARNING
        if record.name.startswith("taskbook."):
            return True
        return record.levelno >= logging.ERROR


def setup_logging(
    *,
    log_dir: str | Path = ".local/taskbook",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
    quiet: Iterable[str] = CHATTY_LIBRARIES,
) -> Path:
    """
    Route logs to stderr (filtered) and to <log_dir>/taskbook.log (everything
    at file_level). Replaces existing root handlers. Returns the log file path.
    """
    log_file = Path(log_dir) / LOG_FILE_NAME
    log_file.parent.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        root.removeHandler(h)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(_FORMAT)
    console.addFilter(_PromptFriendlyFilter())
    root.addHandler(console)

    file_handler = logging.FileHandler(str(log_file), encoding="utf-8")
    file_handler.setLevel(file_level)
    file_handler.setFormatter(_FORMAT)
    root.addHandler(file_handler)

    for name in quiet:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.captureWarnings(True)
    return log_file
