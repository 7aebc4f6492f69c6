# src/agentpm/logging_setup.py

from __future__ import annotations

"""
Process-wide logging for the agentpm console.

stderr gets agentpm's own records, minus operation progress chatter; the log
file under the data directory gets everything at file_level.
"""

import logging
import sys
from pathlib import Path

LOG_FILE_NAME = "agentpm.log"

_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class _ConsoleNoiseFilter(logging.Filter):
    """
    Console policy by logger name:

    agentpm.operations.*  WARNING and up (one line per progress report otherwise)
    agentpm.*             everything
    anything else         ERROR and up, captured warnings included
    """

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        if name.startswith("agentpm.operations."):
            return record.levelno >= logging.WARNING
        if name.startswith("agentpm."):
            return True
        return record.levelno >= logging.ERROR


def setup_logging(
    *,
    log_dir: str | Path = ".local/agentpm",
    console_level: int | str = logging.INFO,
    file_level: int | str = logging.DEBUG,
) -> Path:
    """Install the console and file handlers on the root logger; returns the log file path."""
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    # Replace, never stack: main() may run more than once in one process.
    for handler in list(root.handlers):
        root.removeHandler(handler)

    formatter = logging.Formatter(fmt=_FORMAT, datefmt=_DATE_FORMAT)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(formatter)
    console.addFilter(_ConsoleNoiseFilter())
    root.addHandler(console)

    file_handler = logging.FileHandler(str(log_file), encoding="utf-8")
    file_handler.setLevel(file_level)
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)

    logging.captureWarnings(True)
    return log_file
