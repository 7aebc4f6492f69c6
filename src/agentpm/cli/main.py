# src/agentpm/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, loads the task file, then either runs the
single command given on the command line (`agentpm /list pending`) or starts
the interactive console.
"""

from __future__ import annotations

import logging
import sys

from ..cli.bootstrap import create_initial_state
from ..config import get_settings
from ..connectors.console_connector import run_command, run_console_loop
from ..errors import AppError
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    settings = get_settings()

    # choose console log level from settings.log_level
    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logger.info("Starting %s (project=%s)...", settings.app_name, settings.project_root)

    # IMPORTANT: reuse same settings object
    state = create_initial_state(settings=settings)

    try:
        state.tasks.initialize()
    except AppError as e:
        logger.error("Could not load tasks from %s: %s", settings.tasks_file_path, e)
        print(f"Error [{e.code}]: {e.message}", file=sys.stderr)
        return 1

    if argv:
        line = " ".join(argv)
        if not line.startswith("/"):
            line = "/" + line
        print(run_command(state, line))
        return 0

    run_console_loop(state)
    logger.info("Bye.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
