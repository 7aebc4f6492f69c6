# src/agentpm/connectors/console_connector.py

from __future__ import annotations

import logging
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..core.state import AppState

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}")


def run_command(state: AppState, line: str) -> str:
    """Run one slash command; plain text gets a hint instead of a reply."""
    try:
        reply = command_registry.handle(state, line, emit=_print_ts)
    except Exception:
        logger.exception("Command handler crashed.")
        return "Internal error while handling a command."
    if reply is None:
        return "Commands start with '/'. Use /help to list available commands."
    return reply


def run_console_loop(state: AppState) -> None:
    logger.info("Console started (tasks=%d).", len(state.tasks.get_all_tasks()))
    _print_ts("[CONSOLE] Use /help for commands. Use /exit to quit.\n")

    while True:
        try:
            line = input("apm> ").strip()
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break
        except KeyboardInterrupt:
            logger.info("Console KeyboardInterrupt, exiting.")
            print()
            break

        if not line:
            continue

        if line.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        _print_ts(run_command(state, line))
