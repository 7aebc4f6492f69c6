# src/agentpm/cli/commands.py

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable
from typing import cast

from ..core.state import AppState
from ..errors import AppError
from ..tasks.task_models import Task, TaskPriority, TaskStatus

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], str]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], str]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console (/help, /list, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.

        Domain errors (AppError) become the reply text; anything else propagates.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 3

        try:
            if nparams >= 3:
                h3 = cast(CommandHandler3, handler)
                return h3(state, args, emit)
            h2 = cast(CommandHandler2, handler)
            return h2(state, args)
        except AppError as e:
            logger.debug("Command /%s failed: %s", name, e)
            return f"Error [{e.code}]: {e.message}"

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _fmt_task(task: Task) -> str:
    deps = f" deps={','.join(task.dependencies)}" if task.dependencies else ""
    subs = f" subtasks={len(task.subtasks)}" if task.subtasks else ""
    return f"#{task.id} [{task.status}] ({task.priority}) {task.title}{deps}{subs}"


def _fmt_details(task: Task) -> str:
    lines = [_fmt_task(task), f"  {task.description}"]
    if task.details:
        lines.append(f"  details: {task.details}")
    if task.test_strategy:
        lines.append(f"  test strategy: {task.test_strategy}")
    for i, sub in enumerate(task.subtasks or [], start=1):
        lines.append(f"  {task.id}.{i} [{sub.status}] {sub.title}")
    return "\n".join(lines)


def cmd_help(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    return registry.build_help()


def cmd_list(state: AppState, args: list[str]) -> str:
    """
    /list           -> all tasks
    /list <status>  -> only tasks with that status
    """
    tasks = state.tasks.get_tasks_by_status(args[0] if args else None)
    if not tasks:
        return "No tasks."
    return "\n".join(_fmt_task(t) for t in tasks)


def cmd_show(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /show <id>  (subtasks: /show 3.1)"
    task = state.tasks.get_task_by_id(args[0])
    if task is None:
        return f"Task {args[0]} not found."
    return _fmt_details(task)


def cmd_next(state: AppState, args: list[str]) -> str:
    priority = args[0].lower() if args else None
    task = state.tasks.find_next_task(priority=priority)
    if task is None:
        return "Nothing to do: no task is ready."
    return f"Next: {_fmt_task(task)}"


def cmd_ready(state: AppState, args: list[str]) -> str:
    tasks = state.tasks.get_ready_tasks()
    if not tasks:
        return "No ready tasks."
    return "\n".join(_fmt_task(t) for t in tasks)


def cmd_add(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """/add <title> | <description>"""
    text = " ".join(args)
    title, sep, description = text.partition("|")
    if not sep or not title.strip() or not description.strip():
        return "Usage: /add <title> | <description>"

    task = state.tasks.create_task({"title": title.strip(), "description": description.strip()})
    return f"Created {_fmt_task(task)}"


def cmd_status(state: AppState, args: list[str]) -> str:
    if len(args) != 2:
        values = ", ".join(s.value for s in TaskStatus)
        return f"Usage: /status <id> <status>  (status: {values})"
    task = state.tasks.update_task_status(args[0], args[1].lower())
    return f"Updated {_fmt_task(task)}"


def cmd_dep(state: AppState, args: list[str]) -> str:
    """
    /dep add <id> <dep>  -> <id> depends on <dep>
    /dep rm <id> <dep>   -> drop that dependency
    """
    if len(args) != 3 or args[0].lower() not in ("add", "rm"):
        return "Usage: /dep add <id> <dep> | /dep rm <id> <dep>"

    sub, task_id, dep_id = args[0].lower(), args[1], args[2]
    if sub == "add":
        task = state.tasks.add_dependency(task_id, dep_id)
    else:
        task = state.tasks.remove_dependency(task_id, dep_id)
    return f"Updated {_fmt_task(task)}"


def cmd_delete(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /delete <id> [force]"
    force = len(args) > 1 and args[1].lower() in ("force", "-f", "--force")
    state.tasks.delete_task(args[0], force=force)
    return f"Deleted task {args[0]}."


def cmd_save(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    path = state.tasks.save()
    return f"Saved {len(state.tasks.get_all_tasks())} task(s) to {path}."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("list", cmd_list, help_text="List tasks: /list [status].", aliases=["ls"])
registry.register("show", cmd_show, help_text="Show one task: /show <id> (dotted ids for subtasks).")
registry.register("next", cmd_next, help_text="Pick the next task to work on: /next [priority].")
registry.register("ready", cmd_ready, help_text="List pending tasks whose dependencies are done.")
registry.register("add", cmd_add, help_text="Create a task: /add <title> | <description>.")
registry.register("status", cmd_status, help_text="Change status: /status <id> <status>.")
registry.register("dep", cmd_dep, help_text="Dependencies: /dep add|rm <id> <dep>.")
registry.register("delete", cmd_delete, help_text="Delete a task: /delete <id> [force].", aliases=["rm"])
registry.register("save", cmd_save, help_text="Write the task file now.")
