# tests/test_commands.py

from __future__ import annotations

from agentpm.cli.commands import CommandRegistry, registry
from agentpm.connectors.console_connector import run_command
from agentpm.errors import NotFoundError


def test_command_registry_routes_2_and_3_params(state) -> None:
    reg = CommandRegistry()
    called = {"h2": 0, "h3": 0}
    notes = []

    def h2(state, args):
        called["h2"] += 1
        return f"h2 {' '.join(args)}"

    def h3(state, args, emit):
        called["h3"] += 1
        if emit is not None:
            emit("note")
        return "h3"

    reg.register("a", h2, "a")
    reg.register("b", h3, "b", aliases=["bee"])

    assert reg.handle(state, "/a x y") == "h2 x y"
    assert reg.handle(state, "/BEE", emit=notes.append) == "h3"
    assert called == {"h2": 1, "h3": 1}
    assert notes == ["note"]


def test_command_registry_unknown_and_non_command(state) -> None:
    reg = CommandRegistry()
    assert reg.handle(state, "hello") is None
    assert "Unknown command" in (reg.handle(state, "/nope") or "")
    assert "Empty command" in (reg.handle(state, "/") or "")


def test_domain_errors_become_replies(state) -> None:
    reg = CommandRegistry()

    def failing(state, args):
        raise NotFoundError("Task with ID 7 not found")

    reg.register("fail", failing, "fail")
    assert reg.handle(state, "/fail") == "Error [NOT_FOUND]: Task with ID 7 not found"


def test_task_workflow_through_commands(state) -> None:
    assert registry.handle(state, "/list") == "No tasks."

    created = registry.handle(state, "/add Write parser | Parse the config format")
    assert created.startswith("Created #1 [pending] (medium) Write parser")
    registry.handle(state, "/add Ship it | Release")

    assert registry.handle(state, "/dep add 2 1").endswith("deps=1")
    assert registry.handle(state, "/ready").splitlines() == ["#1 [pending] (medium) Write parser"]
    assert registry.handle(state, "/next").startswith("Next: #1")

    assert "[done]" in registry.handle(state, "/status 1 DONE")
    assert registry.handle(state, "/next").startswith("Next: #2")

    assert registry.handle(state, "/delete 1").startswith("Error [OPERATION_NOT_PERMITTED]")
    assert registry.handle(state, "/delete 1 --force") == "Deleted task 1."
    assert registry.handle(state, "/show 1") == "Task 1 not found."
    assert "Release" in registry.handle(state, "/show 2")

    # Auto-save wrote the file configured in settings.
    assert state.settings.tasks_file_path.is_file()


def test_usage_and_validation_replies(state) -> None:
    assert registry.handle(state, "/add no separator").startswith("Usage:")
    assert registry.handle(state, "/status 1").startswith("Usage:")
    assert registry.handle(state, "/dep swap 1 2").startswith("Usage:")
    assert registry.handle(state, "/list blocked").startswith("Error [VALIDATION_ERROR]")
    assert registry.handle(state, "/status 9 done").startswith("Error [NOT_FOUND]")
    assert "Available commands" in registry.handle(state, "/help")


def test_save_command_reports_path(state) -> None:
    registry.handle(state, "/add A | a")
    reply = registry.handle(state, "/save")
    assert reply == f"Saved 1 task(s) to {state.settings.tasks_file_path}."


def test_console_run_command(state) -> None:
    assert run_command(state, "hello").startswith("Commands start with '/'")
    assert run_command(state, "/list") == "No tasks."
