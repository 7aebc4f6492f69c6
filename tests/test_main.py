# tests/test_main.py

from __future__ import annotations

import logging

import pytest

from agentpm.cli import main as main_mod
from agentpm.logging_setup import _ConsoleNoiseFilter, setup_logging


@pytest.fixture()
def patched_main(monkeypatch: pytest.MonkeyPatch, settings):
    monkeypatch.setattr(main_mod, "get_settings", lambda: settings)
    monkeypatch.setattr(main_mod, "setup_logging", lambda **kw: settings.data_dir / "agentpm.log")
    return settings


def test_single_command_from_argv(patched_main, capsys) -> None:
    assert main_mod.main(["add", "Plan", "|", "Write", "the", "plan"]) == 0
    assert main_mod.main(["/list"]) == 0

    out = capsys.readouterr().out.splitlines()
    assert out[0].startswith("Created #1")
    assert out[1] == "#1 [pending] (medium) Plan"


def test_unreadable_tasks_file_exits_with_error(patched_main, capsys) -> None:
    path = patched_main.tasks_file_path
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("{ broken", "utf-8")

    assert main_mod.main(["/list"]) == 1
    assert "PARSING_ERROR" in capsys.readouterr().err


def _record(name: str, level: int) -> logging.LogRecord:
    return logging.LogRecord(name, level, __file__, 1, "msg", None, None)


@pytest.mark.parametrize(
    ("name", "level", "shown"),
    [
        ("agentpm.tasks.task_manager", logging.DEBUG, True),
        ("agentpm.operations.operation_tracker", logging.INFO, False),
        ("agentpm.operations.operation_tracker", logging.WARNING, True),
        ("py.warnings", logging.WARNING, False),
        ("urllib3", logging.WARNING, False),
        ("urllib3", logging.ERROR, True),
    ],
)
def test_console_noise_filter(name: str, level: int, shown: bool) -> None:
    assert _ConsoleNoiseFilter().filter(_record(name, level)) is shown


def test_setup_logging_replaces_root_handlers(tmp_path) -> None:
    root = logging.getLogger()
    saved = list(root.handlers)
    saved_level = root.level
    try:
        log_file = setup_logging(log_dir=tmp_path / "logs")
        setup_logging(log_dir=tmp_path / "logs")

        assert log_file == tmp_path / "logs" / "agentpm.log"
        assert len(root.handlers) == 2
        logging.getLogger("agentpm.tests").info("hello file")
        for handler in root.handlers:
            handler.flush()
        assert "hello file" in log_file.read_text("utf-8")
    finally:
        for handler in list(root.handlers):
            root.removeHandler(handler)
            handler.close()
        for handler in saved:
            root.addHandler(handler)
        root.setLevel(saved_level)
        logging.captureWarnings(False)
