from __future__ import annotations

import io
import logging as py_logging
from pathlib import Path

import coderunner.logging as cr_logging


def test_default_log_path_is_expanded() -> None:
    path = cr_logging.default_log_path()

    assert path.is_absolute()
    assert path.name == "coderunner.log"


def test_warning_alias_maps_to_warning_level() -> None:
    logger = cr_logging.configure_logging("warning")

    assert logger.level == cr_logging.LOG_LEVELS["WARN"]


def test_unknown_log_level_falls_back_to_info() -> None:
    logger = cr_logging.configure_logging("not-a-level")

    assert logger.level == py_logging.INFO


def test_configure_logging_resets_existing_handlers() -> None:
    logger = cr_logging.configure_logging("INFO")
    assert len(logger.handlers) == 1

    logger = cr_logging.configure_logging("INFO")

    assert len(logger.handlers) == 1


def test_configure_logging_adds_debug_file_handler(tmp_path: Path) -> None:
    log_file = tmp_path / "logs" / "coderunner.log"

    logger = cr_logging.configure_logging("ERROR", log_file=log_file)
    file_handlers = [handler for handler in logger.handlers if isinstance(handler, py_logging.FileHandler)]

    console_handlers = [handler for handler in logger.handlers if handler not in file_handlers]

    assert len(file_handlers) == 1
    assert file_handlers[0].level == py_logging.DEBUG
    assert console_handlers[0].level == py_logging.ERROR
    assert logger.level == py_logging.DEBUG
    assert log_file.exists()
    cr_logging.configure_logging("INFO")


def test_configure_logging_ignores_file_handler_oserror(monkeypatch, tmp_path: Path) -> None:
    def raise_os_error(*args: object, **kwargs: object) -> py_logging.Handler:
        raise OSError("disk full")

    monkeypatch.setattr(cr_logging.py_logging, "FileHandler", raise_os_error)

    logger = cr_logging.configure_logging("INFO", log_file=tmp_path / "nope" / "coderunner.log")

    assert len(logger.handlers) == 1
    assert type(logger.handlers[0]) is py_logging.StreamHandler


def test_preview_flattens_and_truncates_output() -> None:
    assert cr_logging.preview("a\nb\r\n") == "a\\nb\\r\\n"
    assert cr_logging.preview("x" * 50, limit=10) == "xxxxxxx..."


def test_runtime_events_use_structured_prefix() -> None:
    stream = io.StringIO()
    cr_logging.configure_logging("INFO", stream)

    cr_logging.runtime_event(py_logging.getLogger("coderunner.runtime.service"), "tab-1", "running", "Started pid=1.")

    assert stream.getvalue() == "coderunner: INFO runtime-event session=tab-1 step=running message=Started pid=1.\n"
    cr_logging.configure_logging("INFO")


def test_resolve_level_accepts_aliases() -> None:
    assert cr_logging.resolve_level(" warn ") == py_logging.WARNING
    assert cr_logging.resolve_level("debug") == py_logging.DEBUG
    assert cr_logging.resolve_level("loud") == py_logging.INFO
