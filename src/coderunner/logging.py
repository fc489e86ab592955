"""Logging setup for the CLI and the session runtime."""

from __future__ import annotations

import logging as py_logging
import sys
from pathlib import Path
from typing import TextIO

LOG_LEVELS = {
    "DEBUG": py_logging.DEBUG,
    "INFO": py_logging.INFO,
    "WARN": py_logging.WARNING,
    "WARNING": py_logging.WARNING,
    "ERROR": py_logging.ERROR,
}
ROOT_LOGGER_NAME = "coderunner"
DEFAULT_LOG_PATH = Path("~/.config/coderunner/logs/coderunner.log")
_FALLBACK_LOG_PATH = Path(".coderunner/logs/coderunner.log")
# Program stderr shares the terminal with log records, so console lines carry a prefix.
_CONSOLE_FORMAT = "coderunner: %(levelname)s %(message)s"
_FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s:%(lineno)d [%(threadName)s] %(message)s"
_PREVIEW_LIMIT = 120


def default_log_path() -> Path:
    try:
        resolved = DEFAULT_LOG_PATH.expanduser()
    except RuntimeError:
        return (Path.cwd() / _FALLBACK_LOG_PATH).resolve()
    return resolved if resolved.is_absolute() else resolved.resolve()


def resolve_level(level: str) -> int:
    return LOG_LEVELS.get(level.strip().upper(), py_logging.INFO)


def preview(text: str, limit: int = _PREVIEW_LIMIT) -> str:
    """Single-line, bounded rendering of program output for log records."""
    flattened = text.replace("\r", "\\r").replace("\n", "\\n")
    if len(flattened) <= limit:
        return flattened
    return flattened[: max(0, limit - 3)] + "..."


def runtime_event(logger: py_logging.Logger, session_id: str, step: str, message: str) -> None:
    logger.info("runtime-event session=%s step=%s message=%s", session_id, step, message)


def _open_log_file(log_file: str | Path) -> py_logging.Handler | None:
    try:
        path = Path(log_file).expanduser()
    except RuntimeError:
        path = Path(log_file)
    if not path.is_absolute():
        path = path.resolve()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        return py_logging.FileHandler(path, encoding="utf-8")
    except OSError:
        # An unwritable log location never blocks running programs.
        return None


def configure_logging(
    level: str = "INFO",
    stream: TextIO | None = None,
    *,
    log_file: str | Path | None = None,
) -> py_logging.Logger:
    console_level = resolve_level(level)

    logger = py_logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console = py_logging.StreamHandler(stream or sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(py_logging.Formatter(_CONSOLE_FORMAT))
    logger.addHandler(console)

    file_handler = _open_log_file(log_file) if log_file else None
    if file_handler is not None:
        file_handler.setLevel(py_logging.DEBUG)
        file_handler.setFormatter(py_logging.Formatter(_FILE_FORMAT))
        logger.addHandler(file_handler)
        # The file keeps the full DEBUG trail regardless of the console level.
        logger.setLevel(py_logging.DEBUG)
    else:
        logger.setLevel(console_level)

    logger.propagate = False
    return logger
