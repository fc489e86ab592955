"""Deterministic error model and exit code contract."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum


class ExitCode(IntEnum):
    SUCCESS = 0
    INVALID_ARGS = 2
    CONFIG_ERROR = 3
    IO_ERROR = 4
    BUILD_FAILED = 5
    SPAWN_FAILED = 6
    UNSUPPORTED_LANGUAGE = 7
    NO_ACTIVE_PROCESS = 8
    RUNTIME_ERROR = 9


class ErrorKind(str, Enum):
    CONFIG = "config"
    IO = "io"
    BUILD_FAILED = "build-failed"
    SPAWN_FAILED = "spawn-failed"
    UNSUPPORTED_LANGUAGE = "unsupported-language"
    NO_ACTIVE_PROCESS = "no-active-process"
    RUNTIME = "runtime"


_KIND_BY_CODE = {
    ExitCode.CONFIG_ERROR: ErrorKind.CONFIG,
    ExitCode.INVALID_ARGS: ErrorKind.CONFIG,
    ExitCode.IO_ERROR: ErrorKind.IO,
    ExitCode.BUILD_FAILED: ErrorKind.BUILD_FAILED,
    ExitCode.SPAWN_FAILED: ErrorKind.SPAWN_FAILED,
    ExitCode.UNSUPPORTED_LANGUAGE: ErrorKind.UNSUPPORTED_LANGUAGE,
    ExitCode.NO_ACTIVE_PROCESS: ErrorKind.NO_ACTIVE_PROCESS,
}


@dataclass
class CodeRunnerError(Exception):
    message: str
    code: ExitCode = ExitCode.RUNTIME_ERROR
    hint: str = ""
    # Verbatim tool output (compiler diagnostics) when there is any.
    output: str = ""

    @property
    def kind(self) -> ErrorKind:
        return _KIND_BY_CODE.get(self.code, ErrorKind.RUNTIME)

    def __str__(self) -> str:
        if self.hint:
            return f"{self.message} Hint: {self.hint}"
        return self.message


def user_facing_error(message: str, *, hint: str = "") -> str:
    if hint:
        return f"Error: {message}. Next step: {hint}"
    return f"Error: {message}."
