"""Caller-facing events emitted by the session registry."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Union

from coderunner.errors import ErrorKind
from coderunner.runtime.models import StreamKind


@dataclass(frozen=True)
class OutputEvent:
    session_id: str
    stream: StreamKind
    text: str
    seq: int


@dataclass(frozen=True)
class InputRequested:
    session_id: str


@dataclass(frozen=True)
class InputRequestCleared:
    session_id: str


@dataclass(frozen=True)
class Exited:
    session_id: str
    code: int
    duration_seconds: float = 0.0


@dataclass(frozen=True)
class ErrorEvent:
    session_id: str
    kind: ErrorKind
    message: str
    detail: str = ""


RunnerEvent = Union[OutputEvent, InputRequested, InputRequestCleared, Exited, ErrorEvent]
EventSink = Callable[[RunnerEvent], None]


def discard_event(event: RunnerEvent) -> None:
    del event
