"""Runtime domain models."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path


class StreamKind(str, Enum):
    STDOUT = "stdout"
    STDERR = "stderr"
    # Echo of text written to the program's standard input.
    STDIN = "stdin"


class SessionState(str, Enum):
    IDLE = "idle"
    STAGING = "staging"
    BUILDING = "building"
    RUNNING = "running"
    AWAITING_INPUT_HINT = "awaiting-input-hint"
    EXITED = "exited"
    FAILED = "failed"
    KILLED = "killed"


LIVE_STATES = frozenset({SessionState.RUNNING, SessionState.AWAITING_INPUT_HINT})


@dataclass(frozen=True)
class StagedArtifact:
    work_dir: Path
    source_path: Path
    output_path: Path | None = None
    intermediate_paths: tuple[Path, ...] = ()
    extra_globs: tuple[str, ...] = ()

    @property
    def logical_name(self) -> str:
        return self.source_path.stem

    def paths(self) -> list[Path]:
        paths = [self.source_path]
        if self.output_path is not None:
            paths.append(self.output_path)
        paths.extend(self.intermediate_paths)
        for pattern in self.extra_globs:
            paths.extend(sorted(self.work_dir.glob(pattern)))
        return paths


@dataclass(frozen=True)
class SessionInfo:
    session_id: str
    state: SessionState
    generation: int
    exit_code: int | None = None
    failure_reason: str = ""
    started_at: float | None = None
    pid: int | None = None

    @property
    def is_live(self) -> bool:
        return self.state in LIVE_STATES
