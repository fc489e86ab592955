"""Build and spawn pipelines for staged source files."""

from __future__ import annotations

import logging as py_logging
import os
import signal
import subprocess
import sys
import threading
from collections.abc import Callable, Sequence
from contextlib import suppress
from dataclasses import replace
from pathlib import Path
from typing import IO, Any

from coderunner.errors import CodeRunnerError, ExitCode
from coderunner.languages.profiles import AddressingScheme, LanguageProfile
from coderunner.runtime.models import StagedArtifact

logger = py_logging.getLogger(__name__)

DEFAULT_BUILD_TIMEOUT_SECONDS = 60.0

BuildRunner = Callable[..., subprocess.CompletedProcess]
ProcessSpawner = Callable[..., Any]

_NEW_PROCESS_GROUP = sys.platform != "win32"


def split_args(args: str | Sequence[str] | None) -> list[str]:
    if args is None:
        return []
    if isinstance(args, str):
        return args.split()
    return [str(item) for item in args]


def _placeholders(profile: LanguageProfile, artifact: StagedArtifact) -> dict[str, str]:
    values = {
        "source_path": str(artifact.source_path),
        "logical_name": artifact.logical_name,
        "work_dir": str(artifact.work_dir),
        "python": sys.executable or "python",
    }
    if artifact.output_path is not None:
        values["output_path"] = str(artifact.output_path)
    if artifact.intermediate_paths:
        values["intermediate_path"] = str(artifact.intermediate_paths[0])

    if profile.addressing == AddressingScheme.LOGICAL_NAME:
        values["target"] = artifact.logical_name
    elif artifact.intermediate_paths:
        values["target"] = str(artifact.intermediate_paths[0])
    elif artifact.output_path is not None:
        values["target"] = str(artifact.output_path)
    else:
        values["target"] = str(artifact.source_path)
    return values


def render_command(
    template: Sequence[str],
    profile: LanguageProfile,
    artifact: StagedArtifact,
) -> list[str]:
    values = _placeholders(profile, artifact)
    try:
        return [token.format_map(values) for token in template]
    except (KeyError, IndexError, ValueError) as exc:
        raise CodeRunnerError(
            f"Invalid command template for language '{profile.key}'.",
            code=ExitCode.UNSUPPORTED_LANGUAGE,
            hint=f"Unresolvable placeholder {exc} in {' '.join(template)}.",
        ) from exc


class ProcessHandle:
    """A spawned program with piped standard streams.

    Output streams are left unread; the session registry subscribes to them.
    """

    def __init__(self, process: Any, *, argv: Sequence[str], generation: int = 0) -> None:
        self._process = process
        self.argv = tuple(argv)
        self.generation = generation
        self._killed = False
        self._lock = threading.Lock()

    @property
    def pid(self) -> int:
        return int(self._process.pid)

    @property
    def stdin(self) -> IO[bytes] | None:
        return self._process.stdin

    @property
    def stdout(self) -> IO[bytes] | None:
        return self._process.stdout

    @property
    def stderr(self) -> IO[bytes] | None:
        return self._process.stderr

    @property
    def killed(self) -> bool:
        return self._killed

    @property
    def returncode(self) -> int | None:
        return self._process.poll()

    def is_alive(self) -> bool:
        return self._process.poll() is None

    @property
    def writable(self) -> bool:
        stream = self._process.stdin
        return stream is not None and not stream.closed and not self._killed and self.is_alive()

    def write(self, text: str) -> None:
        stream = self._process.stdin
        if stream is None or stream.closed or not self.is_alive():
            raise CodeRunnerError(
                "Program is not accepting input.",
                code=ExitCode.NO_ACTIVE_PROCESS,
                hint="Run the program again before sending input.",
            )
        try:
            stream.write(text.encode("utf-8"))
            stream.flush()
        except (BrokenPipeError, ValueError, OSError) as exc:
            raise CodeRunnerError(
                "Program input stream is closed.",
                code=ExitCode.NO_ACTIVE_PROCESS,
                hint=str(exc) or "The program may have exited.",
            ) from exc

    def kill(self, *, repeat: bool = False) -> None:
        """Forcefully terminate the process tree.

        Repeated calls are no-ops unless ``repeat`` asks to signal again.
        """
        with self._lock:
            if self._killed and not repeat:
                return
            self._killed = True
        if self._process.poll() is None:
            if _NEW_PROCESS_GROUP:
                try:
                    os.killpg(self._process.pid, signal.SIGKILL)
                except (ProcessLookupError, PermissionError, OSError):
                    with suppress(ProcessLookupError, OSError):
                        self._process.kill()
            else:
                with suppress(ProcessLookupError, OSError):
                    self._process.kill()
        stream = self._process.stdin
        if stream is not None:
            with suppress(OSError, ValueError):
                stream.close()

    def wait(self, timeout: float | None = None) -> int | None:
        try:
            return int(self._process.wait(timeout=timeout))
        except subprocess.TimeoutExpired:
            return None


class ProcessLauncher:
    def __init__(
        self,
        *,
        build_timeout_seconds: float = DEFAULT_BUILD_TIMEOUT_SECONDS,
        build_runner: BuildRunner = subprocess.run,
        spawner: ProcessSpawner = subprocess.Popen,
        env: dict[str, str] | None = None,
    ) -> None:
        self.build_timeout_seconds = build_timeout_seconds
        self._build_runner = build_runner
        self._spawner = spawner
        self._env = env

    def check(self, profile: LanguageProfile) -> None:
        if not profile.run_command:
            raise CodeRunnerError(
                f"Language '{profile.key}' has no run command.",
                code=ExitCode.UNSUPPORTED_LANGUAGE,
                hint="Configure a run_command for this language.",
            )
        if profile.has_build_step and not profile.build_command:
            raise CodeRunnerError(
                f"Language '{profile.key}' requires a build step but has no build command.",
                code=ExitCode.UNSUPPORTED_LANGUAGE,
                hint="Configure a build_command for this language.",
            )

    def prepare(self, profile: LanguageProfile, artifact: StagedArtifact) -> StagedArtifact:
        """Derive compiled and intermediate paths next to the staged source."""
        stem = artifact.logical_name
        output_path = None
        if profile.has_build_step and profile.output_suffix is not None:
            output_path = artifact.work_dir / f"{stem}{profile.output_suffix}"
            if output_path == artifact.source_path:
                output_path = artifact.work_dir / f"{stem}.out"
        intermediates: tuple[Path, ...] = ()
        if profile.intermediate_suffix:
            intermediates = (artifact.work_dir / f"{stem}{profile.intermediate_suffix}",)
        globs = tuple(pattern.format(logical_name=stem) for pattern in profile.cleanup_globs)
        return replace(
            artifact,
            output_path=output_path,
            intermediate_paths=intermediates,
            extra_globs=globs,
        )

    def build(self, profile: LanguageProfile, artifact: StagedArtifact) -> str:
        """Run the build step to completion and return its combined output."""
        self.check(profile)
        if not profile.has_build_step or not profile.build_command:
            return ""
        command = render_command(profile.build_command, profile, artifact)
        logger.debug("Building language=%s command=%s", profile.key, command)
        try:
            completed = self._build_runner(
                command,
                cwd=str(artifact.work_dir),
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                timeout=self.build_timeout_seconds,
                check=False,
                env=self._env,
            )
        except subprocess.TimeoutExpired as exc:
            partial = _decode_partial(exc.stdout) + _decode_partial(exc.stderr)
            raise CodeRunnerError(
                "Compilation timed out.",
                code=ExitCode.BUILD_FAILED,
                hint=f"Build exceeded {self.build_timeout_seconds:g}s.",
                output=partial or f"Build command timed out: {' '.join(command)}",
            ) from exc
        except OSError as exc:
            raise CodeRunnerError(
                "Compilation failed.",
                code=ExitCode.BUILD_FAILED,
                hint=f"Install the {profile.display_name} toolchain and ensure it is on PATH.",
                output=f"Failed to start {command[0]}: {exc.strerror or exc}",
            ) from exc

        combined = f"{completed.stdout or ''}{completed.stderr or ''}"
        if completed.returncode != 0:
            logger.warning("Build failed language=%s returncode=%s", profile.key, completed.returncode)
            raise CodeRunnerError(
                "Compilation failed.",
                code=ExitCode.BUILD_FAILED,
                hint=f"Build exited with code {completed.returncode}.",
                output=combined or f"Build exited with code {completed.returncode}.",
            )
        return combined

    def spawn(
        self,
        profile: LanguageProfile,
        artifact: StagedArtifact,
        args: str | Sequence[str] | None = None,
        *,
        generation: int = 0,
    ) -> ProcessHandle:
        self.check(profile)
        command = render_command(profile.run_command, profile, artifact) + split_args(args)
        logger.debug("Spawning language=%s command=%s cwd=%s", profile.key, command, artifact.work_dir)
        try:
            process = self._spawner(
                command,
                cwd=str(artifact.work_dir),
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                bufsize=0,
                env=self._env,
                start_new_session=_NEW_PROCESS_GROUP,
            )
        except OSError as exc:
            raise CodeRunnerError(
                f"Failed to run program: {exc.strerror or exc}",
                code=ExitCode.SPAWN_FAILED,
                hint=f"Check that {command[0]} exists and is executable.",
                output=str(exc),
            ) from exc
        return ProcessHandle(process, argv=command, generation=generation)

    def launch(
        self,
        profile: LanguageProfile,
        artifact: StagedArtifact,
        args: str | Sequence[str] | None = None,
        *,
        generation: int = 0,
    ) -> ProcessHandle:
        prepared = self.prepare(profile, artifact)
        self.build(profile, prepared)
        return self.spawn(profile, prepared, args, generation=generation)


def _decode_partial(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)
