"""Terminal front end: runs one file in a session and relays console I/O."""

from __future__ import annotations

import logging as py_logging
import sys
import threading
from collections.abc import Callable
from pathlib import Path
from typing import TextIO

from coderunner.config import AppConfig
from coderunner.errors import CodeRunnerError, ErrorKind, ExitCode
from coderunner.runtime.events import ErrorEvent, Exited, InputRequested, OutputEvent, RunnerEvent
from coderunner.runtime.models import StreamKind
from coderunner.runtime.service import SessionRegistry, create_session_registry

logger = py_logging.getLogger(__name__)

CONSOLE_SESSION_ID = "console"

_EXIT_CODE_BY_KIND = {
    ErrorKind.CONFIG: ExitCode.CONFIG_ERROR,
    ErrorKind.IO: ExitCode.IO_ERROR,
    ErrorKind.BUILD_FAILED: ExitCode.BUILD_FAILED,
    ErrorKind.SPAWN_FAILED: ExitCode.SPAWN_FAILED,
    ErrorKind.UNSUPPORTED_LANGUAGE: ExitCode.UNSUPPORTED_LANGUAGE,
    ErrorKind.RUNTIME: ExitCode.RUNTIME_ERROR,
}

RegistryFactory = Callable[[AppConfig, Callable[[RunnerEvent], None]], SessionRegistry]


def _default_factory(config: AppConfig, sink: Callable[[RunnerEvent], None]) -> SessionRegistry:
    return create_session_registry(config, sink=sink)


class ConsoleRunner:
    def __init__(
        self,
        config: AppConfig,
        *,
        stdin: TextIO | None = None,
        stdout: TextIO | None = None,
        stderr: TextIO | None = None,
        registry_factory: RegistryFactory = _default_factory,
    ) -> None:
        self.config = config
        self._stdin = stdin or sys.stdin
        self._stdout = stdout or sys.stdout
        self._stderr = stderr or sys.stderr
        self._done = threading.Event()
        self._exit_code = int(ExitCode.SUCCESS)
        self.registry = registry_factory(config, self.handle_event)

    def handle_event(self, event: RunnerEvent) -> None:
        if isinstance(event, OutputEvent):
            # The terminal already shows what the user typed.
            if event.stream == StreamKind.STDIN:
                return
            target = self._stderr if event.stream == StreamKind.STDERR else self._stdout
            target.write(event.text)
            target.flush()
        elif isinstance(event, InputRequested):
            logger.debug("Program may be waiting for input session=%s", event.session_id)
        elif isinstance(event, Exited):
            self._exit_code = event.code if 0 <= event.code <= 255 else int(ExitCode.RUNTIME_ERROR)
            self._done.set()
        elif isinstance(event, ErrorEvent):
            if event.kind == ErrorKind.NO_ACTIVE_PROCESS:
                logger.debug("Input ignored: %s", event.message)
                return
            self._stderr.write(f"Error: {event.message}\n")
            if event.detail:
                self._stderr.write(event.detail.rstrip("\n") + "\n")
            self._stderr.flush()
            self._exit_code = int(_EXIT_CODE_BY_KIND.get(event.kind, ExitCode.RUNTIME_ERROR))
            self._done.set()

    def run_file(self, path: Path, *, language: str | None = None, args: str = "") -> int:
        try:
            source_text = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise CodeRunnerError(
                f"Cannot read {path}.",
                code=ExitCode.IO_ERROR,
                hint=str(exc) or "Check the file path.",
            ) from exc

        profiles = self.registry.profiles
        if language:
            profile = profiles.resolve(language)
        else:
            profile = profiles.detect_or_default(path.name, self.config.default_language)

        logger.debug("Running file=%s language=%s", path, profile.key)
        try:
            started = self.registry.run(CONSOLE_SESSION_ID, profile.key, path.name, source_text, args)
            if started:
                self._start_input_forwarding()
            self._done.wait()
            return self._exit_code
        finally:
            self.registry.shutdown_all()

    def _start_input_forwarding(self) -> None:
        # Lines are forwarded whether or not a prompt was detected.
        def _forward() -> None:
            for line in self._stdin:
                if self._done.is_set():
                    break
                self.registry.send_input(CONSOLE_SESSION_ID, line.rstrip("\r\n"))

        thread = threading.Thread(target=_forward, name="coderunner-console-stdin", daemon=True)
        thread.start()
