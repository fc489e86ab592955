"""Per-session process lifecycle, output multiplexing and input forwarding."""

from __future__ import annotations

import atexit
import codecs
import logging as py_logging
import threading
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import IO, TYPE_CHECKING

from coderunner.errors import CodeRunnerError, ErrorKind, ExitCode
from coderunner.languages.registry import ProfileRegistry, default_registry
from coderunner.logging import preview, runtime_event
from coderunner.runtime.classifier import DEFAULT_CLASSIFIER, InputClassifier
from coderunner.runtime.events import (
    ErrorEvent,
    EventSink,
    Exited,
    InputRequestCleared,
    InputRequested,
    OutputEvent,
    RunnerEvent,
    discard_event,
)
from coderunner.runtime.launcher import ProcessHandle, ProcessLauncher
from coderunner.runtime.models import SessionInfo, SessionState, StagedArtifact, StreamKind
from coderunner.runtime.stager import ArtifactStager, validate_file_name

if TYPE_CHECKING:
    from coderunner.config import AppConfig

logger = py_logging.getLogger(__name__)

DEFAULT_KILL_TIMEOUT_SECONDS = 5.0
_READ_SIZE = 4096


@dataclass(eq=False)
class Session:
    session_id: str
    state: SessionState = SessionState.IDLE
    generation: int = 0
    handle: ProcessHandle | None = None
    # A retired program that survived its kills, reaped again by the next retire.
    lingering: ProcessHandle | None = None
    artifact: StagedArtifact | None = None
    watcher: threading.Thread | None = None
    started_at: float | None = None
    exit_code: int | None = None
    failure_reason: str = ""
    disposed: bool = False
    seq: int = 0
    # Serializes run/clear/dispose on this session; held across build and spawn.
    run_lock: threading.RLock = field(default_factory=threading.RLock, repr=False)
    # Serializes event delivery and every read/write of handle, generation and seq.
    emit_lock: threading.RLock = field(default_factory=threading.RLock, repr=False)
    # Keeps stdin echoes in the same order as the writes they describe.
    input_lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def next_seq(self) -> int:
        value = self.seq
        self.seq += 1
        return value

    def info(self) -> SessionInfo:
        return SessionInfo(
            session_id=self.session_id,
            state=self.state,
            generation=self.generation,
            exit_code=self.exit_code,
            failure_reason=self.failure_reason,
            started_at=self.started_at,
            pid=self.handle.pid if self.handle is not None else None,
        )


class SessionRegistry:
    """Owns at most one live program per session id.

    Operations on different session ids never wait on each other. Within one
    session, ``run``, ``clear`` and ``dispose`` are serialized and a previous
    program is always killed and reaped before a new one is spawned.
    """

    def __init__(
        self,
        *,
        profiles: ProfileRegistry | None = None,
        stager: ArtifactStager | None = None,
        launcher: ProcessLauncher | None = None,
        classifier: InputClassifier | None = None,
        sink: EventSink | None = None,
        kill_timeout_seconds: float = DEFAULT_KILL_TIMEOUT_SECONDS,
    ) -> None:
        self._profiles = profiles or default_registry()
        self._stager = stager or ArtifactStager()
        self._launcher = launcher or ProcessLauncher()
        self._classifier = classifier or DEFAULT_CLASSIFIER
        self._sink = sink or discard_event
        self.kill_timeout_seconds = kill_timeout_seconds
        self._sessions: dict[str, Session] = {}
        self._lock = threading.Lock()
        self._exit_hook = False

    @property
    def profiles(self) -> ProfileRegistry:
        return self._profiles

    def open(self, session_id: str) -> SessionInfo:
        session = self._get_or_create(session_id)
        with session.emit_lock:
            return session.info()

    def get(self, session_id: str) -> SessionInfo | None:
        with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            return None
        with session.emit_lock:
            return session.info()

    def list_sessions(self) -> list[SessionInfo]:
        with self._lock:
            sessions = [self._sessions[key] for key in sorted(self._sessions)]
        result = []
        for session in sessions:
            with session.emit_lock:
                result.append(session.info())
        return result

    def run(
        self,
        session_id: str,
        language_key: str,
        file_name: str,
        source_text: str,
        args: str | Sequence[str] | None = None,
    ) -> bool:
        """Start a program; returns once it is spawned or the run has failed.

        Failures are reported through an ``ErrorEvent``, never raised.
        """
        while True:
            session = self._get_or_create(session_id)
            with session.run_lock:
                if session.disposed:
                    continue
                return self._run_locked(session, language_key, file_name, source_text, args)

    def send_input(self, session_id: str, text: str) -> bool:
        with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            self._emit_no_active_process(session_id)
            return False

        payload = f"{text}\n"
        with session.input_lock:
            # The echo goes out before the write, so the program cannot answer ahead of it.
            with session.emit_lock:
                handle = session.handle
                if handle is None or session.disposed or not handle.writable:
                    self._emit_no_active_process(session_id)
                    return False
                self._clear_input_hint(session)
                self._emit(
                    OutputEvent(
                        session_id=session_id,
                        stream=StreamKind.STDIN,
                        text=payload,
                        seq=session.next_seq(),
                    )
                )
            try:
                # Written outside emit_lock so a full pipe cannot stall output delivery.
                handle.write(payload)
            except CodeRunnerError as exc:
                self._emit(ErrorEvent(session_id=session_id, kind=exc.kind, message=exc.message, detail=exc.hint))
                return False
        self._record(session_id, "input", f"Sent {len(payload)} characters.")
        return True

    def clear(self, session_id: str) -> None:
        with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            return
        with session.run_lock:
            if session.disposed:
                return
            self._retire(session)
            with session.emit_lock:
                session.state = SessionState.IDLE
                session.exit_code = None
                session.failure_reason = ""
                session.started_at = None
        self._record(session_id, "clear", "Session reset to idle.")

    def dispose(self, session_id: str) -> None:
        with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            return
        with session.run_lock:
            if session.disposed:
                return
            self._retire(session)
            with session.emit_lock:
                session.disposed = True
            with self._lock:
                if self._sessions.get(session_id) is session:
                    del self._sessions[session_id]
            self._stager.purge_session(session_id)
        self._record(session_id, "dispose", "Session disposed.")

    def shutdown_all(self) -> None:
        with self._lock:
            ids = list(self._sessions)
            if self._exit_hook:
                atexit.unregister(self.shutdown_all)
                self._exit_hook = False
        for session_id in ids:
            try:
                self.dispose(session_id)
            except Exception:
                logger.exception("Failed to dispose session=%s during shutdown", session_id)
        self._stager.purge_root()
        if ids:
            runtime_event(logger, "*", "shutdown", f"Disposed {len(ids)} sessions.")

    def _get_or_create(self, session_id: str) -> Session:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                session = Session(session_id=session_id)
                self._sessions[session_id] = session
                if not self._exit_hook:
                    # Only registries with sessions stay reachable from the exit hook.
                    atexit.register(self.shutdown_all)
                    self._exit_hook = True
                logger.debug("Created session=%s", session_id)
            return session

    def _run_locked(
        self,
        session: Session,
        language_key: str,
        file_name: str,
        source_text: str,
        args: str | Sequence[str] | None,
    ) -> bool:
        session_id = session.session_id
        try:
            profile = self._profiles.resolve(language_key)
            self._launcher.check(profile)
            validate_file_name(file_name)
        except CodeRunnerError as exc:
            # A program that is still running is left untouched.
            with session.emit_lock:
                live = session.handle is not None
            self._fail(session, exc, state=None if live else SessionState.FAILED)
            return False

        if not self._retire(session):
            self._fail(
                session,
                CodeRunnerError(
                    "Previous program did not exit after a forced kill.",
                    code=ExitCode.RUNTIME_ERROR,
                    hint="Run again once it has exited.",
                ),
                state=SessionState.FAILED,
            )
            return False
        with session.emit_lock:
            generation = session.generation
            session.state = SessionState.STAGING
            session.exit_code = None
            session.failure_reason = ""
            session.started_at = None
        self._record(session_id, "staging", f"Staging {file_name} ({profile.key}).")

        work_dir = self._stager.session_dir(session_id, generation)
        try:
            artifact = self._stager.stage(work_dir, file_name, source_text)
        except CodeRunnerError as exc:
            self._fail(session, exc, state=SessionState.IDLE)
            return False

        artifact = self._launcher.prepare(profile, artifact)
        handle: ProcessHandle | None = None
        try:
            if profile.has_build_step:
                with session.emit_lock:
                    session.state = SessionState.BUILDING
                self._record(session_id, "build", f"Building {artifact.source_path.name}.")
                self._launcher.build(profile, artifact)
            handle = self._launcher.spawn(profile, artifact, args, generation=generation)
        except CodeRunnerError as exc:
            self._fail(session, exc, state=SessionState.FAILED)
            return False
        except Exception as exc:
            logger.exception("Unexpected launch failure session=%s", session_id)
            self._fail(
                session,
                CodeRunnerError("Failed to launch program.", code=ExitCode.RUNTIME_ERROR, hint=str(exc)),
                state=SessionState.FAILED,
            )
            return False
        finally:
            if handle is None:
                self._stager.cleanup(artifact)

        with session.emit_lock:
            session.handle = handle
            session.artifact = artifact
            session.state = SessionState.RUNNING
            session.started_at = time.monotonic()
            session.watcher = self._attach(session, handle, artifact, supports_input=profile.supports_input)
        self._record(session_id, "running", f"Started pid={handle.pid} generation={generation}.")
        return True

    def _attach(
        self,
        session: Session,
        handle: ProcessHandle,
        artifact: StagedArtifact,
        *,
        supports_input: bool,
    ) -> threading.Thread:
        readers: list[threading.Thread] = []
        for kind, stream in ((StreamKind.STDOUT, handle.stdout), (StreamKind.STDERR, handle.stderr)):
            if stream is None:
                continue
            reader = threading.Thread(
                target=self._pump,
                args=(session, handle, stream, kind, supports_input),
                name=f"coderunner-{session.session_id}-{kind.value}-{handle.generation}",
                daemon=True,
            )
            readers.append(reader)
        watcher = threading.Thread(
            target=self._watch,
            args=(session, handle, artifact, readers),
            name=f"coderunner-{session.session_id}-watch-{handle.generation}",
            daemon=True,
        )
        for reader in readers:
            reader.start()
        watcher.start()
        return watcher

    def _pump(
        self,
        session: Session,
        handle: ProcessHandle,
        stream: IO[bytes],
        kind: StreamKind,
        supports_input: bool,
    ) -> None:
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        read = getattr(stream, "read1", None) or stream.read
        try:
            while True:
                chunk = read(_READ_SIZE)
                if not chunk:
                    break
                text = decoder.decode(chunk)
                if text:
                    self._deliver(session, handle, kind, text, supports_input)
            tail = decoder.decode(b"", final=True)
            if tail:
                self._deliver(session, handle, kind, tail, supports_input)
        except (OSError, ValueError) as exc:
            # Pipes are torn down underneath the reader when a program is killed.
            logger.debug("Stream closed session=%s stream=%s error=%s", session.session_id, kind.value, exc)
        finally:
            try:
                stream.close()
            except OSError as exc:
                logger.debug("Stream close failed session=%s stream=%s error=%s", session.session_id, kind.value, exc)

    def _deliver(
        self,
        session: Session,
        handle: ProcessHandle,
        kind: StreamKind,
        text: str,
        supports_input: bool,
    ) -> None:
        with session.emit_lock:
            if session.generation != handle.generation or session.disposed:
                return
            self._clear_input_hint(session)
            seq = session.next_seq()
            logger.debug(
                "Output session=%s stream=%s seq=%s text=%s",
                session.session_id,
                kind.value,
                seq,
                preview(text),
            )
            self._emit(OutputEvent(session_id=session.session_id, stream=kind, text=text, seq=seq))
            if supports_input and self._classifier.needs_input(text):
                session.state = SessionState.AWAITING_INPUT_HINT
                self._emit(InputRequested(session_id=session.session_id))

    def _watch(
        self,
        session: Session,
        handle: ProcessHandle,
        artifact: StagedArtifact,
        readers: list[threading.Thread],
    ) -> None:
        try:
            code = handle.wait()
            for reader in readers:
                reader.join(timeout=self.kill_timeout_seconds)
                if reader.is_alive():
                    logger.warning(
                        "Output reader still open after exit session=%s thread=%s",
                        session.session_id,
                        reader.name,
                    )
        finally:
            self._stager.cleanup(artifact)

        with session.emit_lock:
            if session.generation != handle.generation or session.disposed:
                logger.debug("Dropping exit of stale generation session=%s", session.session_id)
                return
            duration = time.monotonic() - session.started_at if session.started_at is not None else 0.0
            self._clear_input_hint(session)
            session.handle = None
            session.artifact = None
            session.watcher = None
            session.state = SessionState.EXITED
            session.exit_code = code
            self._emit(Exited(session_id=session.session_id, code=int(code or 0), duration_seconds=duration))
        self._record(session.session_id, "exited", f"Program exited with code {code}.")

    def _retire(self, session: Session) -> bool:
        """Invalidate the current generation, then kill and reap its program.

        Events of the retired generation that arrive later are dropped by the
        generation check. Returns False when the program outlived every kill;
        it is then kept as ``lingering`` and retried by the next retire.
        """
        with session.emit_lock:
            previous = session.handle or session.lingering
            watcher = session.watcher
            artifact = session.artifact
            self._clear_input_hint(session)
            session.handle = None
            session.lingering = None
            session.watcher = None
            session.artifact = None
            session.generation += 1
            session.seq = 0
            if previous is not None:
                session.state = SessionState.KILLED

        if previous is not None:
            if not self._reap(session, previous):
                with session.emit_lock:
                    session.lingering = previous
                # The watcher of that generation removes its files once it exits.
                return False
            if watcher is not None and watcher is not threading.current_thread():
                watcher.join(timeout=self.kill_timeout_seconds)
            self._record(session.session_id, "kill", f"Killed pid={previous.pid}.")
        self._stager.cleanup(artifact)
        return True

    def _reap(self, session: Session, handle: ProcessHandle) -> bool:
        handle.kill()
        if handle.wait(timeout=self.kill_timeout_seconds) is not None:
            return True
        logger.warning(
            "Program did not exit after kill; signalling again session=%s pid=%s", session.session_id, handle.pid
        )
        handle.kill(repeat=True)
        if handle.wait(timeout=self.kill_timeout_seconds) is not None:
            return True
        logger.error("Program survived a forced kill session=%s pid=%s", session.session_id, handle.pid)
        return False

    def _fail(self, session: Session, exc: CodeRunnerError, *, state: SessionState | None) -> None:
        with session.emit_lock:
            if state is not None:
                session.state = state
                session.failure_reason = exc.message
        self._record(session.session_id, exc.kind.value, exc.message)
        self._emit(
            ErrorEvent(
                session_id=session.session_id,
                kind=exc.kind,
                message=exc.message,
                detail=exc.output or exc.hint,
            )
        )

    def _clear_input_hint(self, session: Session) -> None:
        if session.state == SessionState.AWAITING_INPUT_HINT:
            session.state = SessionState.RUNNING
            self._emit(InputRequestCleared(session_id=session.session_id))

    def _emit_no_active_process(self, session_id: str) -> None:
        logger.debug("Input dropped; no active process session=%s", session_id)
        self._emit(
            ErrorEvent(
                session_id=session_id,
                kind=ErrorKind.NO_ACTIVE_PROCESS,
                message="No active process to receive input.",
            )
        )

    def _emit(self, event: RunnerEvent) -> None:
        try:
            self._sink(event)
        except Exception:
            logger.exception("Event sink failed for %s", type(event).__name__)

    def _record(self, session_id: str, step: str, message: str) -> None:
        runtime_event(logger, session_id, step, message)


def create_session_registry(config: AppConfig, *, sink: EventSink | None = None) -> SessionRegistry:
    profiles = default_registry().with_overrides(config.languages)
    return SessionRegistry(
        profiles=profiles,
        stager=ArtifactStager(config.resolved_work_root()),
        launcher=ProcessLauncher(build_timeout_seconds=config.build_timeout_seconds),
        classifier=InputClassifier(
            keywords=tuple(config.input_keywords),
            prompt_suffixes=tuple(config.prompt_suffixes),
        ),
        sink=sink,
        kill_timeout_seconds=config.kill_timeout_seconds,
    )
