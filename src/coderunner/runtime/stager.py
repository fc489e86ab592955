"""Working-directory staging and cleanup of run artifacts."""

from __future__ import annotations

import hashlib
import logging as py_logging
import re
import shutil
import tempfile
from contextlib import suppress
from pathlib import Path

from coderunner.errors import CodeRunnerError, ExitCode
from coderunner.retry import RetryPolicy, run_with_retry
from coderunner.runtime.models import StagedArtifact

logger = py_logging.getLogger(__name__)

DEFAULT_WORK_DIR_NAME = "coderunner-work"
_SANITIZE_PATTERN = re.compile(r"[^A-Za-z0-9._-]+")


def default_work_root() -> Path:
    return Path(tempfile.gettempdir()) / DEFAULT_WORK_DIR_NAME


def validate_file_name(file_name: str) -> str:
    name = file_name.strip()
    if not name:
        raise CodeRunnerError(
            "File name is required.",
            code=ExitCode.CONFIG_ERROR,
            hint="Enter a file name such as main.cpp.",
        )
    if name in {".", ".."} or "/" in name or "\\" in name or "\x00" in name:
        raise CodeRunnerError(
            f"Invalid file name: {file_name}",
            code=ExitCode.CONFIG_ERROR,
            hint="Use a bare file name without directory separators.",
        )
    return name


class ArtifactStager:
    def __init__(
        self,
        root: str | Path | None = None,
        *,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        self.root = Path(root).expanduser() if root else default_work_root()
        self.retry_policy = retry_policy or RetryPolicy(max_attempts=3, initial_backoff_seconds=0.1)

    @staticmethod
    def _safe(value: str) -> str:
        # The digest keeps ids that sanitize alike, such as "tab 1" and "tab-1", apart.
        cleaned = _SANITIZE_PATTERN.sub("-", value).strip("-.")[:40] or "session"
        digest = hashlib.sha256(value.encode("utf-8")).hexdigest()[:12]
        return f"{cleaned}-{digest}"

    def session_root(self, session_id: str) -> Path:
        return self.root / self._safe(session_id)

    def session_dir(self, session_id: str, generation: int) -> Path:
        return self.session_root(session_id) / f"run-{generation}"

    def stage(self, work_dir: str | Path, file_name: str, source_text: str) -> StagedArtifact:
        name = validate_file_name(file_name)
        directory = Path(work_dir)
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise CodeRunnerError(
                f"Cannot create working directory {directory}.",
                code=ExitCode.IO_ERROR,
                hint=str(exc) or "Check permissions of the work root.",
            ) from exc

        source_path = directory / name
        try:
            with source_path.open("w", encoding="utf-8", newline="") as handle:
                handle.write(source_text)
        except OSError as exc:
            with suppress(OSError):
                source_path.unlink()
            raise CodeRunnerError(
                f"Cannot write source file {source_path}.",
                code=ExitCode.IO_ERROR,
                hint=str(exc) or "Check free disk space and permissions.",
            ) from exc
        logger.debug("Staged source path=%s bytes=%s", source_path, len(source_text.encode("utf-8")))
        return StagedArtifact(work_dir=directory, source_path=source_path)

    def cleanup(self, artifact: StagedArtifact | None) -> list[Path]:
        """Delete every file of the artifact; never raises."""
        if artifact is None:
            return []
        removed: list[Path] = []
        for path in artifact.paths():
            try:
                if self._remove_file(path):
                    removed.append(path)
            except OSError as exc:
                logger.warning("Artifact cleanup failed path=%s error=%s", path, exc)
        with suppress(OSError):
            artifact.work_dir.rmdir()
        logger.debug("Artifact cleanup removed=%s work_dir=%s", len(removed), artifact.work_dir)
        return removed

    def purge_session(self, session_id: str) -> None:
        target = self.session_root(session_id)
        if not target.exists():
            return
        try:
            run_with_retry(
                lambda: shutil.rmtree(target),
                policy=self.retry_policy,
                retry_on=(PermissionError,),
            )
        except OSError as exc:
            logger.warning("Session directory cleanup failed path=%s error=%s", target, exc)

    def purge_root(self) -> None:
        with suppress(OSError):
            self.root.rmdir()

    def _remove_file(self, path: Path) -> bool:
        if not path.exists() or path.is_dir():
            return False

        def _unlink() -> bool:
            try:
                path.unlink()
            except FileNotFoundError:
                return False
            return True

        # Executables can stay locked briefly after a forced kill on Windows.
        return run_with_retry(_unlink, policy=self.retry_policy, retry_on=(PermissionError,))
