from __future__ import annotations

from pathlib import Path

import pytest

from coderunner.errors import CodeRunnerError, ErrorKind
from coderunner.retry import RetryPolicy
from coderunner.runtime.models import StagedArtifact
from coderunner.runtime.stager import ArtifactStager, validate_file_name


def _stager(root: Path) -> ArtifactStager:
    return ArtifactStager(root, retry_policy=RetryPolicy(max_attempts=2, initial_backoff_seconds=0.0))


def test_stage_writes_source_verbatim(tmp_path: Path) -> None:
    stager = _stager(tmp_path / "work")
    work_dir = stager.session_dir("tab 1", 3)

    artifact = stager.stage(work_dir, "main.py", "print('hi')\r\n")

    assert work_dir.parent.parent == tmp_path / "work"
    assert work_dir.parent.name.startswith("tab-1-")
    assert work_dir.name == "run-3"
    assert artifact.source_path == work_dir / "main.py"
    assert artifact.source_path.read_bytes() == b"print('hi')\r\n"
    assert artifact.logical_name == "main"


def test_session_ids_map_to_distinct_directories_under_root(tmp_path: Path) -> None:
    stager = _stager(tmp_path)
    ids = ["tab 1", "tab/1", "tab-1", "...", "///", "", "../escape"]

    roots = [stager.session_root(session_id) for session_id in ids]

    assert len(set(roots)) == len(ids)
    assert all(root.parent == tmp_path for root in roots)
    assert stager.session_root("tab 1") == stager.session_root("tab 1")


def test_purging_one_session_keeps_a_similarly_named_session(tmp_path: Path) -> None:
    stager = _stager(tmp_path)
    kept = stager.stage(stager.session_dir("tab-1", 1), "main.py", "print('B')")
    stager.stage(stager.session_dir("tab 1", 1), "main.py", "print('A')")

    stager.purge_session("tab 1")

    assert kept.source_path.read_text(encoding="utf-8") == "print('B')"


@pytest.mark.parametrize("name", ["", "  ", ".", "..", "src/main.c", "a\\b.c", "nul\x00.c"])
def test_invalid_file_names_are_config_errors(name: str) -> None:
    with pytest.raises(CodeRunnerError) as exc:
        validate_file_name(name)

    assert exc.value.kind == ErrorKind.CONFIG


def test_stage_reports_io_error_when_root_is_a_file(tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("x", encoding="utf-8")
    stager = _stager(blocker)

    with pytest.raises(CodeRunnerError) as exc:
        stager.stage(stager.session_dir("s", 1), "main.c", "int main(){}")

    assert exc.value.kind == ErrorKind.IO


def test_cleanup_removes_all_artifact_files_and_directory(tmp_path: Path) -> None:
    stager = _stager(tmp_path)
    work_dir = stager.session_dir("s", 1)
    staged = stager.stage(work_dir, "Main.java", "class Main {}")
    for name in ("Main.class", "Main$Inner.class", "Main$1.class"):
        (work_dir / name).write_bytes(b"\xca\xfe")
    artifact = StagedArtifact(
        work_dir=work_dir,
        source_path=staged.source_path,
        intermediate_paths=(work_dir / "Main.class",),
        extra_globs=("Main$*.class",),
    )

    removed = stager.cleanup(artifact)

    assert len(removed) == 4
    assert not work_dir.exists()


def test_cleanup_tolerates_missing_files_and_none(tmp_path: Path) -> None:
    stager = _stager(tmp_path)
    artifact = StagedArtifact(
        work_dir=tmp_path / "gone",
        source_path=tmp_path / "gone" / "main.c",
        output_path=tmp_path / "gone" / "main",
    )

    assert stager.cleanup(artifact) == []
    assert stager.cleanup(None) == []


def test_purge_session_removes_every_generation(tmp_path: Path) -> None:
    stager = _stager(tmp_path)
    stager.stage(stager.session_dir("s", 1), "a.py", "")
    stager.stage(stager.session_dir("s", 2), "a.py", "")
    stager.stage(stager.session_dir("other", 1), "a.py", "")

    stager.purge_session("s")
    stager.purge_session("missing")

    assert not stager.session_root("s").exists()
    assert stager.session_root("other").exists()


def test_purge_root_keeps_non_empty_root(tmp_path: Path) -> None:
    root = tmp_path / "work"
    stager = _stager(root)
    stager.stage(stager.session_dir("s", 1), "a.py", "")

    stager.purge_root()
    assert root.exists()

    stager.purge_session("s")
    stager.purge_root()
    assert not root.exists()
