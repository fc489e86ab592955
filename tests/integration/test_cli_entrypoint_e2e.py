from __future__ import annotations

import os
import subprocess
import sys
from pathlib import Path


def _env(tmp_path: Path) -> dict[str, str]:
    env = dict(os.environ)
    existing = env.get("PYTHONPATH", "")
    src_path = str(Path("src").resolve())
    env["PYTHONPATH"] = f"{src_path}{os.pathsep}{existing}" if existing else src_path
    env["CODERUNNER_WORK_ROOT"] = str(tmp_path / "work")
    return env


def _run(tmp_path: Path, *args: str, stdin: str = "") -> subprocess.CompletedProcess:
    return subprocess.run(
        [sys.executable, "-m", "coderunner", "--log-file", str(tmp_path / "cr.log"), *args],
        input=stdin,
        capture_output=True,
        text=True,
        check=False,
        timeout=60,
        env=_env(tmp_path),
    )


def test_cli_module_reports_invalid_args_via_exit_code(tmp_path: Path) -> None:
    completed = _run(tmp_path, "template")

    assert completed.returncode == 2
    assert "usage:" in completed.stderr


def test_cli_module_runs_interactive_python_program(tmp_path: Path) -> None:
    source = tmp_path / "main.py"
    source.write_text('name = input("Enter your name: ")\nprint(f"Hello, {name}!")\n', encoding="utf-8")

    completed = _run(tmp_path, "run", str(source), stdin="Ada\n")

    assert completed.returncode == 0
    assert completed.stdout == "Enter your name: Hello, Ada!\n"
    work_root = tmp_path / "work"
    assert not work_root.exists() or not any(work_root.rglob("main.py"))


def test_cli_module_propagates_program_exit_code(tmp_path: Path) -> None:
    source = tmp_path / "fail.py"
    source.write_text('import sys\nprint("partial")\nsys.exit(3)\n', encoding="utf-8")

    completed = _run(tmp_path, "run", str(source))

    assert completed.returncode == 3
    assert completed.stdout == "partial\n"
