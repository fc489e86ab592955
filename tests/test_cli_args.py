from __future__ import annotations

import io
from pathlib import Path

import pytest

from coderunner import cli
from coderunner.config import WORK_ROOT_ENV
from coderunner.errors import ExitCode


@pytest.fixture(autouse=True)
def _isolated_runtime(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv(WORK_ROOT_ENV, str(tmp_path / "work"))
    monkeypatch.setattr("sys.stdin", io.StringIO(""))


def _argv(tmp_path: Path, *args: str) -> list[str]:
    return ["--log-file", str(tmp_path / "cr.log"), "--config", str(tmp_path / "missing.toml"), *args]


def test_cli_help_lists_commands() -> None:
    help_text = cli.build_parser().format_help()

    for fragment in ("run", "languages", "template", "--log-level", "--config"):
        assert fragment in help_text


def test_run_command_parses_language_and_args() -> None:
    namespace = cli.parse_args(["run", "main.txt", "--language", "python", "--args", "1 2"])

    assert namespace.command == "run"
    assert namespace.file == Path("main.txt")
    assert namespace.language == "python"
    assert namespace.args == "1 2"


def test_languages_command_lists_catalog(tmp_path: Path, capsys) -> None:
    code = cli.main(_argv(tmp_path, "languages"))

    out = capsys.readouterr().out
    assert code == int(ExitCode.SUCCESS)
    assert "python" in out and "build+run" in out
    assert out.splitlines()[0].startswith("c ")


def test_template_command_prints_starter_code(tmp_path: Path, capsys) -> None:
    code = cli.main(_argv(tmp_path, "template", "java"))

    out = capsys.readouterr().out
    assert code == int(ExitCode.SUCCESS)
    assert out.startswith("# Main.java\n")
    assert "class Main" in out


def test_unknown_template_language_is_config_error(tmp_path: Path, capsys) -> None:
    code = cli.main(_argv(tmp_path, "template", "cobol"))

    assert code == int(ExitCode.CONFIG_ERROR)
    assert "Unknown language: cobol" in capsys.readouterr().err


def test_missing_source_file_is_io_error(tmp_path: Path, capsys) -> None:
    code = cli.main(_argv(tmp_path, "run", str(tmp_path / "nope.py")))

    assert code == int(ExitCode.IO_ERROR)
    assert "Cannot read" in capsys.readouterr().err


def test_undetectable_language_with_unknown_default_is_config_error(tmp_path: Path, capsys) -> None:
    source = tmp_path / "notes.txt"
    source.write_text("hello", encoding="utf-8")
    config = tmp_path / "config.toml"
    config.write_text('default_language = "cobol"\n', encoding="utf-8")

    code = cli.main(["--log-file", str(tmp_path / "cr.log"), "--config", str(config), "run", str(source)])

    assert code == int(ExitCode.CONFIG_ERROR)
    assert "Unknown language: cobol" in capsys.readouterr().err


def test_invalid_log_level_is_rejected(tmp_path: Path) -> None:
    assert cli.main(["--log-level", "LOUD", "--log-file", str(tmp_path / "cr.log"), "languages"]) == 2


def test_warning_alias_for_log_level_is_accepted(tmp_path: Path) -> None:
    assert cli.main(["--log-level", "warning", "--log-file", str(tmp_path / "cr.log"), "languages"]) == 0


def test_missing_command_is_rejected(tmp_path: Path) -> None:
    assert cli.main(["--log-file", str(tmp_path / "cr.log")]) == 2


def test_languages_and_template_follow_config_overrides(tmp_path: Path, capsys) -> None:
    config = tmp_path / "config.toml"
    config.write_text('[languages.python]\nextensions = [".py", ".pyx"]\n', encoding="utf-8")
    base = ["--log-file", str(tmp_path / "cr.log"), "--config", str(config)]

    assert cli.main([*base, "languages"]) == int(ExitCode.SUCCESS)
    python_line = next(line for line in capsys.readouterr().out.splitlines() if line.startswith("python "))
    assert ".pyx" in python_line

    assert cli.main([*base, "template", "python"]) == int(ExitCode.SUCCESS)
    assert capsys.readouterr().out.startswith("# main.py\n")
