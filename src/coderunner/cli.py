"""Public CLI contract and entrypoint."""

from __future__ import annotations

import argparse
import logging as py_logging
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import TextIO

from .config import load_config
from .console import ConsoleRunner
from .errors import CodeRunnerError, ExitCode, user_facing_error
from .languages.registry import ProfileRegistry, default_registry
from .logging import configure_logging, default_log_path

_VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARN", "ERROR")


def _log_level_type(value: str) -> str:
    normalized = value.upper()
    if normalized == "WARNING":
        normalized = "WARN"
    if normalized not in _VALID_LOG_LEVELS:
        accepted = ", ".join(_VALID_LOG_LEVELS)
        raise argparse.ArgumentTypeError(f"--log-level must be one of: {accepted}")
    return normalized


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="coderunner",
        description="Build and run source files with interactive console input.",
    )
    parser.add_argument("--log-level", type=_log_level_type, default="WARN")
    parser.add_argument("--log-file", type=Path, default=None)
    parser.add_argument("--config", type=Path, default=None, help="Path to config.toml")
    commands = parser.add_subparsers(dest="command", required=True)

    run_parser = commands.add_parser("run", help="Build (if needed) and run a source file")
    run_parser.add_argument("file", type=Path)
    run_parser.add_argument("--language", "-l", default=None, help="Language key; detected from extension by default")
    run_parser.add_argument("--args", default="", help="Whitespace-separated program arguments")

    commands.add_parser("languages", help="List supported languages")

    template_parser = commands.add_parser("template", help="Print the starter template for a language")
    template_parser.add_argument("language")
    return parser


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = build_parser()
    return parser.parse_args(argv)


def _list_languages(profiles: ProfileRegistry, out: TextIO) -> int:
    for profile in profiles.profiles():
        extensions = " ".join(sorted(profile.extensions))
        phase = "build+run" if profile.has_build_step else "run"
        out.write(f"{profile.key:<12} {profile.display_name:<12} {phase:<10} {extensions}\n")
    return int(ExitCode.SUCCESS)


def _print_template(profiles: ProfileRegistry, language: str, out: TextIO) -> int:
    profile = profiles.resolve(language)
    out.write(f"# {profile.default_file_name}\n")
    out.write(profile.code_template)
    return int(ExitCode.SUCCESS)


def run_cli_flow(namespace: argparse.Namespace, *, out: TextIO | None = None) -> int:
    stream = out or sys.stdout
    config = load_config(namespace.config)
    profiles = default_registry().with_overrides(config.languages)
    if namespace.command == "languages":
        return _list_languages(profiles, stream)
    if namespace.command == "template":
        return _print_template(profiles, namespace.language, stream)

    runner = ConsoleRunner(config, stdout=stream)
    return runner.run_file(namespace.file, language=namespace.language, args=namespace.args)


def main(argv: Sequence[str] | None = None) -> int:
    log_path = default_log_path()
    logger = configure_logging("WARN", log_file=log_path)
    parser = build_parser()
    try:
        namespace = parser.parse_args(argv)
    except SystemExit as exc:
        if exc.code not in (None, 0):
            logger.warning("Argument parsing failed with exit code %s", exc.code)
        return int(exc.code or 0)

    if namespace.log_file is not None:
        log_path = namespace.log_file.expanduser()
    logger = configure_logging(level=namespace.log_level, log_file=log_path)

    try:
        logger.debug("Starting CLI command=%s", namespace.command)
        return run_cli_flow(namespace)
    except CodeRunnerError as exc:
        logger.error(
            "Handled CodeRunnerError (code=%s): %s",
            int(exc.code),
            exc.message,
            exc_info=logger.isEnabledFor(py_logging.DEBUG),
        )
        print(user_facing_error(exc.message, hint=exc.hint), file=sys.stderr)
        return int(exc.code)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception:
        logger.exception("Unhandled exception in CLI entrypoint")
        try:
            hint = f"Inspect logs: {log_path}"
            print(user_facing_error("Unexpected runtime failure", hint=hint), file=sys.stderr)
        except Exception:
            pass
        return int(ExitCode.RUNTIME_ERROR)


def run(argv: Sequence[str] | None = None) -> int:
    return main(argv)
