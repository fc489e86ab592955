"""Language profiles: file extensions, command templates and addressing."""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from enum import Enum

from coderunner.languages import templates

# Suffix appended to natively compiled executables.
EXECUTABLE_SUFFIX = ".exe" if sys.platform == "win32" else ""


class AddressingScheme(str, Enum):
    """How the run command names what it executes."""

    PATH = "path"
    LOGICAL_NAME = "logical-name"


@dataclass(frozen=True)
class LanguageProfile:
    """Static description of how to build and run one language.

    Command templates are token tuples formatted with ``str.format``. The
    placeholders available to them are ``source_path``, ``output_path``,
    ``intermediate_path``, ``logical_name``, ``work_dir``, ``python`` and
    ``target``; ``target`` resolves according to ``addressing``.
    """

    key: str
    display_name: str
    extensions: frozenset[str]
    run_command: tuple[str, ...]
    build_command: tuple[str, ...] | None = None
    has_build_step: bool = False
    supports_input: bool = True
    default_file_name: str = ""
    code_template: str = ""
    addressing: AddressingScheme = AddressingScheme.PATH
    output_suffix: str | None = None
    intermediate_suffix: str | None = None
    cleanup_globs: tuple[str, ...] = field(default=())


BUILTIN_PROFILES: tuple[LanguageProfile, ...] = (
    LanguageProfile(
        key="c",
        display_name="C",
        extensions=frozenset({".c"}),
        build_command=("gcc", "{source_path}", "-o", "{output_path}"),
        run_command=("{target}",),
        has_build_step=True,
        default_file_name="main.c",
        code_template=templates.C_TEMPLATE,
        output_suffix=EXECUTABLE_SUFFIX,
    ),
    LanguageProfile(
        key="cpp",
        display_name="C++",
        extensions=frozenset({".cpp", ".cc", ".cxx", ".c++"}),
        build_command=("g++", "{source_path}", "-o", "{output_path}"),
        run_command=("{target}",),
        has_build_step=True,
        default_file_name="main.cpp",
        code_template=templates.CPP_TEMPLATE,
        output_suffix=EXECUTABLE_SUFFIX,
    ),
    LanguageProfile(
        key="python",
        display_name="Python",
        extensions=frozenset({".py", ".pyw"}),
        run_command=("{python}", "-u", "{target}"),
        default_file_name="main.py",
        code_template=templates.PYTHON_TEMPLATE,
    ),
    LanguageProfile(
        key="javascript",
        display_name="JavaScript",
        extensions=frozenset({".js", ".mjs", ".cjs"}),
        run_command=("node", "{target}"),
        default_file_name="main.js",
        code_template=templates.JAVASCRIPT_TEMPLATE,
    ),
    LanguageProfile(
        key="typescript",
        display_name="TypeScript",
        extensions=frozenset({".ts", ".mts", ".cts"}),
        build_command=("tsc", "--outDir", "{work_dir}", "{source_path}"),
        run_command=("node", "{target}"),
        has_build_step=True,
        default_file_name="main.ts",
        code_template=templates.TYPESCRIPT_TEMPLATE,
        intermediate_suffix=".js",
    ),
    LanguageProfile(
        key="java",
        display_name="Java",
        extensions=frozenset({".java"}),
        build_command=("javac", "-d", "{work_dir}", "{source_path}"),
        run_command=("java", "-cp", "{work_dir}", "{target}"),
        has_build_step=True,
        default_file_name="Main.java",
        code_template=templates.JAVA_TEMPLATE,
        addressing=AddressingScheme.LOGICAL_NAME,
        intermediate_suffix=".class",
        cleanup_globs=("{logical_name}$*.class",),
    ),
    LanguageProfile(
        key="go",
        display_name="Go",
        extensions=frozenset({".go"}),
        build_command=("go", "build", "-o", "{output_path}", "{source_path}"),
        run_command=("{target}",),
        has_build_step=True,
        default_file_name="main.go",
        code_template=templates.GO_TEMPLATE,
        output_suffix=EXECUTABLE_SUFFIX,
    ),
    LanguageProfile(
        key="rust",
        display_name="Rust",
        extensions=frozenset({".rs"}),
        build_command=("rustc", "-o", "{output_path}", "{source_path}"),
        run_command=("{target}",),
        has_build_step=True,
        default_file_name="main.rs",
        code_template=templates.RUST_TEMPLATE,
        output_suffix=EXECUTABLE_SUFFIX,
    ),
)
