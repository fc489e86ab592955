"""XDG config loading."""

from __future__ import annotations

import os
import sys
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing_extensions import TypedDict

if sys.version_info >= (3, 11):
    import tomllib
else:  # pragma: no cover
    import tomli as tomllib

from coderunner.runtime.classifier import DEFAULT_INPUT_KEYWORDS, DEFAULT_PROMPT_SUFFIXES
from coderunner.runtime.launcher import DEFAULT_BUILD_TIMEOUT_SECONDS
from coderunner.runtime.service import DEFAULT_KILL_TIMEOUT_SECONDS
from coderunner.runtime.stager import default_work_root

DEFAULT_CONFIG_PATH = Path("~/.config/coderunner/config.toml").expanduser()
DEFAULT_LANGUAGE = "cpp"
WORK_ROOT_ENV = "CODERUNNER_WORK_ROOT"

_MAX_BUILD_TIMEOUT_SECONDS = 3600.0
_MAX_KILL_TIMEOUT_SECONDS = 120.0
_OVERRIDE_FIELDS = ("build_command", "run_command")


class LanguageOverride(TypedDict, total=False):
    build_command: str
    run_command: str
    extensions: list[str]


class AppConfig(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    work_root: str = ""
    default_language: str = DEFAULT_LANGUAGE
    build_timeout_seconds: float = Field(default=DEFAULT_BUILD_TIMEOUT_SECONDS, gt=0, le=_MAX_BUILD_TIMEOUT_SECONDS)
    kill_timeout_seconds: float = Field(default=DEFAULT_KILL_TIMEOUT_SECONDS, gt=0, le=_MAX_KILL_TIMEOUT_SECONDS)
    input_keywords: list[str] = Field(default_factory=lambda: list(DEFAULT_INPUT_KEYWORDS))
    prompt_suffixes: list[str] = Field(default_factory=lambda: list(DEFAULT_PROMPT_SUFFIXES))
    languages: dict[str, LanguageOverride] = Field(default_factory=dict)

    @field_validator("default_language")
    @classmethod
    def _validate_language(cls, value: str) -> str:
        normalized = value.strip().lower()
        if not normalized:
            raise ValueError("Default language cannot be empty")
        return normalized

    def resolved_work_root(self) -> Path:
        env_root = os.getenv(WORK_ROOT_ENV, "").strip()
        if env_root:
            return Path(env_root).expanduser()
        if self.work_root.strip():
            return Path(self.work_root.strip()).expanduser()
        return default_work_root()


def get_config_path(path: str | Path | None = None) -> Path:
    if path is None:
        return DEFAULT_CONFIG_PATH
    return Path(path).expanduser()


def _normalize_string_list(value: object, fallback: tuple[str, ...]) -> list[str]:
    if not isinstance(value, list):
        return list(fallback)
    normalized: list[str] = []
    seen: set[str] = set()
    for item in value:
        if not isinstance(item, str):
            continue
        cleaned = item.strip()
        if not cleaned or cleaned in seen:
            continue
        seen.add(cleaned)
        normalized.append(cleaned)
    return normalized


def _normalize_languages(value: object) -> dict[str, LanguageOverride]:
    if not isinstance(value, dict):
        return {}
    normalized: dict[str, LanguageOverride] = {}
    for key, payload in value.items():
        if not isinstance(key, str) or not key.strip() or not isinstance(payload, dict):
            continue
        entry = LanguageOverride()
        for field_name in _OVERRIDE_FIELDS:
            command = payload.get(field_name)
            if isinstance(command, str) and command.strip():
                entry[field_name] = command.strip()  # type: ignore[literal-required]
        extensions = payload.get("extensions")
        if isinstance(extensions, list):
            cleaned = [item.strip() for item in extensions if isinstance(item, str) and item.strip()]
            if cleaned:
                entry["extensions"] = cleaned
        if entry:
            normalized[key.strip().lower()] = entry
    return normalized


def _positive_float(value: object, *, upper: float) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if 0 < float(value) <= upper:
        return float(value)
    return None


def _sanitize(raw: dict[str, object]) -> AppConfig:
    cfg = AppConfig()

    work_root = raw.get("work_root", cfg.work_root)
    if isinstance(work_root, str):
        cfg.work_root = work_root

    default_language = raw.get("default_language", cfg.default_language)
    if isinstance(default_language, str) and default_language.strip():
        cfg.default_language = default_language

    build_timeout = _positive_float(raw.get("build_timeout_seconds"), upper=_MAX_BUILD_TIMEOUT_SECONDS)
    if build_timeout is not None:
        cfg.build_timeout_seconds = build_timeout

    kill_timeout = _positive_float(raw.get("kill_timeout_seconds"), upper=_MAX_KILL_TIMEOUT_SECONDS)
    if kill_timeout is not None:
        cfg.kill_timeout_seconds = kill_timeout

    if "input_keywords" in raw:
        cfg.input_keywords = _normalize_string_list(raw["input_keywords"], DEFAULT_INPUT_KEYWORDS)
    if "prompt_suffixes" in raw:
        cfg.prompt_suffixes = _normalize_string_list(raw["prompt_suffixes"], DEFAULT_PROMPT_SUFFIXES)

    cfg.languages = _normalize_languages(raw.get("languages", {}))
    return cfg


def load_config(path: str | Path | None = None) -> AppConfig:
    resolved = get_config_path(path)
    if not resolved.exists():
        return AppConfig()
    try:
        with resolved.open("rb") as handle:
            raw = tomllib.load(handle)
    except (tomllib.TOMLDecodeError, OSError):
        return AppConfig()
    if not isinstance(raw, dict):
        return AppConfig()
    return _sanitize(raw)
