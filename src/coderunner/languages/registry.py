"""Read-only lookup of language profiles by key or file name."""

from __future__ import annotations

import logging as py_logging
import shlex
from collections.abc import Iterable, Mapping
from dataclasses import replace

from coderunner.errors import CodeRunnerError, ExitCode
from coderunner.languages.profiles import BUILTIN_PROFILES, LanguageProfile

logger = py_logging.getLogger(__name__)


def _normalize_extension(value: str) -> str:
    cleaned = value.strip().lower()
    if cleaned and not cleaned.startswith("."):
        cleaned = f".{cleaned}"
    return cleaned


def _split_command(key: str, field_name: str, value: object) -> tuple[str, ...] | None:
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        tokens = shlex.split(value)
    except ValueError as exc:
        raise CodeRunnerError(
            f"Invalid {field_name} for language '{key}': {exc}",
            code=ExitCode.CONFIG_ERROR,
            hint="Check quoting in the language override.",
        ) from exc
    return tuple(tokens) or None


class ProfileRegistry:
    """Immutable after construction; safe to share between sessions."""

    def __init__(self, profiles: Iterable[LanguageProfile] = BUILTIN_PROFILES) -> None:
        self._profiles: dict[str, LanguageProfile] = {}
        for profile in profiles:
            key = profile.key.strip().lower()
            if not key:
                raise CodeRunnerError(
                    "Language profile key cannot be empty.",
                    code=ExitCode.CONFIG_ERROR,
                )
            if key in self._profiles:
                raise CodeRunnerError(
                    f"Duplicate language profile: {key}",
                    code=ExitCode.CONFIG_ERROR,
                    hint="Use a unique key for each language.",
                )
            normalized = frozenset(_normalize_extension(item) for item in profile.extensions if item.strip())
            self._profiles[key] = replace(profile, key=key, extensions=normalized)

    def keys(self) -> list[str]:
        return sorted(self._profiles)

    def profiles(self) -> list[LanguageProfile]:
        return [self._profiles[key] for key in sorted(self._profiles)]

    def resolve(self, key: str) -> LanguageProfile:
        profile = self._profiles.get(key.strip().lower())
        if profile is None:
            raise CodeRunnerError(
                f"Unknown language: {key}",
                code=ExitCode.CONFIG_ERROR,
                hint=f"Use one of: {', '.join(self.keys())}.",
            )
        return profile

    def detect(self, file_name: str) -> LanguageProfile | None:
        name = file_name.strip().lower()
        best: LanguageProfile | None = None
        best_length = 0
        for key in sorted(self._profiles):
            profile = self._profiles[key]
            for extension in profile.extensions:
                if len(extension) > best_length and name.endswith(extension) and len(name) > len(extension):
                    best = profile
                    best_length = len(extension)
        return best

    def detect_or_default(self, file_name: str, default_key: str) -> LanguageProfile:
        detected = self.detect(file_name)
        if detected is not None:
            return detected
        return self.resolve(default_key)

    def with_overrides(self, overrides: Mapping[str, Mapping[str, object]]) -> ProfileRegistry:
        if not overrides:
            return self
        updated = dict(self._profiles)
        for raw_key, payload in overrides.items():
            key = raw_key.strip().lower()
            current = updated.get(key)
            if current is None:
                logger.warning("Ignoring override for unknown language=%s", raw_key)
                continue
            changes: dict[str, object] = {}
            build_command = _split_command(key, "build_command", payload.get("build_command"))
            if build_command is not None:
                changes["build_command"] = build_command
            run_command = _split_command(key, "run_command", payload.get("run_command"))
            if run_command is not None:
                changes["run_command"] = run_command
            extensions = payload.get("extensions")
            if isinstance(extensions, list):
                cleaned = frozenset(
                    _normalize_extension(item) for item in extensions if isinstance(item, str) and item.strip()
                )
                if cleaned:
                    changes["extensions"] = cleaned
            if changes:
                logger.debug("Applying language override language=%s fields=%s", key, sorted(changes))
                updated[key] = replace(current, **changes)
        return ProfileRegistry(updated.values())


_DEFAULT_REGISTRY = ProfileRegistry()


def default_registry() -> ProfileRegistry:
    return _DEFAULT_REGISTRY


def resolve(key: str) -> LanguageProfile:
    return _DEFAULT_REGISTRY.resolve(key)


def detect(file_name: str) -> LanguageProfile | None:
    return _DEFAULT_REGISTRY.detect(file_name)
