"""Heuristic detection of programs waiting on standard input.

The classifier only ever sees one output chunk at a time. It has no knowledge
of the running program, so it trades precision for recall: a false positive
shows a redundant input affordance, a false negative leaves the caller to send
input unprompted.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, field

# Words that commonly appear in console prompts, matched on word boundaries.
DEFAULT_INPUT_KEYWORDS: tuple[str, ...] = (
    "enter",
    "input",
    "type",
    "choose",
    "select",
    "provide",
    "please",
    "press",
    "your name",
    "how many",
    "y/n",
    "yes/no",
)

# Characters a prompt line tends to end with when the cursor waits after it.
DEFAULT_PROMPT_SUFFIXES: tuple[str, ...] = ("?", ":", ">", "=", "]")


def _keyword_pattern(keywords: Iterable[str]) -> re.Pattern[str] | None:
    cleaned = sorted({item.strip().lower() for item in keywords if item.strip()}, key=len, reverse=True)
    if not cleaned:
        return None
    alternatives = "|".join(re.escape(item) for item in cleaned)
    # Boundaries are relaxed around non-word characters so "y/n" still matches.
    return re.compile(rf"(?<![a-z0-9_])(?:{alternatives})(?![a-z0-9_])")


@dataclass(frozen=True)
class InputClassifier:
    keywords: tuple[str, ...] = DEFAULT_INPUT_KEYWORDS
    prompt_suffixes: tuple[str, ...] = DEFAULT_PROMPT_SUFFIXES
    _pattern: re.Pattern[str] | None = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "keywords", tuple(self.keywords))
        object.__setattr__(
            self,
            "prompt_suffixes",
            tuple(item for item in (suffix.strip() for suffix in self.prompt_suffixes) if item),
        )
        object.__setattr__(self, "_pattern", _keyword_pattern(self.keywords))

    def needs_input(self, chunk: str) -> bool:
        text = chunk.strip().lower()
        if not text or text.isdigit():
            return False
        if self._pattern is not None and self._pattern.search(text):
            return True
        return text.endswith(self.prompt_suffixes)


DEFAULT_CLASSIFIER = InputClassifier()


def needs_input(chunk: str) -> bool:
    return DEFAULT_CLASSIFIER.needs_input(chunk)
