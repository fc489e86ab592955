from __future__ import annotations

import pytest

from coderunner.runtime.classifier import DEFAULT_CLASSIFIER, InputClassifier, needs_input


@pytest.mark.parametrize(
    "chunk",
    [
        "Enter your name: ",
        "ENTER A NUMBER",
        "Please choose an option",
        "Continue? (y/n) ",
        "Name:",
        ">",
        "Value = ",
        "[1-3]",
    ],
)
def test_prompts_are_detected(chunk: str) -> None:
    assert needs_input(chunk) is True


@pytest.mark.parametrize(
    "chunk",
    [
        "",
        "   \n",
        "3",
        "  42\n",
        "Hello, world!",
        "Hello, Ada",
        "typed result",
        "entered the loop",
        "done.",
    ],
)
def test_plain_output_is_not_a_prompt(chunk: str) -> None:
    assert needs_input(chunk) is False


def test_trailing_newline_does_not_hide_suffix() -> None:
    assert needs_input("How old are you?\n") is True
    assert needs_input("Result: 42\n") is False


def test_keywords_and_suffixes_are_configurable() -> None:
    classifier = InputClassifier(keywords=("roll number",), prompt_suffixes=("->",))

    assert classifier.needs_input("Roll Number") is True
    assert classifier.needs_input("value ->") is True
    assert classifier.needs_input("Enter your name") is False
    assert classifier.needs_input("Name:") is False


def test_empty_keyword_list_relies_on_suffixes() -> None:
    classifier = InputClassifier(keywords=(), prompt_suffixes=(":", " "))

    assert classifier.prompt_suffixes == (":",)
    assert classifier.needs_input("name:") is True
    assert classifier.needs_input("please") is False


def test_default_classifier_is_shared() -> None:
    assert DEFAULT_CLASSIFIER.needs_input("Enter") is needs_input("Enter")
