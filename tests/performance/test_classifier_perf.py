from __future__ import annotations

import time

import pytest

from coderunner.languages import default_registry
from coderunner.runtime.classifier import InputClassifier


@pytest.mark.performance
def test_classifier_throughput_stays_within_budget() -> None:
    classifier = InputClassifier()
    chunks = [f"line {index}: value={index * 3}\n" if index % 7 else "Enter a number: " for index in range(20000)]

    started = time.perf_counter()
    hits = sum(1 for chunk in chunks if classifier.needs_input(chunk))
    elapsed = time.perf_counter() - started

    assert hits == len([index for index in range(20000) if index % 7 == 0])
    assert elapsed < 2.0, f"classification exceeded budget: {elapsed:.3f}s"


@pytest.mark.performance
def test_language_detection_throughput_stays_within_budget() -> None:
    registry = default_registry()
    names = ["main.cpp", "Main.java", "script.py", "app.ts", "notes.txt"] * 2000

    started = time.perf_counter()
    detected = [registry.detect(name) for name in names]
    elapsed = time.perf_counter() - started

    assert sum(1 for profile in detected if profile is None) == 2000
    assert elapsed < 2.0, f"detection exceeded budget: {elapsed:.3f}s"
