from __future__ import annotations

import threading
from collections.abc import Callable
from pathlib import Path

import pytest

from coderunner.runtime.events import Exited, OutputEvent, RunnerEvent


@pytest.hookimpl(trylast=True)
def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    del config
    for item in items:
        path = Path(str(getattr(item, "path", item.fspath)))
        if "integration" in path.parts:
            item.add_marker(pytest.mark.integration)
            item.add_marker(pytest.mark.slow)


class EventRecorder:
    def __init__(self) -> None:
        self.events: list[RunnerEvent] = []
        self._condition = threading.Condition()

    def __call__(self, event: RunnerEvent) -> None:
        with self._condition:
            self.events.append(event)
            self._condition.notify_all()

    def snapshot(self) -> list[RunnerEvent]:
        with self._condition:
            return list(self.events)

    def of_type(self, kind: type) -> list:
        return [event for event in self.snapshot() if isinstance(event, kind)]

    def outputs(self) -> list[OutputEvent]:
        return self.of_type(OutputEvent)

    def text(self) -> str:
        return "".join(event.text for event in self.outputs())

    def wait_for(self, predicate: Callable[[list[RunnerEvent]], bool], timeout: float = 10.0) -> bool:
        with self._condition:
            return self._condition.wait_for(lambda: predicate(self.events), timeout=timeout)

    def wait_for_exit(self, timeout: float = 10.0) -> Exited:
        assert self.wait_for(lambda events: any(isinstance(event, Exited) for event in events), timeout)
        return self.of_type(Exited)[0]


@pytest.fixture
def recorder() -> EventRecorder:
    return EventRecorder()
