from __future__ import annotations

from pathlib import Path
from typing import Any, Callable

import pytest

from pulselog.notify import EventBus
from pulselog.store import JsonRecordStore


class FakeScheduler:
    """Tk-style after()/after_cancel() driven by a manual clock."""

    def __init__(self) -> None:
        self.now_ms = 0
        self._seq = 0
        self._jobs: dict[str, tuple[int, int, Callable[[], None]]] = {}

    def after(self, ms: int, func: Callable[[], None]) -> Any:
        self._seq += 1
        job = f"after#{self._seq}"
        self._jobs[job] = (self.now_ms + ms, self._seq, func)
        return job

    def after_cancel(self, job: Any) -> None:
        self._jobs.pop(job, None)

    def advance(self, ms: int = 0) -> None:
        target = self.now_ms + ms
        while True:
            due = sorted((when, seq, job) for job, (when, seq, _fn) in self._jobs.items() if when <= target)
            if not due:
                break
            when, _seq, job = due[0]
            _, _, fn = self._jobs.pop(job)
            self.now_ms = when
            fn()
        self.now_ms = target

    @property
    def job_count(self) -> int:
        return len(self._jobs)


@pytest.fixture()
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture()
def bus() -> EventBus:
    return EventBus()


@pytest.fixture()
def data_path(tmp_path: Path) -> Path:
    return tmp_path / "data.json"


@pytest.fixture()
def store(data_path: Path, bus: EventBus) -> JsonRecordStore:
    return JsonRecordStore(data_path, bus=bus)
