"""Shared fixtures: in-memory change handles and a callback recorder."""

import threading
import time
from pathlib import Path
from typing import Callable, Dict, List, Optional

import pytest

from treewatch.exceptions import HandleClosedError
from treewatch.handles.base import ChangeHandle, HandleFactory
from treewatch.models import ChangeEvent, ChangeKind


class FakeHandle(ChangeHandle):
    """In-memory change handle driven by the test."""

    def __init__(self, path: Path):
        self.path = path
        self.gone = False
        self.close_calls = 0
        self.re_arm_calls = 0
        self._events: List[ChangeEvent] = []
        self._closed = False
        self._lock = threading.Lock()

    def emit(self, kind: ChangeKind, name: Optional[str] = None) -> None:
        with self._lock:
            self._events.append(ChangeEvent(kind, name))

    def poll(self):
        with self._lock:
            if self._closed:
                raise HandleClosedError(f"closed: {self.path}")
            if not self._events and not self.gone:
                return None
            events, self._events = self._events, []
            return events

    def re_arm(self) -> bool:
        self.re_arm_calls += 1
        return not (self.gone or self._closed)

    def close(self) -> None:
        with self._lock:
            self.close_calls += 1
            self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed


class FakeHandleFactory(HandleFactory):
    """Opens FakeHandles for existing directories."""

    def __init__(self, failing=()):
        self.failing = {Path(p).absolute() for p in failing}
        self.opened: List[FakeHandle] = []
        self.shutdown_calls = 0

    def open(self, path: Path) -> FakeHandle:
        path = Path(path)
        if path in self.failing:
            raise PermissionError(f"Permission denied: {path}")
        if not path.is_dir():
            raise NotADirectoryError(f"Not a directory: {path}")
        handle = FakeHandle(path)
        self.opened.append(handle)
        return handle

    def shutdown(self) -> None:
        self.shutdown_calls += 1

    def by_path(self) -> Dict[Path, FakeHandle]:
        return {h.path: h for h in self.opened}


class Recorder:
    """Thread-safe recorder for the three watcher callbacks."""

    def __init__(self):
        self.created: List[Path] = []
        self.modified: List[Path] = []
        self.deleted: List[Path] = []
        self._lock = threading.Lock()

    def _append(self, target: List[Path]) -> Callable[[Path], None]:
        def callback(path: Path) -> None:
            with self._lock:
                target.append(path)
        return callback

    @property
    def callbacks(self):
        return (
            self._append(self.created),
            self._append(self.modified),
            self._append(self.deleted),
        )

    def count_created(self, path: Path) -> int:
        with self._lock:
            return sum(1 for p in self.created if p == path)

    def count_deleted(self, path: Path) -> int:
        with self._lock:
            return sum(1 for p in self.deleted if p == path)


def wait_until(predicate: Callable[[], bool], timeout: float = 3.0, interval: float = 0.02) -> bool:
    """Poll predicate until it is true or timeout expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


@pytest.fixture
def fake_factory():
    return FakeHandleFactory()


@pytest.fixture
def recorder():
    return Recorder()
