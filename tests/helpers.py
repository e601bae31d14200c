"""Polling and recording helpers for watcher tests."""

import threading
import time
from typing import Callable, List

# Short enough to keep the suite fast, long enough to coalesce bursts
DEBOUNCE = 0.2
TIMEOUT = 5.0


def wait_for(condition: Callable[[], bool], timeout: float = TIMEOUT,
             interval: float = 0.05) -> bool:
    """Poll condition until it holds or the timeout expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if condition():
            return True
        time.sleep(interval)
    return condition()


class Recorder:
    """Thread-safe sink collecting emitted payloads."""

    def __init__(self):
        self._lock = threading.Lock()
        self._items: List = []
        self._times: List[float] = []

    def __call__(self, payload):
        with self._lock:
            self._items.append(payload)
            self._times.append(time.monotonic())

    @property
    def items(self) -> List:
        with self._lock:
            return list(self._items)

    @property
    def times(self) -> List[float]:
        with self._lock:
            return list(self._times)

    def __len__(self):
        return len(self.items)
