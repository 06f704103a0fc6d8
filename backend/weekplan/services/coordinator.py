from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager

from weekplan.core.exceptions import ConcurrencyTimeoutError

logger = logging.getLogger(__name__)


def class_key(class_id: str) -> str:
    return f"class:{class_id}"


def teacher_key(teacher_id: str) -> str:
    return f"teacher:{teacher_id}"


class SchedulingCoordinator:
    """Per-class and per-teacher lock table shared by every mutating operation.

    Keys are always taken in sorted order so two operations that need
    overlapping key sets cannot deadlock. Each acquisition waits at most
    ``timeout_seconds`` and then fails with a retryable error.
    """

    def __init__(self, timeout_seconds: float = 5.0) -> None:
        self.timeout_seconds = timeout_seconds
        self._locks: dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def _lock_for(self, key: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    def is_held(self, key: str) -> bool:
        return self._lock_for(key).locked()

    @contextmanager
    def hold(self, *keys: str, timeout: float | None = None) -> Iterator[None]:
        wait = self.timeout_seconds if timeout is None else timeout
        acquired: list[threading.Lock] = []
        try:
            for key in sorted(set(keys)):
                lock = self._lock_for(key)
                if not lock.acquire(timeout=wait):
                    logger.warning("Lock %s not acquired within %.1fs", key, wait)
                    raise ConcurrencyTimeoutError(key, wait)
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()
