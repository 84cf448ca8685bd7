from __future__ import annotations

import logging
from contextlib import contextmanager
from threading import Lock
from typing import Iterator

from academic_scheduler.core.exceptions import ConcurrencyError

logger = logging.getLogger(__name__)


class RunLockRegistry:
    """At most one generation run per academic period, process wide."""

    def __init__(self) -> None:
        self._active: set[int] = set()
        self._lock = Lock()

    def acquire(self, period_id: int) -> bool:
        with self._lock:
            if period_id in self._active:
                return False
            self._active.add(period_id)
            return True

    def release(self, period_id: int) -> None:
        with self._lock:
            self._active.discard(period_id)

    def is_locked(self, period_id: int) -> bool:
        with self._lock:
            return period_id in self._active

    def active_periods(self) -> list[int]:
        with self._lock:
            return sorted(self._active)

    def clear(self) -> None:
        with self._lock:
            self._active.clear()

    @contextmanager
    def hold(self, period_id: int) -> Iterator[None]:
        if not self.acquire(period_id):
            logger.warning("Rejected concurrent generation for period_id=%s", period_id)
            raise ConcurrencyError(period_id)
        try:
            yield
        finally:
            self.release(period_id)


_registry = RunLockRegistry()


def get_run_lock_registry() -> RunLockRegistry:
    return _registry
