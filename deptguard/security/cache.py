"""
Department-scoped cache for composed menu records.

Entries never expire on their own. Every overlay write must call
invalidate(department_id) so the very next read recomposes.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Generic, Hashable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class DepartmentCache(Generic[T]):
    """
    Thread-safe map of (department_id, variant) -> value.

    get_or_load() runs the loader outside the lock; a generation counter makes
    sure a value computed before an invalidate() is not stored after it.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._data: dict[tuple[int, Hashable], T] = {}
        self._generation: dict[int, int] = {}
        self._epoch = 0

    def _stamp(self, department_id: int) -> tuple[int, int]:
        return self._epoch, self._generation.get(department_id, 0)

    def get_or_load(self, department_id: int, variant: Hashable, loader: Callable[[], T]) -> T:
        key = (department_id, variant)
        with self._lock:
            if key in self._data:
                return self._data[key]
            stamp = self._stamp(department_id)

        value = loader()

        with self._lock:
            if self._stamp(department_id) == stamp:
                self._data[key] = value
            else:
                logger.debug("Discarding stale cache fill department_id=%s variant=%s", department_id, variant)
        return value

    def invalidate(self, department_id: int) -> None:
        with self._lock:
            self._generation[department_id] = self._generation.get(department_id, 0) + 1
            for key in [k for k in self._data if k[0] == department_id]:
                del self._data[key]
        logger.debug("Cache invalidated department_id=%s", department_id)

    def clear(self) -> None:
        with self._lock:
            self._epoch += 1
            self._data.clear()

    def __contains__(self, key: tuple[int, Hashable]) -> bool:
        with self._lock:
            return key in self._data
