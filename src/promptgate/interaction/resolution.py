"""Single-assignment result slot with first-writer-wins semantics."""

from __future__ import annotations

import threading
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class ResolutionSlot(Generic[T]):
    """Accepts exactly one value; later `try_resolve` calls are no-ops."""

    def __init__(self) -> None:
        self._condition = threading.Condition(threading.Lock())
        self._resolved = False
        self._value: Optional[T] = None

    @property
    def resolved(self) -> bool:
        with self._condition:
            return self._resolved

    def try_resolve(self, value: T) -> bool:
        with self._condition:
            if self._resolved:
                return False
            self._value = value
            self._resolved = True
            self._condition.notify_all()
        return True

    def wait(self, timeout: Optional[float] = None) -> Optional[T]:
        """Block until resolved; returns None when `timeout` elapses first."""

        with self._condition:
            if not self._resolved:
                self._condition.wait_for(lambda: self._resolved, timeout=timeout)
            return self._value if self._resolved else None

    def peek(self) -> Optional[T]:
        with self._condition:
            return self._value
