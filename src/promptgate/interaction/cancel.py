"""Cooperative cancellation tokens and deadline-bounded scopes."""

from __future__ import annotations

import threading
from enum import Enum
from typing import Callable, Dict, List, Optional

from promptgate.interaction.errors import InteractionCancelled

CancelCallback = Callable[[], None]


class CancelReason(str, Enum):
    CALLER = "caller"
    DEADLINE = "deadline"
    CLOSED = "closed"


def _noop() -> None:
    return


class CancelToken:
    """Thread-safe cancellation signal; the first `cancel()` fixes the reason."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._event = threading.Event()
        self._reason: Optional[CancelReason] = None
        self._callbacks: Dict[int, CancelCallback] = {}
        self._next_handle = 0

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Optional[CancelReason]:
        with self._lock:
            return self._reason

    @property
    def timed_out(self) -> bool:
        return self.reason == CancelReason.DEADLINE

    def cancel(self, reason: CancelReason = CancelReason.CALLER) -> bool:
        with self._lock:
            if self._reason is not None:
                return False
            self._reason = CancelReason(reason)
            self._event.set()
            callbacks: List[CancelCallback] = list(self._callbacks.values())
            self._callbacks.clear()

        for callback in callbacks:
            try:
                callback()
            except Exception:
                # Callbacks are isolated from the cancelling thread.
                continue
        return True

    def register(self, callback: CancelCallback) -> CancelCallback:
        """Run `callback` once on cancellation; returns an unregister function.

        A token that is already cancelled runs the callback synchronously.
        """

        with self._lock:
            if self._reason is None:
                handle = self._next_handle
                self._next_handle += 1
                self._callbacks[handle] = callback

                def unregister() -> None:
                    with self._lock:
                        self._callbacks.pop(handle, None)

                return unregister

        callback()
        return _noop

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._event.wait(timeout)

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise InteractionCancelled(timed_out=self.timed_out)


class CancelScope:
    """Child token that fires on the caller's token or on a deadline, whichever is first.

    Whether the caller had already cancelled is captured on entry, before the
    deadline timer exists, so the reason never depends on a timing race.
    """

    def __init__(self, parent: Optional[CancelToken] = None, timeout: Optional[float] = None) -> None:
        self.token = CancelToken()
        self._parent = parent
        self._timeout = timeout if timeout and timeout > 0 else None
        self._timer: Optional[threading.Timer] = None
        self._unregister_parent: CancelCallback = _noop
        self.caller_cancelled_on_entry = False

    def __enter__(self) -> "CancelScope":
        if self._parent is not None:
            self.caller_cancelled_on_entry = self._parent.cancelled
            self._unregister_parent = self._parent.register(
                lambda: self.token.cancel(CancelReason.CALLER)
            )
        if self._timeout is not None and not self.token.cancelled:
            self._timer = threading.Timer(
                self._timeout,
                lambda: self.token.cancel(CancelReason.DEADLINE),
            )
            self._timer.daemon = True
            self._timer.name = "promptgate-deadline"
            self._timer.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._timer is not None:
            self._timer.cancel()
        self._unregister_parent()

    @property
    def timed_out(self) -> bool:
        return not self.caller_cancelled_on_entry and self.token.reason == CancelReason.DEADLINE

    @property
    def cancelled(self) -> bool:
        return self.token.cancelled
