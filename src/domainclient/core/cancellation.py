"""
Cancellation - Cooperative cancellation signalling for in-flight requests.

A CancellationTokenSource is owned by whoever may cancel (an operation);
the CancellationToken it hands out is passed to the transport, which
polls it or registers a callback.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from concurrent.futures import CancelledError


class CancellationToken:
    """Read-only view of a cancellation request."""

    def __init__(self, source: CancellationTokenSource | None = None):
        self._source = source

    @property
    def can_be_canceled(self) -> bool:
        return self._source is not None

    @property
    def is_cancellation_requested(self) -> bool:
        return self._source is not None and self._source.is_cancellation_requested

    def register(self, callback: Callable[[], None]) -> Callable[[], None]:
        """
        Run ``callback`` when cancellation is requested.

        Runs immediately if cancellation was already requested.

        Returns:
            A function that removes the registration
        """
        if self._source is None:
            return lambda: None
        return self._source._register(callback)

    def raise_if_cancellation_requested(self) -> None:
        if self.is_cancellation_requested:
            raise CancelledError()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until cancellation is requested or the timeout elapses."""
        if self._source is None:
            return False
        return self._source._event.wait(timeout)


class CancellationTokenSource:
    """Signals cancellation to the tokens it creates."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: list[Callable[[], None]] = []
        self.token = CancellationToken(self)

    @property
    def is_cancellation_requested(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        """Request cancellation. Idempotent."""
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            callbacks = list(self._callbacks)
            self._callbacks.clear()
        for callback in callbacks:
            callback()

    def _register(self, callback: Callable[[], None]) -> Callable[[], None]:
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)

                def unregister() -> None:
                    with self._lock:
                        if callback in self._callbacks:
                            self._callbacks.remove(callback)

                return unregister
        callback()
        return lambda: None
