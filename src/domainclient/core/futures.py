"""
Futures - Continuation helpers for concurrent.futures.Future.

Transports return plain Futures; these helpers chain result shaping onto
them without blocking, propagating cancellation in both directions.
"""

from __future__ import annotations

from collections.abc import Callable
from concurrent.futures import Future
from typing import Any, TypeVar


T = TypeVar("T")
R = TypeVar("R")


def completed_future(value: T) -> Future[T]:
    """Create a future that already holds ``value``."""
    future: Future[T] = Future()
    future.set_result(value)
    return future


def failed_future(error: BaseException) -> Future[Any]:
    """Create a future that already holds ``error``."""
    future: Future[Any] = Future()
    future.set_exception(error)
    return future


def continue_with(source: Future[T], fn: Callable[[T], R]) -> Future[R]:
    """
    Chain ``fn`` onto the result of ``source``.

    The returned future resolves with ``fn(result)``, with the exception
    raised by ``source`` or ``fn``, or is cancelled when ``source`` is.
    Cancelling the returned future cancels ``source``.
    """
    target: Future[R] = Future()

    def on_source_done(done: Future[T]) -> None:
        if done.cancelled():
            target.cancel()
            return
        if not target.set_running_or_notify_cancel():
            return
        error = done.exception()
        if error is not None:
            target.set_exception(error)
            return
        try:
            target.set_result(fn(done.result()))
        except Exception as exc:
            target.set_exception(exc)

    def on_target_done(done: Future[R]) -> None:
        if done.cancelled():
            source.cancel()

    target.add_done_callback(on_target_done)
    source.add_done_callback(on_source_done)
    return target
