"""
OperationBase - State machine shared by load, invoke and submit operations.

An operation is created when a request is issued and completes exactly
once, in one of three ways: with a result, with an error, or cancelled.
Whoever gets there first wins. The terminal state is claimed under a
lock, so a transport completion racing a ``cancel()`` call resolves
deterministically; the loser is either rejected (public calls) or
dropped (transport completions).

After the terminal state is claimed, and outside the lock:

1. derived-property caches are cleared and the ``on_complete`` hook
   reshapes the outcome (e.g. loading entities into collections),
2. the caller's callback runs, then any completed handlers,
3. property-changed notifications are raised,
4. waiters blocked in ``wait()`` are released.

Operation kinds customize steps 1 and cancellation through an
OperationHooks strategy instead of overriding methods.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent.futures import CancelledError, Future
from dataclasses import dataclass
from typing import Any

from ..domain.events import EventHook, PropertyChangedEvent
from ..domain.enums import OperationErrorStatus
from ..exceptions import (
    CancellationNotSupportedError,
    CorrelationError,
    DomainException,
    DomainOperationError,
    InvalidOperationError,
    OperationAlreadyCompletedError,
    TransportError,
)


logger = logging.getLogger("OperationBase")


@dataclass
class OperationHooks:
    """
    Operation-specific behavior supplied at construction.

    Attributes:
        on_complete: Reshapes the outcome once per completion. Receives the
            result (None for errors and cancellation). Runs before any
            callback or notification.
        on_cancel: Asks the underlying request to stop. Must be idempotent
            and non-blocking.
        classify_error: Maps a raw error to the error stored on the operation.
    """

    on_complete: Callable[[Any], None] | None = None
    on_cancel: Callable[[], None] | None = None
    classify_error: Callable[[BaseException], BaseException] | None = None


class OperationBase:
    """
    Base class for asynchronous domain operations.

    Attributes:
        property_changed: Raised for each property that changed on completion
    """

    # Extra property names reported on completion, per operation kind
    derived_properties: tuple[str, ...] = ()
    log_unhandled_errors = True

    def __init__(
        self,
        user_state: Any = None,
        *,
        callback: Callable[[Any], None] | None = None,
        hooks: OperationHooks | None = None,
        supports_cancellation: bool = False,
    ):
        self._user_state = user_state
        self._callback = callback
        self._hooks = hooks or OperationHooks()
        self._supports_cancellation = supports_cancellation

        self._lock = threading.RLock()
        self._done = threading.Event()
        self._is_complete = False
        self._is_canceled = False
        self._result: Any = None
        self._error: BaseException | None = None
        self._is_error_handled = False
        self._notified = False
        self._completed_handlers: list[Callable[[Any], None]] = []
        self._cache: dict[str, Any] = {}

        self.property_changed: EventHook[PropertyChangedEvent] = EventHook()

    def __repr__(self) -> str:
        if not self._is_complete:
            state = "pending"
        elif self._is_canceled:
            state = "canceled"
        elif self._error is not None:
            state = f"error={type(self._error).__name__}"
        else:
            state = "succeeded"
        return f"<{type(self).__name__} {state}>"

    # -------------------------------------------------------------------------
    # State accessors
    # -------------------------------------------------------------------------

    @property
    def user_state(self) -> Any:
        return self._user_state

    @property
    def is_complete(self) -> bool:
        return self._is_complete

    @property
    def is_canceled(self) -> bool:
        return self._is_canceled

    @property
    def result(self) -> Any:
        return self._result

    @property
    def error(self) -> BaseException | None:
        return self._error

    @property
    def has_error(self) -> bool:
        return self._error is not None

    @property
    def supports_cancellation(self) -> bool:
        return self._supports_cancellation

    @property
    def can_cancel(self) -> bool:
        """Whether ``cancel()`` would currently be accepted."""
        return self._supports_cancellation and not self._is_complete

    @property
    def is_error_handled(self) -> bool:
        return self._is_error_handled

    def mark_error_as_handled(self) -> None:
        """Signal that the caller has dealt with the error."""
        if self._error is None:
            raise InvalidOperationError("The operation has no error to mark as handled.")
        if not self._is_error_handled:
            self._is_error_handled = True
            self._raise_property_changed("is_error_handled")

    # -------------------------------------------------------------------------
    # Completion
    # -------------------------------------------------------------------------

    def complete(self, result: Any = None) -> None:
        """
        Complete the operation successfully.

        Raises:
            OperationAlreadyCompletedError: If the operation already completed
        """
        if not self._claim(result=result):
            raise OperationAlreadyCompletedError()
        self._finish()

    def set_error(self, error: BaseException) -> None:
        """
        Complete the operation with an error.

        The error is classified (and possibly wrapped) before it is stored.

        Raises:
            OperationAlreadyCompletedError: If the operation already completed
        """
        if not self._claim(error=self._classify(error)):
            raise OperationAlreadyCompletedError()
        self._finish()

    def cancel(self) -> None:
        """
        Cancel the operation.

        Cancellation is terminal immediately: a transport result arriving
        afterwards is dropped.

        Raises:
            CancellationNotSupportedError: If the operation cannot be cancelled
            OperationAlreadyCompletedError: If the operation already completed
        """
        if not self._supports_cancellation:
            raise CancellationNotSupportedError()
        if not self._claim(canceled=True):
            raise OperationAlreadyCompletedError()
        try:
            if self._hooks.on_cancel is not None:
                self._hooks.on_cancel()
        finally:
            self._finish()

    def _claim(
        self,
        result: Any = None,
        error: BaseException | None = None,
        canceled: bool = False,
    ) -> bool:
        with self._lock:
            if self._is_complete:
                return False
            self._is_complete = True
            self._is_canceled = canceled
            self._result = None if (canceled or error is not None) else result
            self._error = error
            return True

    def _classify(self, error: BaseException) -> BaseException:
        if self._hooks.classify_error is None:
            return error
        return self._hooks.classify_error(error)

    def _on_transport_done(self, future: Future[Any]) -> None:
        """
        Drive completion from a transport future.

        Late completions (after a cancel or an explicit completion) are
        dropped.
        """
        if future.cancelled():
            claimed = self._claim(canceled=True)
        else:
            error = future.exception()
            if isinstance(error, CancelledError):
                claimed = self._claim(canceled=True)
            elif error is not None:
                claimed = self._claim(error=self._classify(error))
            else:
                claimed = self._claim(result=future.result())

        if not claimed:
            logger.debug(f"Dropping late transport completion for {self!r}")
            return
        self._finish()

    def _finish(self) -> None:
        errors: list[Exception] = []
        try:
            self._cache.clear()
            if self._hooks.on_complete is not None:
                self._hooks.on_complete(self._result)

            for handler in self._take_handlers():
                try:
                    handler(self)
                except Exception as exc:
                    errors.append(exc)

            self._raise_completion_property_changes()

            if self.log_unhandled_errors and self._error is not None and not self._is_error_handled:
                logger.warning(
                    f"{type(self).__name__} completed with an unhandled error: {self._error}"
                )
        finally:
            self._done.set()

        if len(errors) == 1:
            raise errors[0]
        if errors:
            raise ExceptionGroup(f"{type(self).__name__} completion handlers failed", errors)

    def _take_handlers(self) -> list[Callable[[Any], None]]:
        with self._lock:
            handlers = [self._callback] if self._callback is not None else []
            handlers.extend(self._completed_handlers)
            self._completed_handlers.clear()
            self._notified = True
        return handlers

    def _raise_completion_property_changes(self) -> None:
        self._raise_property_changed("is_complete")
        if self._is_canceled:
            self._raise_property_changed("is_canceled")
        if self._error is not None:
            self._raise_property_changed("error")
            self._raise_property_changed("has_error")
        if self._supports_cancellation:
            self._raise_property_changed("can_cancel")
        if self._error is None and not self._is_canceled:
            for name in self.derived_properties:
                self._raise_property_changed(name)

    # -------------------------------------------------------------------------
    # Observers
    # -------------------------------------------------------------------------

    def on_completed(self, handler: Callable[[Any], None]) -> None:
        """
        Register a handler invoked with this operation once it completes.

        If the operation already completed the handler runs immediately.
        """
        with self._lock:
            if not self._notified:
                self._completed_handlers.append(handler)
                return
        handler(self)

    def wait(self, timeout: float | None = None) -> bool:
        """
        Block until the operation has completed and notified its observers.

        Returns:
            True if the operation completed within ``timeout``
        """
        return self._done.wait(timeout)

    def _raise_property_changed(self, name: str) -> None:
        self.property_changed.fire(PropertyChangedEvent(self, name))

    def _get_cached(self, name: str, factory: Callable[[], Any]) -> Any:
        with self._lock:
            if name not in self._cache:
                self._cache[name] = factory()
            return self._cache[name]


def classify_operation_error(
    error: BaseException,
    error_type: type[DomainOperationError],
    message: str,
    **context: Any,
) -> BaseException:
    """
    Turn a raw error into the error stored on an operation.

    Errors of ``error_type``, business errors raised by the service, usage
    errors and correlation failures are kept as they are. Other operation
    errors are re-typed keeping their status and validation results.
    Anything else is wrapped as a server error with ``message`` and the
    original error as cause.
    """
    if isinstance(error, (error_type, DomainException, InvalidOperationError, CorrelationError)):
        return error

    if isinstance(error, DomainOperationError):
        return error_type(
            f"{message}: {error.message}",
            status=error.status,
            validation_errors=error.validation_errors,
            error_code=error.error_code,
            stack_trace=error.stack_trace,
            cause=error,
            **context,
        )

    status = OperationErrorStatus.SERVER_ERROR
    if isinstance(error, TransportError) and error.status_code is not None:
        status = OperationErrorStatus.from_http_status(error.status_code)
    detail = error.message if isinstance(error, TransportError) else str(error)
    return error_type(f"{message}: {detail}", status=status, cause=error, **context)
