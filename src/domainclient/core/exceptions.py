"""
Exceptions - Error hierarchy for the domain client runtime.

All errors raised by the runtime derive from DomainClientError. The
hierarchy mirrors the ways an operation can go wrong:

- InvalidOperationError: the caller broke a usage contract (double
  completion, cancelling a non-cancellable operation, empty changeset).
  Raised synchronously, never stored on an operation.
- CorrelationError: the transport returned a changeset entry the client
  never submitted. Fatal for the submission.
- DomainException: a business error produced by the remote side. Passed
  through unchanged.
- DomainOperationError: a load/invoke/submit failed. Carries an
  OperationErrorStatus (validation failed, conflicts, server error, ...).
- TransportError: infrastructure failure inside a transport adapter.
- ConfigError: configuration could not be loaded or validated.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from .domain.enums import OperationErrorStatus


if TYPE_CHECKING:
    from .domain.changeset import ChangeSet, ChangeSetEntry
    from .domain.entities import Entity, ValidationResult


class DomainClientError(Exception):
    """Base exception for all domain client errors."""

    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(message)
        self.message = message
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        if self.cause is not None:
            return f"{self.message} (caused by {type(self.cause).__name__}: {self.cause})"
        return self.message


# -------------------------------------------------------------------------
# Invalid usage
# -------------------------------------------------------------------------


class InvalidOperationError(DomainClientError):
    """A usage contract was violated by the caller."""


class OperationAlreadyCompletedError(InvalidOperationError):
    """Completion or cancellation was requested on a completed operation."""

    def __init__(self, message: str = "The operation has already completed."):
        super().__init__(message)


class CancellationNotSupportedError(InvalidOperationError):
    """Cancellation was requested on an operation that does not support it."""

    def __init__(self, message: str = "This operation does not support cancellation."):
        super().__init__(message)


class EmptyChangeSetError(InvalidOperationError):
    """A submit was requested for a changeset with no entries."""

    def __init__(self, message: str = "The changeset is empty."):
        super().__init__(message)


class SubmitInProgressError(InvalidOperationError):
    """A submit was requested while another submit is still pending."""

    def __init__(self, message: str = "A submit operation is already in progress."):
        super().__init__(message)


class EntityStateError(InvalidOperationError):
    """An entity or tracked set was asked for an illegal state transition."""


# -------------------------------------------------------------------------
# Protocol violations
# -------------------------------------------------------------------------


class CorrelationError(DomainClientError):
    """A returned changeset entry could not be matched to a submitted entity."""

    def __init__(self, message: str, correlation_id: int | None = None):
        super().__init__(message)
        self.correlation_id = correlation_id


# -------------------------------------------------------------------------
# Remote and operation errors
# -------------------------------------------------------------------------


class DomainException(DomainClientError):
    """Business error raised by the remote service."""

    def __init__(
        self,
        message: str,
        error_code: int = 0,
        stack_trace: str | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message, cause=cause)
        self.error_code = error_code
        self.stack_trace = stack_trace


class DomainOperationError(DomainClientError):
    """
    A domain operation completed with an error.

    Attributes:
        status: Classification of the failure
        validation_errors: Structured validation results, if any
        error_code: Custom error code reported by the service
    """

    def __init__(
        self,
        message: str,
        status: OperationErrorStatus = OperationErrorStatus.SERVER_ERROR,
        validation_errors: list[ValidationResult] | None = None,
        error_code: int = 0,
        stack_trace: str | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message, cause=cause)
        self.status = status
        self.validation_errors = list(validation_errors or [])
        self.error_code = error_code
        self.stack_trace = stack_trace


class LoadOperationError(DomainOperationError):
    """A load operation failed."""

    def __init__(self, message: str, query_name: str = "", **kwargs: Any):
        super().__init__(message, **kwargs)
        self.query_name = query_name


class InvokeOperationError(DomainOperationError):
    """An invoke operation failed."""

    def __init__(self, message: str, operation_name: str = "", **kwargs: Any):
        super().__init__(message, **kwargs)
        self.operation_name = operation_name


class SubmitOperationError(DomainOperationError):
    """
    A submit operation failed.

    Attributes:
        change_set: The changeset that was submitted
        entities_in_error: Client entities with a conflict or validation errors
        entries_in_error: Returned changeset entries with a conflict or validation errors
    """

    def __init__(
        self,
        message: str,
        change_set: ChangeSet | None = None,
        entities_in_error: list[Entity] | None = None,
        entries_in_error: list[ChangeSetEntry] | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.change_set = change_set
        self.entities_in_error = list(entities_in_error or [])
        self.entries_in_error = list(entries_in_error or [])


# -------------------------------------------------------------------------
# Infrastructure
# -------------------------------------------------------------------------


class TransportError(DomainClientError):
    """A transport adapter failed to reach or talk to the service."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message, cause=cause)
        self.status_code = status_code


class ConfigError(DomainClientError):
    """Configuration could not be loaded."""


class ConfigFileError(ConfigError):
    """A configuration file is missing or malformed."""

    def __init__(self, path: str, message: str, cause: BaseException | None = None):
        super().__init__(f"{path}: {message}", cause=cause)
        self.path = path


class ConfigValidationError(ConfigError):
    """Configuration values failed validation."""

    def __init__(self, errors: list[str]):
        super().__init__("Invalid configuration: " + "; ".join(errors))
        self.errors = list(errors)
