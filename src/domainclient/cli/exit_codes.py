"""
Exit Codes - Process exit codes for the domainclient command line tool.
"""

from enum import IntEnum

from domainclient.core.domain.enums import OperationErrorStatus
from domainclient.core.exceptions import (
    ConfigError,
    DomainOperationError,
    TransportError,
)


class ExitCode(IntEnum):
    """
    Exit codes returned by the CLI.

    Scripts can rely on these values:
        0   success
        1   unexpected or server error
        2   configuration missing or invalid
        3   the service could not be reached
        4   validation failed (client side or reported by the service)
        5   concurrency conflicts
        130 interrupted with Ctrl+C
    """

    SUCCESS = 0
    ERROR = 1
    CONFIG_ERROR = 2
    CONNECTION_ERROR = 3
    VALIDATION_ERROR = 4
    CONFLICT_ERROR = 5
    SIGINT = 130

    @classmethod
    def from_exception(cls, exc: BaseException) -> "ExitCode":
        """Pick the exit code that best describes an exception."""
        if isinstance(exc, KeyboardInterrupt):
            return cls.SIGINT
        if isinstance(exc, ConfigError):
            return cls.CONFIG_ERROR
        if isinstance(exc, DomainOperationError):
            if exc.status is OperationErrorStatus.VALIDATION_FAILED:
                return cls.VALIDATION_ERROR
            if exc.status is OperationErrorStatus.CONFLICTS:
                return cls.CONFLICT_ERROR
            if isinstance(exc.cause, TransportError) and exc.cause.status_code is None:
                return cls.CONNECTION_ERROR
            return cls.ERROR
        if isinstance(exc, TransportError) and exc.status_code is None:
            return cls.CONNECTION_ERROR
        return cls.ERROR
