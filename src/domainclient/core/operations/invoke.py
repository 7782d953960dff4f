"""
InvokeOperation - A call to a named service operation.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from ..domain.entities import ValidationResult
from ..exceptions import DomainOperationError, InvokeOperationError
from .base import OperationBase, OperationHooks, classify_operation_error


class InvokeOperation(OperationBase):
    """An invoke in progress or completed. The result is the returned value."""

    derived_properties = ("value",)

    def __init__(
        self,
        operation_name: str,
        parameters: dict[str, Any] | None = None,
        callback: Callable[[InvokeOperation], None] | None = None,
        user_state: Any = None,
        *,
        on_cancel: Callable[[], None] | None = None,
        supports_cancellation: bool = False,
    ):
        super().__init__(
            user_state,
            callback=callback,
            hooks=OperationHooks(on_cancel=on_cancel, classify_error=self._classify_error),
            supports_cancellation=supports_cancellation,
        )
        self._operation_name = operation_name
        self._parameters = dict(parameters or {})

    @property
    def operation_name(self) -> str:
        return self._operation_name

    @property
    def parameters(self) -> dict[str, Any]:
        return dict(self._parameters)

    @property
    def value(self) -> Any:
        return self.result

    @property
    def validation_errors(self) -> list[ValidationResult]:
        if isinstance(self.error, DomainOperationError):
            return list(self.error.validation_errors)
        return []

    def _classify_error(self, error: BaseException) -> BaseException:
        return classify_operation_error(
            error,
            InvokeOperationError,
            f"Invoke operation '{self._operation_name}' failed",
            operation_name=self._operation_name,
        )
