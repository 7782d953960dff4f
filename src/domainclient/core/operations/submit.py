"""
SubmitOperation - A changeset submission.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from ..domain.changeset import ChangeSet, ChangeSetEntry
from ..domain.entities import Entity
from ..exceptions import SubmitOperationError
from .base import OperationBase, OperationHooks, classify_operation_error


class SubmitOperation(OperationBase):
    """
    A submit in progress or completed.

    Per-entity failures are exposed through ``entities_in_error`` whatever
    the outcome, so callers can handle partial failures entity by entity.
    """

    def __init__(
        self,
        change_set: ChangeSet,
        callback: Callable[[SubmitOperation], None] | None = None,
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
        self._change_set = change_set

    @property
    def change_set(self) -> ChangeSet:
        return self._change_set

    @property
    def entities_in_error(self) -> list[Entity]:
        """Changeset members that carry a conflict or validation errors."""
        return self._get_cached(
            "entities_in_error", lambda: self._change_set.entities_in_error
        )

    @property
    def entries_in_error(self) -> list[ChangeSetEntry]:
        """Returned entries that carry a conflict or validation errors."""
        if isinstance(self.error, SubmitOperationError):
            return list(self.error.entries_in_error)
        return []

    def _classify_error(self, error: BaseException) -> BaseException:
        return classify_operation_error(
            error,
            SubmitOperationError,
            "Submit operation failed",
            change_set=self._change_set,
            entities_in_error=self._change_set.entities_in_error,
        )
