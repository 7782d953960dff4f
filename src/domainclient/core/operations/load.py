"""
LoadOperation - A query issued against a domain service.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from ..collections.observable import ReadOnlyObservableCollection
from ..domain.entities import Entity, ValidationResult
from ..domain.enums import LoadBehavior
from ..exceptions import DomainOperationError, LoadOperationError
from .base import OperationBase, OperationHooks, classify_operation_error


if TYPE_CHECKING:
    from ..ports.transport_client import EntityQuery


@dataclass
class LoadResult:
    """
    Outcome of a load after merging into the tracked sets.

    Attributes:
        entities: Top-level entities returned by the query
        all_entities: Top-level plus included (associated) entities
        total_entity_count: Unpaged count, or -1 when not requested
    """

    entities: list[Entity] = field(default_factory=list)
    all_entities: list[Entity] = field(default_factory=list)
    total_entity_count: int = -1


class LoadOperation(OperationBase):
    """
    A load in progress or completed.

    ``entities`` and ``all_entities`` are created on first access and
    refreshed once when the operation completes, raising a single RESET
    notification each.
    """

    derived_properties = ("entities", "all_entities", "total_entity_count")

    def __init__(
        self,
        query: EntityQuery,
        load_behavior: LoadBehavior = LoadBehavior.KEEP_CURRENT,
        callback: Callable[[LoadOperation], None] | None = None,
        user_state: Any = None,
        *,
        on_cancel: Callable[[], None] | None = None,
        supports_cancellation: bool = False,
    ):
        super().__init__(
            user_state,
            callback=callback,
            hooks=OperationHooks(
                on_complete=self._refresh_entities,
                on_cancel=on_cancel,
                classify_error=self._classify_error,
            ),
            supports_cancellation=supports_cancellation,
        )
        self._query = query
        self._load_behavior = load_behavior
        self._entities: ReadOnlyObservableCollection[Entity] | None = None
        self._all_entities: ReadOnlyObservableCollection[Entity] | None = None

    @property
    def query(self) -> EntityQuery:
        return self._query

    @property
    def load_behavior(self) -> LoadBehavior:
        return self._load_behavior

    @property
    def entities(self) -> ReadOnlyObservableCollection[Entity]:
        with self._lock:
            if self._entities is None:
                self._entities = ReadOnlyObservableCollection(self._loaded().entities)
            return self._entities

    @property
    def all_entities(self) -> ReadOnlyObservableCollection[Entity]:
        with self._lock:
            if self._all_entities is None:
                self._all_entities = ReadOnlyObservableCollection(self._loaded().all_entities)
            return self._all_entities

    @property
    def total_entity_count(self) -> int:
        return self._loaded().total_entity_count

    @property
    def validation_errors(self) -> list[ValidationResult]:
        return self._get_cached("validation_errors", self._collect_validation_errors)

    def _loaded(self) -> LoadResult:
        result = self.result
        return result if isinstance(result, LoadResult) else LoadResult()

    def _refresh_entities(self, result: Any) -> None:
        loaded = result if isinstance(result, LoadResult) else LoadResult()
        if self._entities is not None:
            self._entities._reset(loaded.entities)
        if self._all_entities is not None:
            self._all_entities._reset(loaded.all_entities)

    def _collect_validation_errors(self) -> list[ValidationResult]:
        if isinstance(self.error, DomainOperationError):
            return list(self.error.validation_errors)
        return []

    def _classify_error(self, error: BaseException) -> BaseException:
        name = self._query.query_name
        return classify_operation_error(
            error,
            LoadOperationError,
            f"Load operation failed for query '{name}'",
            query_name=name,
        )
