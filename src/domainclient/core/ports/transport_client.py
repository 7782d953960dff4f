"""
Transport Client Port - Abstract interface to a domain service.

The transport performs the actual query, submit and invoke calls. The
runtime depends only on this contract; adapters implement it for a
concrete channel (in-process handlers, JSON over HTTP, ...).

Implementations:
- LocalTransportClient: In-process handlers, optionally on a thread pool
- HttpTransportClient: JSON over HTTP via requests
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from concurrent.futures import Future
from dataclasses import dataclass, field
from typing import Any

from ..cancellation import CancellationToken
from ..correlation import ChangeSetCorrelator
from ..domain.changeset import ChangeSet, ChangeSetEntry
from ..domain.entities import Entity, ValidationResult
from ..exceptions import EmptyChangeSetError
from ..futures import continue_with


# -------------------------------------------------------------------------
# Requests and results
# -------------------------------------------------------------------------


@dataclass
class EntityQuery:
    """
    A named query exposed by a domain service.

    Attributes:
        query_name: Name of the query method on the service
        entity_type: Entity type the query returns
        parameters: Query method arguments
        has_side_effects: Whether the query must not be sent as a GET
        include_total_count: Ask the service for the unpaged count
        skip: Number of results to skip
        take: Maximum number of results to return
    """

    query_name: str
    entity_type: type[Entity] | None = None
    parameters: dict[str, Any] = field(default_factory=dict)
    has_side_effects: bool = False
    include_total_count: bool = False
    skip: int | None = None
    take: int | None = None

    def with_paging(self, skip: int | None = None, take: int | None = None) -> EntityQuery:
        return EntityQuery(
            query_name=self.query_name,
            entity_type=self.entity_type,
            parameters=dict(self.parameters),
            has_side_effects=self.has_side_effects,
            include_total_count=self.include_total_count,
            skip=skip,
            take=take,
        )


@dataclass
class QueryResult:
    """Entities returned by a query."""

    entities: list[Entity] = field(default_factory=list)
    included_entities: list[Entity] = field(default_factory=list)
    total_count: int = -1
    validation_errors: list[ValidationResult] = field(default_factory=list)

    @property
    def all_entities(self) -> list[Entity]:
        return [*self.entities, *self.included_entities]


@dataclass
class SubmitResult:
    """Changeset entries returned for a submission, correlated to client entities."""

    change_set: ChangeSet
    results: list[ChangeSetEntry] = field(default_factory=list)


@dataclass
class InvokeArgs:
    """Arguments for invoking a named service operation."""

    operation_name: str
    parameters: dict[str, Any] = field(default_factory=dict)
    has_side_effects: bool = True
    return_type: type | None = None


@dataclass
class InvokeResult:
    """Value returned by an invoke."""

    return_value: Any = None
    validation_errors: list[ValidationResult] = field(default_factory=list)


# -------------------------------------------------------------------------
# Port
# -------------------------------------------------------------------------


class TransportClientPort(ABC):
    """
    Abstract interface for transports to a domain service.

    Public methods return ``concurrent.futures.Future`` objects and never
    block. Subclasses implement the ``_*_core`` methods; the template
    methods here enforce preconditions and correlate submit results.
    """

    def __init__(self) -> None:
        self.logger = logging.getLogger("TransportClient")

    @property
    def name(self) -> str:
        return type(self).__name__

    @property
    def supports_cancellation(self) -> bool:
        """Whether the transport honours cancellation tokens."""
        return False

    def query(
        self, query: EntityQuery, token: CancellationToken | None = None
    ) -> Future[QueryResult]:
        """Execute a query."""
        return self._query_core(query, token or CancellationToken())

    def submit(
        self, change_set: ChangeSet, token: CancellationToken | None = None
    ) -> Future[SubmitResult]:
        """
        Submit a changeset.

        The returned entries are correlated to the submitted client entities
        before the future resolves.

        Raises:
            EmptyChangeSetError: If the changeset has no entries
        """
        if change_set is None or change_set.is_empty:
            raise EmptyChangeSetError()

        entries = change_set.get_change_set_entries()
        correlator = ChangeSetCorrelator(entries)

        def correlate(results: list[ChangeSetEntry]) -> SubmitResult:
            return SubmitResult(change_set, correlator.correlate(results))

        self.logger.debug(f"Submitting {len(entries)} changeset entries via {self.name}")
        return continue_with(
            self._submit_core(change_set, entries, token or CancellationToken()), correlate
        )

    def invoke(
        self, args: InvokeArgs, token: CancellationToken | None = None
    ) -> Future[InvokeResult]:
        """Invoke a named service operation."""
        return self._invoke_core(args, token or CancellationToken())

    # -------------------------------------------------------------------------
    # Transport-specific implementation
    # -------------------------------------------------------------------------

    @abstractmethod
    def _query_core(self, query: EntityQuery, token: CancellationToken) -> Future[QueryResult]:
        ...

    @abstractmethod
    def _submit_core(
        self,
        change_set: ChangeSet,
        entries: list[ChangeSetEntry],
        token: CancellationToken,
    ) -> Future[list[ChangeSetEntry]]:
        """
        Send the entries and return the entries reported back by the service.

        Returned entries must keep the correlation ids they were sent with.
        """
        ...

    @abstractmethod
    def _invoke_core(self, args: InvokeArgs, token: CancellationToken) -> Future[InvokeResult]:
        ...
