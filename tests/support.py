"""
Test support - Sample entity types and a manually driven transport.

Imported by test modules directly (``from support import Customer``);
fixtures built on these live in conftest.py.
"""

from __future__ import annotations

from concurrent.futures import Future
from dataclasses import dataclass, field

from domainclient.core.cancellation import CancellationToken
from domainclient.core.domain.changeset import ChangeSet, ChangeSetEntry
from domainclient.core.domain.entities import Entity, ValidationResult
from domainclient.core.ports.transport_client import (
    EntityQuery,
    InvokeArgs,
    InvokeResult,
    QueryResult,
    TransportClientPort,
)


# =============================================================================
# Sample entity types
# =============================================================================


@dataclass(eq=False)
class Customer(Entity):
    """Customer keyed by id. A name is required."""

    key_members = ("id",)

    id: int = 0
    name: str = ""
    city: str = ""

    def validate(self) -> list[ValidationResult]:
        if not self.name:
            return [ValidationResult("Name is required", ("name",))]
        return []


@dataclass(eq=False)
class Order(Entity):
    """Order keyed by id."""

    key_members = ("id",)

    id: int = 0
    customer_id: int = 0
    total: float = 0.0
    lines: list[str] = field(default_factory=list)


@dataclass(eq=False)
class Note(Entity):
    """Entity type without key members; every instance is distinct."""

    text: str = ""


# =============================================================================
# Manual transport
# =============================================================================


class ManualTransportClient(TransportClientPort):
    """
    Transport whose futures are resolved by the test.

    Every call records its request and returns a pending Future, so tests
    control exactly when and how an operation completes.
    """

    def __init__(self, cancellable: bool = True):
        super().__init__()
        self.cancellable = cancellable
        self.queries: list[tuple[EntityQuery, CancellationToken, Future]] = []
        self.submits: list[tuple[ChangeSet, list[ChangeSetEntry], CancellationToken, Future]] = []
        self.invokes: list[tuple[InvokeArgs, CancellationToken, Future]] = []

    @property
    def supports_cancellation(self) -> bool:
        return self.cancellable

    def _query_core(self, query, token):
        future: Future = Future()
        self.queries.append((query, token, future))
        return future

    def _submit_core(self, change_set, entries, token):
        future: Future = Future()
        self.submits.append((change_set, entries, token, future))
        return future

    def _invoke_core(self, args, token):
        future: Future = Future()
        self.invokes.append((args, token, future))
        return future

    def last_query_future(self) -> Future:
        return self.queries[-1][2]

    def last_submit_future(self) -> Future:
        return self.submits[-1][3]

    def last_invoke_future(self) -> Future:
        return self.invokes[-1][2]

    def last_submit_entries(self) -> list[ChangeSetEntry]:
        return self.submits[-1][1]

    def echo_submit(self) -> None:
        """Answer the last submit by echoing every entry back without errors."""
        entries = self.last_submit_entries()
        self.last_submit_future().set_result(
            [ChangeSetEntry(id=e.id, operation=e.operation, entity=e.entity) for e in entries]
        )


def query_result(*entities: Entity, total_count: int = -1) -> QueryResult:
    """Build a QueryResult for a manual transport future."""
    return QueryResult(entities=list(entities), total_count=total_count)


def invoke_result(value=None) -> InvokeResult:
    return InvokeResult(return_value=value)
