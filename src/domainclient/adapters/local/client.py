"""
Local Transport - Serve queries, submits and invokes from in-process handlers.

Useful for tests, demos and for hosting a domain service inside the same
process. Handlers run on a thread pool when one is configured, inline
otherwise.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from typing import Any

from ...core.cancellation import CancellationToken
from ...core.domain.changeset import ChangeSet, ChangeSetEntry
from ...core.domain.entities import Entity
from ...core.domain.enums import OperationErrorStatus
from ...core.exceptions import DomainOperationError
from ...core.futures import completed_future, failed_future
from ...core.ports.transport_client import (
    EntityQuery,
    InvokeArgs,
    InvokeResult,
    QueryResult,
    TransportClientPort,
)


QueryHandler = Callable[[EntityQuery], "QueryResult | Iterable[Entity]"]
InvokeHandler = Callable[..., Any]
SubmitHandler = Callable[[list[ChangeSetEntry]], "list[ChangeSetEntry] | None"]


class LocalTransportClient(TransportClientPort):
    """
    Transport backed by registered Python callables.

    Query handlers receive the EntityQuery and return a QueryResult or any
    iterable of entities. Invoke handlers receive the parameters as keyword
    arguments and return the value (or an InvokeResult). The submit handler
    receives the changeset entries and returns the entries to report back;
    returning None echoes every entry back without errors.
    """

    def __init__(
        self,
        max_workers: int | None = None,
        executor: Executor | None = None,
        supports_cancellation: bool = True,
    ):
        """
        Initialize the transport.

        Args:
            max_workers: Run handlers on a private thread pool of this size
            executor: Run handlers on this executor instead
            supports_cancellation: Whether cancellation tokens are honoured
        """
        super().__init__()
        self.logger = logging.getLogger("LocalTransportClient")
        self._owns_executor = executor is None and max_workers is not None
        self._executor = executor
        if self._owns_executor:
            self._executor = ThreadPoolExecutor(
                max_workers=max_workers, thread_name_prefix="domainclient-local"
            )
        self._supports_cancellation = supports_cancellation

        self._queries: dict[str, QueryHandler] = {}
        self._invokes: dict[str, InvokeHandler] = {}
        self._submit_handler: SubmitHandler | None = None

    @property
    def supports_cancellation(self) -> bool:
        return self._supports_cancellation

    # -------------------------------------------------------------------------
    # Registration
    # -------------------------------------------------------------------------

    def register_query(self, name: str, handler: QueryHandler) -> None:
        self._queries[name] = handler

    def register_invoke(self, name: str, handler: InvokeHandler) -> None:
        self._invokes[name] = handler

    def set_submit_handler(self, handler: SubmitHandler | None) -> None:
        self._submit_handler = handler

    # -------------------------------------------------------------------------
    # TransportClientPort
    # -------------------------------------------------------------------------

    def _query_core(self, query: EntityQuery, token: CancellationToken) -> Future[QueryResult]:
        def execute() -> QueryResult:
            handler = self._queries.get(query.query_name)
            if handler is None:
                raise DomainOperationError(
                    f"Query '{query.query_name}' does not exist.",
                    status=OperationErrorStatus.NOT_FOUND,
                )
            result = handler(query)
            if isinstance(result, QueryResult):
                return result
            entities = list(result)
            skip = query.skip or 0
            page = entities[skip : skip + query.take] if query.take is not None else entities[skip:]
            return QueryResult(
                entities=page,
                total_count=len(entities) if query.include_total_count else -1,
            )

        return self._run(execute, token)

    def _submit_core(
        self,
        change_set: ChangeSet,
        entries: list[ChangeSetEntry],
        token: CancellationToken,
    ) -> Future[list[ChangeSetEntry]]:
        def execute() -> list[ChangeSetEntry]:
            if self._submit_handler is None:
                return [self._echo(entry) for entry in entries]
            returned = self._submit_handler(entries)
            if returned is None:
                return [self._echo(entry) for entry in entries]
            return list(returned)

        return self._run(execute, token)

    def _invoke_core(self, args: InvokeArgs, token: CancellationToken) -> Future[InvokeResult]:
        def execute() -> InvokeResult:
            handler = self._invokes.get(args.operation_name)
            if handler is None:
                raise DomainOperationError(
                    f"Operation '{args.operation_name}' does not exist.",
                    status=OperationErrorStatus.NOT_FOUND,
                )
            value = handler(**args.parameters)
            if isinstance(value, InvokeResult):
                return value
            return InvokeResult(return_value=value)

        return self._run(execute, token)

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    def _run(self, fn: Callable[[], Any], token: CancellationToken) -> Future[Any]:
        def guarded() -> Any:
            if self._supports_cancellation:
                token.raise_if_cancellation_requested()
            return fn()

        if self._executor is not None:
            return self._executor.submit(guarded)

        try:
            return completed_future(guarded())
        except Exception as exc:
            return failed_future(exc)

    @staticmethod
    def _echo(entry: ChangeSetEntry) -> ChangeSetEntry:
        return ChangeSetEntry(id=entry.id, operation=entry.operation, entity=entry.entity)

    def close(self) -> None:
        if self._owns_executor and self._executor is not None:
            self._executor.shutdown(wait=True)
            self.logger.debug("Shut down handler pool")

    def __enter__(self) -> LocalTransportClient:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
