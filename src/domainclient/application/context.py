"""
DomainContext - Issues operations against a domain service and tracks entities.

The context owns one EntitySet per entity type and a transport. Loads
merge their results into the entity sets; submits gather the pending
changes into a ChangeSet, send it, and fold the service's answer back
into the tracked entities; invokes call named service operations.

Every call returns immediately with an operation object. Completion runs
on whatever thread the transport completes its future on.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable
from concurrent.futures import Future
from typing import Any, TypeVar

from ..core.cancellation import CancellationTokenSource
from ..core.collections.entity_set import EntityContainer, EntitySet
from ..core.correlation import apply_entry_errors, entries_in_error, merge_server_values
from ..core.domain.changeset import ChangeSet
from ..core.domain.entities import Entity
from ..core.domain.enums import LoadBehavior, OperationErrorStatus
from ..core.domain.events import EventHook, PropertyChangedEvent
from ..core.exceptions import (
    EmptyChangeSetError,
    InvalidOperationError,
    InvokeOperationError,
    LoadOperationError,
    SubmitInProgressError,
    SubmitOperationError,
)
from ..core.futures import continue_with, failed_future
from ..core.operations import InvokeOperation, LoadOperation, LoadResult, SubmitOperation
from ..core.operations.base import OperationBase
from ..core.ports.config_provider import ClientConfig
from ..core.ports.transport_client import (
    EntityQuery,
    InvokeArgs,
    InvokeResult,
    QueryResult,
    SubmitResult,
    TransportClientPort,
)


T = TypeVar("T", bound=Entity)


class DomainContext:
    """
    Client-side context for one domain service.

    Example:
        >>> context = DomainContext(LocalTransportClient(), entity_types=[Customer])
        >>> op = context.load(context.create_query("GetCustomers", Customer))
        >>> op.wait()
        >>> customers = list(context.get_entity_set(Customer))
    """

    def __init__(
        self,
        transport: TransportClientPort,
        config: ClientConfig | None = None,
        entity_types: Iterable[type[Entity]] = (),
    ):
        """
        Initialize the context.

        Args:
            transport: Transport used for every operation
            config: Client configuration (defaults apply when omitted)
            entity_types: Entity types to create entity sets for up front
        """
        self.transport = transport
        self.config = config or ClientConfig()
        self.logger = logging.getLogger("DomainContext")

        self._entity_container = EntityContainer()
        for entity_type in entity_types:
            self._entity_container.create_entity_set(entity_type)

        self._lock = threading.RLock()
        self._active_loads = 0
        self._submit_operation: SubmitOperation | None = None

        self.property_changed: EventHook[PropertyChangedEvent] = EventHook()

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def entity_container(self) -> EntityContainer:
        return self._entity_container

    def get_entity_set(self, entity_type: type[T]) -> EntitySet[T]:
        return self._entity_container.get_entity_set(entity_type)

    @property
    def is_loading(self) -> bool:
        return self._active_loads > 0

    @property
    def is_submitting(self) -> bool:
        return self._submit_operation is not None

    @property
    def has_changes(self) -> bool:
        return self._entity_container.has_changes

    def reject_changes(self) -> None:
        """Roll back every pending change in every entity set."""
        self._entity_container.reject_changes()
        self._raise_property_changed("has_changes")

    def create_query(
        self,
        query_name: str,
        entity_type: type[Entity] | None = None,
        parameters: dict[str, Any] | None = None,
        has_side_effects: bool = False,
    ) -> EntityQuery:
        return EntityQuery(
            query_name=query_name,
            entity_type=entity_type,
            parameters=dict(parameters or {}),
            has_side_effects=has_side_effects,
        )

    # -------------------------------------------------------------------------
    # Load
    # -------------------------------------------------------------------------

    def load(
        self,
        query: EntityQuery,
        load_behavior: LoadBehavior = LoadBehavior.KEEP_CURRENT,
        callback: Callable[[LoadOperation], None] | None = None,
        user_state: Any = None,
        throw_on_error: bool = True,
    ) -> LoadOperation:
        """
        Load entities and merge them into the entity sets.

        Args:
            query: Query to execute
            load_behavior: How results merge into already tracked entities
            callback: Invoked with the operation once it completes
            user_state: Opaque value exposed as ``operation.user_state``
            throw_on_error: When False, errors are marked handled once the
                callback has run

        Returns:
            The pending load operation
        """
        if query is None:
            raise ValueError("query is required")

        token_source = self._create_token_source()
        pending: Future[LoadResult] | None = None

        def cancel() -> None:
            if token_source is not None:
                token_source.cancel()
            if pending is not None:
                pending.cancel()

        operation = LoadOperation(
            query,
            load_behavior,
            user_state=user_state,
            on_cancel=cancel,
            supports_cancellation=token_source is not None,
        )
        operation.on_completed(lambda _: self._change_active_loads(-1))
        self._prepare(operation, callback, handle_errors=not throw_on_error)

        future = self._call_transport(
            lambda: self.transport.query(query, token_source.token if token_source else None)
        )
        self.logger.debug(f"Loading '{query.query_name}' with {load_behavior.name}")
        self._change_active_loads(+1)

        pending = continue_with(
            future, lambda result: self._process_load_results(query, load_behavior, result)
        )
        pending.add_done_callback(operation._on_transport_done)
        return operation

    def _process_load_results(
        self, query: EntityQuery, load_behavior: LoadBehavior, result: QueryResult
    ) -> LoadResult:
        if result.validation_errors:
            raise LoadOperationError(
                f"Load operation failed for query '{query.query_name}'. Validation failed.",
                query_name=query.query_name,
                status=OperationErrorStatus.VALIDATION_FAILED,
                validation_errors=result.validation_errors,
            )
        entities = self._entity_container.load_entities(result.entities, load_behavior)
        included = self._entity_container.load_entities(result.included_entities, load_behavior)
        self.logger.info(
            f"Loaded {len(entities)} entities ({len(included)} included) "
            f"for '{query.query_name}'"
        )
        return LoadResult(
            entities=entities,
            all_entities=[*entities, *included],
            total_entity_count=result.total_count,
        )

    # -------------------------------------------------------------------------
    # Submit
    # -------------------------------------------------------------------------

    def submit_changes(
        self,
        callback: Callable[[SubmitOperation], None] | None = None,
        user_state: Any = None,
    ) -> SubmitOperation:
        """
        Submit all pending changes.

        Client-side validation runs first; if it fails the operation
        completes with a validation error without contacting the service.

        Raises:
            EmptyChangeSetError: If there are no pending changes
            SubmitInProgressError: If a previous submit has not completed
        """
        with self._lock:
            if self._submit_operation is not None:
                raise SubmitInProgressError()
            change_set = self._entity_container.get_changes()
            if change_set.is_empty:
                raise EmptyChangeSetError()

            token_source = self._create_token_source()
            pending: Future[SubmitResult] | None = None

            def cancel() -> None:
                if token_source is not None:
                    token_source.cancel()
                if pending is not None:
                    pending.cancel()

            operation = SubmitOperation(
                change_set,
                user_state=user_state,
                on_cancel=cancel,
                supports_cancellation=token_source is not None,
            )
            self._submit_operation = operation

        self._prepare(operation, None, handle_errors=False)
        operation.on_completed(self._on_submit_completed)
        if callback is not None:
            operation.on_completed(callback)
        self._raise_property_changed("is_submitting")

        for entity in change_set:
            entity.conflict = None
        if not change_set.validate():
            self.logger.info("Submit rejected by client-side validation")
            operation.set_error(
                SubmitOperationError(
                    "Submit operation failed validation.",
                    change_set=change_set,
                    entities_in_error=change_set.entities_in_error,
                    status=OperationErrorStatus.VALIDATION_FAILED,
                    validation_errors=[
                        result
                        for entity in change_set.entities_in_error
                        for result in entity.validation_errors
                    ],
                )
            )
            return operation

        self._set_submitting(change_set, True)
        try:
            future = self._call_transport(
                lambda: self.transport.submit(
                    change_set, token_source.token if token_source else None
                )
            )
        except InvalidOperationError:
            self._set_submitting(change_set, False)
            with self._lock:
                self._submit_operation = None
            self._raise_property_changed("is_submitting")
            raise

        self.logger.debug(f"Submitting {change_set!r}")
        pending = continue_with(future, self._process_submit_results)
        pending.add_done_callback(lambda _: self._set_submitting(change_set, False))
        pending.add_done_callback(operation._on_transport_done)
        return operation

    def _process_submit_results(self, result: SubmitResult) -> SubmitResult:
        change_set = result.change_set
        # Submitting flags must be clear before entities are touched
        self._set_submitting(change_set, False)

        has_validation_errors, has_conflicts = apply_entry_errors(result.results)
        if has_validation_errors or has_conflicts:
            if has_validation_errors:
                status = OperationErrorStatus.VALIDATION_FAILED
                message = "Submit operation failed validation."
            else:
                status = OperationErrorStatus.CONFLICTS
                message = "Submit operation failed due to conflicts."
            failed = entries_in_error(result.results)
            raise SubmitOperationError(
                f"{message} {len(failed)} of {len(change_set)} entities in error.",
                change_set=change_set,
                entities_in_error=change_set.entities_in_error,
                entries_in_error=failed,
                status=status,
                validation_errors=[v for entry in failed for v in entry.validation_errors],
            )

        merge_server_values(result.results)
        self._entity_container.accept_changes(
            [*change_set.removed_entities, *change_set.added_entities,
             *change_set.modified_entities]
        )
        self.logger.info(f"Submitted {change_set!r}")
        return result

    def _on_submit_completed(self, operation: SubmitOperation) -> None:
        with self._lock:
            if self._submit_operation is operation:
                self._submit_operation = None
        self._raise_property_changed("is_submitting")
        self._raise_property_changed("has_changes")

    @staticmethod
    def _set_submitting(change_set: ChangeSet, value: bool) -> None:
        for entity in change_set:
            entity.is_submitting = value

    # -------------------------------------------------------------------------
    # Invoke
    # -------------------------------------------------------------------------

    def invoke(
        self,
        operation_name: str,
        parameters: dict[str, Any] | None = None,
        callback: Callable[[InvokeOperation], None] | None = None,
        user_state: Any = None,
        has_side_effects: bool = True,
        return_type: type | None = None,
    ) -> InvokeOperation:
        """Invoke a named operation on the service."""
        if not operation_name:
            raise ValueError("operation_name is required")

        token_source = self._create_token_source()
        pending: Future[Any] | None = None

        def cancel() -> None:
            if token_source is not None:
                token_source.cancel()
            if pending is not None:
                pending.cancel()

        operation = InvokeOperation(
            operation_name,
            parameters,
            user_state=user_state,
            on_cancel=cancel,
            supports_cancellation=token_source is not None,
        )
        self._prepare(operation, callback, handle_errors=False)

        args = InvokeArgs(
            operation_name=operation_name,
            parameters=dict(parameters or {}),
            has_side_effects=has_side_effects,
            return_type=return_type,
        )
        future = self._call_transport(
            lambda: self.transport.invoke(args, token_source.token if token_source else None)
        )
        self.logger.debug(f"Invoking '{operation_name}'")

        def unwrap(result: InvokeResult) -> Any:
            if result.validation_errors:
                raise InvokeOperationError(
                    f"Invoke operation '{operation_name}' failed. Validation failed.",
                    operation_name=operation_name,
                    status=OperationErrorStatus.VALIDATION_FAILED,
                    validation_errors=result.validation_errors,
                )
            return result.return_value

        pending = continue_with(future, unwrap)
        pending.add_done_callback(operation._on_transport_done)
        return operation

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _create_token_source(self) -> CancellationTokenSource | None:
        if self.transport.supports_cancellation and self.config.supports_cancellation:
            return CancellationTokenSource()
        return None

    def _prepare(
        self,
        operation: OperationBase,
        callback: Callable[[Any], None] | None,
        handle_errors: bool,
    ) -> None:
        operation.log_unhandled_errors = self.config.log_unhandled_errors
        if callback is not None:
            operation.on_completed(callback)
        if handle_errors:
            operation.on_completed(_mark_error_handled)

    @staticmethod
    def _call_transport(call: Callable[[], Future[Any]]) -> Future[Any]:
        try:
            return call()
        except InvalidOperationError:
            raise
        except Exception as exc:
            return failed_future(exc)

    def _change_active_loads(self, delta: int) -> None:
        with self._lock:
            was_loading = self._active_loads > 0
            self._active_loads += delta
            is_loading = self._active_loads > 0
        if was_loading != is_loading:
            self._raise_property_changed("is_loading")

    def _raise_property_changed(self, name: str) -> None:
        self.property_changed.fire(PropertyChangedEvent(self, name))


def _mark_error_handled(operation: OperationBase) -> None:
    if operation.has_error:
        operation.mark_error_as_handled()
