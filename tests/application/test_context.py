"""
Tests for DomainContext load, submit and invoke.
"""

from concurrent.futures import Future

import pytest
from support import Customer, ManualTransportClient, Order, query_result

from domainclient.application import DomainContext
from domainclient.core.domain.changeset import ChangeSetEntry
from domainclient.core.domain.entities import ValidationResult
from domainclient.core.domain.enums import (
    EntityOperationType,
    EntityState,
    LoadBehavior,
    OperationErrorStatus,
)
from domainclient.core.exceptions import (
    CorrelationError,
    EmptyChangeSetError,
    EntityStateError,
    InvokeOperationError,
    LoadOperationError,
    SubmitInProgressError,
    SubmitOperationError,
)
from domainclient.core.ports.config_provider import ClientConfig
from domainclient.core.ports.transport_client import InvokeResult, QueryResult


def context_properties(context):
    names = []
    context.property_changed.subscribe(lambda e: names.append(e.property_name))
    return names


# =============================================================================
# Load
# =============================================================================


class TestLoad:
    """Tests for DomainContext.load()."""

    def test_load_tracks_results(self, context, manual_transport, customers_query):
        operation = context.load(customers_query)

        assert context.is_loading
        assert not operation.is_complete

        manual_transport.last_query_future().set_result(
            query_result(Customer(id=1, name="Ada"), Customer(id=2, name="Grace"), total_count=7)
        )

        assert operation.is_complete
        assert not context.is_loading
        assert [c.name for c in operation.entities] == ["Ada", "Grace"]
        assert operation.total_entity_count == 7
        assert list(context.get_entity_set(Customer)) == list(operation.entities)
        assert all(c.entity_state is EntityState.UNMODIFIED for c in operation.entities)

    def test_is_loading_notifications(self, context, manual_transport, customers_query):
        names = context_properties(context)

        context.load(customers_query)
        context.load(customers_query)
        manual_transport.queries[0][2].set_result(query_result())
        manual_transport.queries[1][2].set_result(query_result())

        assert names == ["is_loading", "is_loading"]

    def test_included_entities_are_loaded(self, context, manual_transport, customers_query):
        operation = context.load(customers_query)
        order = Order(id=3, customer_id=1)

        manual_transport.last_query_future().set_result(
            QueryResult(entities=[Customer(id=1, name="Ada")], included_entities=[order])
        )

        assert list(operation.all_entities)[1] is order
        assert list(context.get_entity_set(Order)) == [order]

    def test_load_behavior_is_applied(self, context, manual_transport, customers_query):
        tracked = Customer(id=1, name="Ada")
        context.get_entity_set(Customer).attach(tracked)
        tracked.name = "Local"

        operation = context.load(customers_query, LoadBehavior.REFRESH_CURRENT)
        manual_transport.last_query_future().set_result(query_result(Customer(id=1, name="Store")))

        assert operation.entities[0] is tracked
        assert tracked.name == "Store"
        assert operation.load_behavior is LoadBehavior.REFRESH_CURRENT

    def test_callback_and_user_state(self, context, manual_transport, customers_query):
        seen = []
        operation = context.load(
            customers_query, callback=lambda op: seen.append(op.user_state), user_state="token"
        )

        manual_transport.last_query_future().set_result(query_result())

        assert seen == ["token"]
        assert operation.user_state == "token"

    def test_transport_error(self, context, manual_transport, customers_query):
        operation = context.load(customers_query)

        manual_transport.last_query_future().set_exception(RuntimeError("connection reset"))

        assert isinstance(operation.error, LoadOperationError)
        assert operation.error.status is OperationErrorStatus.SERVER_ERROR
        assert not operation.is_error_handled
        assert not context.is_loading

    def test_throw_on_error_false_marks_error_handled(
        self, context, manual_transport, customers_query
    ):
        operation = context.load(customers_query, throw_on_error=False)

        manual_transport.last_query_future().set_exception(RuntimeError("down"))

        assert operation.is_error_handled

    def test_query_validation_errors(self, context, manual_transport, customers_query):
        operation = context.load(customers_query)
        results = [ValidationResult("Invalid filter", ("city",))]

        manual_transport.last_query_future().set_result(QueryResult(validation_errors=results))

        assert operation.error.status is OperationErrorStatus.VALIDATION_FAILED
        assert operation.validation_errors == results
        assert len(context.get_entity_set(Customer)) == 0

    def test_cancel(self, context, manual_transport, customers_query):
        operation = context.load(customers_query)
        _, token, future = manual_transport.queries[-1]

        operation.cancel()

        assert operation.is_canceled
        assert token.is_cancellation_requested
        assert future.cancelled()
        assert not context.is_loading

    def test_late_result_after_cancel_is_ignored(self, context, manual_transport):
        transport_future: Future = Future()
        transport_future.set_running_or_notify_cancel()
        manual_transport._query_core = lambda query, token: transport_future
        operation = context.load(context.create_query("GetCustomers", Customer))

        operation.cancel()
        transport_future.set_result(query_result(Customer(id=1, name="Late")))

        assert operation.is_canceled
        assert list(operation.entities) == []
        assert len(context.get_entity_set(Customer)) == 0

    def test_cancellation_unsupported_by_transport(self, customers_query):
        context = DomainContext(ManualTransportClient(cancellable=False))

        operation = context.load(customers_query)

        assert not operation.supports_cancellation
        assert not operation.can_cancel

    def test_cancellation_disabled_by_config(self, manual_transport, customers_query):
        context = DomainContext(manual_transport, ClientConfig(supports_cancellation=False))

        assert not context.load(customers_query).supports_cancellation

    def test_synchronous_transport_failure_completes_operation(
        self, context, manual_transport, customers_query
    ):
        def explode(query, token):
            raise ConnectionError("no route")

        manual_transport._query_core = explode

        operation = context.load(customers_query)

        assert operation.is_complete
        assert isinstance(operation.error, LoadOperationError)
        assert isinstance(operation.error.cause, ConnectionError)

    def test_query_is_required(self, context):
        with pytest.raises(ValueError):
            context.load(None)


# =============================================================================
# Submit
# =============================================================================


@pytest.fixture
def pending_changes(context):
    """Inserted A and modified B, tracked by the context."""
    customers = context.get_entity_set(Customer)
    a = Customer(id=10, name="A")
    customers.add(a)
    b = Customer(id=2, name="B")
    customers.attach(b)
    b.city = "Paris"
    return a, b


class TestSubmit:
    """Tests for DomainContext.submit_changes()."""

    def test_empty_change_set(self, context):
        with pytest.raises(EmptyChangeSetError):
            context.submit_changes()

    def test_submit_in_progress(self, context, pending_changes):
        context.submit_changes()

        with pytest.raises(SubmitInProgressError):
            context.submit_changes()

    def test_successful_submit_accepts_changes(self, context, manual_transport, pending_changes):
        a, b = pending_changes
        names = context_properties(context)
        operation = context.submit_changes()

        assert context.is_submitting
        assert a.is_submitting and b.is_submitting
        assert [e.operation for e in manual_transport.last_submit_entries()] == [
            EntityOperationType.INSERT,
            EntityOperationType.UPDATE,
        ]

        manual_transport.echo_submit()

        assert operation.is_complete
        assert not operation.has_error
        assert not context.is_submitting
        assert not context.has_changes
        assert a.entity_state is EntityState.UNMODIFIED
        assert b.entity_state is EntityState.UNMODIFIED
        assert not a.is_submitting
        assert names == ["is_submitting", "is_submitting", "has_changes"]

    def test_entities_are_read_only_while_submitting(self, context, pending_changes):
        a, _ = pending_changes
        context.submit_changes()

        with pytest.raises(EntityStateError):
            a.name = "changed"

    def test_server_values_are_merged(self, context, manual_transport, pending_changes):
        a, _ = pending_changes
        context.submit_changes()

        manual_transport.last_submit_future().set_result(
            [
                ChangeSetEntry(
                    id=0,
                    operation=EntityOperationType.INSERT,
                    entity=Customer(id=500, name="A", city="Assigned"),
                ),
                ChangeSetEntry(id=1, operation=EntityOperationType.UPDATE),
            ]
        )

        assert a.id == 500
        assert a.city == "Assigned"
        assert a.entity_state is EntityState.UNMODIFIED

    def test_conflict_on_one_entry(self, context, manual_transport, pending_changes):
        a, b = pending_changes
        operation = context.submit_changes()

        manual_transport.last_submit_future().set_result(
            [
                ChangeSetEntry(id=1, operation=EntityOperationType.UPDATE),
                ChangeSetEntry(
                    id=0, operation=EntityOperationType.INSERT, conflict_members=["name"]
                ),
            ]
        )

        error = operation.error
        assert isinstance(error, SubmitOperationError)
        assert error.status is OperationErrorStatus.CONFLICTS
        assert error.entities_in_error == [a]
        assert [e.id for e in error.entries_in_error] == [0]
        assert operation.entities_in_error == [a]
        assert a.conflict is not None
        assert a.entity_state is EntityState.NEW
        assert b.entity_state is EntityState.MODIFIED
        assert not context.is_submitting
        assert not a.is_submitting

    def test_validation_errors_take_precedence_over_conflicts(
        self, context, manual_transport, pending_changes
    ):
        a, b = pending_changes
        operation = context.submit_changes()

        manual_transport.last_submit_future().set_result(
            [
                ChangeSetEntry(
                    id=0,
                    operation=EntityOperationType.INSERT,
                    validation_errors=[ValidationResult("Name taken", ("name",))],
                ),
                ChangeSetEntry(
                    id=1, operation=EntityOperationType.UPDATE, is_delete_conflict=True
                ),
            ]
        )

        assert operation.error.status is OperationErrorStatus.VALIDATION_FAILED
        assert operation.entities_in_error == [a, b]
        assert operation.error.validation_errors == [ValidationResult("Name taken", ("name",))]

    def test_client_validation_failure_skips_transport(self, context, manual_transport):
        invalid = Customer(id=1, name="")
        context.get_entity_set(Customer).add(invalid)

        operation = context.submit_changes()

        assert manual_transport.submits == []
        assert operation.is_complete
        assert operation.error.status is OperationErrorStatus.VALIDATION_FAILED
        assert operation.entities_in_error == [invalid]
        assert not context.is_submitting
        assert not invalid.is_submitting

    def test_unknown_returned_entry_fails_submission(
        self, context, manual_transport, pending_changes
    ):
        operation = context.submit_changes()

        manual_transport.last_submit_future().set_result(
            [ChangeSetEntry(id=99, operation=EntityOperationType.UPDATE)]
        )

        assert isinstance(operation.error, CorrelationError)
        assert context.has_changes

    def test_callback_runs_after_context_state_is_cleared(
        self, context, manual_transport, pending_changes
    ):
        seen = []
        context.submit_changes(callback=lambda op: seen.append(context.is_submitting))

        manual_transport.echo_submit()

        assert seen == [False]

    def test_new_submit_allowed_after_completion(self, context, manual_transport, pending_changes):
        a, _ = pending_changes
        context.submit_changes()
        manual_transport.echo_submit()

        a.name = "A2"
        operation = context.submit_changes()

        assert not operation.is_complete
        assert len(manual_transport.submits) == 2

    def test_cancel(self, context, manual_transport, pending_changes):
        a, _ = pending_changes
        operation = context.submit_changes()
        token = manual_transport.submits[-1][2]

        operation.cancel()

        assert operation.is_canceled
        assert token.is_cancellation_requested
        assert not context.is_submitting
        assert not a.is_submitting
        assert context.has_changes

    def test_reject_changes(self, context, pending_changes):
        a, b = pending_changes
        names = context_properties(context)

        context.reject_changes()

        assert not context.has_changes
        assert a.entity_state is EntityState.DETACHED
        assert b.city == ""
        assert names == ["has_changes"]


# =============================================================================
# Invoke
# =============================================================================


class TestInvoke:
    """Tests for DomainContext.invoke()."""

    def test_invoke_returns_value(self, context, manual_transport):
        operation = context.invoke("Add", {"a": 1, "b": 2}, has_side_effects=False)
        args = manual_transport.invokes[-1][0]

        manual_transport.last_invoke_future().set_result(InvokeResult(return_value=3))

        assert operation.value == 3
        assert args.operation_name == "Add"
        assert args.parameters == {"a": 1, "b": 2}
        assert args.has_side_effects is False

    def test_invoke_validation_errors(self, context, manual_transport):
        operation = context.invoke("Approve")

        manual_transport.last_invoke_future().set_result(
            InvokeResult(validation_errors=[ValidationResult("Not allowed")])
        )

        assert isinstance(operation.error, InvokeOperationError)
        assert operation.error.status is OperationErrorStatus.VALIDATION_FAILED
        assert operation.validation_errors == [ValidationResult("Not allowed")]

    def test_invoke_requires_name(self, context):
        with pytest.raises(ValueError):
            context.invoke("")

    def test_return_type_is_passed_to_transport(self, context, manual_transport):
        context.invoke("GetTopCustomer", return_type=Customer)
        assert manual_transport.invokes[-1][0].return_type is Customer


# =============================================================================
# End to end with the in-process transport
# =============================================================================


class TestLocalRoundTrip:
    """Load, edit and submit against LocalTransportClient."""

    def test_load_edit_submit(self, local_context):
        load = local_context.load(local_context.create_query("GetCustomers", Customer))
        assert load.wait(1)
        ada = load.entities[0]

        ada.city = "Cambridge"
        submit = local_context.submit_changes()

        assert submit.wait(1)
        assert not submit.has_error
        assert ada.entity_state is EntityState.UNMODIFIED
        assert not local_context.has_changes

    def test_invoke(self, local_context):
        operation = local_context.invoke("Add", {"a": 2, "b": 5})
        assert operation.wait(1)
        assert operation.value == 7
