"""
Tests for HttpTransportClient.

The HttpApiClient is mocked; these tests cover routing, encoding and
correlation through the transport port.
"""

from concurrent.futures import CancelledError
from unittest.mock import MagicMock, patch

import pytest
from support import Customer

from domainclient.adapters.http.client import HttpApiClient
from domainclient.adapters.http.codec import JsonCodec
from domainclient.adapters.http.transport import HttpTransportClient
from domainclient.core.cancellation import CancellationTokenSource
from domainclient.core.collections.entity_set import EntitySet
from domainclient.core.domain.changeset import ChangeSet
from domainclient.core.exceptions import CorrelationError, DomainOperationError
from domainclient.core.ports.config_provider import ClientConfig
from domainclient.core.ports.transport_client import EntityQuery, InvokeArgs


@pytest.fixture
def api():
    return MagicMock(spec=HttpApiClient)


@pytest.fixture
def transport(api):
    transport = HttpTransportClient(api, codec=JsonCodec([Customer]), max_workers=1)
    yield transport
    transport.close()


def added_customer():
    customers = EntitySet(Customer)
    customer = Customer(id=0, name="Ada")
    customers.add(customer)
    return ChangeSet([customer]), customer


# =============================================================================
# Queries
# =============================================================================


class TestQuery:
    """Tests for query routing."""

    def test_query_is_a_get(self, transport, api):
        api.get.return_value = {"results": [{"id": 1, "name": "Ada"}], "total_count": 1}

        result = transport.query(
            EntityQuery("GetCustomers", Customer, parameters={"city": "London"}, take=10)
        ).result(timeout=5)

        api.get.assert_called_once_with(
            "GetCustomers", params={"city": "London", "$take": "10"}
        )
        assert isinstance(result.entities[0], Customer)
        assert result.total_count == 1

    def test_query_with_side_effects_is_a_post(self, transport, api):
        api.post.return_value = []

        transport.query(
            EntityQuery("ReserveCustomers", Customer, parameters={"n": 2}, has_side_effects=True)
        ).result(timeout=5)

        api.post.assert_called_once_with("ReserveCustomers", json={"n": 2})
        api.get.assert_not_called()

    def test_client_errors_fail_the_future(self, transport, api):
        api.get.side_effect = DomainOperationError("Not found")

        with pytest.raises(DomainOperationError):
            transport.query(EntityQuery("GetCustomers", Customer)).result(timeout=5)

    def test_cancelled_before_send(self, transport, api):
        source = CancellationTokenSource()
        source.cancel()

        future = transport.query(EntityQuery("GetCustomers", Customer), source.token)

        with pytest.raises(CancelledError):
            future.result(timeout=5)
        api.get.assert_not_called()


# =============================================================================
# Submit
# =============================================================================


class TestSubmit:
    """Tests for changeset submission."""

    def test_posts_change_set_and_correlates(self, transport, api):
        change_set, customer = added_customer()
        api.post.return_value = {
            "change_set": [{"id": 0, "operation": "INSERT", "entity": {"id": 17, "name": "Ada"}}]
        }

        result = transport.submit(change_set).result(timeout=5)

        endpoint = api.post.call_args.args[0]
        sent = api.post.call_args.kwargs["json"]["change_set"]
        assert endpoint == "SubmitChanges"
        assert [entry["id"] for entry in sent] == [0]
        assert result.results[0].client_entity is customer
        assert result.results[0].entity.id == 17

    def test_unknown_returned_id(self, transport, api):
        change_set, _ = added_customer()
        api.post.return_value = [{"id": 3}]

        with pytest.raises(CorrelationError):
            transport.submit(change_set).result(timeout=5)


# =============================================================================
# Invoke
# =============================================================================


class TestInvoke:
    """Tests for invoke routing."""

    def test_invoke_posts_by_default(self, transport, api):
        api.post.return_value = {"return_value": 3}

        result = transport.invoke(InvokeArgs("Add", {"a": 1, "b": 2})).result(timeout=5)

        api.post.assert_called_once_with("Add", json={"a": 1, "b": 2})
        assert result.return_value == 3

    def test_invoke_without_side_effects_is_a_get(self, transport, api):
        api.get.return_value = "pong"

        result = transport.invoke(InvokeArgs("Ping", has_side_effects=False)).result(timeout=5)

        api.get.assert_called_once_with("Ping", params={})
        assert result.return_value == "pong"


# =============================================================================
# Lifecycle
# =============================================================================


class TestLifecycle:
    """Tests for construction and shutdown."""

    def test_supports_cancellation(self, transport):
        assert transport.supports_cancellation

    def test_close_closes_client(self, api):
        with HttpTransportClient(api) as transport:
            assert transport.client is api
        api.close.assert_called_once()

    def test_from_config(self):
        config = ClientConfig(
            service_url="https://example.com/Services/Orders",
            headers={"X-Tenant": "a"},
            max_retries=1,
            timeout=5.0,
            verify_ssl=False,
            max_workers=2,
        )

        with patch("domainclient.adapters.http.transport.HttpApiClient") as client_cls:
            transport = HttpTransportClient.from_config(config)
            transport.close()

        client_cls.assert_called_once_with(
            base_url="https://example.com/Services/Orders",
            headers={"X-Tenant": "a"},
            max_retries=1,
            timeout=5.0,
            verify_ssl=False,
        )
