"""
Tests for the JSON codec.
"""

from datetime import date

import pytest
from support import Customer, Order

from domainclient.adapters.http.codec import GenericEntity, JsonCodec
from domainclient.core.collections.entity_set import EntitySet
from domainclient.core.domain.changeset import ChangeSet, ChangeSetEntry
from domainclient.core.domain.entities import ValidationResult
from domainclient.core.domain.enums import EntityOperationType, LoadBehavior
from domainclient.core.exceptions import TransportError
from domainclient.core.ports.transport_client import EntityQuery, InvokeArgs


@pytest.fixture
def codec():
    return JsonCodec([Customer, Order])


# =============================================================================
# Entities
# =============================================================================


class TestEntities:
    """Tests for entity encoding and decoding."""

    def test_encode_entity(self, codec):
        encoded = codec.encode_entity(Customer(id=1, name="Ada", city="London"))
        assert encoded == {"$type": "Customer", "id": 1, "name": "Ada", "city": "London"}

    def test_encode_values(self, codec):
        assert codec.encode_value(
            {"when": date(2026, 1, 2), "mode": LoadBehavior.KEEP_CURRENT, "ids": (1, 2)}
        ) == {"when": "2026-01-02", "mode": "KEEP_CURRENT", "ids": [1, 2]}

    def test_decode_by_discriminator(self, codec):
        entity = codec.decode_entity({"$type": "Order", "id": 3, "total": 9.5}, Customer)
        assert isinstance(entity, Order)
        assert entity.total == 9.5

    def test_decode_with_default_type_ignores_unknown_members(self, codec):
        entity = codec.decode_entity({"id": 2, "name": "Grace", "rank": "Admiral"}, Customer)
        assert isinstance(entity, Customer)
        assert (entity.id, entity.name) == (2, "Grace")

    def test_unknown_type_decodes_to_generic_entity(self, codec):
        entity = codec.decode_entity({"$type": "Invoice", "id": 8, "amount": 1})

        assert isinstance(entity, GenericEntity)
        assert entity.type_name == "Invoice"
        assert entity.values == {"id": 8, "amount": 1}
        assert entity.identity() == (GenericEntity, "Invoice", 8)

    def test_generic_entity_round_trips_its_type(self, codec):
        entity = GenericEntity(type_name="Invoice", values={"id": 8})
        assert codec.encode_entity(entity) == {"$type": "Invoice", "id": 8}

    def test_non_object_is_rejected(self, codec):
        with pytest.raises(TransportError):
            codec.decode_entity([1, 2], Customer)

    def test_registered_alias(self):
        codec = JsonCodec()
        codec.register(Customer, "Client")

        assert codec.type_name(Customer) == "Client"
        assert isinstance(codec.decode_entity({"$type": "Client", "id": 1}), Customer)


# =============================================================================
# Queries
# =============================================================================


class TestQueries:
    """Tests for query encoding and result decoding."""

    def test_paging_directives(self, codec):
        query = EntityQuery(
            "GetCustomers",
            Customer,
            parameters={"city": "Paris"},
            skip=10,
            take=5,
            include_total_count=True,
        )

        assert codec.encode_query(query) == {
            "city": "Paris",
            "$skip": 10,
            "$take": 5,
            "$includeTotalCount": True,
        }

    def test_no_directives_by_default(self, codec):
        assert codec.encode_query(EntityQuery("GetCustomers")) == {}

    def test_query_string_json_encodes_non_strings(self, codec):
        assert codec.encode_query_string({"city": "Paris", "$take": 5, "ids": [1, 2]}) == {
            "city": "Paris",
            "$take": "5",
            "ids": "[1, 2]",
        }

    def test_decode_result_object(self, codec):
        result = codec.decode_query_result(
            {
                "results": [{"id": 1, "name": "Ada"}],
                "included_results": [{"$type": "Order", "id": 4}],
                "total_count": 12,
                "validation_errors": [{"message": "slow", "member_names": []}],
            },
            Customer,
        )

        assert [type(e) for e in result.entities] == [Customer]
        assert [type(e) for e in result.included_entities] == [Order]
        assert result.total_count == 12
        assert result.validation_errors == [ValidationResult("slow")]
        assert len(result.all_entities) == 2

    def test_decode_bare_list(self, codec):
        result = codec.decode_query_result([{"id": 1}, {"id": 2}], Customer)

        assert [e.id for e in result.entities] == [1, 2]
        assert result.total_count == -1

    def test_decode_unexpected_payload(self, codec):
        with pytest.raises(TransportError, match="Unexpected query response"):
            codec.decode_query_result("nope", Customer)


# =============================================================================
# Changesets
# =============================================================================


def submitted_entries():
    customers = EntitySet(Customer)
    added = Customer(id=0, name="New")
    existing = Customer(id=5, name="Old")
    customers.add(added)
    customers.attach(existing)
    existing.name = "Renamed"
    return ChangeSet([added], [existing]).get_change_set_entries()


class TestChangeSets:
    """Tests for changeset encoding and result decoding."""

    def test_encode_change_set(self, codec):
        encoded = codec.encode_change_set(submitted_entries())["change_set"]

        assert encoded[0] == {
            "id": 0,
            "operation": "INSERT",
            "has_member_changes": False,
            "entity": {"$type": "Customer", "id": 0, "name": "New", "city": ""},
        }
        assert encoded[1]["operation"] == "UPDATE"
        assert encoded[1]["has_member_changes"] is True
        assert encoded[1]["original_values"] == {"id": 5, "name": "Old", "city": ""}

    def test_encode_entity_actions(self, codec):
        orders = EntitySet(Order)
        order = Order(id=1)
        orders.attach(order)
        order.invoke_action("Approve", "fast")

        (entry,) = ChangeSet(modified_entities=[order]).get_change_set_entries()
        encoded = codec.encode_entry(entry)

        assert encoded["operation"] == "CUSTOM"
        assert encoded["entity_actions"] == [{"name": "Approve", "parameters": ["fast"]}]

    def test_decode_results_uses_submitted_type(self, codec):
        results = codec.decode_change_set_results(
            {
                "change_set": [
                    {"id": 0, "operation": "Insert", "entity": {"id": 41, "name": "New"}},
                    {
                        "id": 1,
                        "conflict_members": ["name"],
                        "store_entity": {"id": 5, "name": "Theirs"},
                        "validation_errors": [{"message": "stale"}],
                    },
                ]
            },
            submitted_entries(),
        )

        inserted, updated = results
        assert inserted.operation is EntityOperationType.INSERT
        assert isinstance(inserted.entity, Customer)
        assert inserted.entity.id == 41
        assert updated.operation is EntityOperationType.UPDATE
        assert isinstance(updated.store_entity, Customer)
        assert updated.conflict_members == ["name"]
        assert updated.validation_errors == [ValidationResult("stale")]
        assert inserted.returned_members == frozenset({"id", "name"})
        assert updated.returned_members is None

    def test_unknown_id_without_operation_is_custom(self, codec):
        (entry,) = codec.decode_change_set_results([{"id": 99}], submitted_entries())
        assert entry.operation is EntityOperationType.CUSTOM
        assert entry.entity is None

    @pytest.mark.parametrize("item", [{}, {"id": "x"}, {"id": None}])
    def test_missing_id(self, codec, item):
        with pytest.raises(TransportError, match="no valid id"):
            codec.decode_change_set_results([item], [])

    def test_missing_change_set(self, codec):
        with pytest.raises(TransportError, match="no change_set"):
            codec.decode_change_set_results({"results": []}, [])

    def test_delete_conflict_flag(self, codec):
        (entry,) = codec.decode_change_set_results(
            [{"id": 1, "operation": "DELETE", "is_delete_conflict": True}],
            [ChangeSetEntry(id=1, operation=EntityOperationType.DELETE)],
        )
        assert entry.is_delete_conflict
        assert entry.has_conflict


# =============================================================================
# Invoke
# =============================================================================


class TestInvoke:
    """Tests for invoke encoding and result decoding."""

    def test_encode_parameters(self, codec):
        args = InvokeArgs("Approve", {"order": Order(id=1), "when": date(2026, 3, 4)})
        assert codec.encode_invoke(args) == {
            "order": {"$type": "Order", "id": 1, "customer_id": 0, "total": 0.0, "lines": []},
            "when": "2026-03-04",
        }

    def test_bare_value(self, codec):
        assert codec.decode_invoke_result(5).return_value == 5

    def test_wrapped_value(self, codec):
        result = codec.decode_invoke_result(
            {"return_value": "ok", "validation_errors": [{"message": "warn"}]}
        )
        assert result.return_value == "ok"
        assert result.validation_errors == [ValidationResult("warn")]

    def test_plain_dict_is_the_value(self, codec):
        assert codec.decode_invoke_result({"a": 1}).return_value == {"a": 1}

    def test_entity_return_type(self, codec):
        result = codec.decode_invoke_result({"return_value": [{"id": 1}]}, Customer)
        assert [type(e) for e in result.return_value] == [Customer]
