"""
JSON Codec - Maps entities, changesets and results to JSON payloads.

Wire format
-----------
Entities are objects carrying their data members plus a ``$type``
discriminator::

    {"$type": "Order", "id": 7, "customer": "ACME"}

Query responses::

    {"results": [...], "included_results": [...], "total_count": 42,
     "validation_errors": [{"message": "...", "member_names": ["name"]}]}

A bare JSON list is accepted as ``results``.

Submit requests and responses::

    {"change_set": [{"id": 0, "operation": "INSERT", "entity": {...},
                     "original_values": {...}, "entity_actions": [...],
                     "has_member_changes": true}]}

Returned entries may add ``validation_errors``, ``conflict_members``,
``store_entity`` and ``is_delete_conflict``.

Invoke responses are ``{"return_value": ..., "validation_errors": [...]}``
or the bare value.
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any

from ...core.domain.changeset import ChangeSetEntry
from ...core.domain.entities import Entity, ValidationResult
from ...core.domain.enums import EntityOperationType
from ...core.exceptions import TransportError
from ...core.ports.transport_client import EntityQuery, InvokeArgs, InvokeResult, QueryResult


TYPE_FIELD = "$type"


@dataclass(eq=False)
class GenericEntity(Entity):
    """
    Entity of a type the codec has no class for.

    Keeps the raw member values so the data can still be inspected and
    tracked. Identity comes from an ``id`` member when there is one.
    """

    type_name: str = ""
    values: dict[str, Any] = field(default_factory=dict)

    def identity(self) -> tuple[Any, ...] | None:
        if "id" not in self.values:
            return None
        return (GenericEntity, self.type_name, self.values["id"])


class JsonCodec:
    """Encodes requests and decodes responses for the HTTP transport."""

    def __init__(self, entity_types: Iterable[type[Entity]] = ()):
        self._types: dict[str, type[Entity]] = {}
        for entity_type in entity_types:
            self.register(entity_type)

    def register(self, entity_type: type[Entity], name: str | None = None) -> None:
        """Map a wire type name to an entity class."""
        self._types[name or entity_type.__name__] = entity_type

    def type_name(self, entity_type: type[Entity]) -> str:
        for name, registered in self._types.items():
            if registered is entity_type:
                return name
        return entity_type.__name__

    # -------------------------------------------------------------------------
    # Entities and values
    # -------------------------------------------------------------------------

    def encode_entity(self, entity: Entity) -> dict[str, Any]:
        if isinstance(entity, GenericEntity):
            return {TYPE_FIELD: entity.type_name, **self.encode_value(entity.values)}
        return {
            TYPE_FIELD: self.type_name(type(entity)),
            **self.encode_value(entity.extract_state()),
        }

    def encode_value(self, value: Any) -> Any:
        """Convert a value to something ``json`` can serialize."""
        if isinstance(value, Entity):
            return self.encode_entity(value)
        if isinstance(value, dict):
            return {str(k): self.encode_value(v) for k, v in value.items()}
        if isinstance(value, (list, tuple, set, frozenset)):
            return [self.encode_value(v) for v in value]
        if isinstance(value, (datetime, date)):
            return value.isoformat()
        if isinstance(value, Enum):
            return value.name
        return value

    def decode_entity(
        self, data: dict[str, Any], default_type: type[Entity] | None = None
    ) -> Entity:
        """
        Build an entity from its JSON object.

        The ``$type`` discriminator wins over ``default_type``. Unknown
        types decode to GenericEntity.

        Raises:
            TransportError: If the payload does not fit the entity class
        """
        if not isinstance(data, dict):
            raise TransportError(f"Expected an entity object, got {type(data).__name__}")

        name = data.get(TYPE_FIELD)
        entity_type = self._types.get(name) if name else default_type
        members = {k: v for k, v in data.items() if k != TYPE_FIELD}

        if entity_type is None or entity_type is GenericEntity:
            return GenericEntity(type_name=name or "", values=members)

        known = entity_type.data_member_names()
        try:
            return entity_type(**{k: v for k, v in members.items() if k in known})
        except TypeError as e:
            raise TransportError(
                f"Cannot decode {entity_type.__name__} from {sorted(members)}", cause=e
            )

    def _decode_entities(
        self, items: Iterable[Any], default_type: type[Entity] | None
    ) -> list[Entity]:
        return [self.decode_entity(item, default_type) for item in items]

    @staticmethod
    def _decode_validation_errors(items: Iterable[Any] | None) -> list[ValidationResult]:
        return [ValidationResult.from_dict(item) for item in items or []]

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def encode_query(self, query: EntityQuery) -> dict[str, Any]:
        """Query parameters plus paging directives."""
        params = self.encode_value(dict(query.parameters))
        if query.skip is not None:
            params["$skip"] = query.skip
        if query.take is not None:
            params["$take"] = query.take
        if query.include_total_count:
            params["$includeTotalCount"] = True
        return params

    def encode_query_string(self, params: dict[str, Any]) -> dict[str, str]:
        """Flatten parameters for a GET; structured values are sent as JSON."""
        encoded = {}
        for name, value in params.items():
            if isinstance(value, str):
                encoded[name] = value
            else:
                encoded[name] = json.dumps(self.encode_value(value))
        return encoded

    def decode_query_result(
        self, payload: Any, entity_type: type[Entity] | None = None
    ) -> QueryResult:
        if isinstance(payload, list):
            return QueryResult(entities=self._decode_entities(payload, entity_type))
        if not isinstance(payload, dict):
            raise TransportError(f"Unexpected query response: {type(payload).__name__}")
        return QueryResult(
            entities=self._decode_entities(payload.get("results", []), entity_type),
            included_entities=self._decode_entities(payload.get("included_results", []), None),
            total_count=int(payload.get("total_count", -1)),
            validation_errors=self._decode_validation_errors(payload.get("validation_errors")),
        )

    # -------------------------------------------------------------------------
    # Submit
    # -------------------------------------------------------------------------

    def encode_change_set(self, entries: Iterable[ChangeSetEntry]) -> dict[str, Any]:
        return {"change_set": [self.encode_entry(entry) for entry in entries]}

    def encode_entry(self, entry: ChangeSetEntry) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": entry.id,
            "operation": entry.operation.name,
            "has_member_changes": entry.has_member_changes,
        }
        if entry.entity is not None:
            data["entity"] = self.encode_entity(entry.entity)
        if entry.original_values:
            data["original_values"] = self.encode_value(entry.original_values)
        if entry.entity_actions:
            data["entity_actions"] = [
                {"name": action.name, "parameters": self.encode_value(action.parameters)}
                for action in entry.entity_actions
            ]
        return data

    def decode_change_set_results(
        self, payload: Any, submitted: Iterable[ChangeSetEntry]
    ) -> list[ChangeSetEntry]:
        """
        Decode returned entries.

        Entity payloads without a ``$type`` decode as the type of the entry
        that was submitted with the same id.
        """
        items = payload if isinstance(payload, list) else payload.get("change_set")
        if not isinstance(items, list):
            raise TransportError("Submit response has no change_set list")

        sent = {entry.id: entry for entry in submitted}
        results = []
        for item in items:
            try:
                entry_id = int(item["id"])
            except (KeyError, TypeError, ValueError) as e:
                raise TransportError(
                    f"Returned changeset entry has no valid id: {item!r}", cause=e
                )

            original = sent.get(entry_id)
            default_type = None
            if original is not None and original.client_entity is not None:
                default_type = type(original.client_entity)

            if "operation" in item:
                operation = EntityOperationType.from_string(str(item["operation"]))
            elif original is not None:
                operation = original.operation
            else:
                operation = EntityOperationType.CUSTOM

            results.append(
                ChangeSetEntry(
                    id=entry_id,
                    operation=operation,
                    entity=(
                        self.decode_entity(item["entity"], default_type)
                        if item.get("entity") else None
                    ),
                    returned_members=(
                        frozenset(item["entity"]) - {TYPE_FIELD}
                        if item.get("entity") else None
                    ),
                    validation_errors=self._decode_validation_errors(
                        item.get("validation_errors")
                    ),
                    conflict_members=list(item.get("conflict_members") or []),
                    store_entity=(
                        self.decode_entity(item["store_entity"], default_type)
                        if item.get("store_entity") else None
                    ),
                    is_delete_conflict=bool(item.get("is_delete_conflict", False)),
                )
            )
        return results

    # -------------------------------------------------------------------------
    # Invoke
    # -------------------------------------------------------------------------

    def encode_invoke(self, args: InvokeArgs) -> dict[str, Any]:
        return self.encode_value(dict(args.parameters))

    def decode_invoke_result(self, payload: Any, return_type: type | None = None) -> InvokeResult:
        validation_errors: list[ValidationResult] = []
        value = payload
        wrapped = isinstance(payload, dict) and (
            "return_value" in payload or "validation_errors" in payload
        )
        if wrapped:
            value = payload.get("return_value")
            validation_errors = self._decode_validation_errors(payload.get("validation_errors"))

        if isinstance(return_type, type) and issubclass(return_type, Entity):
            if isinstance(value, dict):
                value = self.decode_entity(value, return_type)
            elif isinstance(value, list):
                value = self._decode_entities(value, return_type)

        return InvokeResult(return_value=value, validation_errors=validation_errors)
