"""
ChangeSet - Pending entity mutations submitted together in one round trip.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from typing import Any

from .entities import Entity, EntityAction, EntityConflict, ValidationResult
from .enums import EntityOperationType


@dataclass(eq=False)
class ChangeSetEntry:
    """
    One entity mutation within a submission.

    Entries built by the client carry ``client_entity``. Entries returned
    by a transport may arrive without it; the correlator re-attaches the
    client reference using ``id``. Raw conflict details reported by a
    service (``conflict_members``, ``store_entity``, ``is_delete_conflict``)
    are turned into an EntityConflict once the client entity is known.

    Attributes:
        id: Correlation identity, unique within one submission
        operation: Kind of mutation
        client_entity: The tracked entity this entry describes
        entity: Member values to send, or values returned by the service
        returned_members: Members present in a service payload; None when
            ``entity`` carries every member
        original_values: Baseline values for optimistic concurrency checks
        entity_actions: Custom methods to invoke on the entity
        has_member_changes: Whether any data member was modified
        conflict: Concurrency conflict, once resolved against the client entity
        validation_errors: Validation failures reported for this entry
    """

    id: int
    operation: EntityOperationType
    client_entity: Entity | None = None
    entity: Entity | None = None
    returned_members: frozenset[str] | None = None
    original_values: dict[str, Any] | None = None
    entity_actions: list[EntityAction] = field(default_factory=list)
    has_member_changes: bool = False
    conflict: EntityConflict | None = None
    validation_errors: list[ValidationResult] = field(default_factory=list)

    # Raw conflict details as reported by a service
    conflict_members: list[str] = field(default_factory=list)
    store_entity: Entity | None = None
    is_delete_conflict: bool = False

    @property
    def correlation_id(self) -> int:
        return self.id

    @property
    def has_conflict(self) -> bool:
        return (
            self.conflict is not None
            or bool(self.conflict_members)
            or self.is_delete_conflict
        )

    @property
    def has_error(self) -> bool:
        return self.has_conflict or bool(self.validation_errors)


class ChangeSet:
    """
    Added, modified and removed entities gathered for a submit.

    Entries are built once, on first request, with correlation identities
    assigned monotonically from zero in the order added, modified, removed.
    """

    def __init__(
        self,
        added_entities: Iterable[Entity] = (),
        modified_entities: Iterable[Entity] = (),
        removed_entities: Iterable[Entity] = (),
    ):
        self._added = tuple(added_entities)
        self._modified = tuple(modified_entities)
        self._removed = tuple(removed_entities)
        self._entries: list[ChangeSetEntry] | None = None

    @property
    def added_entities(self) -> tuple[Entity, ...]:
        return self._added

    @property
    def modified_entities(self) -> tuple[Entity, ...]:
        return self._modified

    @property
    def removed_entities(self) -> tuple[Entity, ...]:
        return self._removed

    @property
    def is_empty(self) -> bool:
        return not (self._added or self._modified or self._removed)

    def __len__(self) -> int:
        return len(self._added) + len(self._modified) + len(self._removed)

    def __iter__(self) -> Iterator[Entity]:
        yield from self._added
        yield from self._modified
        yield from self._removed

    def __repr__(self) -> str:
        return (
            f"ChangeSet(added={len(self._added)}, modified={len(self._modified)}, "
            f"removed={len(self._removed)})"
        )

    def get_change_set_entries(self) -> list[ChangeSetEntry]:
        """Build (once) the entries describing this changeset."""
        if self._entries is None:
            entries: list[ChangeSetEntry] = []
            next_id = 0
            for entity in self._added:
                entries.append(self._make_entry(next_id, EntityOperationType.INSERT, entity))
                next_id += 1
            for entity in self._modified:
                has_member_changes = bool(entity.modified_members)
                operation = (
                    EntityOperationType.UPDATE
                    if has_member_changes or not entity.entity_actions
                    else EntityOperationType.CUSTOM
                )
                entries.append(self._make_entry(next_id, operation, entity))
                next_id += 1
            for entity in self._removed:
                entries.append(self._make_entry(next_id, EntityOperationType.DELETE, entity))
                next_id += 1
            self._entries = entries
        return self._entries

    @staticmethod
    def _make_entry(
        entry_id: int, operation: EntityOperationType, entity: Entity
    ) -> ChangeSetEntry:
        original = None
        if operation is not EntityOperationType.INSERT:
            original = entity.original_state()
        return ChangeSetEntry(
            id=entry_id,
            operation=operation,
            client_entity=entity,
            entity=entity,
            original_values=original,
            entity_actions=list(entity.entity_actions),
            has_member_changes=bool(entity.modified_members),
        )

    def validate(self) -> bool:
        """
        Run client-side validation for every entity that is not being deleted.

        Results are stored on each entity's ``validation_errors``.

        Returns:
            True if no entity reported a validation error
        """
        valid = True
        for entity in (*self._added, *self._modified):
            entity.validation_errors = list(entity.validate())
            if entity.validation_errors:
                valid = False
        for entity in self._removed:
            entity.validation_errors = []
        return valid

    @property
    def entities_in_error(self) -> list[Entity]:
        """Entities currently carrying a conflict or validation errors."""
        return [
            entity
            for entity in self
            if entity.conflict is not None or entity.validation_errors
        ]
