"""
EntitySet - The tracked set of entities of one type.

An EntitySet is the shared pool a DomainContext keeps for each entity
type: entities are attached when loaded or added, tracked as they are
modified or removed, and surfaced through ``get_changes()`` for the next
submit. Every change to the visible membership raises
``collection_changed`` with position information.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from typing import Any, Generic, TypeVar

from ..domain.changeset import ChangeSet
from ..domain.entities import Entity
from ..domain.enums import EntityState, LoadBehavior
from ..domain.events import CollectionChangedEvent, EventHook
from ..exceptions import EntityStateError


T = TypeVar("T", bound=Entity)


class EntitySet(Generic[T]):
    """
    Tracked entities of a single type.

    An entity is "in" the set while it is attached and not deleted.
    Deleted entities are kept aside until the deletion is accepted or
    rejected.
    """

    def __init__(self, entity_type: type[T]):
        self.entity_type = entity_type
        self.logger = logging.getLogger("EntitySet")
        self.collection_changed: EventHook[CollectionChangedEvent] = EventHook()

        self._entities: list[T] = []
        self._removed: list[T] = []
        self._identity_map: dict[tuple[Any, ...], T] = {}

    def __repr__(self) -> str:
        return f"EntitySet({self.entity_type.__name__}, count={len(self._entities)})"

    def __iter__(self) -> Iterator[T]:
        return iter(list(self._entities))

    def __len__(self) -> int:
        return len(self._entities)

    def __contains__(self, entity: object) -> bool:
        return (
            isinstance(entity, Entity)
            and entity.entity_set is self
            and entity.entity_state not in (EntityState.DETACHED, EntityState.DELETED)
        )

    def index_of(self, entity: T) -> int:
        for i, existing in enumerate(self._entities):
            if existing is entity:
                return i
        return -1

    @property
    def has_changes(self) -> bool:
        return bool(self._removed) or any(e.has_changes for e in self._entities)

    # -------------------------------------------------------------------------
    # Membership
    # -------------------------------------------------------------------------

    def add(self, entity: T) -> None:
        """
        Add a new entity, or undo the pending deletion of a removed one.

        Raises:
            EntityStateError: If the entity is already tracked, belongs to
                another set, or duplicates the identity of a tracked entity
        """
        self._check_type(entity)

        if entity.entity_set is self and entity.entity_state is EntityState.DELETED:
            self._remove_from(self._removed, entity)
            entity.entity_state = (
                EntityState.MODIFIED
                if entity.modified_members or entity.entity_actions
                else EntityState.UNMODIFIED
            )
            self._append(entity)
            return

        if entity in self:
            raise EntityStateError(f"{type(entity).__name__} is already tracked by {self!r}.")
        if entity.entity_set is not None:
            raise EntityStateError(
                f"{type(entity).__name__} is attached to another entity set."
            )

        self._register_identity(entity)
        entity._entity_set = self
        entity.entity_state = EntityState.NEW
        self._append(entity)

    def attach(self, entity: T) -> None:
        """Start tracking an existing, unmodified entity."""
        self._check_type(entity)
        if entity.entity_set is not None:
            raise EntityStateError(f"{type(entity).__name__} is already attached.")
        self._register_identity(entity)
        entity._entity_set = self
        entity.entity_state = EntityState.UNMODIFIED
        self._append(entity)

    def remove(self, entity: T) -> None:
        """
        Remove an entity.

        A NEW entity is simply detached. Any other entity becomes DELETED
        and is submitted as a delete on the next submit.
        """
        if entity not in self:
            raise EntityStateError(f"{type(entity).__name__} is not tracked by {self!r}.")

        index = self.index_of(entity)
        self._entities.pop(index)

        if entity.entity_state is EntityState.NEW:
            self._forget(entity)
        else:
            entity.entity_state = EntityState.DELETED
            self._removed.append(entity)

        self.collection_changed.fire(CollectionChangedEvent.removed([entity], index))

    def detach(self, entity: T) -> None:
        """Stop tracking an entity without recording a deletion."""
        if entity.entity_set is not self:
            raise EntityStateError(f"{type(entity).__name__} is not tracked by {self!r}.")
        if entity.entity_state is EntityState.DELETED:
            self._remove_from(self._removed, entity)
            self._forget(entity)
            return
        index = self.index_of(entity)
        self._entities.pop(index)
        self._forget(entity)
        self.collection_changed.fire(CollectionChangedEvent.removed([entity], index))

    def clear(self) -> None:
        """Detach every entity, including pending deletions."""
        for entity in (*self._entities, *self._removed):
            self._forget(entity)
        self._entities.clear()
        self._removed.clear()
        self.collection_changed.fire(CollectionChangedEvent.reset())

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    def load_entities(
        self,
        entities: Iterable[T],
        load_behavior: LoadBehavior = LoadBehavior.KEEP_CURRENT,
    ) -> list[T]:
        """
        Merge loaded entities into the set.

        Entities whose identity is already tracked are merged into the
        tracked instance according to ``load_behavior``; the rest are
        attached as UNMODIFIED.

        Returns:
            The tracked instances, in load order
        """
        loaded: list[T] = []
        for entity in entities:
            self._check_type(entity)
            identity = entity.identity()
            existing = self._identity_map.get(identity) if identity is not None else None
            if existing is not None:
                if existing is not entity:
                    existing.merge(entity, load_behavior)
                loaded.append(existing)
                continue
            if entity.entity_set is self:
                loaded.append(entity)
                continue
            self.attach(entity)
            loaded.append(entity)
        self.logger.debug(f"Loaded {len(loaded)} {self.entity_type.__name__} entities")
        return loaded

    # -------------------------------------------------------------------------
    # Change tracking
    # -------------------------------------------------------------------------

    def get_changes(self) -> ChangeSet:
        return ChangeSet(
            added_entities=[e for e in self._entities if e.entity_state is EntityState.NEW],
            modified_entities=[
                e for e in self._entities if e.entity_state is EntityState.MODIFIED
            ],
            removed_entities=list(self._removed),
        )

    def accept_changes(self, entities: Iterable[Entity] | None = None) -> None:
        """
        Commit pending changes, deletions first.

        Args:
            entities: Restrict to these entities (others, including
                entities of other sets, are left alone)
        """
        selected = None if entities is None else {id(e) for e in entities}

        for entity in list(self._removed):
            if selected is None or id(entity) in selected:
                self._remove_from(self._removed, entity)
                self._unmap(entity)
                entity.accept_changes()

        for entity in self._entities:
            if selected is None or id(entity) in selected:
                was_new = entity.entity_state is EntityState.NEW
                entity.accept_changes()
                if was_new:
                    # Keys may have been assigned by the service
                    self._unmap(entity)
                    self._register_identity(entity)

    def reject_changes(self) -> None:
        """
        Roll back pending changes.

        NEW entities drop out of the set, DELETED entities come back, and
        MODIFIED entities regain their original values.
        """
        for entity in [e for e in self._entities if e.entity_state is EntityState.NEW]:
            index = self.index_of(entity)
            self._entities.pop(index)
            self._forget(entity)
            self.collection_changed.fire(CollectionChangedEvent.removed([entity], index))

        restored, self._removed = self._removed, []
        for entity in restored:
            entity.entity_state = EntityState.MODIFIED
            entity.reject_changes()
            self._append(entity)

        for entity in self._entities:
            if entity.entity_state is EntityState.MODIFIED:
                entity.reject_changes()

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _check_type(self, entity: Any) -> None:
        if not isinstance(entity, self.entity_type):
            raise TypeError(
                f"Expected {self.entity_type.__name__}, got {type(entity).__name__}"
            )

    def _register_identity(self, entity: T) -> None:
        identity = entity.identity()
        if identity is None:
            return
        existing = self._identity_map.get(identity)
        if existing is not None and existing is not entity:
            raise EntityStateError(
                f"An entity with the same key is already tracked: {identity[1:]!r}"
            )
        self._identity_map[identity] = entity

    def _append(self, entity: T) -> None:
        self._entities.append(entity)
        self.collection_changed.fire(
            CollectionChangedEvent.added([entity], len(self._entities) - 1)
        )

    def _unmap(self, entity: T) -> None:
        for identity, mapped in list(self._identity_map.items()):
            if mapped is entity:
                del self._identity_map[identity]

    def _forget(self, entity: T) -> None:
        self._unmap(entity)
        entity._entity_set = None
        entity.entity_state = EntityState.DETACHED
        entity.accept_changes()

    @staticmethod
    def _remove_from(items: list[T], entity: T) -> None:
        for i, existing in enumerate(items):
            if existing is entity:
                del items[i]
                return


class EntityContainer:
    """One EntitySet per entity type."""

    def __init__(self) -> None:
        self._entity_sets: dict[type[Entity], EntitySet[Any]] = {}

    def __repr__(self) -> str:
        return f"EntityContainer({[t.__name__ for t in self._entity_sets]})"

    @property
    def entity_sets(self) -> list[EntitySet[Any]]:
        return list(self._entity_sets.values())

    def create_entity_set(self, entity_type: type[T]) -> EntitySet[T]:
        if entity_type in self._entity_sets:
            raise ValueError(f"An entity set for {entity_type.__name__} already exists.")
        entity_set: EntitySet[T] = EntitySet(entity_type)
        self._entity_sets[entity_type] = entity_set
        return entity_set

    def get_entity_set(self, entity_type: type[T]) -> EntitySet[T]:
        """Return the set for ``entity_type``, creating it on first use."""
        entity_set = self._entity_sets.get(entity_type)
        if entity_set is None:
            for base in entity_type.__mro__[1:]:
                if base in self._entity_sets and base is not Entity:
                    return self._entity_sets[base]
            entity_set = self.create_entity_set(entity_type)
        return entity_set

    def load_entities(
        self,
        entities: Iterable[Entity],
        load_behavior: LoadBehavior = LoadBehavior.KEEP_CURRENT,
    ) -> list[Entity]:
        return [
            self.get_entity_set(type(entity)).load_entities([entity], load_behavior)[0]
            for entity in entities
        ]

    @property
    def has_changes(self) -> bool:
        return any(s.has_changes for s in self._entity_sets.values())

    def get_changes(self) -> ChangeSet:
        added: list[Entity] = []
        modified: list[Entity] = []
        removed: list[Entity] = []
        for entity_set in self._entity_sets.values():
            changes = entity_set.get_changes()
            added.extend(changes.added_entities)
            modified.extend(changes.modified_entities)
            removed.extend(changes.removed_entities)
        return ChangeSet(added, modified, removed)

    def accept_changes(self, entities: Iterable[Entity] | None = None) -> None:
        selected = None if entities is None else list(entities)
        for entity_set in self._entity_sets.values():
            entity_set.accept_changes(selected)

    def reject_changes(self) -> None:
        for entity_set in self._entity_sets.values():
            entity_set.reject_changes()

    def clear(self) -> None:
        for entity_set in self._entity_sets.values():
            entity_set.clear()
