"""
EntityList - An observable list kept in sync with a source and an EntitySet.

Three collections are reconciled:

- the *source*: an externally owned sequence (optionally observable,
  i.e. exposing a ``collection_changed`` EventHook) that defines which
  entities logically belong to the list,
- the *entity set*: the shared tracked set the entities live in,
- the list itself, which is what callers see and mutate.

A private membership set records which entities are logically in the
list. Changes flowing in from either collection, and changes made by
callers, are propagated under a per-instance reentrancy guard: while one
propagation runs, notifications it causes back into this list are
ignored. Caller changes are always tracked, even when they arrive
while a propagation runs. An entity is visible at most once.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from typing import Any, TypeVar

from ..domain.entities import Entity
from ..domain.enums import CollectionChangeAction
from ..domain.events import CollectionChangedEvent, Subscription
from .entity_set import EntitySet
from .observable import ObservableList, WeakCollectionChangedListener


T = TypeVar("T", bound=Entity)


class EntityList(ObservableList[T]):
    """
    Observable list of entities backed by an EntitySet.

    Inserting an untracked entity adds it to the entity set; removing a
    tracked entity removes it from the entity set. Entities added to the
    entity set later (for example when a removal is rolled back) appear in
    the list only if they belong to it through the source.

    Example:
        >>> customers = EntityList(context.get_entity_set(Customer), source=load_op.entities)
        >>> customers.append(Customer(id=7, name="New"))   # now tracked as NEW
    """

    def __init__(self, entity_set: EntitySet[T], source: Iterable[T] | None = None):
        if entity_set is None:
            raise ValueError("entity_set is required")
        super().__init__()
        self.logger = logging.getLogger("EntityList")

        self._entity_set = entity_set
        self._membership: set[T] = set()
        self._source: Iterable[T] | None = None
        self._source_subscription: Subscription | None = None
        self._updating = False

        self._entity_set_listener: WeakCollectionChangedListener[T] | None = (
            WeakCollectionChangedListener(entity_set, self._on_entity_set_changed)
        )

        self.source = source

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def entity_set(self) -> EntitySet[T]:
        return self._entity_set

    @property
    def membership(self) -> frozenset[T]:
        """Entities that logically belong to this list."""
        return frozenset(self._membership)

    @property
    def source(self) -> Iterable[T] | None:
        return self._source

    @source.setter
    def source(self, value: Iterable[T] | None) -> None:
        if isinstance(value, EntitySet):
            raise ValueError("An EntitySet cannot be used as the source of an EntityList.")
        if value is self._source and value is not None:
            return

        if self._source_subscription is not None:
            self._source_subscription.cancel()
            self._source_subscription = None

        self._source = value

        hook = getattr(value, "collection_changed", None)
        if hook is not None:
            self._source_subscription = hook.subscribe(self._on_source_changed)

        self._update_and_ignore_reentrance(self._reset_to_source)

    @property
    def is_disposed(self) -> bool:
        return self._entity_set_listener is None

    def dispose(self) -> None:
        """Release the subscriptions to the source and the entity set."""
        if self._source_subscription is not None:
            self._source_subscription.cancel()
            self._source_subscription = None
        if self._entity_set_listener is not None:
            self._entity_set_listener.detach()
            self._entity_set_listener = None

    # -------------------------------------------------------------------------
    # Reentrancy guard
    # -------------------------------------------------------------------------

    def _update_and_ignore_reentrance(
        self, update_action: Callable[..., None], *args: Any
    ) -> None:
        if self._updating:
            return
        self._updating = True
        try:
            update_action(*args)
        finally:
            self._updating = False

    def _update_guarded(self, update_action: Callable[..., None], *args: Any) -> None:
        """Run a caller-driven update; notifications it causes are ignored."""
        was_updating = self._updating
        self._updating = True
        try:
            update_action(*args)
        finally:
            self._updating = was_updating

    def _reset_to_source(self) -> None:
        self._membership.clear()
        self._clear_items()
        if self._source is not None:
            for entity in list(self._source):
                self._membership.add(entity)
                if self._position_of(entity) < 0:
                    super()._insert_item(len(self), entity)

    # -------------------------------------------------------------------------
    # Caller-driven mutations
    # -------------------------------------------------------------------------

    def _insert_item(self, index: int, item: T) -> None:
        self._update_guarded(self._track_inserted, item)
        if self._position_of(item) < 0:
            super()._insert_item(min(index, len(self)), item)

    def _remove_item(self, index: int) -> None:
        item = self[index]
        self._update_guarded(self._untrack_removed, item)
        position = self._locate(item, index)
        if position >= 0:
            super()._remove_item(position)

    def _set_item(self, index: int, item: T) -> None:
        old = self[index]
        if old is item:
            super()._set_item(index, item)
            return
        self._update_guarded(self._track_replaced, old, item)
        position = self._locate(old, index)
        if position < 0:
            return
        if self._position_of(item) >= 0:
            super()._remove_item(position)
        else:
            super()._set_item(position, item)

    def _track_inserted(self, item: T) -> None:
        if item not in self._entity_set:
            self._entity_set.add(item)
        self._membership.add(item)

    def _untrack_removed(self, item: T) -> None:
        if item in self._entity_set:
            self._entity_set.remove(item)

    def _track_replaced(self, old: T, new: T) -> None:
        self._untrack_removed(old)
        self._track_inserted(new)

    # -------------------------------------------------------------------------
    # Source notifications
    # -------------------------------------------------------------------------

    def _on_source_changed(self, event: CollectionChangedEvent) -> None:
        self._update_and_ignore_reentrance(self._handle_source_changed, event)

    def _handle_source_changed(self, event: CollectionChangedEvent) -> None:
        if event.action is CollectionChangeAction.ADD:
            self._insert_from_source(event.new_items, event.new_starting_index)
        elif event.action is CollectionChangeAction.REMOVE:
            self._remove_from_source(event.old_items, event.old_starting_index)
        elif event.action is CollectionChangeAction.REPLACE:
            self._remove_from_source(event.old_items, event.old_starting_index)
            self._insert_from_source(event.new_items, event.new_starting_index)
        elif event.action is CollectionChangeAction.RESET:
            self._reset_to_source()

    def _insert_from_source(self, items: Iterable[T], index: int) -> None:
        position = len(self) if index < 0 else min(index, len(self))
        for item in items:
            self._membership.add(item)
            if self._position_of(item) >= 0:
                continue
            super()._insert_item(position, item)
            position += 1

    def _remove_from_source(self, items: Iterable[T], index: int) -> None:
        for item in items:
            # Still held by the source through another slot
            if self._source is not None and any(e is item for e in self._source):
                continue
            self._membership.discard(item)
            position = self._locate(item, index)
            if position >= 0:
                super()._remove_item(position)

    # -------------------------------------------------------------------------
    # Entity set notifications
    # -------------------------------------------------------------------------

    def _on_entity_set_changed(self, event: CollectionChangedEvent) -> None:
        self._update_and_ignore_reentrance(self._handle_entity_set_changed, event)

    def _handle_entity_set_changed(self, event: CollectionChangedEvent) -> None:
        if event.action in (CollectionChangeAction.REMOVE, CollectionChangeAction.REPLACE):
            for item in event.old_items:
                position = self._position_of(item)
                if position >= 0:
                    super()._remove_item(position)

        if event.action in (CollectionChangeAction.ADD, CollectionChangeAction.REPLACE):
            for item in event.new_items:
                self._mirror_added(item)

        if event.action is CollectionChangeAction.RESET:
            self._clear_items()
            for item in self._entity_set:
                self._mirror_added(item)

    def _mirror_added(self, item: T) -> None:
        # Only entities that belong to this list through its source (or
        # were added through it) are surfaced.
        if item in self._membership and self._position_of(item) < 0:
            super()._insert_item(len(self), item)

    def _locate(self, item: T, hint: int) -> int:
        if 0 <= hint < len(self) and self[hint] is item:
            return hint
        return self._position_of(item)

    def _position_of(self, item: T) -> int:
        for i, existing in enumerate(self._items):
            if existing is item:
                return i
        return -1
