"""
Observable collections - Ordered sequences that report their changes.

ObservableList routes every mutation through four protected hooks
(``_insert_item``, ``_remove_item``, ``_set_item``, ``_clear_items``) so
subclasses can intercept changes the way EntityList does.
"""

from __future__ import annotations

import threading
import weakref
from collections.abc import Callable, Iterable, Iterator, MutableSequence, Sequence
from typing import Any, Generic, TypeVar, overload

from ..domain.events import CollectionChangedEvent, EventHook, Subscription


T = TypeVar("T")


class ObservableList(MutableSequence[T]):
    """A list that raises ``collection_changed`` after each mutation."""

    def __init__(self, items: Iterable[T] = ()):
        self._items: list[T] = list(items)
        self.collection_changed: EventHook[CollectionChangedEvent] = EventHook()

    # -------------------------------------------------------------------------
    # Sequence protocol
    # -------------------------------------------------------------------------

    @overload
    def __getitem__(self, index: int) -> T: ...

    @overload
    def __getitem__(self, index: slice) -> list[T]: ...

    def __getitem__(self, index: int | slice) -> T | list[T]:
        return self._items[index]

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(list(self._items))

    def __contains__(self, item: object) -> bool:
        return any(existing is item or existing == item for existing in self._items)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._items!r})"

    def __setitem__(self, index: int | slice, value: Any) -> None:
        if isinstance(index, slice):
            raise TypeError(f"{type(self).__name__} does not support slice assignment")
        self._set_item(self._normalize(index), value)

    def __delitem__(self, index: int | slice) -> None:
        if isinstance(index, slice):
            for i in sorted(range(*index.indices(len(self._items))), reverse=True):
                self._remove_item(i)
            return
        self._remove_item(self._normalize(index))

    def insert(self, index: int, value: T) -> None:
        size = len(self._items)
        if index < 0:
            index = max(0, size + index)
        self._insert_item(min(index, size), value)

    def clear(self) -> None:
        self._clear_items()

    def index(self, value: Any, start: int = 0, stop: int | None = None) -> int:
        """Find ``value`` by identity first, then by equality."""
        stop = len(self._items) if stop is None else stop
        for i in range(start, min(stop, len(self._items))):
            if self._items[i] is value:
                return i
        return super().index(value, start, stop)

    def _normalize(self, index: int) -> int:
        size = len(self._items)
        if index < 0:
            index += size
        if not 0 <= index < size:
            raise IndexError(f"{type(self).__name__} index out of range")
        return index

    # -------------------------------------------------------------------------
    # Mutation hooks
    # -------------------------------------------------------------------------

    def _insert_item(self, index: int, item: T) -> None:
        self._items.insert(index, item)
        self._on_collection_changed(CollectionChangedEvent.added([item], index))

    def _remove_item(self, index: int) -> None:
        item = self._items.pop(index)
        self._on_collection_changed(CollectionChangedEvent.removed([item], index))

    def _set_item(self, index: int, item: T) -> None:
        old = self._items[index]
        self._items[index] = item
        self._on_collection_changed(CollectionChangedEvent.replaced(item, old, index))

    def _clear_items(self) -> None:
        self._items.clear()
        self._on_collection_changed(CollectionChangedEvent.reset())

    def _on_collection_changed(self, event: CollectionChangedEvent) -> None:
        self.collection_changed.fire(event)


class ReadOnlyObservableCollection(Sequence[T]):
    """
    Read-only view whose content is replaced wholesale by its owner.

    Used for operation results: the owning operation calls ``_reset`` once
    per completion, which raises a single RESET notification.
    """

    def __init__(self, items: Iterable[T] = ()):
        self._items: list[T] = list(items)
        self.collection_changed: EventHook[CollectionChangedEvent] = EventHook()

    def __getitem__(self, index):  # type: ignore[override]
        return self._items[index]

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(self._items)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._items!r})"

    def _reset(self, items: Iterable[T]) -> None:
        self._items = list(items)
        self.collection_changed.fire(CollectionChangedEvent.reset())


class WeakCollectionChangedListener(Generic[T]):
    """
    Non-owning subscription to a collection's change feed.

    Holds the handler through a weak method reference, so the subscriber
    can be collected while the source collection lives on. Once the
    subscriber is gone the subscription removes itself on the next event;
    ``detach()`` removes it deterministically.
    """

    def __init__(
        self,
        source: Any,
        handler: Callable[[CollectionChangedEvent], None],
    ):
        self._lock = threading.RLock()
        self._handler_ref: Callable[[], Callable[[CollectionChangedEvent], None] | None]
        if hasattr(handler, "__self__"):
            self._handler_ref = weakref.WeakMethod(handler)  # type: ignore[arg-type]
        else:
            self._handler_ref = weakref.ref(handler)
        self._subscription: Subscription | None = source.collection_changed.subscribe(
            self._on_collection_changed
        )

    @property
    def is_attached(self) -> bool:
        return self._subscription is not None

    def _on_collection_changed(self, event: CollectionChangedEvent) -> None:
        handler = self._handler_ref()
        if handler is None:
            self.detach()
            return
        handler(event)

    def detach(self) -> None:
        with self._lock:
            if self._subscription is not None:
                self._subscription.cancel()
                self._subscription = None
