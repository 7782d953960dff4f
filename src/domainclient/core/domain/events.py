"""
Events - Change notifications raised by collections and operations.

Collections publish CollectionChangedEvent, operations and the domain
context publish PropertyChangedEvent. Both are delivered through an
EventHook, a small synchronous multicast delegate that hands out
Subscription objects for deterministic unsubscription.
"""

from __future__ import annotations

import threading
import uuid
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from .enums import CollectionChangeAction


E = TypeVar("E")


@dataclass(frozen=True)
class CollectionChangedEvent:
    """
    Describes a change to an ordered collection.

    Indexes are -1 when the position is unknown (or meaningless, as for
    RESET).
    """

    action: CollectionChangeAction
    new_items: tuple[Any, ...] = ()
    new_starting_index: int = -1
    old_items: tuple[Any, ...] = ()
    old_starting_index: int = -1

    @classmethod
    def added(cls, items: Sequence[Any], index: int = -1) -> CollectionChangedEvent:
        return cls(CollectionChangeAction.ADD, new_items=tuple(items), new_starting_index=index)

    @classmethod
    def removed(cls, items: Sequence[Any], index: int = -1) -> CollectionChangedEvent:
        return cls(CollectionChangeAction.REMOVE, old_items=tuple(items), old_starting_index=index)

    @classmethod
    def replaced(
        cls, new_item: Any, old_item: Any, index: int = -1
    ) -> CollectionChangedEvent:
        return cls(
            CollectionChangeAction.REPLACE,
            new_items=(new_item,),
            new_starting_index=index,
            old_items=(old_item,),
            old_starting_index=index,
        )

    @classmethod
    def reset(cls) -> CollectionChangedEvent:
        return cls(CollectionChangeAction.RESET)


@dataclass(frozen=True)
class PropertyChangedEvent:
    """A named property of the sender changed value."""

    sender: Any
    property_name: str


@dataclass(eq=False)
class Subscription:
    """Handle returned by EventHook.subscribe(); can be used to unsubscribe."""

    handler: Callable[[Any], None]
    hook: EventHook[Any] | None = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    active: bool = True

    def cancel(self) -> None:
        """Stop delivering events to the handler."""
        self.active = False
        if self.hook is not None:
            self.hook.unsubscribe(self)
            self.hook = None


class EventHook(Generic[E]):
    """
    Synchronous multicast event.

    Handlers run in subscription order on the thread that fires the event.
    Exceptions raised by a handler propagate to the code that fired it.
    """

    def __init__(self) -> None:
        self._subscriptions: list[Subscription] = []
        self._lock = threading.Lock()

    def subscribe(self, handler: Callable[[E], None]) -> Subscription:
        """Register a handler and return its subscription."""
        subscription = Subscription(handler=handler, hook=self)
        with self._lock:
            self._subscriptions.append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        subscription.active = False
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

    def fire(self, event: E) -> None:
        """Deliver an event to every active handler."""
        with self._lock:
            subscriptions = list(self._subscriptions)
        for subscription in subscriptions:
            if subscription.active:
                subscription.handler(event)

    def clear(self) -> None:
        with self._lock:
            for subscription in self._subscriptions:
                subscription.active = False
            self._subscriptions.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._subscriptions)
