"""
Collections - Observable lists, tracked entity sets and synchronized entity lists.
"""

from .entity_list import EntityList
from .entity_set import EntityContainer, EntitySet
from .observable import (
    ObservableList,
    ReadOnlyObservableCollection,
    WeakCollectionChangedListener,
)


__all__ = [
    "EntityContainer",
    "EntityList",
    "EntitySet",
    "ObservableList",
    "ReadOnlyObservableCollection",
    "WeakCollectionChangedListener",
]
