"""
domainclient - Client-side runtime for domain services.

Load entities through named queries, track changes to them, submit the
changes as one changeset, and invoke service operations. Every call
returns an operation object that completes asynchronously.
"""

from .application import DomainContext
from .core.collections import EntityContainer, EntityList, EntitySet
from .core.domain.changeset import ChangeSet, ChangeSetEntry
from .core.domain.entities import Entity, EntityConflict, ValidationResult
from .core.domain.enums import (
    EntityOperationType,
    EntityState,
    LoadBehavior,
    OperationErrorStatus,
)
from .core.exceptions import (
    DomainClientError,
    DomainException,
    DomainOperationError,
    InvalidOperationError,
)
from .core.operations import InvokeOperation, LoadOperation, OperationBase, SubmitOperation
from .core.ports import ClientConfig, EntityQuery


__version__ = "0.1.0"


__all__ = [
    "ChangeSet",
    "ChangeSetEntry",
    "ClientConfig",
    "DomainClientError",
    "DomainContext",
    "DomainException",
    "DomainOperationError",
    "Entity",
    "EntityConflict",
    "EntityContainer",
    "EntityList",
    "EntityOperationType",
    "EntityQuery",
    "EntitySet",
    "EntityState",
    "InvalidOperationError",
    "InvokeOperation",
    "LoadBehavior",
    "LoadOperation",
    "OperationBase",
    "OperationErrorStatus",
    "SubmitOperation",
    "ValidationResult",
    "__version__",
]
