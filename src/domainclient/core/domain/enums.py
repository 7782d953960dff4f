"""
Domain enums - Entity states, operation kinds, and error classifications.
"""

from __future__ import annotations

from enum import Enum, auto


class EntityState(Enum):
    """Tracking state of an entity relative to its tracked set."""

    DETACHED = auto()
    NEW = auto()
    UNMODIFIED = auto()
    MODIFIED = auto()
    DELETED = auto()

    @property
    def has_changes(self) -> bool:
        """Whether an entity in this state belongs in a changeset."""
        return self in (EntityState.NEW, EntityState.MODIFIED, EntityState.DELETED)


class EntityOperationType(Enum):
    """Kind of change a changeset entry describes."""

    INSERT = auto()
    UPDATE = auto()
    DELETE = auto()
    CUSTOM = auto()

    @classmethod
    def from_string(cls, value: str) -> EntityOperationType:
        """
        Parse an operation type from its wire name.

        Accepts the enum name in any case, plus the short forms used by some
        services ("Insert", "Update", "Delete", "None").
        """
        normalized = value.strip().upper()
        if normalized in ("NONE", "CUSTOM"):
            return cls.CUSTOM
        try:
            return cls[normalized]
        except KeyError:
            raise ValueError(f"Unknown entity operation type: {value!r}") from None


class OperationErrorStatus(Enum):
    """Classification of a failed domain operation."""

    NOT_SUPPORTED = auto()
    SERVER_ERROR = auto()
    VALIDATION_FAILED = auto()
    CONFLICTS = auto()
    UNAUTHORIZED = auto()
    NOT_FOUND = auto()

    @classmethod
    def from_http_status(cls, status_code: int) -> OperationErrorStatus:
        """Map an HTTP status code to an error classification."""
        return {
            400: cls.VALIDATION_FAILED,
            401: cls.UNAUTHORIZED,
            403: cls.UNAUTHORIZED,
            404: cls.NOT_FOUND,
            405: cls.NOT_SUPPORTED,
            409: cls.CONFLICTS,
            412: cls.CONFLICTS,
            501: cls.NOT_SUPPORTED,
        }.get(status_code, cls.SERVER_ERROR)


class LoadBehavior(Enum):
    """How loaded entities are merged into entities that are already tracked."""

    KEEP_CURRENT = auto()
    MERGE_INTO_CURRENT = auto()
    REFRESH_CURRENT = auto()

    @classmethod
    def from_string(cls, value: str) -> LoadBehavior:
        """Parse a load behavior from 'keep', 'merge', 'refresh' or the full name."""
        normalized = value.strip().lower().replace("-", "_")
        aliases = {
            "keep": cls.KEEP_CURRENT,
            "merge": cls.MERGE_INTO_CURRENT,
            "refresh": cls.REFRESH_CURRENT,
        }
        if normalized in aliases:
            return aliases[normalized]
        try:
            return cls[normalized.upper()]
        except KeyError:
            raise ValueError(f"Unknown load behavior: {value!r}") from None


class CollectionChangeAction(Enum):
    """Kind of change reported by an observable collection."""

    ADD = auto()
    REMOVE = auto()
    REPLACE = auto()
    RESET = auto()
