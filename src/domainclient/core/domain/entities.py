"""
Domain Entities - Tracked objects exchanged with a domain service.

Entities are mutable dataclasses with identity equality. Concrete entity
types subclass Entity and must be declared with ``@dataclass(eq=False)``
so that instances keep identity hashing (a tracked set holds them in
hash-based structures).

Change tracking is implicit: assigning a data member on an attached,
unmodified entity snapshots its original values and moves it to
MODIFIED. Data members are the dataclass fields that take part in
``__init__`` and do not start with an underscore.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import TYPE_CHECKING, Any, ClassVar

from ..exceptions import EntityStateError
from .enums import EntityState, LoadBehavior


if TYPE_CHECKING:
    from ..collections.entity_set import EntitySet


@dataclass(frozen=True)
class ValidationResult:
    """A validation failure, optionally scoped to specific members."""

    message: str
    member_names: tuple[str, ...] = ()

    def __str__(self) -> str:
        if self.member_names:
            return f"{', '.join(self.member_names)}: {self.message}"
        return self.message

    def to_dict(self) -> dict[str, Any]:
        return {"message": self.message, "member_names": list(self.member_names)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ValidationResult:
        return cls(
            message=str(data.get("message", "")),
            member_names=tuple(data.get("member_names") or data.get("memberNames") or ()),
        )


@dataclass(frozen=True)
class EntityAction:
    """A custom method invocation recorded on an entity for the next submit."""

    name: str
    parameters: tuple[Any, ...] = ()


@dataclass(eq=False)
class EntityConflict:
    """
    Optimistic concurrency conflict reported for a submitted entity.

    Attributes:
        client_entity: The entity as submitted by this client
        store_entity: Current values in the store (None for delete conflicts)
        original_values: Values the client believed the store held
        conflict_members: Members whose store value differs from the original
        is_delete_conflict: The entity was deleted from the store
    """

    client_entity: Entity
    store_entity: Entity | None = None
    original_values: dict[str, Any] = field(default_factory=dict)
    conflict_members: list[str] = field(default_factory=list)
    is_delete_conflict: bool = False

    def resolve(self) -> None:
        """
        Accept the store values as the new baseline.

        The client's pending edits are kept, the original values are
        replaced by the store's, so a resubmit will no longer conflict.
        """
        if self.is_delete_conflict or self.store_entity is None:
            raise EntityStateError("A delete conflict cannot be resolved by merging.")
        self.client_entity.merge(self.store_entity, LoadBehavior.MERGE_INTO_CURRENT)
        self.client_entity.conflict = None


@dataclass(eq=False)
class Entity:
    """
    Base class for tracked entities.

    Attributes:
        key_members: Names of the data members that form the identity
    """

    key_members: ClassVar[tuple[str, ...]] = ()

    entity_state: EntityState = field(default=EntityState.DETACHED, init=False, repr=False)
    conflict: EntityConflict | None = field(default=None, init=False, repr=False)
    validation_errors: list[ValidationResult] = field(
        default_factory=list, init=False, repr=False
    )
    is_submitting: bool = field(default=False, init=False, repr=False)
    entity_actions: list[EntityAction] = field(default_factory=list, init=False, repr=False)
    _original_values: dict[str, Any] = field(default_factory=dict, init=False, repr=False)
    _entity_set: EntitySet | None = field(default=None, init=False, repr=False)

    # -------------------------------------------------------------------------
    # Data members
    # -------------------------------------------------------------------------

    @classmethod
    def data_member_names(cls) -> tuple[str, ...]:
        """Names of the members exchanged with the service."""
        return tuple(f.name for f in fields(cls) if f.init and not f.name.startswith("_"))

    def extract_state(self) -> dict[str, Any]:
        """Current data member values."""
        return {name: getattr(self, name) for name in self.data_member_names()}

    def apply_state(self, values: dict[str, Any]) -> None:
        """Overwrite data members without change tracking."""
        names = set(self.data_member_names())
        for name, value in values.items():
            if name in names:
                object.__setattr__(self, name, value)

    def original_state(self) -> dict[str, Any]:
        """Data member values as they were before local modification."""
        state = self.extract_state()
        state.update(self._original_values)
        return state

    def identity(self) -> tuple[Any, ...] | None:
        """
        Identity used to de-duplicate loaded entities.

        Returns None when the type declares no key members, in which case
        every instance is distinct.
        """
        if not self.key_members:
            return None
        return (type(self),) + tuple(getattr(self, name) for name in self.key_members)

    def __setattr__(self, name: str, value: Any) -> None:
        state = self.__dict__.get("entity_state")
        if state is None or name.startswith("_") or name not in self.data_member_names():
            object.__setattr__(self, name, value)
            return

        if self.__dict__.get("is_submitting"):
            raise EntityStateError(
                f"Cannot modify {type(self).__name__}.{name} while a submit is in progress."
            )
        if state is EntityState.DELETED:
            raise EntityStateError(f"Cannot modify deleted entity {type(self).__name__}.")

        current = self.__dict__.get(name)
        if state in (EntityState.UNMODIFIED, EntityState.MODIFIED) and current != value:
            self._original_values.setdefault(name, current)
            object.__setattr__(self, "entity_state", EntityState.MODIFIED)
        object.__setattr__(self, name, value)

    # -------------------------------------------------------------------------
    # Change tracking
    # -------------------------------------------------------------------------

    @property
    def has_changes(self) -> bool:
        return self.entity_state.has_changes

    @property
    def has_validation_errors(self) -> bool:
        return bool(self.validation_errors)

    @property
    def entity_set(self) -> EntitySet | None:
        return self._entity_set

    @property
    def modified_members(self) -> list[str]:
        return [
            name for name, original in self._original_values.items()
            if getattr(self, name) != original
        ]

    def accept_changes(self) -> None:
        """Make the current values the new baseline."""
        self._original_values.clear()
        self.entity_actions.clear()
        self.conflict = None
        self.validation_errors.clear()
        if self.entity_state is EntityState.DELETED:
            object.__setattr__(self, "entity_state", EntityState.DETACHED)
            self._entity_set = None
        elif self.entity_state in (EntityState.NEW, EntityState.MODIFIED):
            object.__setattr__(self, "entity_state", EntityState.UNMODIFIED)

    def reject_changes(self) -> None:
        """Restore original values and drop pending actions."""
        for name, value in self._original_values.items():
            object.__setattr__(self, name, value)
        self._original_values.clear()
        self.entity_actions.clear()
        self.conflict = None
        self.validation_errors.clear()
        if self.entity_state is EntityState.MODIFIED:
            object.__setattr__(self, "entity_state", EntityState.UNMODIFIED)

    def merge(self, other: Entity, load_behavior: LoadBehavior) -> None:
        """
        Merge values from another instance with the same identity.

        KEEP_CURRENT leaves this entity untouched. MERGE_INTO_CURRENT updates
        members that have no pending local edit and moves the baseline of
        edited ones. REFRESH_CURRENT overwrites everything and discards
        local edits.
        """
        if load_behavior is LoadBehavior.KEEP_CURRENT:
            return

        incoming = other.extract_state()
        if load_behavior is LoadBehavior.REFRESH_CURRENT:
            self.apply_state(incoming)
            self._original_values.clear()
            if self.entity_state is EntityState.MODIFIED:
                object.__setattr__(self, "entity_state", EntityState.UNMODIFIED)
            return

        for name, value in incoming.items():
            if name in self._original_values:
                self._original_values[name] = value
            else:
                object.__setattr__(self, name, value)

    def invoke_action(self, name: str, *parameters: Any) -> None:
        """Record a custom method call to be sent with the next submit."""
        if self.entity_state in (EntityState.DETACHED, EntityState.DELETED):
            raise EntityStateError(
                f"Custom method '{name}' requires an attached, non-deleted entity."
            )
        if self.is_submitting:
            raise EntityStateError(f"Cannot invoke '{name}' while a submit is in progress.")
        self.entity_actions.append(EntityAction(name, tuple(parameters)))
        if self.entity_state is EntityState.UNMODIFIED:
            object.__setattr__(self, "entity_state", EntityState.MODIFIED)

    def validate(self) -> list[ValidationResult]:
        """
        Client-side validation run before a submit.

        Subclasses override this to add their own rules.
        """
        return []
