"""
ChangeSet Correlator - Match returned changeset entries to client entities.

Every entry of a submission carries a correlation id that is unique
within that submission. When the service answers, each returned entry is
re-attached to the client entity it was built from. A returned id that
was never submitted means client and service disagree about identity;
that is a protocol violation and aborts the submission.

After correlation the correlator applies the outcome to the client
entities: per-entry validation errors and conflicts are copied onto the
entities, and, when there are none, server-computed member values are
merged back.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from .domain.changeset import ChangeSetEntry
from .domain.entities import Entity, EntityConflict
from .domain.enums import EntityOperationType
from .exceptions import CorrelationError


logger = logging.getLogger("ChangeSetCorrelator")


class ChangeSetCorrelator:
    """
    Correlates one submission's returned entries with its submitted entries.

    Example:
        >>> correlator = ChangeSetCorrelator(change_set.get_change_set_entries())
        >>> results = correlator.correlate(returned_entries)
        >>> results[0].client_entity is change_set.added_entities[0]
        True
    """

    def __init__(self, submitted: Iterable[ChangeSetEntry]):
        self._submitted: dict[int, ChangeSetEntry] = {}
        for entry in submitted:
            if entry.id in self._submitted:
                raise CorrelationError(
                    f"Duplicate correlation id {entry.id} in submitted changeset",
                    correlation_id=entry.id,
                )
            if entry.client_entity is None:
                raise CorrelationError(
                    f"Submitted entry {entry.id} has no client entity",
                    correlation_id=entry.id,
                )
            self._submitted[entry.id] = entry

    def __len__(self) -> int:
        return len(self._submitted)

    def client_entity_for(self, correlation_id: int) -> Entity:
        """
        Look up the client entity submitted under ``correlation_id``.

        Raises:
            CorrelationError: If no entry with that id was submitted
        """
        entry = self._submitted.get(correlation_id)
        if entry is None:
            logger.error(f"Returned changeset entry has unknown correlation id {correlation_id}")
            raise CorrelationError(
                f"The service returned a changeset entry with correlation id "
                f"{correlation_id}, which was not part of the submission",
                correlation_id=correlation_id,
            )
        return entry.client_entity  # type: ignore[return-value]

    def correlate(self, returned: Iterable[ChangeSetEntry]) -> list[ChangeSetEntry]:
        """
        Re-attach client entities to the returned entries, in returned order.

        Raw conflict details are turned into EntityConflict objects bound to
        the client entity.

        Raises:
            CorrelationError: If any returned entry has an unknown id
        """
        results = list(returned)
        for entry in results:
            client_entity = self.client_entity_for(entry.id)
            entry.client_entity = client_entity
            if entry.conflict is not None:
                entry.conflict.client_entity = client_entity
            elif entry.conflict_members or entry.is_delete_conflict:
                entry.conflict = EntityConflict(
                    client_entity=client_entity,
                    store_entity=entry.store_entity,
                    original_values=dict(self._submitted[entry.id].original_values or {}),
                    conflict_members=list(entry.conflict_members),
                    is_delete_conflict=entry.is_delete_conflict,
                )
        return results


def apply_entry_errors(results: Iterable[ChangeSetEntry]) -> tuple[bool, bool]:
    """
    Copy validation errors and conflicts from correlated entries to their entities.

    Returns:
        (has_validation_errors, has_conflicts)
    """
    has_validation_errors = False
    has_conflicts = False
    for entry in results:
        entity = entry.client_entity
        if entity is None:
            continue
        if entry.validation_errors:
            entity.validation_errors = list(entry.validation_errors)
            has_validation_errors = True
        if entry.conflict is not None:
            entity.conflict = entry.conflict
            has_conflicts = True
    return has_validation_errors, has_conflicts


def merge_server_values(results: Iterable[ChangeSetEntry]) -> None:
    """
    Copy member values computed by the service onto the client entities.

    Deleted entities are skipped; their values are no longer meaningful.
    Only the members the service actually returned are copied.
    """
    for entry in results:
        entity = entry.client_entity
        if entity is None or entry.operation is EntityOperationType.DELETE:
            continue
        if entry.entity is not None and entry.entity is not entity:
            state = entry.entity.extract_state()
            if entry.returned_members is not None:
                state = {k: v for k, v in state.items() if k in entry.returned_members}
            entity.apply_state(state)


def entries_in_error(results: Iterable[ChangeSetEntry]) -> list[ChangeSetEntry]:
    """Returned entries that carry a conflict or validation errors."""
    return [entry for entry in results if entry.has_error]
