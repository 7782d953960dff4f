"""
Tests for domain enums.
"""

import pytest

from domainclient.core.domain.enums import (
    EntityOperationType,
    EntityState,
    LoadBehavior,
    OperationErrorStatus,
)


class TestEntityState:
    """Tests for EntityState enum."""

    @pytest.mark.parametrize(
        "state", [EntityState.NEW, EntityState.MODIFIED, EntityState.DELETED]
    )
    def test_states_with_changes(self, state):
        assert state.has_changes

    @pytest.mark.parametrize("state", [EntityState.DETACHED, EntityState.UNMODIFIED])
    def test_states_without_changes(self, state):
        assert not state.has_changes


class TestEntityOperationType:
    """Tests for EntityOperationType enum."""

    class TestFromString:
        """Tests for EntityOperationType.from_string()."""

        def test_names_in_any_case(self):
            assert EntityOperationType.from_string("insert") is EntityOperationType.INSERT
            assert EntityOperationType.from_string("Update") is EntityOperationType.UPDATE
            assert EntityOperationType.from_string("DELETE") is EntityOperationType.DELETE

        def test_none_means_custom(self):
            assert EntityOperationType.from_string("None") is EntityOperationType.CUSTOM
            assert EntityOperationType.from_string(" custom ") is EntityOperationType.CUSTOM

        def test_unknown_raises(self):
            with pytest.raises(ValueError, match="Unknown entity operation type"):
                EntityOperationType.from_string("upsert")


class TestOperationErrorStatus:
    """Tests for OperationErrorStatus.from_http_status()."""

    @pytest.mark.parametrize(
        ("code", "status"),
        [
            (400, OperationErrorStatus.VALIDATION_FAILED),
            (401, OperationErrorStatus.UNAUTHORIZED),
            (403, OperationErrorStatus.UNAUTHORIZED),
            (404, OperationErrorStatus.NOT_FOUND),
            (405, OperationErrorStatus.NOT_SUPPORTED),
            (409, OperationErrorStatus.CONFLICTS),
            (412, OperationErrorStatus.CONFLICTS),
            (501, OperationErrorStatus.NOT_SUPPORTED),
            (500, OperationErrorStatus.SERVER_ERROR),
            (418, OperationErrorStatus.SERVER_ERROR),
        ],
    )
    def test_mapping(self, code, status):
        assert OperationErrorStatus.from_http_status(code) is status


class TestLoadBehavior:
    """Tests for LoadBehavior.from_string()."""

    def test_short_names(self):
        assert LoadBehavior.from_string("keep") is LoadBehavior.KEEP_CURRENT
        assert LoadBehavior.from_string("merge") is LoadBehavior.MERGE_INTO_CURRENT
        assert LoadBehavior.from_string("Refresh") is LoadBehavior.REFRESH_CURRENT

    def test_full_names(self):
        assert LoadBehavior.from_string("merge-into-current") is LoadBehavior.MERGE_INTO_CURRENT
        assert LoadBehavior.from_string("KEEP_CURRENT") is LoadBehavior.KEEP_CURRENT

    def test_unknown_raises(self):
        with pytest.raises(ValueError):
            LoadBehavior.from_string("replace")
