"""Tests for sparse update diffs, form views and the nested field setter."""

import pytest

from visita_workflow.core.records import ChurchRecord
from visita_workflow.core.sparse_update import (
    NESTED_FIELD_PATHS,
    apply_field_updates,
    form_view,
    set_nested,
    sparse_diff,
    to_storage_fields,
)
from tests.conftest import make_church_document


class TestSparseDiff:
    """Tests for sparse_diff()."""

    def test_only_changed_fields_are_included(self) -> None:
        current = {"status": "approved", "heritage_notes": None, "founders": "Augustinians"}
        desired = {"status": "approved", "heritage_notes": "Retablo intact", "founders": "Augustinians"}

        diff = sparse_diff(current, desired)

        assert diff.updates == {"heritage_notes": "Retablo intact"}
        assert [(c.field, c.old_value, c.new_value) for c in diff.changes] == [
            ("heritage_notes", None, "Retablo intact"),
        ]
        assert bool(diff) is True

    def test_keys_absent_from_desired_are_untouched(self) -> None:
        diff = sparse_diff({"name": "St. Anne", "founders": "X"}, {"name": "St. Anne"})
        assert not diff
        assert diff.fields == []

    def test_fields_restriction(self) -> None:
        diff = sparse_diff({}, {"name": "A", "status": "approved"}, fields=["status"])
        assert diff.updates == {"status": "approved"}


class TestFormView:
    """Tests for the storage <-> form mapping."""

    def test_form_view_rebuilds_coordinates_and_tour_images(self) -> None:
        document = make_church_document(latitude=9.8, longitude=123.8, virtual_tour_images=["a.jpg"])
        view = form_view(ChurchRecord.model_validate({"id": "church-1", **document}))

        assert view["coordinates"] == {"latitude": 9.8, "longitude": 123.8}
        assert view["virtual_tour_360"] == ["a.jpg"]
        assert "latitude" not in view

    def test_form_view_without_position(self) -> None:
        view = form_view(ChurchRecord.model_validate({"id": "church-1", **make_church_document()}))
        assert view["coordinates"] is None

    def test_to_storage_fields_splits_coordinates(self) -> None:
        stored = to_storage_fields(
            {"coordinates": {"latitude": 9.8, "longitude": 123.8}, "virtual_tour_360": None, "name": "A"}
        )
        assert stored == {"latitude": 9.8, "longitude": 123.8, "virtual_tour_images": [], "name": "A"}

    def test_to_storage_fields_clears_coordinates(self) -> None:
        assert to_storage_fields({"coordinates": None}) == {"latitude": None, "longitude": None}


class TestNestedSetter:
    """Tests for set_nested() and apply_field_updates()."""

    def test_known_path_creates_parent(self) -> None:
        document: dict = {}
        set_nested(document, "heritage_validation.validated", True)
        assert document == {"heritage_validation": {"validated": True}}

    def test_unknown_path_is_rejected(self) -> None:
        with pytest.raises(ValueError, match="Unsupported nested field path"):
            set_nested({}, "contact_info.phone", "123")

    def test_known_paths_are_two_levels_deep(self) -> None:
        assert all(path.count(".") == 1 for path in NESTED_FIELD_PATHS)

    def test_apply_field_updates_does_not_mutate_input(self) -> None:
        document = {"pending_changes": {"data": {"name": "B"}, "forwarded_to_museum": False}, "name": "A"}

        updated = apply_field_updates(
            document,
            {"pending_changes.forwarded_to_museum": True, "updated_at": "2026-01-01T00:00:00+00:00"},
        )

        assert updated["pending_changes"] == {"data": {"name": "B"}, "forwarded_to_museum": True}
        assert updated["updated_at"] == "2026-01-01T00:00:00+00:00"
        assert document["pending_changes"]["forwarded_to_museum"] is False
        assert "updated_at" not in document
