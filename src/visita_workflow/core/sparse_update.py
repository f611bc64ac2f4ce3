"""Sparse document updates computed from a current/desired pair.

One routine, sparse_diff(), produces both the partial update to write and the
FieldChange list to audit. It serves the staged-update split, the heritage
partial update and the standard form update alike.

Partial updates may address a nested value with a dotted key, but only for
the paths listed in NESTED_FIELD_PATHS. Any other dotted key is rejected.
"""

import copy
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from visita_workflow.core.records import FORM_FIELDS, ChurchRecord, FieldChange

NESTED_FIELD_PATHS: frozenset[str] = frozenset(
    {
        "pending_changes.forwarded_to_museum",
        "pending_changes.forwarded_at",
        "pending_changes.forwarded_by",
        "heritage_validation.validated",
        "heritage_validation.notes",
        "heritage_validation.validated_at",
        "virtual_tour.scenes",
    }
)


def normalize(value: Any) -> Any:
    """Collapse None, empty strings and empty containers to None."""
    if value is None or value == "" or value == [] or value == {}:
        return None
    return value


def values_equal(left: Any, right: Any) -> bool:
    """Compare two JSON-compatible values, treating all empty values as equal."""
    return normalize(left) == normalize(right)


@dataclass
class SparseUpdate:
    """Fields to write and the audited changes they represent."""

    updates: dict[str, Any] = field(default_factory=dict)
    changes: list[FieldChange] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.updates)

    @property
    def fields(self) -> list[str]:
        return list(self.updates)


def sparse_diff(
    current: dict[str, Any],
    desired: dict[str, Any],
    fields: Iterable[str] | None = None,
) -> SparseUpdate:
    """Compute the sparse update that turns current into desired.

    Args:
        current: Current values, keyed by field name.
        desired: Desired values. Keys absent from desired are left untouched.
        fields: Optional restriction of the keys considered.

    Returns:
        SparseUpdate with one entry per field whose value actually changes.
    """
    keys = list(desired) if fields is None else [name for name in fields if name in desired]
    result = SparseUpdate()
    for name in keys:
        old_value = current.get(name)
        new_value = desired[name]
        if values_equal(old_value, new_value):
            continue
        result.updates[name] = new_value
        result.changes.append(FieldChange(field=name, old_value=old_value, new_value=new_value))
    return result


def form_view(record: ChurchRecord) -> dict[str, Any]:
    """Reconstruct the form-equivalent view of a stored church record."""
    stored = record.model_dump(mode="json")
    view: dict[str, Any] = {}
    for name in FORM_FIELDS:
        if name == "coordinates":
            coordinates = record.coordinates
            view[name] = coordinates.model_dump(mode="json") if coordinates else None
        elif name == "virtual_tour_360":
            view[name] = stored["virtual_tour_images"]
        else:
            view[name] = stored.get(name)
    return view


def to_storage_fields(form_fields: dict[str, Any]) -> dict[str, Any]:
    """Rename form fields to their storage names.

    The coordinates pair is split into scalar latitude/longitude fields and
    the virtual tour image list is stored under virtual_tour_images.
    """
    stored: dict[str, Any] = {}
    for name, value in form_fields.items():
        if name == "coordinates":
            stored["latitude"] = value["latitude"] if value else None
            stored["longitude"] = value["longitude"] if value else None
        elif name == "virtual_tour_360":
            stored["virtual_tour_images"] = value or []
        else:
            stored[name] = value
    return stored


def set_nested(document: dict[str, Any], path: str, value: Any) -> None:
    """Set one of the known nested paths on a document in place.

    Raises:
        ValueError: If path is not one of NESTED_FIELD_PATHS.
    """
    if path not in NESTED_FIELD_PATHS:
        raise ValueError(f"Unsupported nested field path '{path}'")
    parent_name, child_name = path.split(".", 1)
    parent = document.get(parent_name)
    if not isinstance(parent, dict):
        parent = {}
        document[parent_name] = parent
    parent[child_name] = value


def apply_field_updates(document: dict[str, Any], updates: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of document with a partial update applied.

    Plain keys replace top-level values; dotted keys go through set_nested().
    """
    result = copy.deepcopy(document)
    for key, value in updates.items():
        if "." in key:
            set_nested(result, key, copy.deepcopy(value))
        else:
            result[key] = copy.deepcopy(value)
    return result
