"""Church field categories for staged updates of approved records.

When a parish edits an APPROVED church:
- DIRECT_PUBLISH_FIELDS are applied to the live profile immediately
- REVERIFICATION_REQUIRED_FIELDS are held in pending_changes until the
  chancery (and the museum, for heritage churches) approves them

categorize_changes() stages every changed field that is not listed in
DIRECT_PUBLISH_FIELDS, including fields missing from both tables.
"""

from dataclasses import dataclass, field
from typing import Any

from visita_workflow.core.sparse_update import values_equal

REVERIFICATION_REQUIRED_FIELDS: frozenset[str] = frozenset(
    {
        # Core identification
        "name",
        "full_name",
        "location",
        "municipality",
        # Historical information
        "founding_year",
        "founders",
        "key_figures",
        "historical_background",
        "description",
        # Architectural and heritage classification
        "architectural_style",
        "classification",
        "religious_classification",
        "historical_details",
        # Heritage narrative (museum researcher validation)
        "cultural_significance",
        "preservation_history",
        "restoration_history",
        "architectural_features",
        "heritage_information",
        # Map placement
        "coordinates",
    }
)

DIRECT_PUBLISH_FIELDS: frozenset[str] = frozenset(
    {
        # Contact and scheduling
        "contact_info",
        "mass_schedules",
        "assigned_priest",
        "priest_history",
        "assistant_priests",
        "feast_day",
        # Media, 360° images included
        "images",
        "photos",
        "documents",
        "virtual_tour_360",
        # Metadata
        "tags",
        "category",
    }
)

_FIELD_LABELS: dict[str, str] = {
    "name": "Church Name",
    "full_name": "Full Name",
    "location": "Location",
    "municipality": "Municipality",
    "founding_year": "Founding Year",
    "founders": "Founders",
    "key_figures": "Key Figures",
    "historical_background": "Historical Background",
    "description": "Description",
    "architectural_style": "Architectural Style",
    "classification": "Heritage Classification",
    "religious_classification": "Religious Classification",
    "historical_details": "Historical Details",
    "cultural_significance": "Cultural Significance",
    "preservation_history": "Preservation History",
    "restoration_history": "Restoration History",
    "architectural_features": "Architectural Features",
    "heritage_information": "Heritage Information",
    "coordinates": "Map Coordinates",
    "contact_info": "Contact Information",
    "mass_schedules": "Mass Schedules",
    "assigned_priest": "Assigned Priest",
    "priest_history": "Priest Assignment History",
    "assistant_priests": "Assistant Priests",
    "feast_day": "Feast Day",
    "images": "Images",
    "photos": "Photos",
    "documents": "Documents",
    "virtual_tour_360": "360° Virtual Tour",
    "tags": "Tags",
    "category": "Category",
}


@dataclass
class FieldCategorization:
    """Changed form fields split by publication category.

    Attributes:
        direct_publish: Changed fields safe to apply to the live record.
        reverification_required: Changed fields that must be staged.
    """

    direct_publish: dict[str, Any] = field(default_factory=dict)
    reverification_required: dict[str, Any] = field(default_factory=dict)

    @property
    def direct_publish_fields(self) -> list[str]:
        return list(self.direct_publish)

    @property
    def reverification_fields(self) -> list[str]:
        return list(self.reverification_required)

    @property
    def has_sensitive_changes(self) -> bool:
        return bool(self.reverification_required)


def requires_verification(field_name: str) -> bool:
    """Return True for fields listed in REVERIFICATION_REQUIRED_FIELDS."""
    return field_name in REVERIFICATION_REQUIRED_FIELDS


def field_label(field_name: str) -> str:
    """Human-readable label for a form field, used in review lists."""
    return _FIELD_LABELS.get(field_name, field_name)


def categorize_changes(
    current: dict[str, Any],
    incoming: dict[str, Any],
) -> FieldCategorization:
    """Partition the fields that differ between current and incoming form views.

    Fields are compared after normalising None, empty strings and empty lists
    to "no value", so an untouched optional field never reads as a change.

    Args:
        current: Form view of the live record.
        incoming: Form view of the submitted edit.

    Returns:
        FieldCategorization with the new values of every changed field.
    """
    result = FieldCategorization()
    for name, new_value in incoming.items():
        if values_equal(current.get(name), new_value):
            continue
        if name not in DIRECT_PUBLISH_FIELDS:
            result.reverification_required[name] = new_value
        else:
            result.direct_publish[name] = new_value
    return result
