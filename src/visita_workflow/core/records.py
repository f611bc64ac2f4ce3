"""Pydantic domain records for church documents, forms, and audit entries.

Church documents are persisted as plain JSON-compatible dicts. ChurchRecord is
the typed view the workflow reads them into; ChurchFormData, HeritageUpdate
and ReviewAction are the explicit input records of each workflow operation.

Storage names differ from form names in two places:
- the form's `coordinates` pair is stored as scalar `latitude`/`longitude`
- the form's `virtual_tour_360` image list is stored as `virtual_tour_images`
"""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

ChurchStatus = Literal["pending", "under_review", "heritage_review", "approved", "draft"]
Classification = Literal["ICP", "NCT", "non_heritage"]
ActorRole = Literal["parish_secretary", "chancery_office", "museum_researcher"]

AuditAction = Literal[
    "church.create",
    "church.update",
    "church.submit",
    "church.approve",
    "church.reject",
    "church.unpublish",
    "church.forward_heritage",
    "heritage.update",
    "heritage.approve",
    "heritage.reclassify",
]
ResourceType = Literal["church", "heritage", "user", "announcement", "feedback", "system"]

HERITAGE_CLASSIFICATIONS: frozenset[str] = frozenset({"ICP", "NCT"})


def _normalize_classification(value: Any) -> Any:
    # Older documents spell the non-heritage value with a hyphen.
    if value in ("non-heritage", "unknown", None, ""):
        return "non_heritage"
    return value


def is_heritage(classification: str | None) -> bool:
    """Return True for ICP and NCT classifications."""
    return classification in HERITAGE_CLASSIFICATIONS


# ---------------------------------------------------------------------------
# Nested value records
# ---------------------------------------------------------------------------


class Coordinates(BaseModel):
    """Map position of a church."""

    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)


class ContactInfo(BaseModel):
    """Public contact details of a parish."""

    phone: str | None = None
    email: str | None = None
    address: str | None = None
    website: str | None = None
    facebook_page: str | None = None


class MassSchedule(BaseModel):
    """One recurring mass."""

    day: str
    time: str
    end_time: str | None = None
    type: str | None = None
    language: str | None = None
    is_fb_live: bool = False


class PriestAssignment(BaseModel):
    """Historical record of a parish priest assignment."""

    name: str
    start_date: str
    end_date: str | None = None
    is_current: bool = False
    notes: str | None = None


class HistoricalDetails(BaseModel):
    """Historical details captured on the parish form."""

    heritage_classification: str | None = None
    major_historical_events: str | None = None
    religious_classifications: list[str] = Field(default_factory=list)


class HeritageValidation(BaseModel):
    """Museum researcher's validation of heritage information."""

    validated: bool
    notes: str | None = None
    validated_at: datetime | None = None


class HeritageDeclaration(BaseModel):
    """Reference to the official heritage declaration document."""

    type: Literal["ICP", "NCT"]
    reference_no: str | None = None
    issued_by: str | None = None
    date_issued: str | None = None
    notes: str | None = None


class TourHotspot(BaseModel):
    """Navigation or info marker inside a 360° scene."""

    id: str
    type: Literal["navigation", "info"]
    yaw: float = Field(ge=-180, le=180)
    pitch: float = Field(ge=-90, le=90)
    label: str
    target_scene_id: str | None = None
    description: str | None = None


class TourScene(BaseModel):
    """A single 360° scene of a virtual tour."""

    id: str
    title: str
    image_url: str
    is_start_scene: bool = False
    hotspots: list[TourHotspot] = Field(default_factory=list)


class VirtualTour(BaseModel):
    """Complete virtual tour of a church."""

    scenes: list[TourScene] = Field(default_factory=list)


class PendingChanges(BaseModel):
    """Staged edits to an approved church awaiting re-verification."""

    data: dict[str, Any] = Field(default_factory=dict)
    changed_fields: list[str] = Field(default_factory=list)
    submitted_at: datetime
    submitted_by: str
    forwarded_to_museum: bool = False
    forwarded_at: datetime | None = None
    forwarded_by: str | None = None


# ---------------------------------------------------------------------------
# Operation inputs
# ---------------------------------------------------------------------------


class ChurchFormData(BaseModel):
    """Church profile form as submitted by a parish secretary or the chancery."""

    name: str
    full_name: str = ""
    location: str = ""
    municipality: str = ""
    founding_year: int | None = None
    founders: str | None = None
    key_figures: list[str] = Field(default_factory=list)
    architectural_style: str | None = None
    historical_background: str = ""
    description: str = ""
    classification: Classification = "non_heritage"
    religious_classification: str | None = None
    historical_details: HistoricalDetails | None = None
    assigned_priest: str | None = None
    priest_history: list[PriestAssignment] = Field(default_factory=list)
    assistant_priests: list[str] = Field(default_factory=list)
    feast_day: str | None = None
    mass_schedules: list[MassSchedule] = Field(default_factory=list)
    coordinates: Coordinates | None = None
    contact_info: ContactInfo | None = None
    images: list[str] = Field(default_factory=list)
    photos: list[str] = Field(default_factory=list)
    documents: list[str] = Field(default_factory=list)
    virtual_tour_360: list[str] = Field(default_factory=list)
    cultural_significance: str | None = None
    preservation_history: str | None = None
    restoration_history: str | None = None
    architectural_features: str | None = None
    heritage_information: str | None = None
    tags: list[str] = Field(default_factory=list)
    category: str | None = None

    normalize_classification = field_validator("classification", mode="before")(_normalize_classification)


FORM_FIELDS: tuple[str, ...] = tuple(ChurchFormData.model_fields)


class HeritageUpdate(BaseModel):
    """Museum researcher's partial update of heritage information.

    Only fields that are explicitly provided and not None are applied.
    """

    cultural_significance: str | None = None
    heritage_notes: str | None = None
    architectural_features: str | None = None
    heritage_information: str | None = None
    preservation_history: str | None = None
    restoration_history: str | None = None
    heritage_validation: HeritageValidation | None = None
    heritage_declaration: HeritageDeclaration | None = None
    status: ChurchStatus | None = None
    classification: Classification | None = None
    founding_year: int | None = None
    founders: str | None = None
    architectural_style: str | None = None
    historical_background: str | None = None
    religious_classification: str | None = None

    def provided_fields(self) -> dict[str, Any]:
        """Return the explicitly provided, non-None fields in JSON form."""
        dumped = self.model_dump(mode="json")
        return {
            name: dumped[name]
            for name in type(self).model_fields
            if name in self.model_fields_set and dumped.get(name) is not None
        }


class ReviewAction(BaseModel):
    """Chancery review decision on a church submission."""

    church_id: str
    action: Literal["approve", "forward_to_museum"]
    notes: str | None = None


class Actor(BaseModel):
    """Snapshot of the user performing an action."""

    model_config = ConfigDict(frozen=True)

    uid: str
    role: str
    diocese: str
    email: str = ""
    name: str = ""


# ---------------------------------------------------------------------------
# Stored church document
# ---------------------------------------------------------------------------


class ChurchRecord(BaseModel):
    """Typed view of a stored church document."""

    model_config = ConfigDict(extra="ignore")

    id: str
    status: ChurchStatus = "pending"
    classification: Classification = "non_heritage"
    diocese: str = ""
    parish_id: str | None = None

    name: str = ""
    full_name: str = ""
    location: str = ""
    municipality: str = ""
    founding_year: int | None = None
    founders: str | None = None
    key_figures: list[str] = Field(default_factory=list)
    architectural_style: str | None = None
    historical_background: str = ""
    description: str = ""
    religious_classification: str | None = None
    historical_details: HistoricalDetails | None = None
    assigned_priest: str | None = None
    priest_history: list[PriestAssignment] = Field(default_factory=list)
    assistant_priests: list[str] = Field(default_factory=list)
    feast_day: str | None = None
    mass_schedules: list[MassSchedule] = Field(default_factory=list)
    latitude: float | None = None
    longitude: float | None = None
    contact_info: ContactInfo | None = None
    images: list[str] = Field(default_factory=list)
    photos: list[str] = Field(default_factory=list)
    documents: list[str] = Field(default_factory=list)
    virtual_tour_images: list[str] = Field(default_factory=list)
    cultural_significance: str | None = None
    preservation_history: str | None = None
    restoration_history: str | None = None
    architectural_features: str | None = None
    heritage_information: str | None = None
    tags: list[str] = Field(default_factory=list)
    category: str | None = None

    heritage_notes: str | None = None
    heritage_validation: HeritageValidation | None = None
    heritage_declaration: HeritageDeclaration | None = None
    heritage_researcher: str | None = None
    last_heritage_update: datetime | None = None

    virtual_tour: VirtualTour | None = None

    pending_changes: PendingChanges | None = None
    has_pending_changes: bool = False

    review_notes: str | None = None
    reviewed_by: str | None = None
    reviewed_at: datetime | None = None
    approved_by: str | None = None
    approved_at: datetime | None = None
    created_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    submitted_at: datetime | None = None
    unpublished_at: datetime | None = None
    unpublished_by: str | None = None
    unpublish_reason: str | None = None

    normalize_classification = field_validator("classification", mode="before")(_normalize_classification)

    @property
    def coordinates(self) -> Coordinates | None:
        if self.latitude is None or self.longitude is None:
            return None
        return Coordinates(latitude=self.latitude, longitude=self.longitude)

    @property
    def is_heritage(self) -> bool:
        return is_heritage(self.classification)


# ---------------------------------------------------------------------------
# Audit records
# ---------------------------------------------------------------------------


class FieldChange(BaseModel):
    """One field's before/after value in an audited change."""

    model_config = ConfigDict(frozen=True)

    field: str
    old_value: Any = None
    new_value: Any = None


class AuditLogEntry(BaseModel):
    """Immutable record of one audited action."""

    model_config = ConfigDict(frozen=True)

    id: str | None = None
    actor: Actor
    action: str
    resource_type: str
    resource_id: str
    resource_name: str | None = None
    changes: list[FieldChange] | None = None
    diocese: str
    parish_id: str | None = None
    metadata: dict[str, Any] | None = None
    timestamp: datetime
    session_id: str | None = None


# ---------------------------------------------------------------------------
# Operation results and query inputs
# ---------------------------------------------------------------------------


class StagedUpdateResult(BaseModel):
    """Outcome of update_with_staging."""

    directly_published: list[str] = Field(default_factory=list)
    staged_for_review: list[str] = Field(default_factory=list)
    has_pending_changes: bool = False


class TransitionResult(BaseModel):
    """Outcome of a role-checked status transition."""

    church_id: str
    previous_status: ChurchStatus
    status: ChurchStatus
    auto_forwarded: bool = False
    note: str | None = None


class ChurchFilters(BaseModel):
    """Filters for listing church records."""

    diocese: str | None = None
    status: ChurchStatus | None = None
    classification: Classification | None = None
    municipality: str | None = None
    architectural_style: str | None = None
    search: str | None = None
    sort_by: Literal["name", "founding_year", "updated_at", "status"] = "updated_at"
    sort_order: Literal["asc", "desc"] = "desc"


class ChurchStats(BaseModel):
    """Dashboard counters for a diocese (or all dioceses)."""

    total: int = 0
    pending: int = 0
    under_review: int = 0
    heritage_review: int = 0
    approved: int = 0
    draft: int = 0
    by_classification: dict[str, int] = Field(default_factory=dict)
    by_municipality: dict[str, int] = Field(default_factory=dict)
    recent_submissions: int = 0
