"""Pydantic request and response schemas for the VISITA workflow API.

All API inputs and outputs use Pydantic models, never raw dicts. Church
forms, heritage updates and results reuse the domain records from
core/records.py; this module only adds the HTTP-specific envelopes.

Resources:
- Church — submission, editing, review, status transitions
- PendingChanges — staged-change review of approved churches
- VirtualTour — scene management
- Error — error response body
"""

from typing import Any, Literal

from pydantic import BaseModel, Field

from visita_workflow.core.records import ChurchFormData, ChurchStatus, TourHotspot

# ---------------------------------------------------------------------------
# Church schemas
# ---------------------------------------------------------------------------


class ChurchCreateRequest(ChurchFormData):
    """Request body for submitting a new church profile."""

    parish_id: str | None = Field(
        default=None,
        description="Parish ID. When given it is also used as the church ID.",
    )

    def to_form(self) -> ChurchFormData:
        return ChurchFormData.model_validate(self.model_dump(exclude={"parish_id"}))


class ChurchCreatedResponse(BaseModel):
    """Response schema for a newly submitted church."""

    id: str = Field(description="ID of the created church")
    status: ChurchStatus = Field(default="pending", description="Initial workflow status")


class ReviewRequest(BaseModel):
    """Request body for a chancery review decision."""

    action: Literal["approve", "forward_to_museum"] = Field(
        description="approve publishes the church; forward_to_museum sends it to heritage review",
    )
    notes: str | None = Field(default=None, description="Review notes shown to the parish")


class UnpublishRequest(BaseModel):
    """Request body for unpublishing a church."""

    reason: str = Field(min_length=1, description="Why the church is hidden from the public")


class StatusTransitionRequest(BaseModel):
    """Request body for a role-checked status transition."""

    status: ChurchStatus = Field(description="Requested status")
    note: str | None = Field(default=None, description="Note, required for some transitions")


# ---------------------------------------------------------------------------
# Pending-change schemas
# ---------------------------------------------------------------------------


class ApplyPendingChangesRequest(BaseModel):
    """Request body for publishing staged changes."""

    edited_data: dict[str, Any] | None = Field(
        default=None,
        description="Reviewer corrections keyed by form field, overriding staged values",
    )
    notes: str | None = Field(default=None, description="Review notes")


class RejectPendingChangesRequest(BaseModel):
    """Request body for discarding staged changes."""

    reason: str = Field(min_length=1, description="Why the staged changes were rejected")


class ForwardPendingChangesRequest(BaseModel):
    """Request body for forwarding staged changes to the museum researcher."""

    notes: str | None = Field(default=None, description="Notes for the museum researcher")


class AppliedChangesResponse(BaseModel):
    """Response schema for applied staged changes."""

    church_id: str = Field(description="Church whose staged changes were applied")
    applied_fields: list[str] = Field(description="Fields that changed on the live record")


# ---------------------------------------------------------------------------
# Virtual tour schemas
# ---------------------------------------------------------------------------


class TourSceneCreateRequest(BaseModel):
    """Request body for adding a 360° scene."""

    id: str | None = Field(default=None, description="Scene ID. Generated when omitted.")
    title: str = Field(min_length=1, description="Scene title")
    image_url: str = Field(min_length=1, description="URL of the equirectangular image")
    is_start_scene: bool = Field(default=False, description="Open the tour on this scene")
    hotspots: list[TourHotspot] = Field(default_factory=list)


class HotspotsUpdateRequest(BaseModel):
    """Request body replacing a scene's hotspots."""

    hotspots: list[TourHotspot] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Error schema
# ---------------------------------------------------------------------------


class ErrorResponse(BaseModel):
    """Error response body."""

    detail: str = Field(description="Human-readable error message")
    field: str | None = Field(default=None, description="Offending field, for validation errors")
