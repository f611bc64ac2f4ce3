"""API router for the VISITA church record workflow.

All endpoints are registered here and included in main.py under the /api/v1
prefix. Routes are thin; all business logic lives in the service layer.

Endpoints:
- POST/GET    /churches                                      — Submit / list churches
- GET         /churches/stats                                — Dashboard counters
- GET         /churches/pending-updates                      — Staged-change review queue
- GET/PUT     /churches/{id}                                 — Get / edit (staged) a church
- POST        /churches/{id}/review                          — Chancery review decision
- POST        /churches/{id}/heritage                        — Museum heritage review
- POST        /churches/{id}/unpublish                       — Move to draft
- POST        /churches/{id}/status                          — Role-checked status transition
- POST        /churches/{id}/pending-changes/approve         — Publish staged changes
- POST        /churches/{id}/pending-changes/reject          — Discard staged changes
- POST        /churches/{id}/pending-changes/forward         — Forward staged changes to museum
- GET/POST    /churches/{id}/virtual-tour/scenes             — Get tour / add scene
- DELETE      /churches/{id}/virtual-tour/scenes/{scene_id}  — Delete scene
- POST        /churches/{id}/virtual-tour/scenes/{scene_id}/start    — Make start scene
- PUT         /churches/{id}/virtual-tour/scenes/{scene_id}/hotspots — Replace hotspots
- GET         /audit-logs                                    — Query the audit log
- GET         /audit-logs/{resource_type}/{resource_id}      — History of one resource

The acting user is read from the X-Actor-* headers set by the upstream
authentication gateway.
"""

import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request

from visita_workflow.api.schemas import (
    AppliedChangesResponse,
    ApplyPendingChangesRequest,
    ChurchCreatedResponse,
    ChurchCreateRequest,
    ForwardPendingChangesRequest,
    HotspotsUpdateRequest,
    RejectPendingChangesRequest,
    ReviewRequest,
    StatusTransitionRequest,
    TourSceneCreateRequest,
    UnpublishRequest,
)
from visita_workflow.core.records import (
    Actor,
    AuditLogEntry,
    ChurchFilters,
    ChurchFormData,
    ChurchRecord,
    ChurchStats,
    ChurchStatus,
    Classification,
    HeritageUpdate,
    ReviewAction,
    StagedUpdateResult,
    TourScene,
    TransitionResult,
    VirtualTour,
)
from visita_workflow.core.services import AuditService, ChurchRecordWorkflow
from visita_workflow.core.virtual_tour_service import VirtualTourService
from visita_workflow.observability import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["churches"])

_KNOWN_ROLES = frozenset({"parish_secretary", "chancery_office", "museum_researcher"})


# ---------------------------------------------------------------------------
# Dependency factories
# ---------------------------------------------------------------------------


def get_current_actor(
    x_actor_id: Annotated[str | None, Header()] = None,
    x_actor_role: Annotated[str | None, Header()] = None,
    x_actor_diocese: Annotated[str | None, Header()] = None,
    x_actor_email: Annotated[str, Header()] = "",
    x_actor_name: Annotated[str, Header()] = "",
) -> Actor:
    """Build the acting user from the gateway's identity headers.

    Raises:
        HTTPException: 401 if a required header is missing, 403 for an
            unknown role.
    """
    if not x_actor_id or not x_actor_role or not x_actor_diocese:
        raise HTTPException(status_code=401, detail="Missing actor identity headers")
    if x_actor_role not in _KNOWN_ROLES:
        raise HTTPException(status_code=403, detail=f"Unknown role '{x_actor_role}'")
    return Actor(
        uid=x_actor_id,
        role=x_actor_role,
        diocese=x_actor_diocese,
        email=x_actor_email,
        name=x_actor_name,
    )


def get_audit_service(request: Request) -> AuditService:
    """Return the application-wide AuditService created at startup."""
    return request.app.state.audit_service


def get_workflow(
    request: Request,
    audit_service: Annotated[AuditService, Depends(get_audit_service)],
) -> ChurchRecordWorkflow:
    """Construct ChurchRecordWorkflow over the application's document store.

    Args:
        request: The incoming request (gives access to app.state).
        audit_service: Injected AuditService.

    Returns:
        Fully wired ChurchRecordWorkflow instance.
    """
    return ChurchRecordWorkflow(
        store=request.app.state.document_store,
        audit_service=audit_service,
        collection=request.app.state.settings.churches_collection,
    )


def get_virtual_tour_service(request: Request) -> VirtualTourService:
    return VirtualTourService(
        store=request.app.state.document_store,
        collection=request.app.state.settings.churches_collection,
    )


CurrentActor = Annotated[Actor, Depends(get_current_actor)]
Workflow = Annotated[ChurchRecordWorkflow, Depends(get_workflow)]


# ---------------------------------------------------------------------------
# Church endpoints
# ---------------------------------------------------------------------------


@router.post("/churches", response_model=ChurchCreatedResponse, status_code=201)
async def create_church(
    request: ChurchCreateRequest,
    actor: CurrentActor,
    workflow: Workflow,
) -> ChurchCreatedResponse:
    """Submit a new church profile in the actor's diocese.

    The church starts in pending status, awaiting chancery review.
    """
    logger.info("POST /churches", actor_uid=actor.uid, diocese=actor.diocese)
    church_id = await workflow.create(
        form=request.to_form(),
        diocese=actor.diocese,
        actor=actor,
        parish_id=request.parish_id,
    )
    return ChurchCreatedResponse(id=church_id)


@router.get("/churches", response_model=list[ChurchRecord])
async def list_churches(
    actor: CurrentActor,
    workflow: Workflow,
    diocese: str | None = Query(default=None, description="Diocese; defaults to the actor's"),
    status: ChurchStatus | None = Query(default=None),
    classification: Classification | None = Query(default=None),
    municipality: str | None = Query(default=None),
    architectural_style: str | None = Query(default=None),
    search: str | None = Query(default=None, description="Case-insensitive text search"),
    sort_by: str = Query(default="updated_at", pattern="^(name|founding_year|updated_at|status)$"),
    sort_order: str = Query(default="desc", pattern="^(asc|desc)$"),
) -> list[ChurchRecord]:
    """List churches with optional filters and text search."""
    filters = ChurchFilters(
        diocese=diocese or actor.diocese,
        status=status,
        classification=classification,
        municipality=municipality,
        architectural_style=architectural_style,
        search=search,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return await workflow.list_churches(filters)


@router.get("/churches/stats", response_model=ChurchStats)
async def church_stats(
    actor: CurrentActor,
    workflow: Workflow,
    diocese: str | None = Query(default=None, description="Diocese; defaults to the actor's"),
) -> ChurchStats:
    return await workflow.church_stats(diocese or actor.diocese)


@router.get("/churches/pending-updates", response_model=list[ChurchRecord])
async def list_pending_updates(
    actor: CurrentActor,
    workflow: Workflow,
    forwarded_to_museum: bool = Query(
        default=False,
        description="false for the chancery queue, true for the museum researcher queue",
    ),
) -> list[ChurchRecord]:
    """List approved churches whose staged changes await review."""
    return await workflow.list_pending_updates(actor.diocese, forwarded_to_museum=forwarded_to_museum)


@router.get("/churches/{church_id}", response_model=ChurchRecord)
async def get_church(church_id: str, actor: CurrentActor, workflow: Workflow) -> ChurchRecord:
    return await workflow.get_church(church_id)


@router.put("/churches/{church_id}", response_model=StagedUpdateResult)
async def update_church(
    church_id: str,
    form: ChurchFormData,
    actor: CurrentActor,
    workflow: Workflow,
) -> StagedUpdateResult:
    """Edit a church profile.

    Edits to published churches publish contact, schedule and media fields
    immediately and stage the rest for re-verification.
    """
    logger.info("PUT /churches/{church_id}", church_id=church_id, actor_uid=actor.uid)
    return await workflow.update_with_staging(church_id, form, actor)


@router.post("/churches/{church_id}/review", response_model=ChurchRecord)
async def review_church(
    church_id: str,
    request: ReviewRequest,
    actor: CurrentActor,
    workflow: Workflow,
) -> ChurchRecord:
    """Approve a church or forward it to the museum researcher."""
    logger.info("POST /churches/{church_id}/review", church_id=church_id, review_action=request.action)
    await workflow.review(
        ReviewAction(church_id=church_id, action=request.action, notes=request.notes),
        reviewer=actor,
    )
    return await workflow.get_church(church_id)


@router.post("/churches/{church_id}/heritage", response_model=ChurchRecord)
async def review_heritage(
    church_id: str,
    heritage: HeritageUpdate,
    actor: CurrentActor,
    workflow: Workflow,
) -> ChurchRecord:
    """Apply a museum researcher's partial heritage update."""
    await workflow.review_heritage(church_id, heritage, actor)
    return await workflow.get_church(church_id)


@router.post("/churches/{church_id}/unpublish", response_model=ChurchRecord)
async def unpublish_church(
    church_id: str,
    request: UnpublishRequest,
    actor: CurrentActor,
    workflow: Workflow,
) -> ChurchRecord:
    await workflow.unpublish(church_id, request.reason, actor)
    return await workflow.get_church(church_id)


@router.post("/churches/{church_id}/status", response_model=TransitionResult)
async def transition_status(
    church_id: str,
    request: StatusTransitionRequest,
    actor: CurrentActor,
    workflow: Workflow,
) -> TransitionResult:
    """Move a church to a new status if the actor's role allows it."""
    logger.info("POST /churches/{church_id}/status", church_id=church_id, target=request.status)
    return await workflow.transition_status(church_id, request.status, actor, note=request.note)


# ---------------------------------------------------------------------------
# Pending-change endpoints
# ---------------------------------------------------------------------------


@router.post("/churches/{church_id}/pending-changes/approve", response_model=AppliedChangesResponse)
async def apply_pending_changes(
    church_id: str,
    request: ApplyPendingChangesRequest,
    actor: CurrentActor,
    workflow: Workflow,
) -> AppliedChangesResponse:
    applied = await workflow.apply_pending_changes(
        church_id,
        actor,
        edited_data=request.edited_data,
        notes=request.notes,
    )
    return AppliedChangesResponse(church_id=church_id, applied_fields=applied)


@router.post("/churches/{church_id}/pending-changes/reject", response_model=ChurchRecord)
async def reject_pending_changes(
    church_id: str,
    request: RejectPendingChangesRequest,
    actor: CurrentActor,
    workflow: Workflow,
) -> ChurchRecord:
    await workflow.reject_pending_changes(church_id, actor, request.reason)
    return await workflow.get_church(church_id)


@router.post("/churches/{church_id}/pending-changes/forward", response_model=ChurchRecord)
async def forward_pending_changes(
    church_id: str,
    request: ForwardPendingChangesRequest,
    actor: CurrentActor,
    workflow: Workflow,
) -> ChurchRecord:
    await workflow.forward_pending_changes_to_museum(church_id, actor, notes=request.notes)
    return await workflow.get_church(church_id)


# ---------------------------------------------------------------------------
# Virtual tour endpoints
# ---------------------------------------------------------------------------


@router.get("/churches/{church_id}/virtual-tour/scenes", response_model=VirtualTour)
async def get_virtual_tour(
    church_id: str,
    actor: CurrentActor,
    service: Annotated[VirtualTourService, Depends(get_virtual_tour_service)],
) -> VirtualTour:
    tour = await service.get_tour(church_id)
    return tour or VirtualTour()


@router.post("/churches/{church_id}/virtual-tour/scenes", response_model=VirtualTour, status_code=201)
async def add_scene(
    church_id: str,
    request: TourSceneCreateRequest,
    actor: CurrentActor,
    service: Annotated[VirtualTourService, Depends(get_virtual_tour_service)],
) -> VirtualTour:
    scene = TourScene(
        id=request.id or uuid.uuid4().hex,
        title=request.title,
        image_url=request.image_url,
        is_start_scene=request.is_start_scene,
        hotspots=request.hotspots,
    )
    return await service.add_scene(church_id, scene)


@router.delete("/churches/{church_id}/virtual-tour/scenes/{scene_id}", response_model=VirtualTour)
async def delete_scene(
    church_id: str,
    scene_id: str,
    actor: CurrentActor,
    service: Annotated[VirtualTourService, Depends(get_virtual_tour_service)],
) -> VirtualTour:
    return await service.delete_scene(church_id, scene_id)


@router.post("/churches/{church_id}/virtual-tour/scenes/{scene_id}/start", response_model=VirtualTour)
async def set_start_scene(
    church_id: str,
    scene_id: str,
    actor: CurrentActor,
    service: Annotated[VirtualTourService, Depends(get_virtual_tour_service)],
) -> VirtualTour:
    return await service.set_start_scene(church_id, scene_id)


@router.put("/churches/{church_id}/virtual-tour/scenes/{scene_id}/hotspots", response_model=VirtualTour)
async def update_scene_hotspots(
    church_id: str,
    scene_id: str,
    request: HotspotsUpdateRequest,
    actor: CurrentActor,
    service: Annotated[VirtualTourService, Depends(get_virtual_tour_service)],
) -> VirtualTour:
    return await service.update_scene_hotspots(church_id, scene_id, request.hotspots)


# ---------------------------------------------------------------------------
# Audit log endpoints
# ---------------------------------------------------------------------------


@router.get("/audit-logs", response_model=list[AuditLogEntry])
async def query_audit_logs(
    actor: CurrentActor,
    service: Annotated[AuditService, Depends(get_audit_service)],
    actor_uid: str | None = Query(default=None, description="Filter by acting user"),
    resource_type: str | None = Query(default=None, description="Filter by resource type"),
    action: str | None = Query(default=None, description="Filter by action, e.g. church.approve"),
    limit: int = Query(default=100, ge=1, le=500),
) -> list[AuditLogEntry]:
    """Query the append-only audit log of the actor's diocese, newest first.

    The audit log is stored on a separate, write-protected database (Audit
    Wall). Entries are permanent; no UPDATE or DELETE operations exist.
    """
    return await service.logs_for_diocese(
        actor.diocese,
        actor_uid=actor_uid,
        resource_type=resource_type,
        action=action,
        limit=limit,
    )


@router.get("/audit-logs/{resource_type}/{resource_id}", response_model=list[AuditLogEntry])
async def resource_history(
    resource_type: str,
    resource_id: str,
    actor: CurrentActor,
    service: Annotated[AuditService, Depends(get_audit_service)],
) -> list[AuditLogEntry]:
    return await service.resource_history(resource_type, resource_id)
