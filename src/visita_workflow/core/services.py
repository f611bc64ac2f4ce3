"""Core business logic services for the church record workflow.

Two service classes:
- AuditService: Best-effort append-only audit log writes and read queries
- ChurchRecordWorkflow: Submission, review, heritage forwarding, staged
  updates of approved records, publication and unpublication

VirtualTourService lives in virtual_tour_service.py.

All services are async-first. They accept injected stores through their
constructors and contain no framework code. Every state-changing workflow
operation reads the current record, computes the new status and fields,
performs one store write and then appends one audit entry.
"""

import asyncio
import functools
import time
import uuid
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta
from typing import Any, Literal, ParamSpec, TypeVar

from pydantic import ValidationError as PydanticValidationError

from visita_workflow.core.field_categories import categorize_changes
from visita_workflow.core.heritage import record_requires_heritage_review
from visita_workflow.core.interfaces import IAuditSink, IDocumentStore, QueryFilter
from visita_workflow.core.records import (
    FORM_FIELDS,
    Actor,
    AuditLogEntry,
    ChurchFilters,
    ChurchFormData,
    ChurchRecord,
    ChurchStats,
    ChurchStatus,
    FieldChange,
    HeritageUpdate,
    PendingChanges,
    ReviewAction,
    StagedUpdateResult,
    TransitionResult,
    is_heritage,
)
from visita_workflow.core.sparse_update import SparseUpdate, form_view, sparse_diff, to_storage_fields
from visita_workflow.core.transitions import validate_transition
from visita_workflow.errors import (
    DuplicateError,
    NotFoundError,
    OperationFailedError,
    ValidationError,
    VisitaError,
)
from visita_workflow.observability import get_logger

logger = get_logger(__name__)

P = ParamSpec("P")
R = TypeVar("R")

RECLASSIFIED_REVIEW_NOTE = (
    "Reclassified as non-heritage during heritage review. "
    "Returned to the Chancery Office for standard review."
)
AUTO_FORWARD_NOTE_PREFIX = "Automatically forwarded to heritage review due to heritage indicators."
RECENT_SUBMISSION_WINDOW = timedelta(days=7)


def _utcnow() -> str:
    return datetime.now(UTC).isoformat()


def workflow_operation(
    failure_message: str,
) -> Callable[[Callable[P, Awaitable[R]]], Callable[P, Awaitable[R]]]:
    """Convert unexpected failures of an operation into OperationFailedError.

    Domain errors (validation, duplicate, not-found and already-wrapped
    failures) propagate unchanged. Anything else is logged with its
    traceback and re-raised with the fixed failure_message; the original
    exception is chained as __cause__.

    Args:
        failure_message: User-facing message, e.g. "Failed to update church".
    """

    def decorator(func: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R]]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            try:
                return await func(*args, **kwargs)
            except VisitaError:
                raise
            except Exception as exc:
                logger.exception("Workflow operation failed", operation=func.__name__)
                raise OperationFailedError(failure_message) from exc

        return wrapper

    return decorator


class AuditService:
    """Best-effort audit log writes and read queries.

    The single point of entry for all audit writes. An audit failure never
    blocks or fails the primary write: record() logs the failure and returns
    None instead of raising.

    With dispatch="background" the append runs as a separate asyncio task
    and record() returns immediately; call drain() before shutdown so that
    no scheduled entry is lost.

    IMPORTANT: This service contains NO update or delete operations. The
    audit log is append-only.

    Args:
        sink: Audit sink implementing IAuditSink.
        dispatch: "inline" (await the append) or "background".
    """

    def __init__(self, sink: IAuditSink, dispatch: Literal["inline", "background"] = "inline") -> None:
        """Initialize AuditService with an injected sink.

        Args:
            sink: Sink implementing IAuditSink (in-memory or the Audit Wall).
            dispatch: How appends are scheduled.
        """
        self._sink = sink
        self._dispatch = dispatch
        self._pending: set[asyncio.Task[str | None]] = set()

    async def record(
        self,
        actor: Actor,
        action: str,
        resource_type: str,
        resource_id: str,
        resource_name: str | None = None,
        changes: list[FieldChange] | None = None,
        metadata: dict[str, Any] | None = None,
        diocese: str | None = None,
        parish_id: str | None = None,
        session_id: str | None = None,
    ) -> str | None:
        """Append an immutable audit entry.

        Args:
            actor: Snapshot of the acting user.
            action: Dot-notation action, e.g. church.approve.
            resource_type: Type of the affected resource.
            resource_id: ID of the affected resource.
            resource_name: Optional display name of the resource.
            changes: Ordered field changes.
            metadata: Optional action-specific payload.
            diocese: Diocese of the resource. Defaults to the actor's diocese.
            parish_id: Optional parish of the resource.
            session_id: Optional session grouping related actions.

        Returns:
            The entry ID, or None when the append failed or was dispatched
            in the background.
        """
        entry = AuditLogEntry(
            actor=actor,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            resource_name=resource_name,
            changes=changes,
            diocese=diocese or actor.diocese,
            parish_id=parish_id,
            metadata=metadata,
            timestamp=datetime.now(UTC),
            session_id=session_id,
        )

        if self._dispatch == "background":
            task = asyncio.create_task(self._append(entry))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
            return None

        return await self._append(entry)

    async def _append(self, entry: AuditLogEntry) -> str | None:
        try:
            return await self._sink.append(entry)
        except Exception:
            logger.exception(
                "Audit log append failed",
                action=entry.action,
                resource_type=entry.resource_type,
                resource_id=entry.resource_id,
                actor_uid=entry.actor.uid,
            )
            return None

    async def drain(self) -> None:
        """Wait for every background append scheduled so far."""
        if self._pending:
            await asyncio.gather(*self._pending)

    async def logs_for_diocese(
        self,
        diocese: str,
        actor_uid: str | None = None,
        resource_type: str | None = None,
        action: str | None = None,
        limit: int | None = None,
    ) -> list[AuditLogEntry]:
        return await self._sink.query(
            diocese=diocese,
            actor_uid=actor_uid,
            resource_type=resource_type,
            action=action,
            limit=limit,
        )

    async def resource_history(self, resource_type: str, resource_id: str) -> list[AuditLogEntry]:
        """All entries for one resource, newest first."""
        return await self._sink.query(resource_type=resource_type, resource_id=resource_id)

    async def actor_history(
        self,
        actor_uid: str,
        resource_type: str | None = None,
        limit: int | None = None,
    ) -> list[AuditLogEntry]:
        """Everything one user did, newest first."""
        return await self._sink.query(actor_uid=actor_uid, resource_type=resource_type, limit=limit)

    async def recent_actions(self, diocese: str | None = None, limit: int = 20) -> list[AuditLogEntry]:
        return await self._sink.query(diocese=diocese, limit=limit)

    @staticmethod
    def generate_session_id() -> str:
        """Return a new ID for grouping the audit entries of one session."""
        return f"session_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


class ChurchRecordWorkflow:
    """Staged-update and review workflow for church records.

    A stateless service constructed once with its collaborators. Records
    move through pending -> (heritage_review) -> approved, may be unpublished
    to draft and are resubmitted by editing them. Edits to approved records
    are split into fields published immediately and fields staged in
    pending_changes until a reviewer applies, rejects or forwards them.

    Args:
        store: Document store implementing IDocumentStore.
        audit_service: AuditService for best-effort audit entries.
        collection: Name of the churches collection.
    """

    def __init__(
        self,
        store: IDocumentStore,
        audit_service: AuditService,
        collection: str = "churches",
    ) -> None:
        """Initialize ChurchRecordWorkflow with injected dependencies.

        Args:
            store: Store implementing IDocumentStore.
            audit_service: AuditService for writing audit entries.
            collection: Churches collection name.
        """
        self._store = store
        self._audit_service = audit_service
        self._collection = collection

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _load(self, church_id: str) -> ChurchRecord:
        document = await self._store.get(self._collection, church_id)
        if document is None:
            raise NotFoundError(resource="Church", resource_id=church_id)
        return ChurchRecord.model_validate(document)

    async def _check_duplicate(
        self,
        name: str,
        municipality: str,
        diocese: str,
        exclude_id: str | None = None,
    ) -> None:
        """Reject a name already used in the same municipality and diocese.

        This is a pre-check query, not a constraint: two concurrent writes
        can both pass it.

        Raises:
            DuplicateError: If another church matches.
        """
        if not name or not municipality:
            return
        matches = await self._store.query(
            self._collection,
            filters=[
                QueryFilter("diocese", diocese),
                QueryFilter("name", name),
                QueryFilter("municipality", municipality),
            ],
        )
        if any(document["id"] != exclude_id for document in matches):
            raise DuplicateError(
                f'A church named "{name}" already exists in {municipality}, {diocese} diocese. '
                "Churches must have unique names within the same municipality."
            )

    @staticmethod
    def _leave_approved(record: ChurchRecord, updates: dict[str, Any], fold: bool = True) -> None:
        """Clear staged edits of a record that is leaving approved status.

        With fold=True the staged values are written into the record under
        review, unless this call already updates the same field.
        """
        if record.status != "approved" or record.pending_changes is None:
            return
        if fold:
            for name, value in to_storage_fields(record.pending_changes.data).items():
                updates.setdefault(name, value)
        updates["pending_changes"] = None
        updates["has_pending_changes"] = False

    @staticmethod
    def _reclassified_status(record: ChurchRecord, classification: str | None) -> ChurchStatus | None:
        """Return the review status a classification change routes the record to, if any."""
        was_heritage = record.is_heritage
        becomes_heritage = is_heritage(classification)
        if not was_heritage and becomes_heritage and record.status not in ("heritage_review", "under_review"):
            return "pending"
        if was_heritage and not becomes_heritage and record.status in ("heritage_review", "under_review"):
            return "pending"
        return None

    async def _apply_standard_update(
        self,
        record: ChurchRecord,
        form: ChurchFormData,
        actor: Actor,
    ) -> SparseUpdate:
        """Overwrite the record's content fields with the form.

        Returns:
            The form-level diff that was written.
        """
        diff = sparse_diff(form_view(record), form.model_dump(mode="json"))

        if "name" in diff.updates or "municipality" in diff.updates:
            await self._check_duplicate(form.name, form.municipality, record.diocese, exclude_id=record.id)

        now = _utcnow()
        updates = to_storage_fields(diff.updates)
        updates["updated_at"] = now

        new_status: ChurchStatus | None
        if record.status == "draft":
            new_status = "pending"
            updates["submitted_at"] = now
        else:
            new_status = self._reclassified_status(record, form.classification)

        changes = list(diff.changes)
        if new_status is not None and new_status != record.status:
            updates["status"] = new_status
            changes.append(FieldChange(field="status", old_value=record.status, new_value=new_status))
            # The submitted form is the complete content under review
            self._leave_approved(record, updates, fold=False)

        await self._store.update(self._collection, record.id, updates)

        if changes:
            await self._audit_service.record(
                actor=actor,
                action="church.update",
                resource_type="church",
                resource_id=record.id,
                resource_name=form.name,
                changes=changes,
                diocese=record.diocese,
                parish_id=record.parish_id,
                metadata={"status": updates.get("status", record.status)},
            )

        logger.info(
            "Church updated",
            church_id=record.id,
            changed_fields=diff.fields,
            status=updates.get("status", record.status),
        )
        return diff

    # ------------------------------------------------------------------
    # Submission and editing
    # ------------------------------------------------------------------

    @workflow_operation("Failed to create church")
    async def create(
        self,
        form: ChurchFormData,
        diocese: str,
        actor: Actor,
        parish_id: str | None = None,
    ) -> str:
        """Submit a new church profile for review.

        Args:
            form: The submitted church form.
            diocese: Diocese the church belongs to.
            actor: The submitting user.
            parish_id: Optional parish ID, used as the document ID when given.

        Returns:
            The new church ID.

        Raises:
            ValidationError: If name or description is blank.
            DuplicateError: If the name is taken in the municipality.
        """
        if not form.name.strip():
            raise ValidationError("Church name is required", field="name")
        if not form.description.strip():
            raise ValidationError("Church description is required", field="description")

        await self._check_duplicate(form.name, form.municipality, diocese)

        now = _utcnow()
        data = to_storage_fields(form.model_dump(mode="json"))
        data.update(
            status="pending",
            diocese=diocese,
            parish_id=parish_id,
            created_by=actor.uid,
            created_at=now,
            submitted_at=now,
            updated_at=now,
            pending_changes=None,
            has_pending_changes=False,
        )

        if parish_id:
            await self._store.set(self._collection, parish_id, data)
            church_id = parish_id
        else:
            church_id = await self._store.add(self._collection, data)

        await self._audit_service.record(
            actor=actor,
            action="church.create",
            resource_type="church",
            resource_id=church_id,
            resource_name=form.name,
            diocese=diocese,
            parish_id=parish_id,
            metadata={"status": "pending", "classification": form.classification},
        )

        logger.info("Church created", church_id=church_id, diocese=diocese, created_by=actor.uid)
        return church_id

    @workflow_operation("Failed to update church")
    async def update_standard(self, church_id: str, form: ChurchFormData, actor: Actor) -> None:
        """Overwrite a church's content fields and route it to the right queue.

        A classification change between heritage and non-heritage sends the
        church back to pending review, and editing an unpublished (draft)
        church resubmits it. The status changes at most once per call.

        Raises:
            NotFoundError: If the church does not exist.
            DuplicateError: If a renamed church collides with another.
        """
        record = await self._load(church_id)
        await self._apply_standard_update(record, form, actor)

    @workflow_operation("Failed to update church")
    async def update_with_staging(
        self,
        church_id: str,
        form: ChurchFormData,
        actor: Actor,
    ) -> StagedUpdateResult:
        """Edit a church, staging sensitive changes of approved records.

        Records that are not approved are updated like update_standard() and
        every changed field is reported as directly published. For approved
        records, changed direct-publish fields go live immediately while
        changed re-verification fields are merged into pending_changes.

        Args:
            church_id: The church to edit.
            form: The complete edited form.
            actor: The editing user.

        Returns:
            StagedUpdateResult listing published and staged fields.
        """
        record = await self._load(church_id)
        if record.status != "approved":
            diff = await self._apply_standard_update(record, form, actor)
            return StagedUpdateResult(directly_published=diff.fields, has_pending_changes=False)

        current = form_view(record)
        incoming = form.model_dump(mode="json")
        categorization = categorize_changes(current, incoming)
        diff = sparse_diff(current, incoming)

        if not diff:
            return StagedUpdateResult(has_pending_changes=record.pending_changes is not None)

        staged = categorization.reverification_required
        if "name" in staged or "municipality" in staged:
            await self._check_duplicate(form.name, form.municipality, record.diocese, exclude_id=record.id)

        now = _utcnow()
        updates = to_storage_fields(categorization.direct_publish)
        updates["updated_at"] = now

        if staged:
            existing = record.pending_changes
            pending = PendingChanges(
                data={**(existing.data if existing else {}), **staged},
                changed_fields=sorted(set(existing.changed_fields if existing else ()) | set(staged)),
                submitted_at=now,
                submitted_by=actor.uid,
            )
            updates["pending_changes"] = pending.model_dump(mode="json")
            updates["has_pending_changes"] = True

        await self._store.update(self._collection, church_id, updates)

        result = StagedUpdateResult(
            directly_published=categorization.direct_publish_fields,
            staged_for_review=categorization.reverification_fields,
            has_pending_changes=bool(staged) or record.pending_changes is not None,
        )

        await self._audit_service.record(
            actor=actor,
            action="church.update",
            resource_type="church",
            resource_id=church_id,
            resource_name=record.name,
            changes=diff.changes,
            diocese=record.diocese,
            parish_id=record.parish_id,
            metadata={
                "directly_published": result.directly_published,
                "staged_for_review": result.staged_for_review,
            },
        )

        logger.info(
            "Approved church edited",
            church_id=church_id,
            directly_published=result.directly_published,
            staged_for_review=result.staged_for_review,
        )
        return result

    # ------------------------------------------------------------------
    # Review
    # ------------------------------------------------------------------

    @workflow_operation("Failed to update heritage information")
    async def review_heritage(self, church_id: str, heritage: HeritageUpdate, actor: Actor) -> None:
        """Apply a museum researcher's partial heritage update.

        Only explicitly provided fields are written. Reclassifying the church
        as non-heritage sends it back to pending review, regardless of any
        status supplied in the same update.

        Raises:
            NotFoundError: If the church does not exist.
        """
        record = await self._load(church_id)

        provided = heritage.provided_fields()
        reclassified = provided.get("classification") == "non_heritage"
        if reclassified:
            provided["status"] = "pending"

        diff = sparse_diff(record.model_dump(mode="json"), provided)
        now = _utcnow()
        updates = dict(diff.updates)
        updates.update(heritage_researcher=actor.uid, last_heritage_update=now, updated_at=now)
        if reclassified:
            updates["review_notes"] = RECLASSIFIED_REVIEW_NOTE

        new_status = updates.get("status")
        if new_status == "approved":
            updates["approved_at"] = now
            updates["approved_by"] = actor.uid
        elif new_status is not None:
            self._leave_approved(record, updates)

        await self._store.update(self._collection, church_id, updates)

        if reclassified:
            action = "heritage.reclassify"
        elif new_status == "approved":
            action = "heritage.approve"
        else:
            action = "heritage.update"

        await self._audit_service.record(
            actor=actor,
            action=action,
            resource_type="church",
            resource_id=church_id,
            resource_name=record.name,
            changes=diff.changes or [FieldChange(field="heritage", old_value=None, new_value="updated")],
            diocese=record.diocese,
            parish_id=record.parish_id,
            metadata={"updated_fields": sorted(provided)},
        )

        logger.info("Heritage information updated", church_id=church_id, action=action, researcher=actor.uid)

    @workflow_operation("Failed to review church")
    async def review(self, action: ReviewAction, reviewer: Actor) -> None:
        """Record a chancery review decision.

        approve publishes the church; forward_to_museum sends it to heritage
        review. Both stamp the reviewer, the review time and the notes.

        Raises:
            NotFoundError: If the church does not exist.
        """
        record = await self._load(action.church_id)
        new_status: ChurchStatus = "approved" if action.action == "approve" else "heritage_review"

        now = _utcnow()
        updates: dict[str, Any] = {
            "status": new_status,
            "reviewed_by": reviewer.uid,
            "reviewed_at": now,
            "review_notes": action.notes,
            "updated_at": now,
        }
        if new_status == "approved":
            updates["approved_at"] = now
            updates["approved_by"] = reviewer.uid
        else:
            self._leave_approved(record, updates)

        await self._store.update(self._collection, action.church_id, updates)

        await self._audit_service.record(
            actor=reviewer,
            action="church.approve" if new_status == "approved" else "church.forward_heritage",
            resource_type="church",
            resource_id=action.church_id,
            resource_name=record.name,
            changes=[FieldChange(field="status", old_value=record.status, new_value=new_status)],
            diocese=record.diocese,
            parish_id=record.parish_id,
            metadata={"review_notes": action.notes} if action.notes else None,
        )

        logger.info(
            "Church reviewed",
            church_id=action.church_id,
            review_action=action.action,
            previous_status=record.status,
            status=new_status,
        )

    @workflow_operation("Failed to unpublish church")
    async def unpublish(self, church_id: str, reason: str, actor: Actor) -> None:
        """Hide a church from the public by moving it to draft.

        The record is kept. Editing it later resubmits it for review.

        Raises:
            ValidationError: If reason is blank.
            NotFoundError: If the church does not exist.
        """
        if not reason or not reason.strip():
            raise ValidationError("A reason is required to unpublish a church", field="reason")

        record = await self._load(church_id)
        now = _utcnow()
        updates: dict[str, Any] = {
            "status": "draft",
            "unpublished_at": now,
            "unpublished_by": actor.uid,
            "unpublish_reason": reason,
            "updated_at": now,
        }
        self._leave_approved(record, updates)

        await self._store.update(self._collection, church_id, updates)

        await self._audit_service.record(
            actor=actor,
            action="church.unpublish",
            resource_type="church",
            resource_id=church_id,
            resource_name=record.name,
            changes=[FieldChange(field="status", old_value=record.status, new_value="draft")],
            diocese=record.diocese,
            parish_id=record.parish_id,
            metadata={"reason": reason},
        )

        logger.info("Church unpublished", church_id=church_id, previous_status=record.status)

    @workflow_operation("Failed to update church status")
    async def transition_status(
        self,
        church_id: str,
        target: ChurchStatus,
        actor: Actor,
        note: str | None = None,
    ) -> TransitionResult:
        """Move a church to a new status if the actor's role allows it.

        When the chancery approves a church that shows heritage indicators
        (ICP/NCT classification or founded before 1900), the church is sent
        to heritage review instead and the result is marked auto_forwarded.

        Args:
            church_id: The church to move.
            target: The requested status.
            actor: The acting user; actor.role is checked.
            note: Optional note. Required for some transitions.

        Returns:
            TransitionResult with the status actually applied.

        Raises:
            TransitionNotAllowedError: If the transition is not permitted.
            NotFoundError: If the church does not exist.
        """
        record = await self._load(church_id)

        final_status = target
        auto_forwarded = False
        final_note = note
        if target == "approved" and actor.role == "chancery_office" and record_requires_heritage_review(record):
            final_status = "heritage_review"
            auto_forwarded = True
            final_note = f"{AUTO_FORWARD_NOTE_PREFIX} {note or ''}".strip()

        validate_transition(record.status, final_status, actor.role, final_note)

        now = _utcnow()
        updates: dict[str, Any] = {
            "status": final_status,
            "reviewed_by": actor.uid,
            "reviewed_at": now,
            "review_notes": final_note,
            "updated_at": now,
        }
        if final_status == "approved":
            updates["approved_at"] = now
            updates["approved_by"] = actor.uid
            audit_action = "church.approve"
        elif final_status == "heritage_review":
            self._leave_approved(record, updates)
            audit_action = "church.forward_heritage"
        else:
            updates["submitted_at"] = now
            audit_action = "church.submit"

        await self._store.update(self._collection, church_id, updates)

        await self._audit_service.record(
            actor=actor,
            action=audit_action,
            resource_type="church",
            resource_id=church_id,
            resource_name=record.name,
            changes=[FieldChange(field="status", old_value=record.status, new_value=final_status)],
            diocese=record.diocese,
            parish_id=record.parish_id,
            metadata={"note": final_note, "auto_forwarded": auto_forwarded},
        )

        logger.info(
            "Church status changed",
            church_id=church_id,
            previous_status=record.status,
            status=final_status,
            auto_forwarded=auto_forwarded,
        )
        return TransitionResult(
            church_id=church_id,
            previous_status=record.status,
            status=final_status,
            auto_forwarded=auto_forwarded,
            note=final_note,
        )

    # ------------------------------------------------------------------
    # Pending-change review
    # ------------------------------------------------------------------

    async def _load_with_pending(self, church_id: str) -> tuple[ChurchRecord, PendingChanges]:
        record = await self._load(church_id)
        if record.pending_changes is None:
            raise ValidationError("This church has no pending changes", field="pending_changes")
        return record, record.pending_changes

    @workflow_operation("Failed to apply pending changes")
    async def apply_pending_changes(
        self,
        church_id: str,
        actor: Actor,
        edited_data: dict[str, Any] | None = None,
        notes: str | None = None,
    ) -> list[str]:
        """Publish the staged changes of an approved church.

        Args:
            church_id: The church whose staged changes are applied.
            actor: The approving reviewer.
            edited_data: Optional reviewer corrections, keyed by form field,
                overriding the staged values.
            notes: Optional review notes.

        Returns:
            Names of the fields that changed on the live record.

        A change that makes a non-heritage church ICP/NCT is written but
        sends the church back to pending review instead of publishing it.

        Raises:
            ValidationError: If nothing is pending, edited_data names an
                unknown field, or a resulting value is invalid.
            DuplicateError: If a renamed church collides with another.
        """
        record, pending = await self._load_with_pending(church_id)

        unknown = sorted(set(edited_data or {}) - set(FORM_FIELDS))
        if unknown:
            raise ValidationError(f"Unknown church fields: {', '.join(unknown)}", field="edited_data")

        current = form_view(record)
        try:
            merged = ChurchFormData.model_validate({**current, **pending.data, **(edited_data or {})})
        except PydanticValidationError as exc:
            first = exc.errors()[0]
            location = ".".join(str(part) for part in first["loc"])
            raise ValidationError(f"Invalid value for {location}: {first['msg']}", field=str(first["loc"][0])) from exc

        validated = merged.model_dump(mode="json")
        desired = {name: validated[name] for name in {**pending.data, **(edited_data or {})}}
        diff = sparse_diff(current, desired)

        if "name" in diff.updates or "municipality" in diff.updates:
            await self._check_duplicate(merged.name, merged.municipality, record.diocese, exclude_id=record.id)

        now = _utcnow()
        updates = to_storage_fields(diff.updates)
        updates.update(
            pending_changes=None,
            has_pending_changes=False,
            reviewed_by=actor.uid,
            reviewed_at=now,
            updated_at=now,
        )
        if notes:
            updates["review_notes"] = notes

        changes = list(diff.changes)
        new_status = self._reclassified_status(record, merged.classification)
        if new_status is not None and new_status != record.status:
            updates["status"] = new_status
            changes.append(FieldChange(field="status", old_value=record.status, new_value=new_status))

        await self._store.update(self._collection, church_id, updates)

        await self._audit_service.record(
            actor=actor,
            action="church.approve",
            resource_type="church",
            resource_id=church_id,
            resource_name=merged.name,
            changes=changes,
            diocese=record.diocese,
            parish_id=record.parish_id,
            metadata={
                "source": "pending_changes",
                "staged_fields": pending.changed_fields,
                "edited_by_reviewer": sorted(edited_data or {}),
                "status": updates.get("status", record.status),
            },
        )

        logger.info(
            "Pending changes applied",
            church_id=church_id,
            applied_fields=diff.fields,
            status=updates.get("status", record.status),
        )
        return diff.fields

    @workflow_operation("Failed to reject pending changes")
    async def reject_pending_changes(self, church_id: str, actor: Actor, reason: str) -> None:
        """Discard the staged changes of an approved church.

        Raises:
            ValidationError: If nothing is pending.
        """
        record, pending = await self._load_with_pending(church_id)

        now = _utcnow()
        await self._store.update(
            self._collection,
            church_id,
            {
                "pending_changes": None,
                "has_pending_changes": False,
                "reviewed_by": actor.uid,
                "reviewed_at": now,
                "updated_at": now,
            },
        )

        await self._audit_service.record(
            actor=actor,
            action="church.reject",
            resource_type="church",
            resource_id=church_id,
            resource_name=record.name,
            diocese=record.diocese,
            parish_id=record.parish_id,
            metadata={"reason": reason, "staged_fields": pending.changed_fields},
        )

        logger.info("Pending changes rejected", church_id=church_id, reviewer=actor.uid)

    @workflow_operation("Failed to forward pending changes")
    async def forward_pending_changes_to_museum(
        self,
        church_id: str,
        actor: Actor,
        notes: str | None = None,
    ) -> None:
        """Send the staged changes of a heritage church to the museum researcher.

        The church stays approved and published while the researcher
        validates the staged changes.

        Raises:
            ValidationError: If nothing is pending, neither the church nor its
                staged classification is ICP/NCT, or the changes were already
                forwarded.
        """
        record, pending = await self._load_with_pending(church_id)
        if not (record.is_heritage or is_heritage(pending.data.get("classification"))):
            raise ValidationError(
                "Only heritage churches (ICP/NCT) can be forwarded to the museum researcher",
                field="classification",
            )
        if pending.forwarded_to_museum:
            raise ValidationError("Pending changes were already forwarded to the museum researcher")

        now = _utcnow()
        await self._store.update(
            self._collection,
            church_id,
            {
                "pending_changes.forwarded_to_museum": True,
                "pending_changes.forwarded_at": now,
                "pending_changes.forwarded_by": actor.uid,
                "updated_at": now,
            },
        )

        await self._audit_service.record(
            actor=actor,
            action="church.forward_heritage",
            resource_type="church",
            resource_id=church_id,
            resource_name=record.name,
            diocese=record.diocese,
            parish_id=record.parish_id,
            metadata={"source": "pending_changes", "staged_fields": pending.changed_fields, "notes": notes},
        )

        logger.info("Pending changes forwarded to museum", church_id=church_id, forwarded_by=actor.uid)

    @workflow_operation("Failed to fetch pending updates")
    async def list_pending_updates(self, diocese: str, forwarded_to_museum: bool = False) -> list[ChurchRecord]:
        """Approved churches with staged changes awaiting review.

        Args:
            diocese: Diocese to list.
            forwarded_to_museum: False for the chancery queue, True for the
                museum researcher queue.
        """
        documents = await self._store.query(
            self._collection,
            filters=[
                QueryFilter("diocese", diocese),
                QueryFilter("has_pending_changes", True),
                QueryFilter("pending_changes.forwarded_to_museum", forwarded_to_museum),
            ],
            order_by="pending_changes.submitted_at",
            descending=True,
        )
        return [ChurchRecord.model_validate(document) for document in documents]

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @workflow_operation("Failed to fetch church")
    async def get_church(self, church_id: str) -> ChurchRecord:
        return await self._load(church_id)

    @workflow_operation("Failed to fetch churches")
    async def list_churches(self, filters: ChurchFilters | None = None) -> list[ChurchRecord]:
        """List churches matching equality filters and an optional text search.

        The search term matches name, full name, location, municipality and
        description, case-insensitively.
        """
        return await self._query_churches(filters or ChurchFilters())

    async def _query_churches(self, filters: ChurchFilters) -> list[ChurchRecord]:
        query_filters: list[QueryFilter] = []
        for name in ("diocese", "status", "classification", "municipality", "architectural_style"):
            value = getattr(filters, name)
            if value:
                query_filters.append(QueryFilter(name, value))
        documents = await self._store.query(
            self._collection,
            filters=query_filters,
            order_by=filters.sort_by,
            descending=filters.sort_order == "desc",
        )
        churches = [ChurchRecord.model_validate(document) for document in documents]

        if filters.search:
            term = filters.search.lower()
            churches = [
                church
                for church in churches
                if any(
                    term in value.lower()
                    for value in (
                        church.name,
                        church.full_name,
                        church.location,
                        church.municipality,
                        church.description,
                    )
                )
            ]
        return churches

    @workflow_operation("Failed to fetch church statistics")
    async def church_stats(self, diocese: str | None = None) -> ChurchStats:
        churches = await self._query_churches(ChurchFilters(diocese=diocese))
        since = datetime.now(UTC) - RECENT_SUBMISSION_WINDOW

        stats = ChurchStats(total=len(churches))
        for church in churches:
            setattr(stats, church.status, getattr(stats, church.status) + 1)
            stats.by_classification[church.classification] = stats.by_classification.get(church.classification, 0) + 1
            stats.by_municipality[church.municipality] = stats.by_municipality.get(church.municipality, 0) + 1
            if church.created_at is not None and _aware(church.created_at) > since:
                stats.recent_submissions += 1
        return stats


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)
