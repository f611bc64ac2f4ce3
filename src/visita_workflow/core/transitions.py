"""Role-checked church status transitions.

The static WORKFLOW_TRANSITIONS table lists every status change a user may
request directly, which roles may request it, and whether a note is required.
ChurchRecordWorkflow.transition_status() validates requests against it.
"""

from dataclasses import dataclass
from typing import Any

from visita_workflow.core.records import ChurchStatus
from visita_workflow.errors import TransitionNotAllowedError


@dataclass(frozen=True)
class WorkflowTransition:
    """One permitted status change.

    Attributes:
        from_status: Current status of the church.
        to_status: Requested status.
        required_roles: Roles allowed to make this change.
        description: What the transition does, shown in review UIs.
        requires_note: Whether the actor must explain the change.
    """

    from_status: ChurchStatus
    to_status: ChurchStatus
    required_roles: frozenset[str]
    description: str
    requires_note: bool = False


WORKFLOW_TRANSITIONS: tuple[WorkflowTransition, ...] = (
    WorkflowTransition(
        from_status="pending",
        to_status="pending",
        required_roles=frozenset({"parish_secretary"}),
        description="Submit church profile for initial review",
    ),
    WorkflowTransition(
        from_status="pending",
        to_status="approved",
        required_roles=frozenset({"chancery_office"}),
        description="Approve church directly (non-heritage churches)",
    ),
    WorkflowTransition(
        from_status="pending",
        to_status="heritage_review",
        required_roles=frozenset({"chancery_office"}),
        description="Forward to museum researcher for heritage validation",
    ),
    WorkflowTransition(
        from_status="heritage_review",
        to_status="approved",
        required_roles=frozenset({"museum_researcher"}),
        description="Approve after heritage validation",
    ),
    WorkflowTransition(
        from_status="approved",
        to_status="heritage_review",
        required_roles=frozenset({"chancery_office"}),
        description="Send published church for heritage re-evaluation (requires an explanation)",
        requires_note=True,
    ),
)

_STATUS_INFO: dict[str, dict[str, str]] = {
    "pending": {
        "label": "Pending Review",
        "color": "yellow",
        "description": "Awaiting Chancery Office review",
    },
    "under_review": {
        "label": "Under Review",
        "color": "blue",
        "description": "Being reviewed by the Chancery Office",
    },
    "heritage_review": {
        "label": "Heritage Review",
        "color": "orange",
        "description": "Under review by Museum Researcher",
    },
    "approved": {
        "label": "Published",
        "color": "green",
        "description": "Church profile is live and public",
    },
    "draft": {
        "label": "Unpublished",
        "color": "gray",
        "description": "Hidden from the public until resubmitted",
    },
}

_ACTION_LABELS: dict[str, str] = {
    "pending": "Submit for Review",
    "heritage_review": "Send to Museum Researcher",
    "approved": "Approve & Publish",
}


def valid_transitions(from_status: str, role: str) -> list[WorkflowTransition]:
    """Transitions out of from_status that role may perform."""
    return [
        transition
        for transition in WORKFLOW_TRANSITIONS
        if transition.from_status == from_status and role in transition.required_roles
    ]


def find_transition(from_status: str, to_status: str, role: str) -> WorkflowTransition | None:
    for transition in valid_transitions(from_status, role):
        if transition.to_status == to_status:
            return transition
    return None


def validate_transition(
    from_status: str,
    to_status: str,
    role: str,
    note: str | None = None,
) -> WorkflowTransition:
    """Return the matching transition or raise.

    Raises:
        TransitionNotAllowedError: If no transition matches for the role, or
            a required note is missing.
    """
    transition = find_transition(from_status, to_status, role)
    if transition is None:
        raise TransitionNotAllowedError(
            f"Transition from '{from_status}' to '{to_status}' is not allowed for role '{role}'",
            from_status=from_status,
            to_status=to_status,
        )
    if transition.requires_note and not (note and note.strip()):
        raise TransitionNotAllowedError(
            f"A note is required to move a church from '{from_status}' to '{to_status}'",
            from_status=from_status,
            to_status=to_status,
        )
    return transition


def status_info(status: str) -> dict[str, str]:
    """Label, badge color and description of a status."""
    return _STATUS_INFO.get(
        status,
        {"label": status, "color": "gray", "description": "Unknown status"},
    )


def next_actions(status: str, role: str) -> list[dict[str, Any]]:
    """Actions a role can take on a church in the given status."""
    return [
        {
            "action": transition.to_status,
            "label": _ACTION_LABELS.get(transition.to_status, transition.to_status),
            "description": transition.description,
            "requires_note": transition.requires_note,
        }
        for transition in valid_transitions(status, role)
    ]
