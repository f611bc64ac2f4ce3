"""Domain error taxonomy for the VISITA workflow engine.

Two families of errors leave the service layer:

- User-facing errors (ValidationError, DuplicateError, NotFoundError) carry a
  descriptive message that callers show verbatim. They propagate unchanged.
- OperationFailedError wraps any unexpected store failure behind a fixed,
  per-operation message. The underlying exception is chained and logged but
  never part of the message.

Audit append failures are not represented here: they are logged and dropped
by AuditService.
"""


class VisitaError(Exception):
    """Base class for all errors raised by the workflow engine.

    Args:
        message: Human-readable description of the failure.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(VisitaError):
    """A required field is missing or a value is not acceptable.

    Args:
        message: Actionable description for the submitter.
        field: Name of the offending field, if there is one.
    """

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class TransitionNotAllowedError(ValidationError):
    """A status transition is not permitted for the acting role."""

    def __init__(self, message: str, from_status: str, to_status: str) -> None:
        super().__init__(message, field="status")
        self.from_status = from_status
        self.to_status = to_status


class DuplicateError(VisitaError):
    """A church with the same name already exists in the municipality and diocese."""


class NotFoundError(VisitaError):
    """A document required by the operation does not exist.

    Args:
        resource: Resource kind (collection or entity name).
        resource_id: Identifier that was looked up.
    """

    def __init__(self, resource: str, resource_id: str) -> None:
        super().__init__(f"{resource} '{resource_id}' not found")
        self.resource = resource
        self.resource_id = resource_id


class OperationFailedError(VisitaError):
    """An unexpected failure in the store layer, reported with a generic message."""


USER_FACING_ERRORS: tuple[type[VisitaError], ...] = (
    ValidationError,
    DuplicateError,
    NotFoundError,
)
