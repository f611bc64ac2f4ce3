"""Exception handlers translating domain errors into HTTP responses.

- ValidationError (incl. TransitionNotAllowedError) -> 422
- DuplicateError                                    -> 409
- NotFoundError                                     -> 404
- OperationFailedError                              -> 500, generic message only
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from visita_workflow.api.schemas import ErrorResponse
from visita_workflow.errors import (
    DuplicateError,
    NotFoundError,
    OperationFailedError,
    ValidationError,
    VisitaError,
)
from visita_workflow.observability import get_logger

logger = get_logger(__name__)

_STATUS_CODES: dict[type[VisitaError], int] = {
    ValidationError: 422,
    DuplicateError: 409,
    NotFoundError: 404,
    OperationFailedError: 500,
}


def _status_code_for(exc: VisitaError) -> int:
    for error_type, status_code in _STATUS_CODES.items():
        if isinstance(exc, error_type):
            return status_code
    return 500


async def handle_visita_error(request: Request, exc: VisitaError) -> JSONResponse:
    status_code = _status_code_for(exc)
    if status_code >= 500:
        logger.error("Request failed", path=request.url.path, error=exc.message)
    else:
        logger.info("Request rejected", path=request.url.path, status_code=status_code, error=exc.message)

    body = ErrorResponse(detail=exc.message, field=getattr(exc, "field", None))
    return JSONResponse(status_code=status_code, content=body.model_dump())


def register_exception_handlers(app: FastAPI) -> None:
    """Install the domain error handler on an application."""
    app.add_exception_handler(VisitaError, handle_visita_error)  # type: ignore[arg-type]
