"""Domain errors raised by the service layer and their HTTP rendering.

Every error carries a user-facing ``message`` (shown to the user as-is by
the client) and a machine-readable ``code`` so callers can tell, for
example, a rejected requester from a removed one.
"""
import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class EventServiceError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "error"

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code

    def to_body(self) -> dict:
        return {"error": self.message, "code": self.code}


class EventValidationError(EventServiceError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "validation_error"


class EventPermissionError(EventServiceError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "forbidden"


class StateConflictError(EventServiceError):
    status_code = status.HTTP_409_CONFLICT
    code = "state_conflict"


class NotFoundError(EventServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


def register_exception_handlers(app: FastAPI) -> None:
    """Render domain and request-validation errors as ``{"error": ...}``."""

    @app.exception_handler(EventServiceError)
    async def _service_error(request: Request, exc: EventServiceError):
        logger.info("%s %s refused: %s (%s)", request.method, request.url.path, exc.code, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_body())

    @app.exception_handler(RequestValidationError)
    async def _request_validation_error(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = first.get("msg", "Invalid request")
        if field:
            message = f"{field}: {message}"
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"error": message, "code": "validation_error"},
        )
