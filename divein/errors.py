"""Error taxonomy shared by services and routes, plus the FastAPI handlers that render it."""
import logging
from typing import Optional

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class DiveInError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(DiveInError):
    """A user-correctable problem with a single input field."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, field: str, reason: str):
        super().__init__(reason)
        self.field = field
        self.reason = reason


class AuthError(DiveInError):
    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        if status_code is not None:
            self.status_code = status_code


class StoreError(DiveInError):
    """Any failure reported by a backing store: network, permission, constraint."""

    status_code = status.HTTP_502_BAD_GATEWAY

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class NotFoundError(StoreError):
    status_code = status.HTTP_404_NOT_FOUND


class PermissionDeniedError(StoreError):
    status_code = status.HTTP_403_FORBIDDEN


def _error_body(exc: DiveInError) -> dict:
    body = {"success": False, "error": exc.message}
    if isinstance(exc, ValidationError):
        body["field"] = exc.field
    return body


async def divein_error_handler(request: Request, exc: DiveInError) -> JSONResponse:
    if isinstance(exc, StoreError):
        logger.error("Store error on %s %s: %s", request.method, request.url.path, exc.message)
    elif isinstance(exc, AuthError):
        logger.warning("Auth error on %s %s: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=_error_body(exc))


async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Body/query validation failures share the ValidationError envelope; the first error wins."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    loc = [str(part) for part in first.get("loc") or () if part not in ("body", "query", "path")]
    field = loc[-1] if loc else "body"
    reason = first.get("msg", "Invalid value")
    logger.info("Request validation failed on %s %s: %s %s", request.method, request.url.path, field, reason)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=_error_body(ValidationError(field, reason)),
    )
