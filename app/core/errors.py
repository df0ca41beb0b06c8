"""
Custom exception hierarchy for Memoir.

Rule: every HTTP error has a machine-readable `code` string so clients
can branch on it without parsing English messages.
"""
from __future__ import annotations

import enum
import logging
from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exception classes
# ---------------------------------------------------------------------------

class MemoirException(Exception):
    """Base class for all application-level errors."""
    http_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class InvalidPasscodeFormatError(MemoirException):
    http_status = status.HTTP_400_BAD_REQUEST
    code = "INVALID_PASSCODE_FORMAT"

    def __init__(self):
        super().__init__(message="Invalid passcode format.")


class DenialReason(str, enum.Enum):
    not_found = "not_found"
    revoked = "revoked"
    expired = "expired"
    exhausted = "exhausted"


class SharedAccessDeniedError(MemoirException):
    """
    Raised for every rejected passcode that was well-formed.

    `reason` is for logs and tests only. It never reaches the response body:
    an anonymous viewer gets the same status, code and message whether the
    passcode is unknown, revoked, expired or out of views.
    """
    http_status = status.HTTP_404_NOT_FOUND
    code = "SHARED_ACCESS_DENIED"

    def __init__(self, reason: DenialReason, share_id: str | None = None):
        self.reason = reason
        self.share_id = share_id
        super().__init__(message="Memory not found or passcode invalid.")

    @property
    def is_not_found(self) -> bool:
        return self.reason is DenialReason.not_found

    @property
    def is_expired(self) -> bool:
        return self.reason is not DenialReason.not_found


class ForbiddenError(MemoirException):
    http_status = status.HTTP_403_FORBIDDEN
    code = "FORBIDDEN"

    def __init__(self, resource: str, resource_id: str):
        super().__init__(
            message=f"Access to {resource} {resource_id} is not allowed.",
            details={"resource": resource, "id": resource_id},
        )


class ShareNotFoundError(MemoirException):
    http_status = status.HTTP_404_NOT_FOUND
    code = "SHARE_NOT_FOUND"

    def __init__(self, share_id: str):
        super().__init__(
            message=f"Share {share_id} not found.",
            details={"id": share_id},
        )


class MemoryNotFoundError(MemoirException):
    http_status = status.HTTP_404_NOT_FOUND
    code = "MEMORY_NOT_FOUND"

    def __init__(self, memory_id: str):
        super().__init__(
            message=f"Memory {memory_id} not found.",
            details={"id": memory_id},
        )


class InvalidShareOptionsError(MemoirException):
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "INVALID_SHARE_OPTIONS"

    def __init__(self, message: str, field: str):
        super().__init__(message=message, details={"field": field})


class StoreUnavailableError(MemoirException):
    """Persistence failure. The only error class a caller should retry."""
    http_status = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "STORE_UNAVAILABLE"

    def __init__(self, operation: str):
        super().__init__(
            message="The data store is temporarily unavailable. Please retry.",
            details={"operation": operation},
        )


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

async def memoir_exception_handler(request: Request, exc: MemoirException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.http_status,
        content=exc.to_dict(),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Return structured 422 with machine-readable field errors."""
    field_errors = []
    for error in exc.errors():
        field_errors.append({
            "field": ".".join(str(loc) for loc in error["loc"] if loc != "body"),
            "message": error["msg"],
            "type": error["type"],
        })
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "code": "VALIDATION_ERROR",
            "message": "Request validation failed.",
            "details": {"errors": field_errors},
        },
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "code": "INTERNAL_ERROR",
            "message": "An unexpected error occurred.",
        },
    )
