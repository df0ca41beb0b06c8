"""
Shares router (owner side).

POST   /shares                  — Create a passcode grant for a memory
GET    /shares                  — List grants (by owner or by memory)
DELETE /shares/{share_id}       — Revoke a grant (idempotent)
GET    /shares/{share_id}/logs  — Access history of a grant
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from app.core.errors import ForbiddenError
from app.models.memory_access_log import MemoryAccessLog
from app.models.memory_share import MemoryShare
from app.routers.deps import get_current_user_id, get_sharing_service
from app.schemas.common import ErrorResponse
from app.schemas.share import (
    AccessLogListResponse,
    AccessLogResponse,
    ShareCreateRequest,
    ShareListResponse,
    ShareResponse,
    ShareRevokeResponse,
)
from app.services.sharing import SharingService

router = APIRouter(prefix="/shares", tags=["shares"])


# ---------------------------------------------------------------------------
# Serialization helpers
# ---------------------------------------------------------------------------

def _share_to_response(share: MemoryShare) -> ShareResponse:
    return ShareResponse.model_validate(share)


def _log_to_response(entry: MemoryAccessLog) -> AccessLogResponse:
    return AccessLogResponse.model_validate(entry)


# ---------------------------------------------------------------------------
# POST /shares
# ---------------------------------------------------------------------------

@router.post(
    "",
    response_model=ShareResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a passcode share for a memory",
    responses={
        201: {"description": "Share created. The passcode is returned in plain text."},
        403: {"model": ErrorResponse, "description": "Memory belongs to another user."},
        404: {"model": ErrorResponse, "description": "Memory not found."},
        422: {"model": ErrorResponse, "description": "Invalid share options."},
    },
)
def create_share(
    payload: ShareCreateRequest,
    user_id: str = Depends(get_current_user_id),
    service: SharingService = Depends(get_sharing_service),
):
    """
    Generate a 12-character passcode that unlocks a sanitized view of one memory.

    - **allowed_views**: `-1` for unlimited, otherwise a positive cap.
    - **expires_in_days** / **expires_at**: optional; relative expiry is fixed
      to an absolute timestamp now.
    - **recipient_email**: a note for the owner; it does not restrict who can view.
    """
    share = service.create_share(
        user_id,
        payload.memory_id,
        recipient_email=payload.recipient_email,
        allowed_views=payload.allowed_views,
        expires_in_days=payload.expires_in_days,
        expires_at=payload.expires_at,
    )
    return _share_to_response(share)


# ---------------------------------------------------------------------------
# GET /shares
# ---------------------------------------------------------------------------

@router.get(
    "",
    response_model=ShareListResponse,
    summary="List shares (newest first)",
    responses={403: {"model": ErrorResponse, "description": "Requested another user's shares."}},
)
def list_shares(
    owner_id: Optional[str] = Query(
        default=None, description="Owner whose shares to list. Must be the caller."
    ),
    memory_id: Optional[str] = Query(
        default=None, description="Only shares of this memory (must be the caller's)."
    ),
    user_id: str = Depends(get_current_user_id),
    service: SharingService = Depends(get_sharing_service),
):
    if owner_id is not None and owner_id != user_id:
        raise ForbiddenError("shares of user", owner_id)
    if memory_id is not None:
        items = service.list_shares_for_memory(user_id, memory_id)
    else:
        items = service.list_shares_for_owner(user_id)
    return ShareListResponse(
        total=len(items),
        items=[_share_to_response(s) for s in items],
    )


# ---------------------------------------------------------------------------
# DELETE /shares/{share_id}
# ---------------------------------------------------------------------------

@router.delete(
    "/{share_id}",
    response_model=ShareRevokeResponse,
    summary="Revoke a share",
    responses={
        200: {"description": "Share is inactive (revoking twice is fine)."},
        403: {"model": ErrorResponse, "description": "Share belongs to another user."},
        404: {"model": ErrorResponse, "description": "Share not found."},
    },
)
def revoke_share(
    share_id: str,
    user_id: str = Depends(get_current_user_id),
    service: SharingService = Depends(get_sharing_service),
):
    """Permanently deactivate a share. Revoked shares cannot be re-enabled."""
    share = service.revoke_share(user_id, share_id)
    return ShareRevokeResponse(id=share.id, is_active=share.is_active)


# ---------------------------------------------------------------------------
# GET /shares/{share_id}/logs
# ---------------------------------------------------------------------------

@router.get(
    "/{share_id}/logs",
    response_model=AccessLogListResponse,
    summary="Access history of a share (newest first)",
    responses={
        403: {"model": ErrorResponse, "description": "Share belongs to another user."},
        404: {"model": ErrorResponse, "description": "Share not found."},
    },
)
def list_access_logs(
    share_id: str,
    user_id: str = Depends(get_current_user_id),
    service: SharingService = Depends(get_sharing_service),
):
    items = service.list_access_logs(user_id, share_id)
    return AccessLogListResponse(
        total=len(items),
        items=[_log_to_response(e) for e in items],
    )
