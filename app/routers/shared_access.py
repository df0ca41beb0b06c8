"""
Shared-access router (viewer side, unauthenticated).

POST /shared-access  — Exchange a passcode for a sanitized memory
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from app.routers.deps import get_sharing_service
from app.schemas.common import ErrorResponse
from app.schemas.share import ShareInfo, SharedAccessRequest, SharedAccessResponse
from app.services.sharing import SharingService

router = APIRouter(prefix="/shared-access", tags=["shared-access"])


@router.post(
    "",
    response_model=SharedAccessResponse,
    summary="Open a shared memory with its passcode",
    responses={
        200: {"description": "Passcode accepted; one view counted."},
        400: {"model": ErrorResponse, "description": "Passcode is not 12 alphanumeric characters."},
        404: {"model": ErrorResponse, "description": "Access denied (unknown, revoked, expired or used up)."},
        503: {"model": ErrorResponse, "description": "Store unavailable; safe to retry."},
    },
)
def access_shared_memory(
    payload: SharedAccessRequest,
    request: Request,
    service: SharingService = Depends(get_sharing_service),
):
    """
    Every successful call counts one view and writes one access-log row.

    All denials share one response (**404 SHARED_ACCESS_DENIED**) so a caller
    cannot tell an unknown passcode from a revoked, expired or exhausted one.

    `viewer_info` is optional; missing values fall back to the client address
    and `User-Agent` header, then to `"unknown"`.
    """
    info = payload.viewer_info
    viewer_ip = (info.ip_address if info else None) or (
        request.client.host if request.client else None
    )
    viewer_agent = (info.user_agent if info else None) or request.headers.get("user-agent")

    result = service.access_by_passcode(payload.access_passcode, viewer_ip, viewer_agent)
    share = result.share
    return SharedAccessResponse(
        memory=result.memory,
        share_info=ShareInfo(
            shared_by=share.shared_by_user_id,
            recipient_email=share.recipient_email,
            created_at=share.created_at,
            view_count=share.current_views,
            max_views=share.allowed_views,
        ),
    )
