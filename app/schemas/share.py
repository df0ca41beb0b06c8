"""
Sharing request / response schemas.

POST   /shares               → ShareCreateRequest  → ShareResponse (with passcode)
GET    /shares               → ShareListResponse
DELETE /shares/{id}          → ShareRevokeResponse
GET    /shares/{id}/logs     → AccessLogListResponse
POST   /shared-access        → SharedAccessRequest → SharedAccessResponse
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.schemas.memory import PublicMemoryView


class ShareCreateRequest(BaseModel):
    """Create a passcode grant for one of the caller's memories."""
    memory_id: str = Field(min_length=1, max_length=36)
    recipient_email: Optional[str] = Field(
        default=None,
        max_length=320,
        description="Informational only. Anyone holding the passcode can view.",
        examples=["grandkid@example.com"],
    )
    allowed_views: int = Field(
        default=-1,
        description="-1 for unlimited, otherwise a positive view cap.",
        examples=[-1, 3],
    )
    expires_at: Optional[datetime] = Field(
        default=None,
        description="Absolute expiry (ISO-8601). Mutually exclusive with expires_in_days.",
    )
    expires_in_days: Optional[int] = Field(
        default=None,
        ge=0,
        description="Relative expiry, converted to an absolute timestamp at creation.",
        examples=[7],
    )

    @model_validator(mode="after")
    def single_expiry_form(self) -> "ShareCreateRequest":
        if self.expires_at is not None and self.expires_in_days is not None:
            raise ValueError("Provide expires_at or expires_in_days, not both.")
        return self


class ShareResponse(BaseModel):
    """Owner view of a share grant."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    memory_id: str
    shared_by_user_id: str
    recipient_email: Optional[str] = None
    access_passcode: str
    allowed_views: int
    current_views: int
    expires_at: Optional[datetime] = None
    is_active: bool
    created_at: datetime


class ShareListResponse(BaseModel):
    total: int
    items: list[ShareResponse]


class ShareRevokeResponse(BaseModel):
    id: str
    is_active: bool


class AccessLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    memory_share_id: str
    viewer_ip_address: str
    viewer_user_agent: str
    accessed_at: datetime


class AccessLogListResponse(BaseModel):
    total: int
    items: list[AccessLogResponse]


class ViewerInfo(BaseModel):
    ip_address: Optional[str] = Field(default=None, max_length=64)
    user_agent: Optional[str] = Field(default=None, max_length=1024)


class SharedAccessRequest(BaseModel):
    """
    Viewer request. `access_passcode` is left unconstrained, and may even be
    missing or null: every format problem is reported as 400
    INVALID_PASSCODE_FORMAT by the service, not as a generic 422.
    """
    access_passcode: Optional[str] = Field(default=None, examples=["Ab3dEf7hJkMn"])
    viewer_info: Optional[ViewerInfo] = None


class ShareInfo(BaseModel):
    shared_by: str
    recipient_email: Optional[str] = None
    created_at: datetime
    view_count: int
    max_views: int


class SharedAccessResponse(BaseModel):
    memory: PublicMemoryView
    share_info: ShareInfo
