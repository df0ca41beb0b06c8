"""
Memory request / response schemas.

POST /memories            → MemoryCreateRequest → MemoryResponse
GET  /memories            → MemoryListResponse
GET  /memories/{id}       → MemoryResponse
POST /shared-access       → PublicMemoryView (inside SharedAccessResponse)
"""
from __future__ import annotations

from datetime import datetime
from typing import Annotated, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class MediaAttachment(BaseModel):
    """One photo or video attached to a memory."""
    type: Literal["image", "video"]
    url: str = Field(min_length=1, max_length=2048)
    filename: str = Field(min_length=1, max_length=255)
    size: int = Field(ge=0, description="Size in bytes.")


class MemoryCreateRequest(BaseModel):
    """Record a new memory for the calling user."""
    question: Annotated[str, Field(
        min_length=1,
        max_length=2_000,
        examples=["What was your first job?"],
    )]
    response: Annotated[str, Field(
        min_length=1,
        max_length=50_000,
        examples=["I delivered newspapers on my bike every morning before school."],
    )]
    category_id: Optional[str] = Field(default=None, max_length=64)
    emotional_context: Optional[str] = Field(
        default=None,
        max_length=2_000,
        description="Free-form emotional tag, e.g. 'nostalgic'.",
    )
    media_attachments: list[MediaAttachment] = Field(default_factory=list)
    is_private: bool = True
    allow_public_view: bool = False

    @field_validator("question", "response", mode="before")
    @classmethod
    def strip_and_check_empty(cls, v: str) -> str:
        if isinstance(v, str):
            v = v.strip()
        return v


class MemoryResponse(BaseModel):
    """Owner view of a memory: every stored field."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    category_id: Optional[str] = None
    question: str
    response: str
    emotional_context: Optional[str] = None
    media_attachments: list[MediaAttachment] = Field(default_factory=list)
    is_private: bool
    allow_public_view: bool
    created_at: datetime


class MemoryListResponse(BaseModel):
    total: int
    items: list[MemoryResponse]


class PublicMemoryView(BaseModel):
    """
    What an anonymous share viewer may see.

    Allow-list: a field added to Memory is not disclosed until it is
    added here on purpose.
    """
    model_config = ConfigDict(extra="forbid")

    question: str
    response: str
    emotional_context: Optional[str] = None
    media_attachments: list[MediaAttachment] = Field(default_factory=list)
    created_at: Optional[datetime] = None
