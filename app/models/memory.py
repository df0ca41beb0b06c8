"""
Memory: one autobiographical Q&A record.

Owned by the memory CRUD layer; the sharing subsystem only reads it.
`media_attachments` is a JSON-encoded Text list of
{type, url, filename, size} objects.

`is_private`, `share_passcode` and `allow_public_view` are legacy flags kept
for compatibility with older clients. Access is governed by MemoryShare, and
these columns must never be disclosed to a share viewer.
"""
import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class Memory(Base):
    __tablename__ = "memories"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    category_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    question: Mapped[str] = mapped_column(Text, nullable=False)
    response: Mapped[str] = mapped_column(Text, nullable=False)
    emotional_context: Mapped[str | None] = mapped_column(Text, nullable=True)
    media_attachments: Mapped[str | None] = mapped_column(
        Text, nullable=True,
        comment="JSON array of {type, url, filename, size}",
    )

    # Legacy privacy flags
    is_private: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    share_passcode: Mapped[str | None] = mapped_column(String(32), nullable=True, index=True)
    allow_public_view: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )
