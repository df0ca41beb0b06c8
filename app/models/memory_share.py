"""
MemoryShare: a passcode grant giving read access to one memory.

Rules:
- `access_passcode` is unique; it is the only credential a viewer presents.
- `allowed_views`: -1 = unlimited, >0 = hard cap. Zero is not storable.
- `current_views` only ever goes up, and only through the atomic
  conditional UPDATE in ShareStore.increment_views.
- `is_active` goes True -> False once (revocation). Rows are never deleted.
- `recipient_email` is informational. It does not gate access.
"""
from datetime import datetime

from sqlalchemy import (
    Boolean, CheckConstraint, DateTime, ForeignKey, Integer, String, Text, func,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base
from app.models.memory import _new_id, _utcnow

UNLIMITED_VIEWS = -1


class MemoryShare(Base):
    __tablename__ = "memory_shares"
    __table_args__ = (
        CheckConstraint(
            "allowed_views = -1 OR allowed_views > 0", name="ck_memory_shares_allowed_views"
        ),
        CheckConstraint("current_views >= 0", name="ck_memory_shares_current_views"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    memory_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("memories.id"), nullable=False, index=True
    )
    shared_by_user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    recipient_email: Mapped[str | None] = mapped_column(Text, nullable=True)
    access_passcode: Mapped[str] = mapped_column(
        String(12), nullable=False, unique=True, index=True
    )
    allowed_views: Mapped[int] = mapped_column(
        Integer, nullable=False, default=UNLIMITED_VIEWS
    )
    current_views: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )
