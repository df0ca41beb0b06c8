"""
MemoryAccessLog: append-only trail of successful share views.

One row per counted view; written in the same transaction as the
view-counter increment. Rejected attempts are not recorded here.
"""
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base
from app.models.memory import _new_id, _utcnow


class MemoryAccessLog(Base):
    __tablename__ = "memory_access_logs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    memory_share_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("memory_shares.id"), nullable=False, index=True
    )
    viewer_ip_address: Mapped[str] = mapped_column(Text, nullable=False, default="unknown")
    viewer_user_agent: Mapped[str] = mapped_column(Text, nullable=False, default="unknown")
    accessed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )
