"""
Share and access-log persistence.

Rules:
- Stores never commit. The sharing service owns the transaction and
  commits once per operation, so a failed step leaves nothing behind.
- `increment_views` is the only writer of `current_views` and does it in a
  single conditional UPDATE; validity is re-checked inside the statement.

Public API
----------
ShareStore(db).create(...)                    -> MemoryShare
ShareStore(db).get(share_id)                  -> MemoryShare | None
ShareStore(db).find_by_passcode(passcode)     -> MemoryShare | None
ShareStore(db).list_by_owner(owner_id)        -> list[MemoryShare]  (newest first)
ShareStore(db).list_by_memory(memory_id)      -> list[MemoryShare]  (newest first)
ShareStore(db).deactivate(share_id)           -> None  (idempotent)
ShareStore(db).increment_views(share_id, now) -> bool  (False = nothing claimed)
AccessLogStore(db).append(...)                -> MemoryAccessLog
AccessLogStore(db).list_by_share(share_id)    -> list[MemoryAccessLog]  (newest first)
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy import or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import StoreUnavailableError
from app.models.memory_access_log import MemoryAccessLog
from app.models.memory_share import MemoryShare
from app.services.passcode import generate_passcode

logger = logging.getLogger(__name__)


class ShareStore:
    def __init__(self, db: Session, passcode_factory: Callable[[], str] = generate_passcode):
        self.db = db
        self.passcode_factory = passcode_factory

    def _is_passcode_conflict(self, exc: IntegrityError) -> bool:
        return "access_passcode" in str(exc.orig)

    def create(
        self,
        owner_id: str,
        memory_id: str,
        recipient_email: Optional[str],
        allowed_views: int,
        expires_at: Optional[datetime],
    ) -> MemoryShare:
        """
        Insert a grant under a fresh passcode.

        Known passcodes are skipped before the insert. A concurrent writer can
        still take the same code in between; the unique index then rejects the
        row inside a savepoint and a new code is drawn. Both cases count
        against PASSCODE_MAX_ATTEMPTS.
        """
        for attempt in range(1, settings.PASSCODE_MAX_ATTEMPTS + 1):
            candidate = self.passcode_factory()
            if self.find_by_passcode(candidate) is not None:
                logger.warning("Passcode collision on attempt %d, regenerating", attempt)
                continue
            share = MemoryShare(
                memory_id=memory_id,
                shared_by_user_id=owner_id,
                recipient_email=recipient_email,
                access_passcode=candidate,
                allowed_views=allowed_views,
                current_views=0,
                expires_at=expires_at,
                is_active=True,
            )
            try:
                with self.db.begin_nested():
                    self.db.add(share)
                    self.db.flush()
            except IntegrityError as exc:
                if not self._is_passcode_conflict(exc):
                    raise
                logger.warning("Passcode taken at insert on attempt %d, regenerating", attempt)
                continue
            return share
        raise StoreUnavailableError("generate_passcode")

    def get(self, share_id: str) -> Optional[MemoryShare]:
        return self.db.get(MemoryShare, share_id)

    def find_by_passcode(self, passcode: str) -> Optional[MemoryShare]:
        return (
            self.db.query(MemoryShare)
            .filter(MemoryShare.access_passcode == passcode)
            .first()
        )

    def list_by_owner(self, owner_id: str) -> list[MemoryShare]:
        return (
            self.db.query(MemoryShare)
            .filter(MemoryShare.shared_by_user_id == owner_id)
            .order_by(MemoryShare.created_at.desc(), MemoryShare.id.desc())
            .all()
        )

    def list_by_memory(self, memory_id: str) -> list[MemoryShare]:
        return (
            self.db.query(MemoryShare)
            .filter(MemoryShare.memory_id == memory_id)
            .order_by(MemoryShare.created_at.desc(), MemoryShare.id.desc())
            .all()
        )

    def deactivate(self, share_id: str) -> None:
        self.db.execute(
            update(MemoryShare)
            .where(MemoryShare.id == share_id, MemoryShare.is_active == True)  # noqa: E712
            .values(is_active=False)
            .execution_options(synchronize_session=False)
        )

    def increment_views(self, share_id: str, now: datetime) -> bool:
        """
        Claim one view. The WHERE clause repeats the validity rules so two
        concurrent viewers cannot both take the last remaining view.
        """
        result = self.db.execute(
            update(MemoryShare)
            .where(
                MemoryShare.id == share_id,
                MemoryShare.is_active == True,  # noqa: E712
                or_(MemoryShare.expires_at.is_(None), MemoryShare.expires_at > now),
                or_(
                    MemoryShare.allowed_views <= 0,
                    MemoryShare.current_views < MemoryShare.allowed_views,
                ),
            )
            .values(current_views=MemoryShare.current_views + 1)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1


class AccessLogStore:
    def __init__(self, db: Session):
        self.db = db

    def append(self, share_id: str, viewer_ip: str, viewer_user_agent: str) -> MemoryAccessLog:
        entry = MemoryAccessLog(
            memory_share_id=share_id,
            viewer_ip_address=viewer_ip,
            viewer_user_agent=viewer_user_agent,
        )
        self.db.add(entry)
        self.db.flush()
        return entry

    def list_by_share(self, share_id: str) -> list[MemoryAccessLog]:
        return (
            self.db.query(MemoryAccessLog)
            .filter(MemoryAccessLog.memory_share_id == share_id)
            .order_by(MemoryAccessLog.accessed_at.desc(), MemoryAccessLog.id.desc())
            .all()
        )
