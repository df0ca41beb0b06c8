"""
Sharing service: passcode grants over private memories.

Rules:
- Every owner-side operation takes an explicit owner id and checks it
  against the memory / share it touches.
- Viewer-side denials are logged with their internal reason but always
  surface as the same SharedAccessDeniedError.
- One commit per operation. On any failure after validation the session is
  rolled back, so a counted view always has its access-log row and vice versa.
- The passcode is never written to the log.

Public API
----------
SharingService(db).create_share(owner_id, memory_id, ...)        -> MemoryShare
SharingService(db).access_by_passcode(passcode, ip, user_agent)  -> SharedAccess
SharingService(db).revoke_share(owner_id, share_id)              -> MemoryShare
SharingService(db).list_shares_for_owner(owner_id)               -> list[MemoryShare]
SharingService(db).list_shares_for_memory(owner_id, memory_id)   -> list[MemoryShare]
SharingService(db).list_access_logs(owner_id, share_id)          -> list[MemoryAccessLog]
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterator, NoReturn, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import (
    DenialReason,
    ForbiddenError,
    InvalidPasscodeFormatError,
    InvalidShareOptionsError,
    MemoryNotFoundError,
    ShareNotFoundError,
    SharedAccessDeniedError,
    StoreUnavailableError,
)
from app.models.memory import Memory
from app.models.memory_access_log import MemoryAccessLog
from app.models.memory_share import UNLIMITED_VIEWS, MemoryShare
from app.schemas.memory import PublicMemoryView
from app.services.disclosure import sanitize
from app.services.memory import MemoryStore
from app.services.passcode import is_valid_format
from app.services.share_store import AccessLogStore, ShareStore
from app.services.validity import as_utc, denial_reason

logger = logging.getLogger(__name__)

UNKNOWN_VIEWER = "unknown"


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


@dataclass
class SharedAccess:
    """Outcome of a successful passcode access."""
    memory: PublicMemoryView
    share: MemoryShare
    log_entry: MemoryAccessLog


class SharingService:
    def __init__(
        self,
        db: Session,
        shares: Optional[ShareStore] = None,
        access_logs: Optional[AccessLogStore] = None,
        memories: Optional[MemoryStore] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.db = db
        self.shares = shares if shares is not None else ShareStore(db)
        self.access_logs = access_logs if access_logs is not None else AccessLogStore(db)
        self.memories = memories if memories is not None else MemoryStore(db)
        self.clock = clock

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @contextmanager
    def _store_errors(self, operation: str) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("Store failure during %s: %s", operation, type(exc).__name__)
            raise StoreUnavailableError(operation) from exc

    def _owned_memory(self, owner_id: str, memory_id: str) -> Memory:
        memory = self.memories.get(memory_id)
        if memory is None:
            raise MemoryNotFoundError(memory_id)
        if memory.user_id != owner_id:
            raise ForbiddenError("memory", memory_id)
        return memory

    def _owned_share(self, owner_id: str, share_id: str) -> MemoryShare:
        share = self.shares.get(share_id)
        if share is None:
            raise ShareNotFoundError(share_id)
        if share.shared_by_user_id != owner_id:
            raise ForbiddenError("share", share_id)
        return share

    @staticmethod
    def _deny(reason: DenialReason, share_id: Optional[str] = None) -> NoReturn:
        logger.warning("Shared access denied: reason=%s share_id=%s", reason.value, share_id)
        raise SharedAccessDeniedError(reason, share_id=share_id)

    def _resolve_expiry(
        self,
        expires_in_days: Optional[int],
        expires_at: Optional[datetime],
    ) -> Optional[datetime]:
        if expires_in_days is not None and expires_at is not None:
            raise InvalidShareOptionsError(
                "Provide expires_at or expires_in_days, not both.", "expires_in_days"
            )
        if expires_in_days is not None:
            if expires_in_days < 0 or expires_in_days > settings.SHARE_MAX_EXPIRY_DAYS:
                raise InvalidShareOptionsError(
                    f"expires_in_days must be between 0 and {settings.SHARE_MAX_EXPIRY_DAYS}.",
                    "expires_in_days",
                )
            # Converted once; later reads compare against this fixed instant.
            return self.clock() + timedelta(days=expires_in_days)
        if expires_at is not None:
            return as_utc(expires_at).astimezone(timezone.utc)
        return None

    # ------------------------------------------------------------------
    # Owner side
    # ------------------------------------------------------------------

    def create_share(
        self,
        owner_id: str,
        memory_id: str,
        *,
        recipient_email: Optional[str] = None,
        allowed_views: int = UNLIMITED_VIEWS,
        expires_in_days: Optional[int] = None,
        expires_at: Optional[datetime] = None,
    ) -> MemoryShare:
        if allowed_views != UNLIMITED_VIEWS and allowed_views <= 0:
            raise InvalidShareOptionsError(
                "allowed_views must be -1 (unlimited) or a positive integer.", "allowed_views"
            )
        resolved_expiry = self._resolve_expiry(expires_in_days, expires_at)

        with self._store_errors("create_share"):
            self._owned_memory(owner_id, memory_id)
            share = self.shares.create(
                owner_id=owner_id,
                memory_id=memory_id,
                recipient_email=recipient_email,
                allowed_views=allowed_views,
                expires_at=resolved_expiry,
            )
            self.db.commit()
            self.db.refresh(share)

        logger.info(
            "Share created: share_id=%s memory_id=%s allowed_views=%d expires_at=%s",
            share.id, memory_id, allowed_views, resolved_expiry,
        )
        return share

    def revoke_share(self, owner_id: str, share_id: str) -> MemoryShare:
        """Deactivate a share. Revoking an already-revoked share is a no-op."""
        with self._store_errors("revoke_share"):
            share = self._owned_share(owner_id, share_id)
            if share.is_active:
                self.shares.deactivate(share_id)
                self.db.commit()
                logger.info("Share revoked: share_id=%s", share_id)
            self.db.refresh(share)
        return share

    def list_shares_for_owner(self, owner_id: str) -> list[MemoryShare]:
        with self._store_errors("list_shares_for_owner"):
            return self.shares.list_by_owner(owner_id)

    def list_shares_for_memory(self, owner_id: str, memory_id: str) -> list[MemoryShare]:
        with self._store_errors("list_shares_for_memory"):
            self._owned_memory(owner_id, memory_id)
            return self.shares.list_by_memory(memory_id)

    def list_access_logs(self, owner_id: str, share_id: str) -> list[MemoryAccessLog]:
        with self._store_errors("list_access_logs"):
            self._owned_share(owner_id, share_id)
            return self.access_logs.list_by_share(share_id)

    # ------------------------------------------------------------------
    # Viewer side
    # ------------------------------------------------------------------

    def access_by_passcode(
        self,
        passcode: Optional[str],
        viewer_ip: Optional[str] = None,
        viewer_user_agent: Optional[str] = None,
    ) -> SharedAccess:
        """
        Disclose a memory to a passcode holder.

        Order: format check (no store access), lookup, validity, load memory,
        atomic view claim, access-log append, commit. Nothing is persisted
        unless every step succeeds.
        """
        if not is_valid_format(passcode):
            logger.info("Shared access rejected: malformed passcode")
            raise InvalidPasscodeFormatError()

        now = self.clock()
        with self._store_errors("access_by_passcode"):
            share = self.shares.find_by_passcode(passcode)
            if share is None:
                self._deny(DenialReason.not_found)

            reason = denial_reason(share, now)
            if reason is not None:
                self._deny(reason, share.id)

            memory = self.memories.get(share.memory_id)
            if memory is None:
                self._deny(DenialReason.not_found, share.id)
            view = sanitize(memory)

            if not self.shares.increment_views(share.id, now):
                # Lost a race: another request took the last view, or the
                # share was revoked between our read and the update.
                self.db.rollback()
                self.db.refresh(share)
                self._deny(denial_reason(share, now) or DenialReason.exhausted, share.id)

            log_entry = self.access_logs.append(
                share.id,
                viewer_ip or UNKNOWN_VIEWER,
                viewer_user_agent or UNKNOWN_VIEWER,
            )
            self.db.commit()
            self.db.refresh(share)

        logger.info(
            "Shared access granted: share_id=%s views=%d/%d",
            share.id, share.current_views, share.allowed_views,
        )
        return SharedAccess(memory=view, share=share, log_entry=log_entry)
