"""
Share validity evaluation.

Pure functions over a MemoryShare-shaped object: anything exposing
is_active, expires_at, allowed_views and current_views.
No DB access, no clock reads: callers pass `now`.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from app.core.errors import DenialReason


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; everything we store is UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def denial_reason(grant, now: datetime) -> Optional[DenialReason]:
    """
    Return why the grant can no longer be used, or None if it is live.

    Checked in order: revoked, expired, exhausted.
    """
    if not grant.is_active:
        return DenialReason.revoked
    if grant.expires_at is not None and not as_utc(now) < as_utc(grant.expires_at):
        return DenialReason.expired
    if grant.allowed_views > 0 and grant.current_views >= grant.allowed_views:
        return DenialReason.exhausted
    return None


def is_valid(grant, now: datetime) -> bool:
    return denial_reason(grant, now) is None
