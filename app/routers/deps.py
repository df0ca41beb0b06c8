"""
Shared router dependencies.

Owner authentication is out of scope: the caller names itself with the
X-User-Id header, falling back to the configured single user.
"""
from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from app.core.config import settings
from app.db.base import get_db
from app.services.sharing import SharingService


def get_current_user_id(
    x_user_id: Optional[str] = Header(default=None, max_length=64),
) -> str:
    return x_user_id or settings.DEFAULT_USER_ID


def get_sharing_service(db: Session = Depends(get_db)) -> SharingService:
    return SharingService(db)
