"""
Memory store.

Minimal CRUD over the `memories` table: enough for owners to record
memories and for the sharing service to read the one being disclosed.
The sharing subsystem never writes through this store.

Public API
----------
MemoryStore(db).create(owner_id, payload)  -> Memory
MemoryStore(db).get(memory_id)             -> Memory | None
MemoryStore(db).list_by_owner(owner_id)    -> list[Memory]  (newest first)
load_media(text)                           -> list[MediaAttachment]
"""
from __future__ import annotations

import json
import logging
from typing import Optional

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import StoreUnavailableError
from app.models.memory import Memory
from app.schemas.memory import MediaAttachment, MemoryCreateRequest

logger = logging.getLogger(__name__)


def dump_media(items: list[MediaAttachment]) -> Optional[str]:
    if not items:
        return None
    return json.dumps([i.model_dump() for i in items], ensure_ascii=False)


def load_media(text: Optional[str]) -> list[MediaAttachment]:
    """Parse the JSON column; rows that do not parse are left out."""
    if not text:
        return []
    try:
        raw = json.loads(text)
    except (ValueError, TypeError):
        return []
    if not isinstance(raw, list):
        return []
    items: list[MediaAttachment] = []
    for entry in raw:
        try:
            items.append(MediaAttachment.model_validate(entry))
        except ValidationError:
            continue
    return items


class MemoryStore:
    def __init__(self, db: Session):
        self.db = db

    def create(self, owner_id: str, payload: MemoryCreateRequest) -> Memory:
        memory = Memory(
            user_id=owner_id,
            category_id=payload.category_id,
            question=payload.question,
            response=payload.response,
            emotional_context=payload.emotional_context,
            media_attachments=dump_media(payload.media_attachments),
            is_private=payload.is_private,
            allow_public_view=payload.allow_public_view,
        )
        try:
            self.db.add(memory)
            self.db.commit()
            self.db.refresh(memory)
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("Store failure during create_memory: %s", type(exc).__name__)
            raise StoreUnavailableError("create_memory") from exc
        return memory

    def get(self, memory_id: str) -> Optional[Memory]:
        return self.db.get(Memory, memory_id)

    def list_by_owner(self, owner_id: str) -> list[Memory]:
        return (
            self.db.query(Memory)
            .filter(Memory.user_id == owner_id)
            .order_by(Memory.created_at.desc())
            .all()
        )
