"""
Memory router.

POST /memories               — Record a memory for the calling user
GET  /memories               — List the caller's memories (newest first)
GET  /memories/{memory_id}   — Owner view of one memory
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.core.errors import ForbiddenError, MemoryNotFoundError
from app.db.base import get_db
from app.models.memory import Memory
from app.routers.deps import get_current_user_id
from app.schemas.memory import MemoryCreateRequest, MemoryListResponse, MemoryResponse
from app.services.memory import MemoryStore, load_media

router = APIRouter(prefix="/memories", tags=["memories"])


# ---------------------------------------------------------------------------
# Serialization helper
# ---------------------------------------------------------------------------

def _memory_to_response(memory: Memory) -> MemoryResponse:
    return MemoryResponse(
        id=memory.id,
        user_id=memory.user_id,
        category_id=memory.category_id,
        question=memory.question,
        response=memory.response,
        emotional_context=memory.emotional_context,
        media_attachments=load_media(memory.media_attachments),
        is_private=memory.is_private,
        allow_public_view=memory.allow_public_view,
        created_at=memory.created_at,
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post(
    "",
    response_model=MemoryResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record a memory",
    responses={
        201: {"description": "Memory stored."},
        422: {"description": "Validation error."},
        503: {"description": "Store unavailable; safe to retry."},
    },
)
def create_memory(
    payload: MemoryCreateRequest,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    """Store a question/answer memory. Memories are private unless shared by passcode."""
    memory = MemoryStore(db).create(owner_id=user_id, payload=payload)
    return _memory_to_response(memory)


@router.get(
    "",
    response_model=MemoryListResponse,
    summary="List the caller's memories (newest first)",
)
def list_memories(
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    items = MemoryStore(db).list_by_owner(user_id)
    return MemoryListResponse(
        total=len(items),
        items=[_memory_to_response(m) for m in items],
    )


@router.get(
    "/{memory_id}",
    response_model=MemoryResponse,
    summary="Retrieve one of the caller's memories",
    responses={
        200: {"description": "Memory found."},
        403: {"description": "Memory belongs to another user."},
        404: {"description": "Memory not found."},
    },
)
def get_memory(
    memory_id: str,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    memory = MemoryStore(db).get(memory_id)
    if memory is None:
        raise MemoryNotFoundError(memory_id)
    if memory.user_id != user_id:
        raise ForbiddenError("memory", memory_id)
    return _memory_to_response(memory)
