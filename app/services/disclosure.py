"""
Disclosure sanitizer: turns a stored memory into what a share viewer sees.
"""
from __future__ import annotations

from app.schemas.memory import PublicMemoryView
from app.services.memory import load_media


def sanitize(memory) -> PublicMemoryView:
    """
    Build the public view by copying allow-listed fields only.

    Owner id, category, the legacy `share_passcode` / `is_private` /
    `allow_public_view` flags and any column added later stay behind.
    """
    return PublicMemoryView(
        question=memory.question,
        response=memory.response,
        emotional_context=memory.emotional_context,
        media_attachments=load_media(memory.media_attachments),
        created_at=memory.created_at,
    )
