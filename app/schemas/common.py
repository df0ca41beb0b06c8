"""
Error envelope shared by every endpoint, declared in route `responses=`
so the OpenAPI docs show it.
"""
from typing import Any, Optional

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """`{code, message, details?}` as produced by MemoirException.to_dict()."""
    code: str
    message: str
    details: Optional[dict[str, Any]] = None
