from .memory import Memory
from .memory_share import MemoryShare
from .memory_access_log import MemoryAccessLog

__all__ = [
    "Memory",
    "MemoryShare",
    "MemoryAccessLog",
]
