"""
Long-term memory: provider contract, backends, selection, background ingestion.
"""

from .base import MemoryHit, MemoryProvider, NullMemoryProvider, format_memories
from .factory import (
    close_memory_provider,
    create_memory_provider,
    get_memory_provider,
    set_memory_provider,
)
from .background import drain_ingestions, remember, spawn_ingestion

__all__ = [
    "MemoryHit", "MemoryProvider", "NullMemoryProvider", "format_memories",
    "create_memory_provider", "get_memory_provider", "set_memory_provider",
    "close_memory_provider",
    "spawn_ingestion", "remember", "drain_ingestions",
]
