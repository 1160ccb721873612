"""
Long-term memory provider contract.

Every backend exposes the same two public calls:

  search_relevant_memories(user_id, query, limit, categories) -> str
  add_conversation(user_id, messages, category) -> None

Both are total: they wrap the backend's `_search` / `_ingest` in the memory
timeout and swallow-and-log any failure. An unavailable backend looks exactly
like one that has nothing to say.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Sequence

from ...core.config import get_settings
from ...core.timeouts import with_timeout

logger = logging.getLogger(__name__)

MEMORY_HEADER = "相關背景記憶："


@dataclass
class MemoryHit:
    text: str
    date: Optional[str] = None  # YYYY-MM-DD


def format_memories(hits: Sequence[MemoryHit]) -> str:
    """Numbered, dated block for prompt context. Empty input → ""."""
    lines = []
    for hit in hits:
        if not hit.text:
            continue
        prefix = f"[{hit.date}] " if hit.date else ""
        lines.append(f"{len(lines) + 1}. {prefix}{hit.text}")
    if not lines:
        return ""
    return MEMORY_HEADER + "\n" + "\n".join(lines) + "\n"


def conversation_text(messages: Sequence[dict]) -> str:
    return "\n".join(f"{m.get('role', 'user')}: {m.get('content', '')}" for m in messages)


class MemoryProvider(ABC):
    name: str = "base"

    def __init__(self, timeout_seconds: Optional[float] = None):
        self.timeout_seconds = (
            timeout_seconds if timeout_seconds is not None
            else get_settings().memory_timeout_seconds
        )

    @property
    def enabled(self) -> bool:
        return True

    @abstractmethod
    async def _search(
        self, user_id: str, query: str, limit: int, categories: Optional[list[str]],
    ) -> list[MemoryHit]:
        ...

    @abstractmethod
    async def _ingest(self, user_id: str, messages: list[dict], category: Optional[str]) -> None:
        ...

    async def search_relevant_memories(
        self,
        user_id: str,
        query: str,
        limit: int = 5,
        categories: Optional[list[str]] = None,
    ) -> str:
        if not self.enabled:
            return ""
        try:
            hits = await with_timeout(
                self._search(user_id, query, limit, categories or None),
                self.timeout_seconds,
                f"memory search ({self.name})",
            )
        except Exception as e:
            logger.error(
                "Memory search failed (%s) | user=%s query=%r: %s",
                self.name, user_id[:8], query[:50], e,
            )
            return ""
        text = format_memories(hits[:limit])
        logger.debug(
            "Memory search (%s) | user=%s hits=%d categories=%s",
            self.name, user_id[:8], len(hits), categories or "none",
        )
        return text

    async def add_conversation(
        self,
        user_id: str,
        messages: list[dict],
        category: Optional[str] = None,
    ) -> None:
        if not self.enabled or not messages:
            return
        try:
            await with_timeout(
                self._ingest(user_id, messages, category),
                self.timeout_seconds,
                f"memory ingest ({self.name})",
            )
        except Exception as e:
            logger.error(
                "Memory ingest failed (%s) | user=%s category=%s: %s",
                self.name, user_id[:8], category or "none", e,
            )
            return
        logger.debug(
            "Memory ingested (%s) | user=%s messages=%d category=%s",
            self.name, user_id[:8], len(messages), category or "none",
        )

    async def close(self) -> None:
        """Release client handles. Most backends have nothing to release."""


class NullMemoryProvider(MemoryProvider):
    """No backend configured. Search finds nothing, ingest does nothing."""

    name = "none"

    def __init__(self):
        super().__init__(timeout_seconds=0)

    @property
    def enabled(self) -> bool:
        return False

    async def _search(self, user_id, query, limit, categories):
        return []

    async def _ingest(self, user_id, messages, category):
        return None
