"""
Fire-and-forget memory ingestion.

`spawn_ingestion` schedules `add_conversation` as a detached task and returns
immediately. Failures only reach the log. There is no at-least-once delivery
and no ordering between writes for the same user.
"""

import asyncio
import logging
from typing import Optional

from .base import MemoryProvider
from .factory import get_memory_provider

logger = logging.getLogger(__name__)

# Strong references so pending tasks are not garbage-collected
_pending: set[asyncio.Task] = set()


def _on_done(task: asyncio.Task) -> None:
    _pending.discard(task)
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Background memory ingestion failed: %s", exc)


def spawn_ingestion(
    user_id: str,
    messages: list[dict],
    category: Optional[str] = None,
    provider: Optional[MemoryProvider] = None,
) -> Optional[asyncio.Task]:
    provider = provider or get_memory_provider()
    if not provider.enabled:
        return None
    task = asyncio.create_task(
        provider.add_conversation(user_id, messages, category),
        name=f"memory-ingest-{user_id[:8]}",
    )
    _pending.add(task)
    task.add_done_callback(_on_done)
    return task


def remember(user_id: str, text: str, category: Optional[str] = None) -> Optional[asyncio.Task]:
    """Ingest a single synthetic "[Extracted Memory] …" turn."""
    return spawn_ingestion(
        user_id,
        [{"role": "user", "content": f"[Extracted Memory] {text}"}],
        category,
    )


async def drain_ingestions() -> None:
    """Wait for every outstanding ingestion (shutdown, tests)."""
    while _pending:
        await asyncio.gather(*list(_pending), return_exceptions=True)
