"""
Life feedback from the user's own records.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from ..schemas import TagList
from .items import dedupe_items, format_items, list_recent_items, search_items_by_tags
from .memory import get_memory_provider
from .rag import answer_with_context
from .structured import generate_structured

logger = logging.getLogger(__name__)

EMPTY_FEEDBACK = "你還沒有記錄任何內容呢！開始記錄你的生活點滴，我會根據你的紀錄提供回饋和建議 💫"


async def extract_feedback_tags(user_id: str, query: str) -> list[str]:
    result = await generate_structured(
        "extractFeedbackTags",
        {"query": query},
        TagList,
        fallback=lambda: TagList(tags=["life"]),
        user_id=user_id,
    )
    return [t.lower() for t in result.tags] or ["life"]


async def generate_feedback(db: AsyncSession, user_id: str, text: str) -> str:
    tags = await extract_feedback_tags(user_id, text)
    tagged = await search_items_by_tags(db, user_id, tags, limit=5)
    recent = await list_recent_items(db, user_id, limit=5)
    items = dedupe_items(tagged, recent, limit=10)
    memories = await get_memory_provider().search_relevant_memories(user_id, text or "生活 近況", limit=5)

    if not items and not memories:
        logger.info("No records for feedback | user=%s", user_id[:8])
        return EMPTY_FEEDBACK

    parts = []
    if memories:
        parts.append(memories.strip())
    if items:
        parts.append("用戶最近的紀錄：\n" + format_items(items, numbered=False, content_chars=100))
    logger.info(
        "Feedback context | user=%s tags=%s items=%d memories=%s",
        user_id[:8], tags, len(items), bool(memories),
    )
    return await answer_with_context("generateFeedbackWithRAG", user_id, text, "\n\n".join(parts))
