"""
Recommendations.

Context is built from three sources, in priority order:
  1. saved items matching words of the query (text search)
  2. saved items matching tags extracted from the query
  3. the user's memories, uncategorised, as preferences

Only when both saved items and memories are empty is the canned reply used;
preferences alone are enough to recommend something.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from ..schemas import TagList
from .items import dedupe_items, format_items, search_items_by_tags, search_items_by_text
from .memory import get_memory_provider
from .rag import answer_with_context
from .structured import generate_structured

logger = logging.getLogger(__name__)

EMPTY_RECOMMENDATION = "你還沒有儲存相關內容呢！分享一些你感興趣的內容，我會根據你的喜好提供推薦 ✨"
DEFAULT_PREFERENCE_QUERY = "用戶偏好 興趣"
STOPWORDS = frozenset({"的", "是", "誰", "什麼", "可以", "推薦"})


def query_keywords(query: str, limit: int = 3) -> list[str]:
    return [w for w in (query or "").split() if len(w) > 1 and w not in STOPWORDS][:limit]


async def extract_recommendation_tags(user_id: str, query: str) -> list[str]:
    result = await generate_structured(
        "extractRecommendationTags",
        {"query": query},
        TagList,
        fallback=lambda: TagList(tags=["recommendation"]),
        user_id=user_id,
    )
    return [t.lower() for t in result.tags] or ["recommendation"]


async def generate_recommendation(db: AsyncSession, user_id: str, text: str = "") -> str:
    query = text or ""
    tags = await extract_recommendation_tags(user_id, query)
    tag_results = await search_items_by_tags(db, user_id, tags, limit=5)

    keywords = query_keywords(query)
    text_groups = [await search_items_by_text(db, user_id, kw, limit=3) for kw in keywords]
    text_results = dedupe_items(*text_groups, limit=5)

    items = dedupe_items(text_results, tag_results, limit=10)
    preferences = await get_memory_provider().search_relevant_memories(
        user_id, query or DEFAULT_PREFERENCE_QUERY, limit=10,
    )

    if not items and not preferences:
        logger.info("Nothing to recommend from | user=%s tags=%s", user_id[:8], tags)
        return EMPTY_RECOMMENDATION

    items_text = format_items(items, numbered=False, content_chars=100)
    if preferences:
        context = f"用戶的偏好與興趣：\n{preferences}"
        if items:
            context += f"\n\n用戶儲存的相關內容：\n{items_text}"
    else:
        context = items_text

    logger.info(
        "Recommendation context | user=%s tags=%s keywords=%s items=%d preferences=%s",
        user_id[:8], tags, keywords, len(items), bool(preferences),
    )
    return await answer_with_context("generateRecommendationWithRAG", user_id, query, context)
