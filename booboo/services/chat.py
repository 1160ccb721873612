"""
Free chat and chat-history search.

Both are memory-first: the memory provider is asked before saved items, and
saved items only serve as context when memory has nothing to offer.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from ..schemas import KeywordList
from . import llm
from .items import dedupe_items, format_items, list_recent_items, search_items_by_tags, search_items_by_text
from .memory import get_memory_provider, spawn_ingestion
from .rag import SILENT_REPLY, answer_with_context
from .structured import generate_structured

logger = logging.getLogger(__name__)

NOTHING_FOUND = "我找不到相關的對話紀錄呢 😅 試試看用不同的關鍵字搜尋？"

# Query vocabulary → saved-item tag
HISTORY_TAGS = (
    (("生活", "life"), "life"),
    (("知識", "knowledge"), "knowledge"),
    (("靈感", "insight"), "insight"),
    (("記憶", "memory"), "memory"),
    (("音樂", "music"), "music"),
)


async def chat(db: AsyncSession, user_id: str, text: str) -> str:
    context = await get_memory_provider().search_relevant_memories(user_id, text, limit=5)
    source = "memory"
    if not context:
        recent = await list_recent_items(db, user_id, limit=3)
        context = ("最近記錄：" + "、".join(i.label() for i in recent)) if recent else ""
        source = "recent items" if recent else "none"

    response = (await llm.generate("chat", {"text": text, "context": context})).strip()
    logger.info("Chat reply | user=%s context=%s reply=%d chars", user_id[:8], source, len(response))

    if not response:
        return SILENT_REPLY
    spawn_ingestion(
        user_id,
        [{"role": "user", "content": text}, {"role": "assistant", "content": response}],
        "other",
    )
    return response


def history_tags(query: str) -> list[str]:
    lowered = (query or "").lower()
    return [tag for words, tag in HISTORY_TAGS if any(w in lowered for w in words)]


async def extract_search_keywords(user_id: str, query: str) -> list[str]:
    result = await generate_structured(
        "extractSearchKeywords",
        {"query": query},
        KeywordList,
        fallback=lambda: KeywordList(keywords=[query]),
        user_id=user_id,
    )
    return [kw for kw in result.keywords if kw and kw.strip()]


async def search_history(db: AsyncSession, user_id: str, query: str) -> str:
    memories = await get_memory_provider().search_relevant_memories(user_id, query, limit=10)
    if memories:
        logger.info("History search answered from memory | user=%s", user_id[:8])
        return await answer_with_context("answerChatHistoryWithRAG", user_id, query, memories)

    keywords = await extract_search_keywords(user_id, query)
    tags = history_tags(query)

    tag_results = await search_items_by_tags(db, user_id, tags, limit=5) if tags else []
    text_groups = [await search_items_by_text(db, user_id, kw, limit=3) for kw in keywords]
    text_results = dedupe_items(*text_groups, limit=5)
    items = dedupe_items(tag_results, text_results, limit=10)

    logger.info(
        "History search | user=%s keywords=%s tags=%s results=%d",
        user_id[:8], keywords, tags, len(items),
    )
    if not items:
        return NOTHING_FOUND
    return await answer_with_context("answerChatHistoryWithRAG", user_id, query, format_items(items))
