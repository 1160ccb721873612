"""
Single-purpose note capture: knowledge, life, music, insight, memory and chat.

Each kind owns one analysis template, one fallback (text[:150], tags=[kind]),
and one SavedItem write.
"""

import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from ..models.saved_item import SavedItem
from ..schemas import ContentSummary
from .items import create_item, normalize_tags
from .memory import remember
from .structured import generate_structured

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CaptureKind:
    name: str
    template: str
    category: str
    source_type: str = "note"


KNOWLEDGE = CaptureKind("knowledge", "analyzeKnowledge", "knowledge")
LIFE = CaptureKind("life", "analyzeLife", "entertainment")
MUSIC = CaptureKind("music", "analyzeMusic", "entertainment")
INSIGHT = CaptureKind("insight", "analyzeInsight", "inspiration")
MEMORY = CaptureKind("memory", "analyzeMemory", "inspiration")
CHAT = CaptureKind("chat", "analyzeChat", "inspiration", source_type="chat")


async def capture(db: AsyncSession, user_id: str, text: str, kind: CaptureKind) -> SavedItem:
    analysis = await generate_structured(
        kind.template,
        {"text": text},
        ContentSummary,
        fallback=lambda: ContentSummary(summary=text[:150], tags=[kind.name]),
        user_id=user_id,
    )
    summary = analysis.summary or text[:150]
    tags = normalize_tags(analysis.tags)
    # The kind tag is what history and activity searches look for
    if kind.name not in tags:
        tags.append(kind.name)

    item = await create_item(
        db,
        user_id,
        content=text,
        source_type=kind.source_type,
        category=kind.category,
        title=summary[:40],
        tags=tags,
    )
    logger.info("%s saved %s | user=%s tags=%s", kind.name.capitalize(), item.id, user_id[:8], tags)

    remember(user_id, summary, kind.name)
    return item


async def save_knowledge(db: AsyncSession, user_id: str, text: str) -> SavedItem:
    return await capture(db, user_id, text, KNOWLEDGE)


async def save_life(db: AsyncSession, user_id: str, text: str) -> SavedItem:
    return await capture(db, user_id, text, LIFE)


async def save_music(db: AsyncSession, user_id: str, text: str) -> SavedItem:
    return await capture(db, user_id, text, MUSIC)


async def save_insight(db: AsyncSession, user_id: str, text: str) -> SavedItem:
    return await capture(db, user_id, text, INSIGHT)


async def save_memory_note(db: AsyncSession, user_id: str, text: str) -> SavedItem:
    return await capture(db, user_id, text, MEMORY)


async def save_chat(db: AsyncSession, user_id: str, text: str) -> SavedItem:
    return await capture(db, user_id, text, CHAT)
