"""
Saved-item persistence and the three read patterns the assistant relies on:
most recent first, substring search over title/content, and tag overlap.
"""

import logging
from typing import Optional

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.saved_item import CATEGORIES, SOURCE_TYPES, SavedItem

logger = logging.getLogger(__name__)

# Tag search scans this many recent rows; JSON arrays are filtered in Python
TAG_SCAN_LIMIT = 200


def normalize_tags(tags) -> list[str]:
    """Lowercase, strip, dedupe, keep order."""
    seen: list[str] = []
    for tag in tags or []:
        if not isinstance(tag, str):
            continue
        t = tag.strip().lower()
        if t and t not in seen:
            seen.append(t)
    return seen


async def create_item(
    db: AsyncSession,
    user_id: str,
    content: str,
    source_type: str = "note",
    category: str = "inspiration",
    title: Optional[str] = None,
    url: Optional[str] = None,
    tags: Optional[list[str]] = None,
    metadata: Optional[dict] = None,
    location: Optional[str] = None,
) -> SavedItem:
    if source_type not in SOURCE_TYPES:
        raise ValueError(f"Unknown source_type '{source_type}'")
    if category not in CATEGORIES:
        raise ValueError(f"Unknown category '{category}'")

    item = SavedItem(
        user_id=user_id,
        source_type=source_type,
        category=category,
        title=title,
        content=content,
        url=url,
        tags=normalize_tags(tags),
        meta=metadata or {},
        location=location,
    )
    db.add(item)
    await db.flush()
    logger.info(
        "Saved item %s | user=%s source=%s category=%s tags=%s",
        item.id, user_id[:8], source_type, category, item.tags,
    )
    return item


async def list_recent_items(
    db: AsyncSession, user_id: str, limit: Optional[int] = None,
) -> list[SavedItem]:
    stmt = (
        select(SavedItem)
        .where(SavedItem.user_id == user_id)
        .order_by(SavedItem.created_at.desc())
    )
    if limit:
        stmt = stmt.limit(limit)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def search_items_by_text(
    db: AsyncSession, user_id: str, text: str, limit: int = 10,
) -> list[SavedItem]:
    text = (text or "").strip()
    if not text:
        return []
    pattern = f"%{text}%"
    stmt = (
        select(SavedItem)
        .where(SavedItem.user_id == user_id)
        .where(or_(SavedItem.title.ilike(pattern), SavedItem.content.ilike(pattern)))
        .order_by(SavedItem.created_at.desc())
        .limit(limit)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def search_items_by_tags(
    db: AsyncSession, user_id: str, tags: list[str], limit: int = 10,
) -> list[SavedItem]:
    wanted = set(normalize_tags(tags))
    if not wanted:
        return []
    recent = await list_recent_items(db, user_id, limit=TAG_SCAN_LIMIT)
    matches = [item for item in recent if wanted.intersection(item.tags or [])]
    return matches[:limit]


def format_items(
    items: list[SavedItem], numbered: bool = True, content_chars: Optional[int] = None,
) -> str:
    """Item lines for prompt context: label, url and tags."""
    lines = []
    for idx, item in enumerate(items, start=1):
        line = item.title or item.content[:content_chars]
        if item.url:
            line += f" ({item.url})"
        if item.tags:
            line += f" [{', '.join(item.tags)}]"
        lines.append(f"{idx}. {line}" if numbered else f"- {line}")
    return "\n".join(lines)


def dedupe_items(*groups: list[SavedItem], limit: Optional[int] = None) -> list[SavedItem]:
    """Merge groups in order, first occurrence of each id wins."""
    seen: dict[str, SavedItem] = {}
    for group in groups:
        for item in group:
            seen.setdefault(item.id, item)
    merged = list(seen.values())
    return merged[:limit] if limit else merged
