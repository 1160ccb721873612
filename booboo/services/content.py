"""
Directly shared content (text and/or url), classified by the model.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ..models.saved_item import CATEGORIES, SavedItem
from ..schemas import ContentClassification
from .items import create_item
from .structured import generate_structured

logger = logging.getLogger(__name__)


@dataclass
class ContentResult:
    item: SavedItem
    classification: ContentClassification


async def save_shared_content(
    db: AsyncSession,
    user_id: str,
    text: Optional[str] = None,
    url: Optional[str] = None,
) -> ContentResult:
    text = (text or "").strip() or None
    url = (url or "").strip() or None
    if not text and not url:
        raise ValueError("Shared content needs text or url")

    subject = text or url
    classification = await generate_structured(
        "classifyContent",
        {"text": subject},
        ContentClassification,
        fallback=lambda: ContentClassification(summary=subject[:40], sentiment="neutral", tags=["content"]),
        user_id=user_id,
    )

    item = await create_item(
        db,
        user_id,
        content=text or "",
        source_type="link" if url else "note",
        category=classification.category if classification.category in CATEGORIES else "inspiration",
        title=classification.summary[:40],
        url=url,
        tags=[t.lower() for t in classification.tags],
        metadata={"sentiment": classification.sentiment, "suggestedActions": classification.suggested_actions},
    )
    logger.info("Saved shared content %s | user=%s", item.id, user_id[:8])
    return ContentResult(item=item, classification=classification)
