"""
Link capture: analyze a shared URL with the user's earlier links as context,
then store it as a `link` SavedItem.
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse

from sqlalchemy.ext.asyncio import AsyncSession

from ..models.saved_item import SavedItem
from ..schemas import LinkAnalysis
from .items import create_item
from .memory import get_memory_provider, remember
from .structured import generate_structured

logger = logging.getLogger(__name__)

URL_PATTERN = re.compile(r"https?://\S+")

# Link type → SavedItem category
LINK_CATEGORIES = {
    "美食": "entertainment",
    "娛樂": "entertainment",
    "知識": "knowledge",
    "新聞": "knowledge",
    "工具": "tool",
    "生活": "inspiration",
    "其他": "inspiration",
}


@dataclass
class LinkResult:
    item: SavedItem
    analysis: LinkAnalysis


def extract_url(text: str) -> Optional[str]:
    match = URL_PATTERN.search(text or "")
    return match.group(0) if match else None


async def analyze_and_save(
    db: AsyncSession,
    user_id: str,
    url: str,
    content: Optional[str] = None,
) -> LinkResult:
    rag_context = await get_memory_provider().search_relevant_memories(
        user_id, f"{url} {content or ''}".strip(), limit=5, categories=["link"],
    )

    analysis = await generate_structured(
        "analyzeLink",
        {"url": url, "content": content, "ragContext": rag_context},
        LinkAnalysis,
        fallback=lambda: LinkAnalysis(type="其他", summary=(content or "")[:300] or url),
        user_id=user_id,
        preview=url,
    )

    tags = ["link"] + [t.lower() for t in analysis.tags]
    item = await create_item(
        db,
        user_id,
        content=content or analysis.summary,
        source_type="link",
        category=LINK_CATEGORIES.get(analysis.type, "inspiration"),
        title=analysis.summary[:100],
        url=url,
        tags=tags,
        metadata={
            "type": analysis.type,
            "host": urlparse(url).hostname or "",
            "analysis": analysis.model_dump(by_alias=True),
        },
        location=analysis.location,
    )
    logger.info(
        "Link analyzed %s | user=%s type=%s rag=%s",
        item.id, user_id[:8], analysis.type, bool(rag_context),
    )

    remember(user_id, f"分享了{analysis.type}連結：{analysis.summary[:100]}（{url}）", "link")
    return LinkResult(item=item, analysis=analysis)
