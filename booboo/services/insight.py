"""
Daily insight: summarise the last few saved items into an Insight row.
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.insight import Insight
from ..schemas import DailyInsightDraft
from .items import list_recent_items
from .structured import generate_structured

logger = logging.getLogger(__name__)

INSIGHT_WINDOW = 5
EMPTY_INSIGHT = "最近還沒有紀錄，先分享一些生活點滴給小幽吧！"


async def generate_daily_insight(db: AsyncSession, user_id: str) -> Insight:
    items = await list_recent_items(db, user_id, limit=INSIGHT_WINDOW)
    entries = "\n".join(f"- {item.title or ''} {item.content}".rstrip() for item in items)

    if entries:
        draft = await generate_structured(
            "dailyInsight",
            {"entries": entries},
            DailyInsightDraft,
            fallback=lambda: DailyInsightDraft(summary=entries[:150]),
            user_id=user_id,
            preview=entries,
        )
    else:
        draft = DailyInsightDraft(summary=EMPTY_INSIGHT)

    insight = Insight(
        user_id=user_id,
        summary=draft.summary,
        action_items=list(draft.action_items),
        sentiment=draft.sentiment,
    )
    db.add(insight)
    await db.flush()
    logger.info("Daily insight %s | user=%s entries=%d", insight.id, user_id[:8], len(items))
    return insight


async def list_recent_insights(db: AsyncSession, user_id: str, limit: int = 10) -> list[Insight]:
    result = await db.execute(
        select(Insight)
        .where(Insight.user_id == user_id)
        .order_by(Insight.created_at.desc())
        .limit(limit)
    )
    return list(result.scalars().all())
