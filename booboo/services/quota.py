"""
Per-user daily message quota.

Each message that goes on to a model-backed handler is recorded as an
ApiCall; intent classification itself is free. The day boundary is midnight
in the configured TIMEZONE.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import httpx
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import get_settings
from ..models.usage import ApiCall
from .todo_dates import day_window, now_local

logger = logging.getLogger(__name__)

QUOTA_EXHAUSTED = "今天的幽靈幣用完啦！明天再來找我聊天吧～ 👻"
TOO_MANY_REQUESTS = "小幽今天處理太多請求了，有點累...讓我休息一下，晚點再來找我聊天吧～ 😴"

_RATE_LIMIT_MARKERS = ("429", "too many requests", "quota exceeded", "exceeded your current quota")


@dataclass
class QuotaStatus:
    count: int
    limit: int

    @property
    def exceeded(self) -> bool:
        return self.limit > 0 and self.count >= self.limit


async def check_daily_message_limit(
    db: AsyncSession,
    user_id: str,
    limit: Optional[int] = None,
    now: Optional[datetime] = None,
) -> QuotaStatus:
    if limit is None:
        limit = get_settings().daily_message_limit
    start, end = day_window(now_local(now).date().isoformat())
    count = await db.scalar(
        select(func.count(ApiCall.id)).where(
            ApiCall.user_id == user_id,
            ApiCall.created_at >= start,
            ApiCall.created_at < end,
        )
    )
    return QuotaStatus(count=count or 0, limit=limit)


async def record_api_call(db: AsyncSession, user_id: str, intent: str) -> ApiCall:
    call = ApiCall(user_id=user_id, intent=intent)
    db.add(call)
    await db.flush()
    return call


def is_too_many_requests(error: BaseException) -> bool:
    """Upstream rate limiting, from an HTTP 429 or a provider's quota message."""
    if isinstance(error, httpx.HTTPStatusError) and error.response.status_code == 429:
        return True
    message = str(error).lower()
    return any(marker in message for marker in _RATE_LIMIT_MARKERS)
