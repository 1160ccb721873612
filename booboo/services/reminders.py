"""
Reminder creation.

(user, title, trigger_at) is the idempotency key among pending reminders. A
title that differs by one character counts as a different reminder.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.base import ensure_utc
from ..models.todo import Reminder

logger = logging.getLogger(__name__)


async def create_reminder(
    db: AsyncSession,
    user_id: str,
    title: str,
    trigger_at: datetime,
    description: Optional[str] = None,
) -> Reminder:
    if not title:
        raise ValueError("Reminder title is required")
    if trigger_at.tzinfo is None:
        raise ValueError("Reminder trigger_at must be timezone-aware")

    reminder = Reminder(
        user_id=user_id,
        title=title,
        description=description,
        trigger_at=ensure_utc(trigger_at),
        status="pending",
    )
    db.add(reminder)
    await db.flush()
    logger.info("Reminder %s at %s | user=%s", reminder.id, reminder.trigger_at.isoformat(), user_id[:8])
    return reminder


async def list_pending_reminders(db: AsyncSession, user_id: str) -> list[Reminder]:
    result = await db.execute(
        select(Reminder)
        .where(Reminder.user_id == user_id, Reminder.status == "pending")
        .order_by(Reminder.trigger_at)
    )
    return list(result.scalars().all())


async def find_pending_reminder(
    db: AsyncSession, user_id: str, title: str, trigger_at: datetime,
) -> Optional[Reminder]:
    target = ensure_utc(trigger_at)
    result = await db.execute(
        select(Reminder).where(
            Reminder.user_id == user_id,
            Reminder.status == "pending",
            Reminder.title == title,
        )
    )
    # Compare in Python: SQLite returns naive values
    for reminder in result.scalars().all():
        if ensure_utc(reminder.trigger_at) == target:
            return reminder
    return None


async def ensure_reminder(
    db: AsyncSession,
    user_id: str,
    title: str,
    trigger_at: datetime,
    description: Optional[str] = None,
) -> tuple[Reminder, bool]:
    """Returns (reminder, created)."""
    existing = await find_pending_reminder(db, user_id, title, trigger_at)
    if existing is not None:
        logger.info("Reminder already scheduled (%s) | user=%s", existing.id, user_id[:8])
        return existing, False
    return await create_reminder(db, user_id, title, trigger_at, description), True
