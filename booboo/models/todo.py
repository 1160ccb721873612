"""
Todos and the reminders scheduled from them.

Todo.status: pending → done | cancelled.
Reminder.status: pending → sent (delivery is handled outside this service).
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import String, Text, DateTime, func
from sqlalchemy.orm import Mapped, mapped_column, validates

from .base import OwnedBase, utcnow, ensure_utc

TODO_STATUSES = ("pending", "done", "cancelled")


class Todo(OwnedBase):
    __tablename__ = "todos"

    title: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="pending", index=True)
    date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    due: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow
    )

    @validates("date", "due")
    def _store_utc(self, key, value):
        # SQLite drops the offset on write, so only UTC may reach the column
        return ensure_utc(value)

    def to_dict(self) -> dict:
        date = ensure_utc(self.date)
        due = ensure_utc(self.due)
        return {
            "id": self.id,
            "user_id": self.user_id,
            "title": self.title,
            "description": self.description,
            "status": self.status,
            "date": date.isoformat() if date else None,
            "due": due.isoformat() if due else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class Reminder(OwnedBase):
    __tablename__ = "reminders"

    title: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    trigger_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="pending")

    @validates("trigger_at")
    def _store_utc(self, key, value):
        return ensure_utc(value)
