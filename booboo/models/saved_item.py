"""
Saved items: every captured link, note and chat snippet.

Created once by an extraction service and never mutated afterwards.
Tags are always stored lowercase.
"""

from typing import Optional

from sqlalchemy import String, Text, JSON
from sqlalchemy.orm import Mapped, mapped_column

from .base import OwnedBase

SOURCE_TYPES = ("link", "note", "chat")
CATEGORIES = ("inspiration", "knowledge", "project", "tool", "entertainment")


class SavedItem(OwnedBase):
    __tablename__ = "saved_items"

    source_type: Mapped[str] = mapped_column(String, nullable=False, default="note")
    title: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    url: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    category: Mapped[str] = mapped_column(String, nullable=False, default="inspiration", index=True)
    tags: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    # "metadata" is reserved on declarative classes
    meta: Mapped[dict] = mapped_column("metadata", JSON, nullable=False, default=dict)
    location: Mapped[Optional[str]] = mapped_column(String, nullable=True)

    def label(self) -> str:
        """Short human-readable line used in prompt context."""
        return self.title or self.content

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "source_type": self.source_type,
            "title": self.title,
            "content": self.content,
            "url": self.url,
            "category": self.category,
            "tags": list(self.tags or []),
            "metadata": dict(self.meta or {}),
            "location": self.location,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
