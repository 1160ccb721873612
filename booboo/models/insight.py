"""
Daily insights generated from a user's recent saved items.
"""

from sqlalchemy import String, Text, JSON
from sqlalchemy.orm import Mapped, mapped_column

from .base import OwnedBase


class Insight(OwnedBase):
    __tablename__ = "insights"

    summary: Mapped[str] = mapped_column(Text, nullable=False)
    action_items: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    sentiment: Mapped[str] = mapped_column(String, nullable=False, default="neutral")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "summary": self.summary,
            "action_items": list(self.action_items or []),
            "sentiment": self.sentiment,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
