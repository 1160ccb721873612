"""
Long-term memory rows for the relational memory backend.

Categories mirror the intent that produced the memory (todo, link, knowledge, ...).
`embedding` is only filled when an embedding function is configured.
"""

from typing import Optional

from sqlalchemy import String, Text, JSON
from sqlalchemy.orm import Mapped, mapped_column

from .base import OwnedBase


class MemoryRecord(OwnedBase):
    __tablename__ = "memory_records"

    text: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[Optional[str]] = mapped_column(String, nullable=True, index=True)
    embedding: Mapped[Optional[list]] = mapped_column(JSON(none_as_null=True), nullable=True)
