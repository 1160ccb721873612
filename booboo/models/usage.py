"""
Model calls counted against the per-user daily message quota.
"""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from .base import OwnedBase


class ApiCall(OwnedBase):
    __tablename__ = "api_calls"

    intent: Mapped[str] = mapped_column(String, nullable=False)
