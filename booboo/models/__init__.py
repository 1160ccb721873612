"""
All database models. Imported here so Base.metadata sees them for create_all().
"""

from .base import OwnedBase
from .saved_item import SavedItem
from .todo import Todo, Reminder
from .insight import Insight
from .memory import MemoryRecord
from .usage import ApiCall

__all__ = [
    "OwnedBase",
    "SavedItem",
    "Todo", "Reminder",
    "Insight",
    "MemoryRecord",
    "ApiCall",
]
