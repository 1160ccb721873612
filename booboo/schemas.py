"""
Pydantic shapes for everything the model is asked to return, plus the closed
Intent / SubIntent enumerations the dispatcher switches on.

Field aliases match the camelCase keys used in the prompt templates.
"""

from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Intent(str, Enum):
    LINK = "link"
    TODO = "todo"
    INSIGHT = "insight"
    KNOWLEDGE = "knowledge"
    MEMORY = "memory"
    MUSIC = "music"
    LIFE = "life"
    FEEDBACK = "feedback"
    RECOMMENDATION = "recommendation"
    CHAT_HISTORY = "chat_history"
    OTHER = "other"


class SubIntent(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    QUERY = "query"


# Intents that store what the user said rather than ask for something
STORAGE_INTENTS = frozenset({
    Intent.INSIGHT, Intent.KNOWLEDGE, Intent.MEMORY, Intent.MUSIC, Intent.LIFE,
})


class _ModelOutput(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


def _clamp_unit(v: float) -> float:
    return max(0.0, min(1.0, float(v)))


class IntentClassification(_ModelOutput):
    intent: Intent
    sub_intent: Optional[SubIntent] = Field(default=None, alias="subIntent")
    confidence: float = 0.5

    @field_validator("confidence")
    @classmethod
    def clamp_confidence(cls, v: float) -> float:
        return _clamp_unit(v)


# ── Todos ────────────────────────────────────────────────────────────

class TodoDraft(_ModelOutput):
    title: str = Field(min_length=1)
    description: Optional[str] = None


class TodoDraftList(_ModelOutput):
    todos: list[TodoDraft] = Field(default_factory=list)


class TodoSchedule(_ModelOutput):
    """Either a bare YYYY-MM-DD or a YYYY-MM-DDTHH:mm:ss, both local time."""
    date: Optional[str] = None
    due: Optional[str] = None


class TodoMatch(_ModelOutput):
    matched_todo_id: Optional[str] = Field(default=None, alias="matchedTodoId")
    action: Literal["完成", "取消"] = "完成"
    confidence: float = 0.0

    @field_validator("confidence")
    @classmethod
    def clamp_confidence(cls, v: float) -> float:
        return _clamp_unit(v)


class TodoQuery(_ModelOutput):
    specific_date: Optional[str] = Field(default=None, alias="specificDate")
    time_range: Optional[str] = Field(default=None, alias="timeRange")
    keywords: list[str] = Field(default_factory=list)
    status: Optional[Literal["pending", "done", "cancelled"]] = None

    @field_validator("time_range", "specific_date")
    @classmethod
    def null_string(cls, v: Optional[str]) -> Optional[str]:
        # Models sometimes write the literal "null"
        if v is None or v.strip().lower() in ("", "null", "none"):
            return None
        return v.strip()


# ── Capture ──────────────────────────────────────────────────────────

LINK_TYPES = ("美食", "娛樂", "知識", "生活", "新聞", "工具", "其他")


class LinkAnalysis(_ModelOutput):
    type: str = "其他"
    summary: str
    location: Optional[str] = None
    tags: list[str] = Field(default_factory=list)

    @field_validator("type")
    @classmethod
    def known_type(cls, v: str) -> str:
        return v if v in LINK_TYPES else "其他"


class ContentSummary(_ModelOutput):
    summary: str
    tags: list[str] = Field(default_factory=list)


class ContentClassification(_ModelOutput):
    category: str = ""
    summary: str
    sentiment: Literal["positive", "neutral", "negative"] = "neutral"
    suggested_actions: list[str] = Field(default_factory=list, alias="suggestedActions")
    tags: list[str] = Field(default_factory=list)


class DailyInsightDraft(_ModelOutput):
    summary: str
    action_items: list[str] = Field(default_factory=list, alias="actionItems")
    sentiment: Literal["positive", "neutral", "negative"] = "neutral"


# ── Retrieval ────────────────────────────────────────────────────────

class TagList(_ModelOutput):
    tags: list[str] = Field(default_factory=list)


class KeywordList(_ModelOutput):
    keywords: list[str] = Field(default_factory=list)
