"""
Message dispatch.

Receive text → classify → refine → hand to the intent's handler → reply.

Every Intent member has exactly one handler. The table is checked at import.
"""

import logging
import re
import time
from dataclasses import asdict, dataclass, field
from typing import Awaitable, Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ..models.todo import Todo
from ..schemas import Intent, IntentClassification, SubIntent
from ..services import capture, chat as chat_service, links, todos as todo_service
from ..services.feedback import generate_feedback
from ..services.intent import classify, refine_classification
from ..services.items import format_items
from ..services.quota import (
    QUOTA_EXHAUSTED,
    TOO_MANY_REQUESTS,
    check_daily_message_limit,
    is_too_many_requests,
    record_api_call,
)
from ..services.recommendation import generate_recommendation
from ..services.todo_dates import to_local

logger = logging.getLogger(__name__)

APOLOGY = "小幽現在有點忙碌，請稍後再試一次 🙏"

STATUS_MARKS = {"pending": "⬜", "done": "✅", "cancelled": "❌"}

# "1. 吃飯 2. 取貨", "吃飯、取貨", or one todo per line
_LIST_MARKERS = re.compile(r"(^|\s)\d+[.)、]|、|\n")


@dataclass
class AssistantReply:
    content: str
    intent: str = Intent.OTHER.value
    sub_intent: Optional[str] = None
    confidence: float = 0.0
    items: list[dict] = field(default_factory=list)
    todos: list[dict] = field(default_factory=list)
    metadata: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return asdict(self)


Handler = Callable[[AsyncSession, str, str, IntentClassification], Awaitable[AssistantReply]]


def _reply(result: IntentClassification, content: str, **kwargs) -> AssistantReply:
    return AssistantReply(
        content=content,
        intent=result.intent.value,
        sub_intent=result.sub_intent.value if result.sub_intent else None,
        confidence=result.confidence,
        **kwargs,
    )


def _when(todo: Todo) -> str:
    return to_local(todo.date).strftime("%m/%d %H:%M") if todo.date else "未排程"


def format_todo_list(found: list[Todo]) -> str:
    return "\n".join(
        f"{i}. {STATUS_MARKS.get(t.status, '⬜')} {t.title}（{_when(t)}）"
        for i, t in enumerate(found, start=1)
    )


# ── Handlers ─────────────────────────────────────────────────────────

async def _handle_link(db, user_id, text, result):
    url = links.extract_url(text)
    if not url:
        return await _handle_other(db, user_id, text, result)
    content = text.replace(url, "").strip() or None
    saved = await links.analyze_and_save(db, user_id, url, content)
    return _reply(
        result,
        f"已收藏這個{saved.analysis.type}連結 🔖\n{saved.analysis.summary}",
        items=[saved.item.to_dict()],
        metadata={"link_type": saved.analysis.type},
    )


async def _handle_todo(db, user_id, text, result):
    if result.sub_intent == SubIntent.UPDATE:
        updated = await todo_service.update_todo_by_natural_language(db, user_id, text)
        if updated is None:
            return _reply(result, "找不到對應的待辦事項耶 🤔 可以再說清楚一點嗎？")
        verb = "取消" if updated.status == "cancelled" else "完成"
        return _reply(result, f"已{verb}「{updated.title}」{STATUS_MARKS[updated.status]}", todos=[updated.to_dict()])

    if result.sub_intent == SubIntent.QUERY:
        return await _handle_todo_query(db, user_id, text, result)

    if _LIST_MARKERS.search(text.strip()):
        created = await todo_service.create_todos(db, user_id, text)
    else:
        created = [await todo_service.create_todo(db, user_id, text)]
    return _reply(
        result,
        f"已新增 {len(created)} 個待辦 ⏰\n{format_todo_list(created)}",
        todos=[t.to_dict() for t in created],
    )


async def _handle_todo_query(db, user_id, text, result):
    query = await todo_service.parse_todo_query(user_id, text)
    found = await todo_service.query_todos_by_natural_language(db, user_id, text, query=query)
    todos = [t.to_dict() for t in found]

    if not todo_service.asks_about_activities(text):
        if not found:
            return _reply(result, "沒有找到符合的待辦事項 📭")
        return _reply(result, f"找到 {len(found)} 個待辦：\n{format_todo_list(found)}", todos=todos)

    memories = await todo_service.find_activity_memories(db, user_id, query)
    if not found and not memories:
        return _reply(result, "沒有找到符合的待辦事項或記憶 📭")
    sections = []
    if found:
        sections.append(f"找到 {len(found)} 個待辦：\n{format_todo_list(found)}")
    if memories:
        sections.append(f"相關記憶 {len(memories)} 則：\n{format_items(memories)}")
    return _reply(result, "\n\n".join(sections), todos=todos, items=[m.to_dict() for m in memories])


def _capture_handler(save: Callable, label: str) -> Handler:
    async def handle(db, user_id, text, result):
        item = await save(db, user_id, text)
        return _reply(result, f"已記下這則{label} 📝：{item.title}", items=[item.to_dict()])
    return handle


async def _handle_feedback(db, user_id, text, result):
    return _reply(result, await generate_feedback(db, user_id, text))


async def _handle_recommendation(db, user_id, text, result):
    return _reply(result, await generate_recommendation(db, user_id, text))


async def _handle_chat_history(db, user_id, text, result):
    return _reply(result, await chat_service.search_history(db, user_id, text))


async def _handle_other(db, user_id, text, result):
    # Stored as a chat item before answering
    saved = await capture.save_chat(db, user_id, text)
    return _reply(result, await chat_service.chat(db, user_id, text), items=[saved.to_dict()])


HANDLERS: dict[Intent, Handler] = {
    Intent.LINK: _handle_link,
    Intent.TODO: _handle_todo,
    Intent.INSIGHT: _capture_handler(capture.save_insight, "靈感"),
    Intent.KNOWLEDGE: _capture_handler(capture.save_knowledge, "知識"),
    Intent.MEMORY: _capture_handler(capture.save_memory_note, "記憶"),
    Intent.MUSIC: _capture_handler(capture.save_music, "音樂"),
    Intent.LIFE: _capture_handler(capture.save_life, "活動"),
    Intent.FEEDBACK: _handle_feedback,
    Intent.RECOMMENDATION: _handle_recommendation,
    Intent.CHAT_HISTORY: _handle_chat_history,
    Intent.OTHER: _handle_other,
}

_missing = set(Intent) - set(HANDLERS)
if _missing:
    raise RuntimeError(f"No handler for intents: {sorted(i.value for i in _missing)}")


async def handle_message(db: AsyncSession, user_id: str, text: str) -> AssistantReply:
    """
    Main entry point. Never raises: any failure is logged, the session's
    pending writes are rolled back, and the user gets an apology.

    Classification is free; every message that reaches a handler counts
    against the user's daily quota, even when the handler then fails.
    """
    start = time.monotonic()
    intent = Intent.OTHER
    try:
        result = refine_classification(await classify(user_id, text), text)
        intent = result.intent
        logger.info(
            "Dispatch | user=%s intent=%s sub=%s confidence=%.2f",
            user_id[:8], intent.value, result.sub_intent.value if result.sub_intent else "-", result.confidence,
        )
        quota = await check_daily_message_limit(db, user_id)
        if quota.exceeded:
            logger.info("Daily quota used up | user=%s count=%d limit=%d", user_id[:8], quota.count, quota.limit)
            return _reply(result, QUOTA_EXHAUSTED, metadata={"quota_exhausted": True})
        await record_api_call(db, user_id, intent.value)
        await db.commit()

        reply = await HANDLERS[intent](db, user_id, text, result)
    except Exception as e:
        logger.exception("Handler for '%s' failed | user=%s text=%r: %s", intent.value, user_id[:8], text[:100], e)
        await db.rollback()
        if is_too_many_requests(e):
            return AssistantReply(
                content=TOO_MANY_REQUESTS, intent=intent.value, metadata={"error": True, "rate_limited": True},
            )
        return AssistantReply(content=APOLOGY, intent=intent.value, metadata={"error": True})

    logger.info(
        "Replied | user=%s intent=%s elapsed_ms=%d",
        user_id[:8], intent.value, int((time.monotonic() - start) * 1000),
    )
    return reply
