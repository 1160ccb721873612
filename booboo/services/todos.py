"""
Todos from natural language.

Every operation survives a silent or confused model:
  create  → title falls back to the raw text, schedule to relative-day words
  update  → low-confidence or unknown matches fall back to substring matching
  query   → unparsed queries fall back to time-range words found in the text
"""

import logging
import re
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.base import ensure_utc
from ..models.saved_item import SavedItem
from ..models.todo import TODO_STATUSES, Todo
from ..schemas import TodoDraft, TodoDraftList, TodoMatch, TodoQuery, TodoSchedule
from .items import search_items_by_tags
from .memory import remember
from .reminders import ensure_reminder
from .structured import generate_structured
from .todo_dates import (
    FUTURE_RANGES,
    TIME_RANGE_WORDS,
    day_window,
    detect_time_range,
    now_local,
    relative_day_schedule,
    resolve_schedule,
    time_range_window,
)

logger = logging.getLogger(__name__)

MATCH_CONFIDENCE_THRESHOLD = 0.5
TITLE_MAX = 100

CANCEL_WORDS = ("取消", "不做", "cancel")
COMPLETION_WORDS = ("完成", "寫完", "做完", "弄完", "搞定", "不做", "取消", "done", "finished", "cancel")
FILLER_WORDS = ("已經", "終於", "全部", "了", "啦", "囉", "喔", "吧", "我", "把", "都")
_PUNCTUATION = re.compile(r"[\s!！?？。，,、~～.]+")

# Query phrases that carry no filtering meaning
GENERIC_QUERY_PHRASES = (
    "要幹嘛", "要做什麼", "做了哪些事", "做了哪些", "做了什麼", "有哪些",
    "幹嘛", "什麼", "哪些", "待辦事項", "待辦", "todo", "todos",
)


def _fallback_title(text: str) -> str:
    return (text or "").strip()[:TITLE_MAX] or "待辦事項"


async def extract_schedule(user_id: str, text: str, now: Optional[datetime] = None) -> TodoSchedule:
    return await generate_structured(
        "extractTodoDateTime",
        {"text": text, "currentDate": now_local(now).replace(microsecond=0).isoformat()},
        TodoSchedule,
        fallback=lambda: relative_day_schedule(text, now),
        user_id=user_id,
    )


async def _save_todo(
    db: AsyncSession,
    user_id: str,
    draft: TodoDraft,
    when: datetime,
    due: Optional[datetime],
) -> Todo:
    todo = Todo(
        user_id=user_id,
        title=draft.title.strip()[:TITLE_MAX] or "待辦事項",
        description=draft.description or None,
        status="pending",
        date=when,
        due=due,
    )
    db.add(todo)
    await db.flush()
    await ensure_reminder(db, user_id, todo.title, when, todo.description)
    logger.info("Todo created %s | user=%s title=%r date=%s", todo.id, user_id[:8], todo.title, when.isoformat())
    return todo


async def create_todo(
    db: AsyncSession, user_id: str, text: str, now: Optional[datetime] = None,
) -> Todo:
    draft = await generate_structured(
        "createTodo",
        {"text": text},
        TodoDraft,
        fallback=lambda: TodoDraft(title=_fallback_title(text)),
        user_id=user_id,
    )
    schedule = await extract_schedule(user_id, text, now)
    when, due = resolve_schedule(schedule, now)

    todo = await _save_todo(db, user_id, draft, when, due)
    remember(user_id, f"新增待辦：{todo.title}", "todo")
    return todo


async def create_todos(
    db: AsyncSession, user_id: str, text: str, now: Optional[datetime] = None,
) -> list[Todo]:
    """Batch extraction. One schedule is shared by every todo in the batch."""
    single = lambda: TodoDraftList(todos=[TodoDraft(title=_fallback_title(text))])  # noqa: E731
    drafts = await generate_structured(
        "extractMultipleTodos", {"text": text}, TodoDraftList, fallback=single, user_id=user_id,
    )
    if not drafts.todos:
        drafts = single()

    schedule = await extract_schedule(user_id, text, now)
    when, due = resolve_schedule(schedule, now)

    todos = [await _save_todo(db, user_id, draft, when, due) for draft in drafts.todos]
    logger.info("Created %d todos | user=%s", len(todos), user_id[:8])
    remember(user_id, "新增待辦：" + "、".join(t.title for t in todos), "todo")
    return todos


# ── Listing / status ─────────────────────────────────────────────────

async def list_todos(
    db: AsyncSession, user_id: str, status: Optional[str] = None,
) -> list[Todo]:
    stmt = select(Todo).where(Todo.user_id == user_id).order_by(Todo.created_at.desc())
    if status:
        stmt = stmt.where(Todo.status == status)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def update_todo_status(
    db: AsyncSession, todo_id: str, status: str, user_id: Optional[str] = None,
) -> Todo:
    if status not in TODO_STATUSES:
        raise ValueError(f"Unknown todo status '{status}'")
    todo = await db.get(Todo, todo_id)
    if todo is None or (user_id is not None and todo.user_id != user_id):
        raise LookupError(f"Todo {todo_id} not found")
    todo.status = status
    await db.flush()
    logger.info("Todo %s → %s", todo_id, status)
    return todo


# ── Update by natural language ───────────────────────────────────────

def _core_phrase(text: str) -> str:
    core = (text or "").lower()
    for word in COMPLETION_WORDS + FILLER_WORDS:
        core = core.replace(word, "")
    return _PUNCTUATION.sub("", core)


def _longest_common_substring(a: str, b: str) -> int:
    best = 0
    prev = [0] * (len(b) + 1)
    for ca in a:
        cur = [0] * (len(b) + 1)
        for j, cb in enumerate(b, start=1):
            if ca == cb:
                cur[j] = prev[j - 1] + 1
                best = max(best, cur[j])
        prev = cur
    return best


def match_todo_by_text(text: str, todos: list[Todo]) -> Optional[Todo]:
    """
    Best pending todo for an utterance like "報告寫完了" (→ "寫報告").

    Completion vocabulary and filler are stripped, then titles are ranked by
    their longest common fragment with what is left.
    """
    core = _core_phrase(text)
    if not core:
        return None

    best: Optional[Todo] = None
    best_score = 0
    for todo in todos:
        title = _PUNCTUATION.sub("", todo.title.lower())
        if not title:
            continue
        score = _longest_common_substring(core, title)
        if score < min(2, len(title)):
            continue
        if score > best_score:
            best, best_score = todo, score
    return best


def _todo_listing(todos: list[Todo]) -> str:
    return "\n".join(f"{i}. [{t.id}] {t.title} ({t.status})" for i, t in enumerate(todos, start=1))


async def update_todo_by_natural_language(
    db: AsyncSession, user_id: str, text: str,
) -> Optional[Todo]:
    todos = await list_todos(db, user_id)
    if not todos:
        return None

    match = await generate_structured(
        "matchTodoForUpdate",
        {"text": text, "todos": _todo_listing(todos)},
        TodoMatch,
        fallback=lambda: TodoMatch(confidence=0.0),
        user_id=user_id,
    )
    by_id = {t.id: t for t in todos}

    if match.matched_todo_id in by_id and match.confidence >= MATCH_CONFIDENCE_THRESHOLD:
        target = by_id[match.matched_todo_id]
        status = "cancelled" if match.action == "取消" else "done"
    else:
        logger.info(
            "No confident todo match (id=%s confidence=%.2f), trying substring match | user=%s",
            match.matched_todo_id, match.confidence, user_id[:8],
        )
        target = match_todo_by_text(text, [t for t in todos if t.status == "pending"])
        status = "cancelled" if any(w in text.lower() for w in CANCEL_WORDS) else "done"

    if target is None:
        logger.info("No todo matched %r | user=%s", text[:100], user_id[:8])
        return None

    target.status = status
    await db.flush()
    logger.info("Todo %s → %s by natural language | user=%s", target.id, status, user_id[:8])
    remember(user_id, f"待辦「{target.title}」已{'取消' if status == 'cancelled' else '完成'}", "todo")
    return target


# ── Query by natural language ────────────────────────────────────────

def _fallback_query(text: str) -> TodoQuery:
    status = None
    if "取消" in text:
        status = "cancelled"
    elif "完成" in text or "做完" in text:
        status = "done"
    return TodoQuery(time_range=detect_time_range(text), status=status)


def meaningful_keywords(keywords: list[str]) -> list[str]:
    cleaned = []
    for kw in keywords:
        kw = (kw or "").strip().lower()
        if not kw or kw in GENERIC_QUERY_PHRASES or kw in TIME_RANGE_WORDS:
            continue
        cleaned.append(kw)
    return cleaned


async def parse_todo_query(user_id: str, text: str, now: Optional[datetime] = None) -> TodoQuery:
    return await generate_structured(
        "parseTodoQuery",
        {"text": text, "currentDate": now_local(now).replace(microsecond=0).isoformat()},
        TodoQuery,
        fallback=lambda: _fallback_query(text),
        user_id=user_id,
    )


def query_window(query: TodoQuery, now: Optional[datetime] = None) -> Optional[tuple[datetime, datetime]]:
    """A parseable specificDate replaces the time-range window."""
    window = day_window(query.specific_date) if query.specific_date else None
    if window is None and query.time_range:
        window = time_range_window(query.time_range, now)
    return window


def default_status(query: TodoQuery) -> Optional[str]:
    # Future ranges ask about what is left to do, whatever the window
    if query.status is None and query.time_range in FUTURE_RANGES:
        return "pending"
    return query.status


def _in_window(value: Optional[datetime], window: tuple[datetime, datetime]) -> bool:
    start, end = window
    return value is not None and start <= ensure_utc(value) < end


async def query_todos_by_natural_language(
    db: AsyncSession,
    user_id: str,
    text: str,
    now: Optional[datetime] = None,
    query: Optional[TodoQuery] = None,
) -> list[Todo]:
    if query is None:
        query = await parse_todo_query(user_id, text, now)

    window = query_window(query, now)
    status = default_status(query)
    keywords = meaningful_keywords(query.keywords)
    todos = await list_todos(db, user_id, status=status)

    if keywords:
        todos = [
            t for t in todos
            if any(kw in f"{t.title} {t.description or ''}".lower() for kw in keywords)
        ]

    if window:
        todos = [t for t in todos if _in_window(t.date or t.created_at, window)]

    logger.info(
        "Todo query | user=%s date=%s range=%s status=%s keywords=%s → %d",
        user_id[:8], query.specific_date, query.time_range, status, keywords, len(todos),
    )
    return todos


# ── Activity recall ("我昨天做了什麼") ───────────────────────────────

ACTIVITY_WORDS = ("做了",)
MEMORY_TAG = "memory"
ACTIVITY_MEMORY_LIMIT = 10


def asks_about_activities(text: str) -> bool:
    return any(word in (text or "") for word in ACTIVITY_WORDS)


async def find_activity_memories(
    db: AsyncSession, user_id: str, query: TodoQuery, now: Optional[datetime] = None,
) -> list[SavedItem]:
    """Memory-tagged saved items inside the same window the todo query used."""
    memories = await search_items_by_tags(db, user_id, [MEMORY_TAG], limit=ACTIVITY_MEMORY_LIMIT)
    window = query_window(query, now)
    if window:
        memories = [m for m in memories if _in_window(m.created_at, window)]
    logger.info("Activity memories | user=%s window=%s → %d", user_id[:8], window is not None, len(memories))
    return memories
