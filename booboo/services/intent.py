"""
Intent classification.

The model labels the utterance through the classifyIntent template. When that
fails, an ordered keyword heuristic decides instead. Rules are evaluated top to
bottom and the first match wins; reordering them changes outcomes for
ambiguous text such as "明天要交什麼？".
"""

import logging
from typing import Callable, Optional

from ..schemas import Intent, IntentClassification, STORAGE_INTENTS, SubIntent
from .structured import generate_structured

logger = logging.getLogger(__name__)

# ── Vocabulary ───────────────────────────────────────────────────────

TODO_WORDS = (
    "待辦", "todo", "提醒", "remind", "記得要", "明天", "後天", "今晚",
    "下週", "下禮拜", "截止", "deadline", "要交", "要做", "要去", "要買",
)
QUERY_WORDS = ("幹嘛", "什麼", "哪些", "查", "看看", "?", "？")
COMPLETION_WORDS = ("完成", "寫完", "做完", "弄完", "取消", "不做", "done", "finished")
FEEDBACK_WORDS = ("回饋", "建議", "分析", "評估", "狀況", "怎麼樣")
RECOMMENDATION_WORDS = ("推薦", "recommend", "有什麼好", "可以聽", "可以看")
CHAT_HISTORY_WORDS = ("對話", "聊過", "說過", "之前", "過往", "紀錄")

# Question detection for storage intents
QUESTION_WORDS = (
    "如何", "什麼", "哪些", "怎樣", "狀況", "怎麼樣", "有沒有", "是否",
    "嗎", "呢", "吧", "幹嘛", "要幹嘛", "要做什麼",
)
TODO_QUERY_WORDS = ("幹嘛", "要做什麼", "做了哪些", "做了什麼", "有哪些待辦", "查看待辦", "查詢待辦")


def _has_any(text: str, words: tuple[str, ...]) -> bool:
    return any(w in text for w in words)


# ── Fallback rules (order is contract) ───────────────────────────────

Rule = tuple[Callable[[str], bool], Intent, Optional[SubIntent], float]

FALLBACK_RULES: list[Rule] = [
    (lambda t: "http" in t, Intent.LINK, None, 0.8),
    (lambda t: _has_any(t, TODO_WORDS) and _has_any(t, QUERY_WORDS), Intent.TODO, SubIntent.QUERY, 0.6),
    (lambda t: _has_any(t, COMPLETION_WORDS), Intent.TODO, SubIntent.UPDATE, 0.6),
    (lambda t: _has_any(t, TODO_WORDS), Intent.TODO, SubIntent.CREATE, 0.6),
    (lambda t: _has_any(t, FEEDBACK_WORDS), Intent.FEEDBACK, None, 0.6),
    (lambda t: _has_any(t, RECOMMENDATION_WORDS), Intent.RECOMMENDATION, None, 0.6),
    (lambda t: _has_any(t, CHAT_HISTORY_WORDS), Intent.CHAT_HISTORY, None, 0.6),
]


def fallback_classify(text: str) -> IntentClassification:
    """Deterministic keyword classifier. First matching rule wins; default is other/0.5."""
    lowered = (text or "").lower()
    for matches, intent, sub_intent, confidence in FALLBACK_RULES:
        if matches(lowered):
            return IntentClassification(intent=intent, sub_intent=sub_intent, confidence=confidence)
    return IntentClassification(intent=Intent.OTHER, confidence=0.5)


async def classify(user_id: str, text: str) -> IntentClassification:
    result = await generate_structured(
        "classifyIntent",
        {"text": text},
        IntentClassification,
        fallback=lambda: fallback_classify(text),
        user_id=user_id,
    )
    if result.intent == Intent.TODO and result.sub_intent is None:
        result = result.model_copy(update={"sub_intent": SubIntent.CREATE})
    elif result.intent != Intent.TODO and result.sub_intent is not None:
        result = result.model_copy(update={"sub_intent": None})
    return result


# ── Question refinement ──────────────────────────────────────────────

def is_question(text: str) -> bool:
    trimmed = (text or "").strip()
    if trimmed.endswith(("?", "？")):
        return True
    return _has_any(trimmed.lower(), QUESTION_WORDS)


def classify_question_intent(text: str) -> Optional[Intent]:
    """For a question: chat_history when it asks about past conversations, else feedback."""
    if not is_question(text):
        return None
    t = text.lower()
    asks_history = (
        "對話" in t or "聊過" in t or "說過" in t or "過往" in t
        or "記得" in t or "查詢" in t or "搜尋" in t
        or ("之前" in t and ("聊" in t or "說" in t or "提到" in t))
        or ("有沒有" in t and ("聊" in t or "說" in t))
    )
    return Intent.CHAT_HISTORY if asks_history else Intent.FEEDBACK


def refine_classification(result: IntentClassification, text: str) -> IntentClassification:
    """
    Storage intents never hold questions; re-route those. A todo "create" that
    reads like a query becomes a query.
    """
    if result.intent in STORAGE_INTENTS:
        rerouted = classify_question_intent(text)
        if rerouted is not None:
            logger.info("Question detected, %s → %s", result.intent.value, rerouted.value)
            return IntentClassification(intent=rerouted, confidence=0.6)

    if (
        result.intent == Intent.TODO
        and result.sub_intent == SubIntent.CREATE
        and _has_any(text, TODO_QUERY_WORDS)
        and not _has_any(text, ("新增", "提醒我", "幫我新增"))
    ):
        logger.info("Todo create looks like a query, switching to query")
        return result.model_copy(update={"sub_intent": SubIntent.QUERY})

    return result
