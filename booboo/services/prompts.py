"""
Prompt template registry.

Maps a template name to a system instruction and a payload → prompt builder.
Pure: no I/O, no state. Payload values that are not strings render as "".
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable


class UnknownTemplateError(LookupError):
    """Raised when a caller asks for a template that is not registered."""


@dataclass(frozen=True)
class PromptTemplate:
    system: str
    user: Callable[[dict[str, Any]], str]


def _s(payload: dict[str, Any], key: str) -> str:
    value = payload.get(key)
    return value if isinstance(value, str) else ""


def _today(payload: dict[str, Any]) -> tuple[str, str]:
    """Returns (currentDate as given, YYYY-MM-DD)."""
    current = _s(payload, "currentDate") or datetime.now().isoformat()
    try:
        day = datetime.fromisoformat(current).strftime("%Y-%m-%d")
    except ValueError:
        day = current[:10]
    return current, day


_NO_MARKDOWN = "重要：請不要使用任何 markdown 語法（例如 **粗體**、*斜體* 等），直接使用純文字回覆。"


# ── Classification ───────────────────────────────────────────────────

def _classify_intent(p: dict[str, Any]) -> str:
    return f"""請分析以下用戶訊息並判斷意圖：
<訊息>
{_s(p, "text")}
</訊息>

意圖類型：
1. todo - 待辦事項
   - create: 新增待辦（例如：「我要吃飯、取貨、寫作業」「待辦：買菜」「我明天要開會」「提醒我買菜」「今晚11:00看影片」「新增：晚上看影片」）
   - update: 更新待辦狀態（例如：「我寫完作業了！」「作業完成了」「取消吃飯」）
   - query: 查詢待辦（例如：「我上禮拜做了哪些事？」「查看待辦」「明天要幹嘛」）
2. link - 資訊連結（分享連結）
3. insight - 靈感（文學上、生活上的頓悟和啟發）
4. knowledge - 知識（資訊技術、學術、常識等）
5. memory - 記憶（個人經驗、日記、與某人的對話等，不屬於靈感或知識）
6. music - 音樂（儲存最近覺得好聽，想拿來練彈唱 / solo 的歌）
7. life - 展覽、電影、想從事的活動（儲存想從事的活動）
8. feedback - 回饋請求（要求生活建議或回饋，例如：「我最近的生活如何」「給我一些建議」）
9. recommendation - 推薦請求（例如：「今天可以聽什麼歌」「推薦一些技術文章」）
10. chat_history - 對話紀錄請求（例如：「我有沒有跟 XXX 聊到過 XXX？」「之前提到的作業是什麼？」）
11. other - 其他聊天

判斷規則：
- 如果訊息包含「新增」「提醒我」「提醒」「幫我新增」等關鍵字，應分類為 todo/create
- memory、insight、knowledge、music、life 都是「儲存」意圖，不應包含問句。如果訊息是問句，不應分類為這些 intent
- 詢問生活狀況、建議、回饋 → feedback；詢問過往對話、紀錄 → chat_history；詢問推薦內容 → recommendation

輸出 JSON 格式（不能有其他文字）：
<JSON>
{{
  "intent": "todo|link|insight|knowledge|memory|music|life|feedback|recommendation|chat_history|other",
  "subIntent": "create|update|query" (僅 todo 時需要),
  "confidence": 0.0-1.0
}}
</JSON>"""


def _classify_content(p: dict[str, Any]) -> str:
    return f"""請分析下列內容並回傳 JSON 格式，不能有其他說明文字：
<內容>
{_s(p, "text")}
</內容>
輸出格式為：
<JSON>
{{"category": "...", "summary": "...", "sentiment": "positive|neutral|negative", "suggestedActions": ["...","..."], "tags": ["..."]}}
</JSON>"""


# ── Todos ────────────────────────────────────────────────────────────

def _create_todo(p: dict[str, Any]) -> str:
    return f"""請從以下訊息中提取待辦事項：
<訊息>
{_s(p, "text")}
</訊息>

輸出 JSON 格式（不能有其他文字）：
<JSON>
{{
  "title": "待辦事項標題",
  "description": "詳細描述（可選）"
}}
</JSON>"""


def _extract_multiple_todos(p: dict[str, Any]) -> str:
    return f"""請從以下訊息中提取所有待辦事項：
<訊息>
{_s(p, "text")}
</訊息>

注意：
- 如果訊息包含多個待辦（例如：「1. 吃飯 2. 取貨 3. 寫作業」），請全部提取
- 如果只有一個待辦，也請用陣列格式輸出
- 每個待辦事項應該有明確的標題

輸出 JSON 格式（不能有其他文字）：
<JSON>
{{
  "todos": [
    {{ "title": "吃飯", "description": "" }},
    {{ "title": "取貨", "description": "" }}
  ]
}}
</JSON>"""


def _extract_todo_datetime(p: dict[str, Any]) -> str:
    current, day = _today(p)
    return f"""當前時間：{current} ({day})

請從以下訊息中提取日期和時間：
<訊息>
{_s(p, "text")}
</訊息>

規則：
1. date（行程時間）：訊息提到「在某個時間執行/做某事」時提取
   - 只有日期沒有時間：YYYY-MM-DD，系統會自動設為 08:00
   - 有日期和時間：YYYY-MM-DDTHH:mm:ss
   - 完全沒有提到日期時間：null（系統會自動設為今天 21:00）
2. due（截止時間）：只有明確提到「截止」「前完成」「期限」「deadline」時才提取
   - 只有日期沒有時間：YYYY-MM-DD，系統會自動設為 23:59:59
   - 沒有提到截止時間：null
3. 不要使用時區資訊（不要加 Z 或 +08:00），null 值直接寫 null

範例：
- 「明天早上 8 點吃飯」→ {{"date": "2024-12-26T08:00:00", "due": null}}
- 「12/25 前完成作業」→ {{"date": null, "due": "2024-12-25"}}
- 「吃飯」→ {{"date": null, "due": null}}

輸出 JSON 格式（不能有其他文字，直接輸出 JSON）：
{{
  "date": "2024-12-25T08:00:00" | "2024-12-25" | null,
  "due": "2024-12-25T23:59:59" | "2024-12-25" | null
}}"""


def _match_todo_for_update(p: dict[str, Any]) -> str:
    return f"""用戶訊息：{_s(p, "text")}

現有待辦事項：
{_s(p, "todos")}

請：
1. 從現有待辦事項中找出最匹配的項目（使用關鍵字匹配、相似度判斷）
2. 推斷用戶要執行的動作：
   - "完成"：訊息包含「寫完」「做完」「完成了」「完成」等
   - "取消"：訊息包含「不做了」「取消」「不做」等

輸出 JSON 格式（不能有其他文字）：
<JSON>
{{
  "matchedTodoId": "todo-id" (如果找到匹配的待辦),
  "action": "完成|取消",
  "confidence": 0.0-1.0 (匹配信心度)
}}
</JSON>

如果找不到匹配的待辦，matchedTodoId 設為 null。"""


def _parse_todo_query(p: dict[str, Any]) -> str:
    current, day = _today(p)
    return f"""當前時間：{current} ({day})

用戶查詢：{_s(p, "text")}

請解析：
1. specificDate：查詢提到特定日期（例如：「12/25 的待辦」）時提取，格式 YYYY-MM-DD，否則為 null
   - 「明天要幹嘛」這類查詢應提取 timeRange 為 "明天"，而不是 specificDate
2. timeRange（沒有特定日期才使用）：上禮拜、昨天、這週、這個月、上個月、下禮拜、明天、下週、下個月、今天、本週、本月
3. keywords：從查詢中提取的關鍵字（可以是空陣列）
4. status：done|pending|cancelled，沒有明確指定則為 null；查詢未來時間預設為 "pending"

範例：
- 「明天要幹嘛」→ {{"specificDate": null, "timeRange": "明天", "keywords": [], "status": "pending"}}
- 「我上禮拜做了哪些事？」→ {{"specificDate": null, "timeRange": "上禮拜", "keywords": [], "status": null}}
- 「12/25 的待辦」→ {{"specificDate": "2024-12-25", "timeRange": null, "keywords": [], "status": "pending"}}

輸出 JSON 格式（不能有其他文字）：
<JSON>
{{
  "specificDate": "2024-12-25" | null,
  "timeRange": "上禮拜|昨天|這週|這個月|上個月|下禮拜|明天|下週|下個月|今天|本週|本月" | null,
  "keywords": ["作業"],
  "status": "done|pending|cancelled" | null
}}
</JSON>"""


# ── Capture ──────────────────────────────────────────────────────────

def _analyze_link(p: dict[str, Any]) -> str:
    content = _s(p, "content")
    rag = _s(p, "ragContext")
    content_block = f"<用戶提供的內容>\n{content}\n</用戶提供的內容>" if content else ""
    rag_block = (
        f"<用戶歷史相關記錄>\n{rag}\n</用戶歷史相關記錄>\n\n"
        "這些是用戶之前儲存的類似連結或內容，可以作為參考來理解用戶的偏好和分類習慣。"
        if rag else ""
    )
    return f"""請分析以下連結的實際內容：
<連結>
{_s(p, "url")}
</連結>
{content_block}
{rag_block}

規則：
- tags: 統一使用英文小寫（例如：food, entertainment, knowledge, life, news, tool）
- location: 僅美食/娛樂類型需要，如果無法確定可設為 null
- summary: 150 字內的準確摘要

輸出 JSON 格式（不能有其他文字）：
<JSON>
{{
  "type": "美食|娛樂|知識|生活|新聞|工具|其他",
  "summary": "150字內的摘要",
  "location": "地點" | null,
  "tags": ["food", "restaurant"]
}}
</JSON>"""


def _analyze(label: str, required_tag: str, optional_tags: str, example: str):
    def build(p: dict[str, Any]) -> str:
        return f"""請分析以下{label}內容：
<內容>
{_s(p, "text")}
</內容>

規則：
- summary: 150 字內的摘要，捕捉{label}的核心
- tags: 必須包含 "{required_tag}"，可選 {optional_tags} 等（統一使用英文小寫）

輸出 JSON 格式（不能有其他文字）：
<JSON>
{{
  "summary": "摘要（150字內）",
  "tags": {example}
}}
</JSON>"""
    return build


def _daily_insight(p: dict[str, Any]) -> str:
    return f"""這是使用者最近的重點紀錄：
{_s(p, "entries")}

請輸出 JSON 格式（不能有其他文字）：
<JSON>
{{
  "summary": "150 字以內的總結",
  "actionItems": ["2-3 個可執行的下一步"],
  "sentiment": "positive|neutral|negative"
}}
</JSON>"""


# ── Retrieval ────────────────────────────────────────────────────────

def _extract_tags(label: str, rules: str, example: str):
    def build(p: dict[str, Any]) -> str:
        return f"""請從以下{label}中提取相關標籤：
<查詢>
{_s(p, "query")}
</查詢>

規則：
{rules}

輸出 JSON 格式（不能有其他文字）：
<JSON>
{{
  "tags": {example}
}}
</JSON>"""
    return build


def _extract_search_keywords(p: dict[str, Any]) -> str:
    return f"""請從以下查詢中提取 3 個搜尋關鍵字：
<查詢>
{_s(p, "query")}
</查詢>

規則：
- 提取 3 個最具代表性的關鍵字
- 關鍵字應該是名詞、動詞或重要概念
- 排除停用詞（的、了、是、在等）
- 關鍵字使用中文或英文（保持原樣）

輸出 JSON 格式（不能有其他文字）：
<JSON>
{{
  "keywords": ["作業", "上禮拜", "完成"]
}}
</JSON>"""


def _rag_answer(instruction: str):
    def build(p: dict[str, Any]) -> str:
        items = _s(p, "items") or "（暫無相關內容）"
        return f"""用戶查詢：{_s(p, "query")}

相關內容：
{items}

{instruction}

{_NO_MARKDOWN}"""
    return build


def _chat(p: dict[str, Any]) -> str:
    context = _s(p, "context")
    prefix = f"用戶的相關背景：\n{context}\n\n" if context else ""
    return f"""{prefix}用戶訊息：{_s(p, "text")}

請用 Booboo 小幽的語氣回覆，保持溫暖、親切、自然。

{_NO_MARKDOWN}"""


TEMPLATES: dict[str, PromptTemplate] = {
    "classifyIntent": PromptTemplate(
        system="你是 Booboo 小幽的意圖分類助手。根據用戶訊息判斷意圖類型，必須嚴格按照 JSON 格式輸出，不能有其他文字。",
        user=_classify_intent,
    ),
    "classifyContent": PromptTemplate(
        system="你是 Booboo 小幽，幫助使用者整理生活日記與靈感的小精靈。請根據輸入判斷內容類型、情緒與可執行的下一步。",
        user=_classify_content,
    ),
    "createTodo": PromptTemplate(
        system="你是待辦事項提取助手。從用戶訊息中提取待辦事項的標題和描述，必須嚴格按照 JSON 格式輸出。",
        user=_create_todo,
    ),
    "extractMultipleTodos": PromptTemplate(
        system="你是待辦事項提取助手。從用戶訊息中提取所有待辦事項，支援多個待辦，必須嚴格按照 JSON 格式輸出。",
        user=_extract_multiple_todos,
    ),
    "extractTodoDateTime": PromptTemplate(
        system="你是日期時間提取助手。從用戶訊息中提取待辦事項的日期和時間，必須嚴格按照 JSON 格式輸出，不能有其他文字。",
        user=_extract_todo_datetime,
    ),
    "matchTodoForUpdate": PromptTemplate(
        system="你是待辦事項匹配助手。根據用戶的自然語言描述，匹配到最相關的待辦事項，並推斷要執行的動作（完成或取消），必須嚴格按照 JSON 格式輸出。",
        user=_match_todo_for_update,
    ),
    "parseTodoQuery": PromptTemplate(
        system="你是待辦事項查詢解析助手。解析用戶的自然語言查詢，提取時間範圍、特定日期、關鍵字、狀態等過濾條件，必須嚴格按照 JSON 格式輸出。",
        user=_parse_todo_query,
    ),
    "analyzeLink": PromptTemplate(
        system="你是連結內容分析助手。分析連結的類型、摘要、地點等資訊，必須嚴格按照 JSON 格式輸出。請參考用戶的歷史記錄來提供更準確的分析。",
        user=_analyze_link,
    ),
    "analyzeInsight": PromptTemplate(
        system="你是靈感內容分析助手。分析用戶分享的靈感內容，提取摘要和標籤，必須嚴格按照 JSON 格式輸出，不能有其他文字。",
        user=_analyze("靈感", "insight", '"literature", "life", "philosophy"', '["insight", "life"]'),
    ),
    "analyzeKnowledge": PromptTemplate(
        system="你是知識內容分析助手。分析用戶分享的知識內容，提取摘要和標籤，必須嚴格按照 JSON 格式輸出，不能有其他文字。",
        user=_analyze("知識", "knowledge", '"technology", "academic", "common-sense"', '["knowledge", "technology"]'),
    ),
    "analyzeMemory": PromptTemplate(
        system="你是記憶內容分析助手。分析用戶分享的記憶內容，提取摘要和標籤，必須嚴格按照 JSON 格式輸出，不能有其他文字。",
        user=_analyze("記憶", "memory", '"diary", "conversation", "experience"', '["memory", "conversation"]'),
    ),
    "analyzeMusic": PromptTemplate(
        system="你是音樂內容分析助手。分析用戶分享的音樂內容，提取歌曲資訊和標籤，必須嚴格按照 JSON 格式輸出，不能有其他文字。",
        user=_analyze("音樂", "music", '"solo", "cover", "practice"', '["music", "solo"]'),
    ),
    "analyzeLife": PromptTemplate(
        system="你是生活活動內容分析助手。分析用戶分享的展覽、電影、活動等內容，提取摘要和標籤，必須嚴格按照 JSON 格式輸出，不能有其他文字。",
        user=_analyze("生活活動", "life", '"exhibition", "movie", "activity"', '["life", "exhibition"]'),
    ),
    "analyzeChat": PromptTemplate(
        system="你是對話內容分析助手。分析用戶的對話內容，提取摘要和標籤，必須嚴格按照 JSON 格式輸出，不能有其他文字。",
        user=_analyze("對話", "chat", '"conversation", "question", "general"', '["chat", "conversation"]'),
    ),
    "dailyInsight": PromptTemplate(
        system="你是個生活教練，會彙整使用者近期的想法，提供洞察與建議，語氣溫暖、有行動力。",
        user=_daily_insight,
    ),
    "extractFeedbackTags": PromptTemplate(
        system="你是回饋標籤提取助手。從用戶的回饋查詢中提取相關標籤（生活、時間管理等），必須嚴格按照 JSON 格式輸出，不能有其他文字。",
        user=_extract_tags(
            "回饋查詢",
            "- 識別回饋的主題領域（life, time-management, work, study, health 等）\n"
            "- 提取 2-4 個相關 tags（統一使用英文小寫）\n"
            '- 如果查詢不明確，返回 ["life"] 作為預設',
            '["life", "time-management"]',
        ),
    ),
    "extractRecommendationTags": PromptTemplate(
        system="你是推薦標籤提取助手。從用戶的推薦查詢中提取相關標籤和關鍵字，必須嚴格按照 JSON 格式輸出，不能有其他文字。",
        user=_extract_tags(
            "推薦查詢",
            "- 提取 3-5 個最相關的 tags（統一使用英文小寫）\n"
            "- tags 應該是具體的主題或領域（例如：technology, music, life, knowledge）\n"
            '- 如果查詢不明確，返回通用 tags（例如：["recommendation"]）',
            '["music", "mayday"]',
        ),
    ),
    "generateFeedbackWithRAG": PromptTemplate(
        system="你是生活回饋生成助手。基於用戶的查詢和相關內容，分析用戶的生活模式，提供建設性建議，語氣溫暖、支持性。",
        user=_rag_answer(
            "請基於以上內容，分析用戶的生活模式，提供建設性建議。語氣溫暖、支持性，直接回答用戶的問題。"
            "請提供詳細的回饋，包含具體的觀察、建議和鼓勵。"
        ),
    ),
    "generateRecommendationWithRAG": PromptTemplate(
        system="你是推薦生成助手。基於用戶的查詢和相關內容，生成具體、可執行的推薦，語氣溫暖、有行動力。",
        user=_rag_answer(
            "請基於以上內容，提供具體、可執行的推薦。語氣溫暖、有行動力，直接回答用戶的問題。"
            "每個推薦包含推薦的理由、內容和如何執行。"
        ),
    ),
    "extractSearchKeywords": PromptTemplate(
        system="你是搜尋關鍵字提取助手。從用戶的對話紀錄查詢中產生 3 個模糊搜尋關鍵字，必須嚴格按照 JSON 格式輸出，不能有其他文字。",
        user=_extract_search_keywords,
    ),
    "answerChatHistoryWithRAG": PromptTemplate(
        system="你是對話紀錄回答助手。基於用戶的查詢和相關內容，直接回答用戶的問題，引用相關內容。",
        user=_rag_answer(
            "請基於以上內容，直接回答用戶的問題。如果找到相關內容，請詳細引用並說明；如果找不到，請誠實告知。"
        ),
    ),
    "chat": PromptTemplate(
        system="你是 Booboo 小幽，一個溫暖、貼心、有點調皮的生活小精靈。你幫助用戶整理生活、記錄靈感、提供建議。語氣親切自然，像朋友一樣聊天，但保持專業和溫暖。",
        user=_chat,
    ),
}


def get_template(name: str) -> PromptTemplate:
    try:
        return TEMPLATES[name]
    except KeyError:
        raise UnknownTemplateError(f"Prompt template '{name}' not found") from None
