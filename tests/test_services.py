import json

import pytest

USER = "user-0001-aaaa"


class StaticMemory:
    """Provider that always recalls the same text."""

    @staticmethod
    def make(text):
        from booboo.services.memory import MemoryHit, MemoryProvider

        class Static(MemoryProvider):
            name = "static"

            def __init__(self):
                super().__init__(timeout_seconds=5)
                self.searches = []
                self.ingested = []

            async def _search(self, user_id, query, limit, categories):
                self.searches.append((query, limit, categories))
                return [MemoryHit(text=text)] if text else []

            async def _ingest(self, user_id, messages, category):
                self.ingested.append((messages, category))

        return Static()


class TestLinks:
    def test_extract_url(self):
        from booboo.services.links import extract_url

        assert extract_url("看這個 https://example.com/a?b=1 很讚") == "https://example.com/a?b=1"
        assert extract_url("沒有連結") is None

    def test_analysis_maps_category_and_tags(self, llm, run_db):
        from booboo.services.links import analyze_and_save

        llm.responses["analyzeLink"] = json.dumps({
            "type": "美食", "summary": "信義區的排隊拉麵店", "location": "台北市信義區", "tags": ["Food", "ramen"],
        }, ensure_ascii=False)

        async def scenario(db):
            return await analyze_and_save(db, USER, "https://ramen.example.com/shop")

        result = run_db(scenario)
        item = result.item
        assert item.source_type == "link"
        assert item.category == "entertainment"
        assert item.tags == ["link", "food", "ramen"]
        assert item.location == "台北市信義區"
        assert item.title == "信義區的排隊拉麵店"
        assert item.meta["host"] == "ramen.example.com"
        assert item.meta["type"] == "美食"

    def test_fallback_when_model_is_silent(self, llm, run_db):
        from booboo.services.links import analyze_and_save

        async def scenario(db):
            return await analyze_and_save(db, USER, "https://news.example.com/x", content="一篇關於AI的文章")

        result = run_db(scenario)
        assert result.analysis.type == "其他"
        assert result.item.category == "inspiration"
        assert result.item.title == "一篇關於AI的文章"
        assert result.item.tags == ["link"]

    def test_unknown_type_is_other(self, llm, run_db):
        from booboo.services.links import analyze_and_save

        llm.responses["analyzeLink"] = '{"type": "旅遊", "summary": "京都楓葉"}'

        async def scenario(db):
            return await analyze_and_save(db, USER, "https://travel.example.com")

        assert run_db(scenario).analysis.type == "其他"

    def test_rag_context_comes_from_link_memories(self, llm, run_db):
        from booboo.services.links import analyze_and_save
        from booboo.services.memory import set_memory_provider

        memory = StaticMemory.make("常收藏拉麵店")
        set_memory_provider(memory)

        async def scenario(db):
            return await analyze_and_save(db, USER, "https://ramen.example.com")

        run_db(scenario)
        assert memory.searches[0][2] == ["link"]
        assert "常收藏拉麵店" in dict(llm.calls)["analyzeLink"]["ragContext"]
        assert memory.ingested[0][1] == "link"


class TestCapture:
    @pytest.mark.parametrize("save, kind, category", [
        ("save_knowledge", "knowledge", "knowledge"),
        ("save_life", "life", "entertainment"),
        ("save_music", "music", "entertainment"),
        ("save_insight", "insight", "inspiration"),
        ("save_memory_note", "memory", "inspiration"),
    ])
    def test_fallback(self, llm, run_db, save, kind, category):
        from booboo.services import capture

        text = "長文字" * 80

        async def scenario(db):
            return await getattr(capture, save)(db, USER, text)

        item = run_db(scenario)
        assert item.source_type == "note"
        assert item.category == category
        assert item.tags == [kind]
        assert item.content == text
        assert item.title == text[:40]

    def test_model_summary_and_tags(self, llm, run_db):
        from booboo.services.capture import save_knowledge

        llm.responses["analyzeKnowledge"] = '{"summary": "Python 的 GIL 限制多執行緒", "tags": ["Knowledge", "Technology"]}'

        async def scenario(db):
            return await save_knowledge(db, USER, "原來 Python 的 GIL 會讓多執行緒無法平行運算")

        item = run_db(scenario)
        assert item.title == "Python 的 GIL 限制多執行緒"
        assert item.tags == ["knowledge", "technology"]

    def test_kind_tag_is_always_kept(self, llm, run_db):
        from booboo.services.capture import save_memory_note

        llm.responses["analyzeMemory"] = '{"summary": "和家人去陽明山", "tags": ["Family"]}'

        async def scenario(db):
            return await save_memory_note(db, USER, "今天和家人去陽明山看海芋")

        assert run_db(scenario).tags == ["family", "memory"]

    def test_chat_note(self, llm, run_db):
        from booboo.services.capture import save_chat

        async def scenario(db):
            return await save_chat(db, USER, "今天跟小明聊到旅行")

        assert run_db(scenario).source_type == "chat"


class TestContent:
    def test_requires_text_or_url(self, llm, run_db):
        from booboo.services.content import save_shared_content

        async def scenario(db):
            with pytest.raises(ValueError):
                await save_shared_content(db, USER, text="  ", url=None)

        run_db(scenario)
        assert llm.calls == []

    def test_fallback_classification(self, llm, run_db):
        from booboo.services.content import save_shared_content

        async def scenario(db):
            return await save_shared_content(db, USER, text="今天的晚霞好美，想記下來")

        result = run_db(scenario)
        assert result.classification.sentiment == "neutral"
        assert result.item.tags == ["content"]
        assert result.item.title == "今天的晚霞好美，想記下來"

    def test_url_only(self, llm, run_db):
        from booboo.services.content import save_shared_content

        llm.responses["classifyContent"] = (
            '{"category": "tool", "summary": "線上白板", "sentiment": "positive", "tags": ["Tool"]}'
        )

        async def scenario(db):
            return await save_shared_content(db, USER, url="https://whiteboard.example.com")

        item = run_db(scenario).item
        assert item.url == "https://whiteboard.example.com"
        assert item.category == "tool"
        assert item.content == ""


class TestFeedback:
    def test_nothing_recorded(self, llm, run_db):
        from booboo.services.feedback import EMPTY_FEEDBACK, generate_feedback

        async def scenario(db):
            return await generate_feedback(db, USER, "我最近的生活如何？")

        assert run_db(scenario) == EMPTY_FEEDBACK
        assert "generateFeedbackWithRAG" not in llm.templates()

    def test_uses_recent_items(self, llm, run_db):
        from booboo.services.feedback import generate_feedback
        from booboo.services.items import create_item

        llm.responses["generateFeedbackWithRAG"] = "你最近很常運動，繼續保持！"

        async def scenario(db):
            await create_item(db, USER, "晨跑五公里", tags=["life"])
            return await generate_feedback(db, USER, "給我一些建議")

        assert run_db(scenario) == "你最近很常運動，繼續保持！"
        assert "晨跑五公里" in dict(llm.calls)["generateFeedbackWithRAG"]["items"]


class TestRecommendation:
    def test_nothing_to_recommend(self, llm, run_db):
        from booboo.services.recommendation import EMPTY_RECOMMENDATION, generate_recommendation

        async def scenario(db):
            return await generate_recommendation(db, USER, "推薦一些歌")

        assert run_db(scenario) == EMPTY_RECOMMENDATION

    def test_preferences_alone_are_enough(self, llm, run_db):
        from booboo.services.memory import set_memory_provider
        from booboo.services.recommendation import generate_recommendation

        memory = StaticMemory.make("喜歡五月天")
        set_memory_provider(memory)
        llm.responses["generateRecommendationWithRAG"] = "可以聽聽〈倔強〉"

        async def scenario(db):
            return await generate_recommendation(db, USER, "")

        assert run_db(scenario) == "可以聽聽〈倔強〉"
        query, limit, categories = memory.searches[0]
        assert query == "用戶偏好 興趣"
        assert limit == 10
        assert categories is None
        assert dict(llm.calls)["generateRecommendationWithRAG"]["items"].startswith("用戶的偏好與興趣：\n")

    def test_text_results_come_first(self, llm, run_db):
        from booboo.services.items import create_item
        from booboo.services.recommendation import generate_recommendation

        llm.responses["extractRecommendationTags"] = '{"tags": ["music"]}'
        llm.responses["generateRecommendationWithRAG"] = "ok"

        async def scenario(db):
            await create_item(db, USER, "爵士樂入門清單", tags=["music"])
            await create_item(db, USER, "五月天 演唱會心得", title="五月天")
            return await generate_recommendation(db, USER, "推薦 五月天 的歌")

        run_db(scenario)
        lines = dict(llm.calls)["generateRecommendationWithRAG"]["items"].splitlines()
        assert lines[0].startswith("- 五月天")
        assert lines[1].startswith("- 爵士樂入門清單")

    def test_query_keywords(self):
        from booboo.services.recommendation import query_keywords

        assert query_keywords("推薦 可以 聽的 爵士 鋼琴 音樂") == ["聽的", "爵士", "鋼琴"]


class TestChat:
    def test_recent_items_when_memory_is_empty(self, llm, run_db):
        from booboo.services.chat import chat
        from booboo.services.items import create_item

        llm.responses["chat"] = "聽起來很棒！"

        async def scenario(db):
            await create_item(db, USER, "晨跑五公里", title="晨跑")
            return await chat(db, USER, "今天好累")

        assert run_db(scenario) == "聽起來很棒！"
        assert dict(llm.calls)["chat"]["context"] == "最近記錄：晨跑"

    def test_memory_first(self, llm, run_db):
        from booboo.services.chat import chat
        from booboo.services.memory import set_memory_provider

        memory = StaticMemory.make("最近在準備考試")
        set_memory_provider(memory)
        llm.responses["chat"] = "加油！"

        async def scenario(db):
            return await chat(db, USER, "好緊張")

        assert run_db(scenario) == "加油！"
        assert "最近在準備考試" in dict(llm.calls)["chat"]["context"]
        assert memory.ingested[0][1] == "other"
        assert [m["role"] for m in memory.ingested[0][0]] == ["user", "assistant"]

    def test_silent_model(self, llm, run_db):
        from booboo.services.chat import chat
        from booboo.services.rag import SILENT_REPLY

        async def scenario(db):
            return await chat(db, USER, "嗨")

        assert run_db(scenario) == SILENT_REPLY


class TestSearchHistory:
    def test_nothing_found_skips_generator(self, llm, run_db):
        from booboo.services.chat import NOTHING_FOUND, search_history

        async def scenario(db):
            return await search_history(db, USER, "我有跟小明聊過旅行嗎？")

        assert run_db(scenario) == NOTHING_FOUND
        assert "answerChatHistoryWithRAG" not in llm.templates()

    def test_keyword_and_tag_search(self, llm, run_db):
        from booboo.services.chat import search_history
        from booboo.services.items import create_item

        llm.responses["extractSearchKeywords"] = '{"keywords": ["旅行", "京都"]}'
        llm.responses["answerChatHistoryWithRAG"] = "你在一月提過京都旅行"

        async def scenario(db):
            await create_item(db, USER, "跟小明聊到京都旅行", title="京都旅行")
            await create_item(db, USER, "慢慢來比較快", tags=["insight"])
            await create_item(db, USER, "買牛奶")
            return await search_history(db, USER, "我之前的靈感和旅行")

        assert run_db(scenario) == "你在一月提過京都旅行"
        items = dict(llm.calls)["answerChatHistoryWithRAG"]["items"]
        assert items.splitlines()[0].startswith("1. 慢慢來比較快")
        assert "京都旅行" in items
        assert "買牛奶" not in items

    def test_history_tags(self):
        from booboo.services.chat import history_tags

        assert history_tags("我的音樂和 Knowledge") == ["knowledge", "music"]
        assert history_tags("隨便聊聊") == []


class TestDailyInsight:
    def test_structured_insight(self, llm, run_db):
        from booboo.services.insight import generate_daily_insight
        from booboo.services.items import create_item

        llm.responses["dailyInsight"] = json.dumps(
            {"summary": "你很重視健康", "actionItems": ["早睡"], "sentiment": "positive"}, ensure_ascii=False,
        )

        async def scenario(db):
            await create_item(db, USER, "晨跑五公里")
            return await generate_daily_insight(db, USER)

        insight = run_db(scenario)
        assert insight.summary == "你很重視健康"
        assert insight.action_items == ["早睡"]
        assert insight.sentiment == "positive"

    def test_no_items(self, llm, run_db):
        from booboo.services.insight import EMPTY_INSIGHT, generate_daily_insight

        async def scenario(db):
            return await generate_daily_insight(db, USER)

        assert run_db(scenario).summary == EMPTY_INSIGHT
        assert llm.calls == []
