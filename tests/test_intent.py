import asyncio

import pytest


class TestFallbackClassify:
    @pytest.mark.parametrize("text, intent, sub_intent", [
        ("https://example.com/ramen", "link", None),
        ("看看這個 http://a.b 明天要去", "link", None),
        ("明天要幹嘛？", "todo", "query"),
        ("我寫完作業了", "todo", "update"),
        ("取消吃飯", "todo", "update"),
        ("記得明天要交報告", "todo", "create"),
        ("提醒我買牛奶", "todo", "create"),
        ("給我一些建議", "feedback", None),
        ("推薦一些歌", "recommendation", None),
        ("我之前說過什麼", "chat_history", None),
        ("今天天氣真好", "other", None),
    ])
    def test_rules(self, text, intent, sub_intent):
        from booboo.services.intent import fallback_classify

        result = fallback_classify(text)
        assert result.intent.value == intent
        assert (result.sub_intent.value if result.sub_intent else None) == sub_intent

    def test_link_wins_over_todo_words(self):
        from booboo.services.intent import fallback_classify

        assert fallback_classify("明天記得看 https://x.y").intent.value == "link"

    def test_confidences(self):
        from booboo.services.intent import fallback_classify

        assert fallback_classify("http://x").confidence == 0.8
        assert fallback_classify("提醒我買菜").confidence == 0.6
        assert fallback_classify("哈囉").confidence == 0.5


class TestClassify:
    def test_model_output_is_used(self, llm):
        from booboo.services.intent import classify

        llm.responses["classifyIntent"] = '{"intent": "music", "confidence": 0.9}'
        result = asyncio.run(classify("user-1", "最近很愛這首歌"))
        assert result.intent.value == "music"
        assert result.confidence == 0.9

    def test_todo_without_sub_intent_becomes_create(self, llm):
        from booboo.services.intent import classify

        llm.responses["classifyIntent"] = '{"intent": "todo", "confidence": 0.8}'
        result = asyncio.run(classify("user-1", "買菜"))
        assert result.sub_intent.value == "create"

    def test_unknown_intent_falls_back(self, llm):
        from booboo.services.intent import classify

        llm.responses["classifyIntent"] = '{"intent": "weather", "confidence": 0.9}'
        result = asyncio.run(classify("user-1", "提醒我明天帶傘"))
        assert result.intent.value == "todo"
        assert result.sub_intent.value == "create"

    def test_confidence_is_clamped(self, llm):
        from booboo.services.intent import classify

        llm.responses["classifyIntent"] = '{"intent": "other", "confidence": 7}'
        assert asyncio.run(classify("user-1", "嗨")).confidence == 1.0


class TestRefine:
    def test_storage_question_becomes_feedback(self):
        from booboo.schemas import Intent, IntentClassification
        from booboo.services.intent import refine_classification

        result = refine_classification(
            IntentClassification(intent=Intent.LIFE, confidence=0.9), "我最近的生活怎麼樣？",
        )
        assert result.intent == Intent.FEEDBACK
        assert result.confidence == 0.6

    def test_storage_question_about_past_becomes_chat_history(self):
        from booboo.schemas import Intent, IntentClassification
        from booboo.services.intent import refine_classification

        result = refine_classification(
            IntentClassification(intent=Intent.MEMORY, confidence=0.9), "我有沒有跟小明聊過旅行？",
        )
        assert result.intent == Intent.CHAT_HISTORY

    def test_statement_keeps_storage_intent(self):
        from booboo.schemas import Intent, IntentClassification
        from booboo.services.intent import refine_classification

        result = refine_classification(
            IntentClassification(intent=Intent.INSIGHT, confidence=0.9), "慢慢來比較快",
        )
        assert result.intent == Intent.INSIGHT

    def test_todo_create_that_reads_like_query(self):
        from booboo.schemas import Intent, IntentClassification, SubIntent
        from booboo.services.intent import refine_classification

        result = refine_classification(
            IntentClassification(intent=Intent.TODO, sub_intent=SubIntent.CREATE, confidence=0.9),
            "明天要幹嘛",
        )
        assert result.sub_intent == SubIntent.QUERY
