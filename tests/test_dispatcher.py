from datetime import datetime, time, timedelta, timezone

import httpx
from fastapi.testclient import TestClient

USER = "user-0001-aaaa"


class TestHandlerTable:
    def test_every_intent_has_a_handler(self):
        from booboo.orchestrator.dispatcher import HANDLERS
        from booboo.schemas import Intent

        assert set(HANDLERS) == set(Intent)


class TestEndToEnd:
    def test_todo_with_reminder(self, llm, run_db):
        from booboo.orchestrator.dispatcher import handle_message
        from booboo.services.reminders import list_pending_reminders
        from booboo.services.todo_dates import local_tz, now_local

        async def scenario(db):
            reply = await handle_message(db, USER, "記得明天要交報告")
            return reply, await list_pending_reminders(db, USER)

        reply, reminders = run_db(scenario)
        tomorrow = now_local().date() + timedelta(days=1)
        expected = datetime.combine(tomorrow, time(8, 0), tzinfo=local_tz())

        assert (reply.intent, reply.sub_intent) == ("todo", "create")
        assert len(reply.todos) == 1
        todo = reply.todos[0]
        assert "交報告" in todo["title"]
        assert datetime.fromisoformat(todo["date"]) == expected
        assert len(reminders) == 1
        assert reminders[0].trigger_at.replace(tzinfo=timezone.utc) == expected
        assert "交報告" in reply.content

    def test_bare_url_becomes_link(self, llm, run_db):
        from booboo.orchestrator.dispatcher import handle_message

        async def scenario(db):
            return await handle_message(db, USER, "https://example.com/ramen")

        reply = run_db(scenario)
        assert reply.intent == "link"
        assert reply.confidence == 0.8
        item = reply.items[0]
        assert item["source_type"] == "link"
        assert item["category"] == "inspiration"
        assert item["url"] == "https://example.com/ramen"
        assert item["metadata"]["host"] == "example.com"

    def test_model_link_type_drives_category(self, llm, run_db):
        from booboo.orchestrator.dispatcher import handle_message

        llm.responses["classifyIntent"] = '{"intent": "link", "confidence": 0.95}'
        llm.responses["analyzeLink"] = '{"type": "工具", "summary": "好用的 JSON 格式化工具", "tags": ["tool"]}'

        async def scenario(db):
            return await handle_message(db, USER, "這個好用 https://jsonformatter.example.com")

        reply = run_db(scenario)
        assert reply.items[0]["category"] == "tool"
        assert reply.items[0]["content"] == "這個好用"

    def test_update_by_text(self, llm, run_db):
        from booboo.orchestrator.dispatcher import handle_message
        from booboo.services.todos import create_todo

        async def scenario(db):
            await create_todo(db, USER, "寫報告")
            await create_todo(db, USER, "買牛奶")
            return await handle_message(db, USER, "報告寫完了")

        reply = run_db(scenario)
        assert reply.sub_intent == "update"
        assert reply.todos[0]["title"] == "寫報告"
        assert reply.todos[0]["status"] == "done"

    def test_query_without_matches(self, llm, run_db):
        from booboo.orchestrator.dispatcher import handle_message

        async def scenario(db):
            return await handle_message(db, USER, "明天要幹嘛？")

        reply = run_db(scenario)
        assert reply.sub_intent == "query"
        assert reply.todos == []
        assert "沒有找到" in reply.content

    def test_list_of_todos(self, llm, run_db):
        from booboo.orchestrator.dispatcher import handle_message

        llm.responses["classifyIntent"] = '{"intent": "todo", "subIntent": "create", "confidence": 0.9}'
        llm.responses["extractMultipleTodos"] = '{"todos": [{"title": "買菜"}, {"title": "洗衣服"}]}'

        async def scenario(db):
            return await handle_message(db, USER, "買菜、洗衣服")

        reply = run_db(scenario)
        assert [t["title"] for t in reply.todos] == ["買菜", "洗衣服"]

    def test_storage_question_is_rerouted(self, llm, run_db):
        from booboo.orchestrator.dispatcher import handle_message
        from booboo.services.feedback import EMPTY_FEEDBACK

        llm.responses["classifyIntent"] = '{"intent": "life", "confidence": 0.9}'

        async def scenario(db):
            return await handle_message(db, USER, "我最近的生活怎麼樣？")

        reply = run_db(scenario)
        assert reply.intent == "feedback"
        assert reply.content == EMPTY_FEEDBACK

    def test_capture_reply(self, llm, run_db):
        from booboo.orchestrator.dispatcher import handle_message

        llm.responses["classifyIntent"] = '{"intent": "music", "confidence": 0.9}'
        llm.responses["analyzeMusic"] = '{"summary": "想練〈晴天〉solo", "tags": ["music", "solo"]}'

        async def scenario(db):
            return await handle_message(db, USER, "最近很想練晴天的 solo")

        reply = run_db(scenario)
        assert reply.intent == "music"
        assert reply.items[0]["category"] == "entertainment"
        assert "晴天" in reply.content

    def test_chat_is_saved_for_history_search(self, llm, run_db):
        from booboo.orchestrator.dispatcher import handle_message
        from booboo.services.chat import search_history

        llm.responses["classifyIntent"] = '{"intent": "other", "confidence": 0.7}'
        llm.responses["chat"] = "京都很適合慢慢逛！"
        llm.responses["extractSearchKeywords"] = '{"keywords": ["京都"]}'
        llm.responses["answerChatHistoryWithRAG"] = lambda payload: payload["items"]

        async def scenario(db):
            reply = await handle_message(db, USER, "今天跟小明聊到京都旅行")
            return reply, await search_history(db, USER, "我有沒有聊過京都？")

        reply, answer = run_db(scenario)
        assert reply.content == "京都很適合慢慢逛！"
        assert reply.items[0]["source_type"] == "chat"
        assert "今天跟小明聊到京都旅行" in reply.items[0]["content"]
        assert "京都" in answer

    def test_activity_query_includes_memories(self, llm, run_db):
        from booboo.orchestrator.dispatcher import handle_message
        from booboo.services.items import create_item
        from booboo.services.todos import create_todo

        llm.responses["parseTodoQuery"] = '{"timeRange": "今天", "keywords": ["做了什麼"]}'

        async def scenario(db):
            await create_todo(db, USER, "寫日記")
            await create_item(db, USER, "和朋友去看展", tags=["memory"])
            old = await create_item(db, USER, "去年的跨年", tags=["memory"])
            old.created_at = datetime.now(timezone.utc) - timedelta(days=30)
            await db.flush()
            llm.responses["classifyIntent"] = '{"intent": "todo", "subIntent": "query", "confidence": 0.9}'
            return await handle_message(db, USER, "我今天做了什麼？")

        reply = run_db(scenario)
        assert reply.sub_intent == "query"
        assert [t["title"] for t in reply.todos] == ["寫日記"]
        assert [i["content"] for i in reply.items] == ["和朋友去看展"]
        assert "相關記憶" in reply.content

    def test_activity_query_with_nothing_found(self, llm, run_db):
        from booboo.orchestrator.dispatcher import handle_message

        llm.responses["classifyIntent"] = '{"intent": "todo", "subIntent": "query", "confidence": 0.9}'
        llm.responses["parseTodoQuery"] = '{"timeRange": "昨天"}'

        async def scenario(db):
            return await handle_message(db, USER, "我昨天做了什麼？")

        reply = run_db(scenario)
        assert reply.content == "沒有找到符合的待辦事項或記憶 📭"
        assert reply.items == []

    def test_handler_failure_becomes_apology(self, llm, run_db, monkeypatch):
        from booboo.orchestrator import dispatcher
        from booboo.schemas import Intent

        async def broken(db, user_id, text, result):
            raise RuntimeError("boom")

        monkeypatch.setitem(dispatcher.HANDLERS, Intent.OTHER, broken)

        async def scenario(db):
            return await dispatcher.handle_message(db, USER, "哈囉")

        reply = run_db(scenario)
        assert reply.content == dispatcher.APOLOGY
        assert reply.metadata == {"error": True}


    def test_rate_limit_gets_its_own_reply(self, llm, run_db, monkeypatch):
        from booboo.orchestrator import dispatcher
        from booboo.schemas import Intent
        from booboo.services.quota import TOO_MANY_REQUESTS, check_daily_message_limit

        async def throttled(db, user_id, text, result):
            request = httpx.Request("POST", "https://generativelanguage.example/v1/chat/completions")
            raise httpx.HTTPStatusError("Too Many Requests", request=request, response=httpx.Response(429))

        monkeypatch.setitem(dispatcher.HANDLERS, Intent.OTHER, throttled)

        async def scenario(db):
            reply = await dispatcher.handle_message(db, USER, "哈囉")
            return reply, await check_daily_message_limit(db, USER)

        reply, quota = run_db(scenario)
        assert reply.content == TOO_MANY_REQUESTS
        assert reply.metadata["rate_limited"] is True
        # The failed message still used up quota
        assert quota.count == 1


class TestDailyQuota:
    def test_exhausted_quota_skips_the_handler(self, llm, run_db, monkeypatch):
        from booboo.core.config import get_settings
        from booboo.orchestrator.dispatcher import handle_message
        from booboo.services.quota import QUOTA_EXHAUSTED

        monkeypatch.setattr(get_settings(), "daily_message_limit", 2)
        llm.responses["chat"] = "嗨嗨"

        async def scenario(db):
            return [await handle_message(db, USER, "哈囉") for _ in range(3)]

        first, second, third = run_db(scenario)
        assert first.content == second.content == "嗨嗨"
        assert third.content == QUOTA_EXHAUSTED
        assert third.metadata == {"quota_exhausted": True}
        # Classification is free, the refused message never reaches chat
        assert llm.templates().count("classifyIntent") == 3
        assert llm.templates().count("chat") == 2

    def test_zero_disables_the_quota(self, run_db):
        from booboo.services.quota import check_daily_message_limit, record_api_call

        async def scenario(db):
            for _ in range(3):
                await record_api_call(db, USER, "other")
            return await check_daily_message_limit(db, USER, limit=0)

        quota = run_db(scenario)
        assert quota.count == 3
        assert not quota.exceeded

    def test_count_resets_at_local_midnight(self, run_db):
        from zoneinfo import ZoneInfo

        from booboo.services.quota import check_daily_message_limit, record_api_call

        tpe = ZoneInfo("Asia/Taipei")
        now = datetime(2025, 3, 5, 0, 30, tzinfo=tpe)

        async def scenario(db):
            before = await record_api_call(db, USER, "todo")
            before.created_at = datetime(2025, 3, 4, 23, 50, tzinfo=tpe).astimezone(timezone.utc)
            after = await record_api_call(db, USER, "todo")
            after.created_at = datetime(2025, 3, 5, 0, 10, tzinfo=tpe).astimezone(timezone.utc)
            other = await record_api_call(db, "someone-else", "todo")
            other.created_at = after.created_at
            await db.flush()
            return await check_daily_message_limit(db, USER, limit=1, now=now)

        quota = run_db(scenario)
        assert quota.count == 1
        assert quota.exceeded

    def test_rate_limit_detection(self):
        from booboo.services.quota import is_too_many_requests

        assert is_too_many_requests(RuntimeError("You exceeded your current quota"))
        assert is_too_many_requests(RuntimeError("HTTP 429"))
        assert not is_too_many_requests(RuntimeError("boom"))


class TestApi:
    def test_endpoints(self, llm):
        from booboo.factory import create_app

        with TestClient(create_app()) as client:
            health = client.get("/health")
            assert health.status_code == 200
            assert health.json()["status"] == "ok"

            reply = client.post("/v1/messages", json={"user_id": USER, "text": "https://example.com/a"})
            assert reply.status_code == 200
            assert reply.json()["intent"] == "link"

            assert client.post("/v1/messages", json={"user_id": USER, "text": ""}).status_code == 422
            assert client.post("/v1/content", json={"user_id": USER}).status_code == 422

            content = client.post("/v1/content", json={"user_id": USER, "text": "今天的晚霞好美"})
            assert content.status_code == 200
            assert content.json()["item"]["tags"] == ["content"]

            insight = client.post("/v1/insights/daily", json={"user_id": USER})
            assert insight.status_code == 200
            assert insight.json()["summary"]

            listed = client.get("/v1/insights", params={"user_id": USER})
            assert listed.status_code == 200
            assert [i["id"] for i in listed.json()] == [insight.json()["id"]]
            assert client.get("/v1/insights").status_code == 422
