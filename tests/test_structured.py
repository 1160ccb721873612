import asyncio

import pytest


class TestExtractJsonString:
    def test_clean_json_is_unchanged(self):
        from booboo.services.structured import extract_json_string

        clean = '{"title": "寫報告"}'
        assert extract_json_string(clean) == clean
        assert extract_json_string(extract_json_string(clean)) == clean

    def test_strips_markdown_fence(self):
        from booboo.services.structured import extract_json_string

        text = '```json\n{"a": 1}\n```'
        assert extract_json_string(text) == '{"a": 1}'

    def test_strips_bare_fence(self):
        from booboo.services.structured import extract_json_string

        assert extract_json_string('```\n{"a": 1}\n```') == '{"a": 1}'

    def test_strips_json_tag(self):
        from booboo.services.structured import extract_json_string

        text = 'Sure!\n<JSON>\n{"a": 1}\n</JSON>\nanything else'
        assert extract_json_string(text) == '{"a": 1}'

    def test_fence_outside_tag(self):
        from booboo.services.structured import extract_json_string

        text = '```json\n<JSON>\n{"a": 1}\n</JSON>\n```'
        assert extract_json_string(text) == '{"a": 1}'

    def test_tag_outside_fence(self):
        from booboo.services.structured import extract_json_string

        text = '<JSON>\n```json\n{"a": 1}\n```\n</JSON>'
        assert extract_json_string(text) == '{"a": 1}'

    def test_empty(self):
        from booboo.services.structured import extract_json_string

        assert extract_json_string("") == ""
        assert extract_json_string(None) == ""


class TestParseJsonOutput:
    def test_nulls_become_absent(self):
        from booboo.services.structured import parse_json_output

        parsed = parse_json_output('{"date": null, "due": "2025-03-01", "nested": {"x": null, "y": [1, null]}}')
        assert parsed == {"due": "2025-03-01", "nested": {"y": [1]}}

    def test_garbage_raises_value_error(self):
        from booboo.services.structured import parse_json_output

        with pytest.raises(ValueError):
            parse_json_output("I'm sorry, I can't help with that.")


class TestGenerateStructured:
    def test_valid_output_is_parsed(self, llm):
        from booboo.schemas import TodoDraft
        from booboo.services.structured import generate_structured

        llm.responses["createTodo"] = '<JSON>{"title": "交報告", "description": null}</JSON>'
        draft = asyncio.run(generate_structured(
            "createTodo", {"text": "明天要交報告"}, TodoDraft,
            fallback=lambda: TodoDraft(title="fallback"),
        ))
        assert draft.title == "交報告"
        assert draft.description is None

    @pytest.mark.parametrize("garbage", [
        "",
        "not json at all",
        '{"title": ',
        '["a", "b"]',
        '{"description": "missing title"}',
        '{"title": ""}',
    ])
    def test_garbage_uses_fallback(self, llm, garbage):
        from booboo.schemas import TodoDraft
        from booboo.services.structured import generate_structured

        llm.responses["createTodo"] = garbage
        draft = asyncio.run(generate_structured(
            "createTodo", {"text": "x"}, TodoDraft,
            fallback=lambda: TodoDraft(title="fallback"),
        ))
        assert draft.title == "fallback"

    def test_unknown_template_raises(self, llm):
        from booboo.schemas import TodoDraft
        from booboo.services.prompts import UnknownTemplateError
        from booboo.services.structured import generate_structured

        with pytest.raises(UnknownTemplateError):
            asyncio.run(generate_structured(
                "noSuchTemplate", {}, TodoDraft, fallback=lambda: TodoDraft(title="x"),
            ))


class TestGateway:
    def test_unconfigured_provider_returns_empty(self):
        from booboo.services import llm

        assert asyncio.run(llm.generate("chat", {"text": "嗨"})) == ""

    def test_unknown_template_fails_fast(self):
        from booboo.services import llm
        from booboo.services.prompts import UnknownTemplateError

        with pytest.raises(UnknownTemplateError):
            asyncio.run(llm.generate("nope", {}))

    def test_every_template_renders(self):
        from booboo.services.prompts import TEMPLATES

        for name, template in TEMPLATES.items():
            assert template.system, name
            assert isinstance(template.user({"text": "hi", "query": "hi"}), str), name
