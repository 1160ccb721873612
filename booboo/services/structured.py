"""
Structured output from free-form model text.

Model responses arrive wrapped in markdown fences, <JSON> tags, or both, and use
null where our schemas want an absent field. `generate_structured` is the one
place that turns that into a validated pydantic object or runs the caller's
fallback. Nothing in here raises because of what the model said.
"""

import json
import logging
import re
from typing import Any, Callable, Optional, TypeVar

from pydantic import BaseModel

from . import llm

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

_OPEN_FENCE = re.compile(r"^```[a-zA-Z]*[ \t]*\n?")
_CLOSE_FENCE = re.compile(r"\n?```\s*$")
_JSON_TAG = re.compile(r"<JSON>([\s\S]*?)</JSON>", re.IGNORECASE)


def _strip_fences(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        text = _OPEN_FENCE.sub("", text, count=1)
        text = _CLOSE_FENCE.sub("", text, count=1)
    return text.strip()


def extract_json_string(text: str) -> str:
    """
    Strip ```json / ``` fences and <JSON>…</JSON> wrappers, in either nesting order.

    Idempotent: clean JSON comes back unchanged (modulo surrounding whitespace).
    """
    text = _strip_fences(text or "")
    match = _JSON_TAG.search(text)
    if match:
        text = _strip_fences(match.group(1))
    return text


def strip_nulls(value: Any) -> Any:
    """Recursively drop None values so optional fields read as absent."""
    if isinstance(value, dict):
        return {k: strip_nulls(v) for k, v in value.items() if v is not None}
    if isinstance(value, list):
        return [strip_nulls(v) for v in value if v is not None]
    return value


def parse_json_output(text: str) -> Any:
    """extract → json.loads → strip_nulls. Raises ValueError on malformed input."""
    return strip_nulls(json.loads(extract_json_string(text)))


async def generate_structured(
    template: str,
    payload: dict[str, Any],
    schema: type[M],
    fallback: Callable[[], M],
    user_id: str = "",
    preview: Optional[str] = None,
) -> M:
    """
    Ask the gateway for `template`, validate the JSON against `schema`,
    or return `fallback()` when the text is empty, malformed, or off-schema.
    """
    text = await llm.generate(template, payload)
    try:
        return schema.model_validate(parse_json_output(text))
    except ValueError as e:
        logger.warning(
            "Failed to parse %s, using fallback | user=%s text=%r response=%r err=%s",
            template,
            user_id[:8],
            (preview if preview is not None else str(payload.get("text") or payload.get("query") or ""))[:100],
            text[:200],
            str(e).splitlines()[0] if str(e) else type(e).__name__,
        )
        return fallback()
