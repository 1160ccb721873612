"""
Retrieval-augmented answers shared by feedback, recommendation and history
search: gather context, then hand it to a `*WithRAG` template.
"""

import logging

from . import llm

logger = logging.getLogger(__name__)

SILENT_REPLY = "小幽現在想不出好的回答，晚點再問我一次好嗎？🙏"


async def answer_with_context(template: str, user_id: str, query: str, context: str) -> str:
    """Generated answer, or SILENT_REPLY when the model returns nothing."""
    response = (await llm.generate(template, {"query": query, "items": context})).strip()
    logger.debug(
        "%s | user=%s query=%r context=%d chars → %d chars",
        template, user_id[:8], query[:100], len(context), len(response),
    )
    return response or SILENT_REPLY
