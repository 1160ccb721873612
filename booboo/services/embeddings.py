"""
Gemini text embeddings for the vector and relational memory backends.

Uses the google-genai SDK. The SDK call is synchronous, so it runs in a worker
thread to keep the event loop free.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from ..core.config import get_settings
from ..core.flags import get_flags

logger = logging.getLogger(__name__)

EmbedFn = Callable[[str], Awaitable[list[float]]]

_genai_client = None


def _get_genai_client():
    global _genai_client
    if _genai_client is None:
        from google import genai
        settings = get_settings()
        _genai_client = genai.Client(api_key=settings.gemini_api_key)
    return _genai_client


async def embed(text: str) -> list[float]:
    """Embed one text. Raises on provider failure; memory backends catch it."""
    settings = get_settings()
    client = _get_genai_client()
    result = await asyncio.to_thread(
        client.models.embed_content,
        model=settings.embedding_model,
        contents=text,
    )
    return list(result.embeddings[0].values)


def get_embed_fn() -> Optional[EmbedFn]:
    """The embedding function memory backends should use, or None when disabled."""
    if not get_flags().use_memory_embeddings:
        return None
    if not get_settings().gemini_api_key:
        logger.warning("FF_USE_MEMORY_EMBEDDINGS is on but GEMINI_API_KEY is not set")
        return None
    return embed
