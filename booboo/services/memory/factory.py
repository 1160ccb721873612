"""
Memory provider selection.

FF_MEMORY_PROVIDER picks the backend. Missing credentials never fail startup:
the factory hands back a NullMemoryProvider and logs a warning.
"""

import logging
from typing import Optional

from ...core.config import get_settings
from ...core.flags import get_flags
from ..embeddings import get_embed_fn
from .base import MemoryProvider, NullMemoryProvider

logger = logging.getLogger(__name__)

PROVIDER_TYPES = ("mem0", "upstash", "postgresql", "none")

_provider: Optional[MemoryProvider] = None


def create_memory_provider(kind: Optional[str] = None) -> MemoryProvider:
    settings = get_settings()
    kind = (kind or get_flags().memory_provider or "none").lower()
    logger.info("Creating memory provider (type=%s)", kind)

    if kind == "mem0":
        if not settings.mem0_api_key:
            logger.warning("MEM0_API_KEY not set, memory features disabled")
            return NullMemoryProvider()
        from .hosted import Mem0HostedProvider
        return Mem0HostedProvider(settings.mem0_api_key)

    if kind == "upstash":
        if not (settings.upstash_vector_rest_url and settings.upstash_vector_rest_token):
            logger.warning("Upstash Vector credentials not set, memory features disabled")
            return NullMemoryProvider()
        from .vector import VectorIndexProvider
        return VectorIndexProvider(
            settings.upstash_vector_rest_url,
            settings.upstash_vector_rest_token,
            embed_fn=get_embed_fn(),
        )

    if kind == "postgresql":
        from .relational import RelationalMemoryProvider
        return RelationalMemoryProvider(embed_fn=get_embed_fn())

    if kind != "none":
        logger.warning("Unknown memory provider '%s', memory features disabled", kind)
    return NullMemoryProvider()


def get_memory_provider() -> MemoryProvider:
    """Process-wide provider, created on first use."""
    global _provider
    if _provider is None:
        _provider = create_memory_provider()
    return _provider


def set_memory_provider(provider: Optional[MemoryProvider]) -> None:
    """Swap the process-wide provider (None resets to lazy creation)."""
    global _provider
    _provider = provider


async def close_memory_provider() -> None:
    global _provider
    if _provider is not None:
        await _provider.close()
        _provider = None
