"""
Timeout wrapper for every outbound Gateway / memory call.

A slow collaborator degrades to the caller's fallback instead of hanging the request.
"""

import asyncio
import logging
from typing import Awaitable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def with_timeout(awaitable: Awaitable[T], seconds: float, label: str) -> T:
    """
    Await `awaitable` for at most `seconds`.

    Raises asyncio.TimeoutError on expiry; callers convert it into their
    "no data" signal. A non-positive `seconds` disables the limit.
    """
    if seconds <= 0:
        return await awaitable
    try:
        return await asyncio.wait_for(awaitable, timeout=seconds)
    except asyncio.TimeoutError:
        logger.warning("%s timed out after %.1fs", label, seconds)
        raise
