"""
Hosted mem0 backend (mem0ai AsyncMemoryClient).

Ingest tags each exchange with `categories=[category]` plus date metadata;
search passes the same category filter and, when the query mentions a date
(2025-01-17, 1/17, 1月17日), a start_date/end_date window for that day.
"""

import logging
import re
import time
from datetime import datetime, timezone
from typing import Any, Optional

from .base import MemoryHit, MemoryProvider

logger = logging.getLogger(__name__)

_FULL_DATE = re.compile(r"(\d{4})[/\-](\d{1,2})[/\-](\d{1,2})")
_SHORT_DATE = re.compile(r"(?<!\d)(\d{1,2})[/\-](\d{1,2})(?!\d)")
_CJK_DATE = re.compile(r"(\d{1,2})月(\d{1,2})[日號]")


def _valid(month: int, day: int) -> bool:
    return 1 <= month <= 12 and 1 <= day <= 31


def parse_date_from_query(query: str, year: Optional[int] = None) -> Optional[tuple[str, str]]:
    """First date mentioned in `query` as a one-day (start, end) window, or None."""
    year = year or datetime.now().year

    m = _FULL_DATE.search(query)
    if m:
        y, mo, d = (int(g) for g in m.groups())
        if _valid(mo, d):
            s = f"{y:04d}-{mo:02d}-{d:02d}"
            return s, s

    for pattern in (_SHORT_DATE, _CJK_DATE):
        m = pattern.search(query)
        if m:
            mo, d = (int(g) for g in m.groups())
            if _valid(mo, d):
                s = f"{year:04d}-{mo:02d}-{d:02d}"
                return s, s

    return None


def _entry_date(entry: dict) -> Optional[str]:
    created = entry.get("created_at")
    if created:
        try:
            return datetime.fromisoformat(str(created).replace("Z", "+00:00")).strftime("%Y-%m-%d")
        except ValueError:
            pass
    return (entry.get("metadata") or {}).get("date")


def _results(response: Any) -> list[dict]:
    # The API returns either a bare list or {"results": [...]}
    if isinstance(response, dict):
        response = response.get("results", [])
    return [r for r in (response or []) if isinstance(r, dict)]


class Mem0HostedProvider(MemoryProvider):
    name = "mem0"

    def __init__(self, api_key: str, client: Any = None, timeout_seconds: Optional[float] = None):
        super().__init__(timeout_seconds)
        self._api_key = api_key
        self._client = client

    def _get_client(self):
        if self._client is None:
            from mem0 import AsyncMemoryClient
            self._client = AsyncMemoryClient(api_key=self._api_key)
            logger.info("mem0 client initialized")
        return self._client

    async def _search(self, user_id, query, limit, categories):
        options: dict[str, Any] = {"user_id": user_id, "limit": limit}
        if categories:
            options["categories"] = categories
        window = parse_date_from_query(query)
        if window:
            options["start_date"], options["end_date"] = window

        response = await self._get_client().search(query, **options)
        hits = []
        for entry in _results(response):
            text = entry.get("memory") or (entry.get("data") or {}).get("memory") or ""
            hits.append(MemoryHit(text=text, date=_entry_date(entry)))
        logger.info(
            "mem0 search | user=%s hits=%d categories=%s date=%s",
            user_id[:8], len(hits), categories or "none", window[0] if window else "none",
        )
        return hits

    async def _ingest(self, user_id, messages, category):
        now = datetime.now(timezone.utc)
        options: dict[str, Any] = {
            "user_id": user_id,
            "timestamp": int(time.time()),
            "metadata": {
                "date": now.strftime("%Y-%m-%d"),
                "stored_at": now.isoformat(),
            },
        }
        if category:
            options["categories"] = [category]
        await self._get_client().add(messages, **options)
        logger.info(
            "mem0 add | user=%s messages=%d category=%s",
            user_id[:8], len(messages), category or "none",
        )
