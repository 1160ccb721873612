"""
Upstash Vector backend over its REST API.

Needs an embedding function: without one (or without credentials) every call
is a no-op. Each memory is stored with {user_id, category, text, date}
metadata and searched with a metadata filter on user and categories.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

import httpx

from ..embeddings import EmbedFn
from .base import MemoryHit, MemoryProvider, conversation_text

logger = logging.getLogger(__name__)


def _quote(value: str) -> str:
    return "'" + value.replace("\\", "\\\\").replace("'", "\\'") + "'"


def build_filter(user_id: str, categories: Optional[list[str]]) -> str:
    clause = f"user_id = {_quote(user_id)}"
    if categories:
        clause += " AND category IN (" + ", ".join(_quote(c) for c in categories) + ")"
    return clause


class VectorIndexProvider(MemoryProvider):
    name = "upstash"

    def __init__(
        self,
        rest_url: str,
        rest_token: str,
        embed_fn: Optional[EmbedFn] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout_seconds: Optional[float] = None,
    ):
        super().__init__(timeout_seconds)
        self._base_url = rest_url.rstrip("/")
        self._token = rest_token
        self._embed = embed_fn
        self._client = client
        if embed_fn is None:
            logger.warning("Upstash memory has no embedding function; it will be a no-op")

    @property
    def enabled(self) -> bool:
        return bool(self._base_url and self._token and self._embed)

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(15.0, connect=5.0))
        return self._client

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self._token}",
            "Content-Type": "application/json",
        }

    async def _search(self, user_id, query, limit, categories):
        vector = await self._embed(query)
        resp = await self._get_client().post(
            f"{self._base_url}/query",
            headers=self._headers(),
            json={
                "vector": vector,
                "topK": limit,
                "includeMetadata": True,
                "filter": build_filter(user_id, categories),
            },
        )
        resp.raise_for_status()
        hits = []
        for match in resp.json().get("result") or []:
            meta = match.get("metadata") or {}
            hits.append(MemoryHit(text=meta.get("text", ""), date=meta.get("date")))
        return hits

    async def _ingest(self, user_id, messages, category):
        text = conversation_text(messages)
        vector = await self._embed(text)
        metadata = {
            "user_id": user_id,
            "text": text,
            "date": datetime.now(timezone.utc).strftime("%Y-%m-%d"),
        }
        if category:
            metadata["category"] = category
        resp = await self._get_client().post(
            f"{self._base_url}/upsert",
            headers=self._headers(),
            json={"id": str(uuid.uuid4()), "vector": vector, "metadata": metadata},
        )
        resp.raise_for_status()

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None
