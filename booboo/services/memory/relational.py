"""
Relational memory backend: memory rows in the application database.

Without an embedding function, search is a case-insensitive substring match
over memory records and, when no category filter is given, over the user's
saved items as well. With one, records carry an embedding and search ranks
them by cosine similarity.

Every call opens its own session, so background ingestion never touches a
request's session.
"""

import logging
import math
from typing import Optional

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ...core.database import session_scope
from ...models.base import ensure_utc
from ...models.memory import MemoryRecord
from ...models.saved_item import SavedItem
from ..embeddings import EmbedFn
from .base import MemoryHit, MemoryProvider, conversation_text

logger = logging.getLogger(__name__)

# Embedded candidates scanned per search
EMBEDDING_SCAN_LIMIT = 500


def cosine_similarity(a: list[float], b: list[float]) -> float:
    if not a or not b or len(a) != len(b):
        return 0.0
    dot = sum(x * y for x, y in zip(a, b))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    return dot / norm if norm else 0.0


def search_terms(query: str) -> list[str]:
    """The whole query plus its whitespace-separated words (two chars or more)."""
    query = (query or "").strip()
    if not query:
        return []
    terms = [query]
    for word in query.split():
        if len(word) > 1 and word not in terms:
            terms.append(word)
    return terms


def _date(record) -> Optional[str]:
    created = ensure_utc(record.created_at)
    return created.strftime("%Y-%m-%d") if created else None


class RelationalMemoryProvider(MemoryProvider):
    name = "postgresql"

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        embed_fn: Optional[EmbedFn] = None,
        timeout_seconds: Optional[float] = None,
    ):
        super().__init__(timeout_seconds)
        self._session_factory = session_factory
        self._embed = embed_fn

    async def _search(self, user_id, query, limit, categories):
        if self._embed is not None:
            return await self._vector_search(user_id, query, limit, categories)
        return await self._text_search(user_id, query, limit, categories)

    async def _text_search(self, user_id, query, limit, categories) -> list[MemoryHit]:
        terms = search_terms(query)
        if not terms:
            return []

        async with session_scope(self._session_factory) as db:
            stmt = (
                select(MemoryRecord)
                .where(MemoryRecord.user_id == user_id)
                .where(or_(*[MemoryRecord.text.ilike(f"%{t}%") for t in terms]))
                .order_by(MemoryRecord.created_at.desc())
                .limit(limit)
            )
            if categories:
                stmt = stmt.where(MemoryRecord.category.in_(categories))
            records = (await db.execute(stmt)).scalars().all()
            hits = [MemoryHit(text=r.text, date=_date(r)) for r in records]

            if not categories and len(hits) < limit:
                conditions = []
                for t in terms:
                    conditions.append(SavedItem.title.ilike(f"%{t}%"))
                    conditions.append(SavedItem.content.ilike(f"%{t}%"))
                item_stmt = (
                    select(SavedItem)
                    .where(SavedItem.user_id == user_id)
                    .where(or_(*conditions))
                    .order_by(SavedItem.created_at.desc())
                    .limit(limit - len(hits))
                )
                items = (await db.execute(item_stmt)).scalars().all()
                hits.extend(MemoryHit(text=i.label(), date=_date(i)) for i in items)

        return hits

    async def _vector_search(self, user_id, query, limit, categories) -> list[MemoryHit]:
        query_vector = await self._embed(query)
        async with session_scope(self._session_factory) as db:
            stmt = (
                select(MemoryRecord)
                .where(MemoryRecord.user_id == user_id)
                .where(MemoryRecord.embedding.is_not(None))
                .order_by(MemoryRecord.created_at.desc())
                .limit(EMBEDDING_SCAN_LIMIT)
            )
            if categories:
                stmt = stmt.where(MemoryRecord.category.in_(categories))
            records = (await db.execute(stmt)).scalars().all()

        scored = sorted(
            ((cosine_similarity(query_vector, r.embedding or []), r) for r in records),
            key=lambda pair: pair[0],
            reverse=True,
        )
        return [MemoryHit(text=r.text, date=_date(r)) for score, r in scored[:limit] if score > 0]

    async def _ingest(self, user_id, messages, category):
        if len(messages) == 1:
            text = str(messages[0].get("content", ""))
        else:
            text = conversation_text(messages)
        if not text.strip():
            return

        embedding = await self._embed(text) if self._embed is not None else None
        async with session_scope(self._session_factory) as db:
            db.add(MemoryRecord(user_id=user_id, text=text, category=category, embedding=embedding))
