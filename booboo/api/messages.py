"""
Messages API.

POST /v1/messages        Natural-language message → assistant reply
POST /v1/content         Directly shared text and/or url
POST /v1/insights/daily  Summarise the user's recent records
GET  /v1/insights        List stored insights, newest first
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..orchestrator.dispatcher import handle_message
from ..services.content import save_shared_content
from ..services.insight import generate_daily_insight, list_recent_insights

logger = logging.getLogger(__name__)

messages_router = APIRouter(tags=["messages"])


class MessageRequest(BaseModel):
    user_id: str = Field(min_length=1)
    text: str = Field(min_length=1)


class MessageResponse(BaseModel):
    content: str
    intent: str
    sub_intent: Optional[str] = None
    confidence: float = 0.0
    items: list[dict] = []
    todos: list[dict] = []
    metadata: dict = {}


@messages_router.post("/messages", response_model=MessageResponse)
async def post_message(request: MessageRequest, db: AsyncSession = Depends(get_db)):
    """Classify the message, run the matching service and reply."""
    reply = await handle_message(db, request.user_id, request.text)
    return MessageResponse(**reply.to_dict())


class ContentRequest(BaseModel):
    user_id: str = Field(min_length=1)
    text: Optional[str] = None
    url: Optional[str] = None


@messages_router.post("/content")
async def post_content(request: ContentRequest, db: AsyncSession = Depends(get_db)):
    try:
        result = await save_shared_content(db, request.user_id, text=request.text, url=request.url)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return {
        "item": result.item.to_dict(),
        "classification": result.classification.model_dump(by_alias=True),
    }


class InsightRequest(BaseModel):
    user_id: str = Field(min_length=1)


@messages_router.post("/insights/daily")
async def post_daily_insight(request: InsightRequest, db: AsyncSession = Depends(get_db)):
    insight = await generate_daily_insight(db, request.user_id)
    return insight.to_dict()


@messages_router.get("/insights")
async def get_insights(
    user_id: str = Query(min_length=1),
    limit: int = Query(default=10, ge=1, le=50),
    db: AsyncSession = Depends(get_db),
):
    """Most recent insights first."""
    insights = await list_recent_insights(db, user_id, limit=limit)
    return [i.to_dict() for i in insights]
