"""
Main API router. Mounts all sub-routers.
"""

from fastapi import APIRouter

router = APIRouter()


# ── Health ───────────────────────────────────────────────────────────

@router.get("/health")
async def health():
    from ..core.flags import get_flags

    flags = get_flags()
    return {
        "status": "ok",
        "service": "booboo",
        "llm_provider": flags.llm_provider,
        "memory_provider": flags.memory_provider,
    }


# ── V1 routes ────────────────────────────────────────────────────────

from .messages import messages_router

router.include_router(messages_router, prefix="/v1")
