"""
FastAPI application factory.
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .core.config import get_settings
from .core.database import init_db, close_db
from .api.router import router

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title="Booboo",
        description="Personal life assistant: todos, links, notes and recall",
        version="1.0.0",
        docs_url="/docs" if settings.env == "development" else None,
        redoc_url="/redoc" if settings.env == "development" else None,
    )

    # ── CORS ─────────────────────────────────────────────────────
    origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Startup ──────────────────────────────────────────────────
    @app.on_event("startup")
    async def on_startup():
        logging.basicConfig(
            level=getattr(logging, settings.log_level.upper(), logging.INFO),
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        )
        logger.info("Starting Booboo (env=%s tz=%s)", settings.env, settings.timezone)

        # Create database tables
        await init_db()

        # Log feature flag state
        from .core.flags import get_flags
        flags = get_flags()
        logger.info(
            "Flags: llm=%s memory=%s embeddings=%s",
            flags.llm_provider, flags.memory_provider, flags.use_memory_embeddings,
        )

        # Build the memory provider once so misconfiguration shows up at boot
        from .services.memory import get_memory_provider
        provider = get_memory_provider()
        logger.info("Memory provider: %s (enabled=%s)", provider.name, provider.enabled)

        logger.info("Booboo is ready")

    # ── Shutdown ─────────────────────────────────────────────────
    @app.on_event("shutdown")
    async def on_shutdown():
        from .services.llm import close_client
        from .services.memory import close_memory_provider, drain_ingestions
        await drain_ingestions()
        await close_memory_provider()
        await close_client()
        await close_db()
        logger.info("Booboo shut down")

    # ── Routes ───────────────────────────────────────────────────
    app.include_router(router)

    return app
