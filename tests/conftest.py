import asyncio
import os

# Settings are cached on first use: pin a hermetic environment before any import
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["FF_MEMORY_PROVIDER"] = "none"
os.environ["FF_USE_MEMORY_EMBEDDINGS"] = "false"
os.environ["GEMINI_API_KEY"] = ""
os.environ["OPENAI_API_KEY"] = ""
os.environ["MEM0_API_KEY"] = ""
os.environ["TIMEZONE"] = "Asia/Taipei"
os.environ["DAILY_MESSAGE_LIMIT"] = "8"

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import booboo.models  # noqa: F401  (registers tables)
from booboo.core.database import Base
from booboo.services.memory import NullMemoryProvider, drain_ingestions, set_memory_provider
from booboo.services.prompts import get_template


class FakeLLM:
    """Stands in for the gateway: canned text per template, every call recorded."""

    def __init__(self):
        self.responses = {}
        self.calls = []

    async def generate(self, template, payload=None):
        get_template(template)
        self.calls.append((template, dict(payload or {})))
        reply = self.responses.get(template, "")
        return reply(payload or {}) if callable(reply) else reply

    def templates(self):
        return [name for name, _ in self.calls]


@pytest.fixture
def llm(monkeypatch):
    fake = FakeLLM()
    monkeypatch.setattr("booboo.services.llm.generate", fake.generate)
    return fake


@pytest.fixture(autouse=True)
def null_memory():
    set_memory_provider(NullMemoryProvider())
    yield
    set_memory_provider(None)


@pytest.fixture
def run_db():
    """
    Run `scenario(db)` against a fresh in-memory database inside one event loop.
    The session is committed afterwards and background ingestion is drained.
    """
    def runner(scenario):
        async def main():
            engine = create_async_engine(
                "sqlite+aiosqlite://",
                poolclass=StaticPool,
                connect_args={"check_same_thread": False},
            )
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            factory = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
            try:
                async with factory() as db:
                    result = await scenario(db)
                    await db.commit()
                await drain_ingestions()
                return result
            finally:
                await engine.dispose()

        return asyncio.run(main())

    return runner
