"""
Central feature flags. One file controls every external dependency.

Set via environment variables (prefix FF_) or .env file.
When a backend is unconfigured, the system degrades to a null/fallback path. Nothing crashes.
"""

from functools import lru_cache
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class FeatureFlags(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── LLM Provider ─────────────────────────────────────────────────
    llm_provider: str = Field(default="gemini", alias="FF_LLM_PROVIDER")
    # "gemini" → Google Gemini (default). Needs GEMINI_API_KEY.
    # "openai" → Direct OpenAI. Needs OPENAI_API_KEY.

    # ── Long-term memory ─────────────────────────────────────────────
    memory_provider: str = Field(default="mem0", alias="FF_MEMORY_PROVIDER")
    # "mem0"       → Hosted mem0 API. Needs MEM0_API_KEY.
    # "upstash"    → Upstash Vector index. Needs UPSTASH_VECTOR_REST_URL + TOKEN
    #                and FF_USE_MEMORY_EMBEDDINGS.
    # "postgresql" → Memory rows in the app database. Substring search unless
    #                FF_USE_MEMORY_EMBEDDINGS is on.
    # "none"       → No memory. Search returns "", ingestion is a no-op.

    use_memory_embeddings: bool = Field(default=False, alias="FF_USE_MEMORY_EMBEDDINGS")
    # ON  → Gemini embeddings for upstash/postgresql. Needs GEMINI_API_KEY.
    # OFF → upstash is a no-op, postgresql falls back to substring search.


@lru_cache
def get_flags() -> FeatureFlags:
    return FeatureFlags()
