"""
Generative text gateway.

`generate(template, payload)` renders a registered prompt template and asks the
configured provider for plain text. Empty string is the "no information" signal:
it is returned when no API key is configured, when the call fails, and when it
exceeds LLM_TIMEOUT_SECONDS. Callers never see provider exceptions.

An unknown template name is a configuration error and raises immediately.
"""

import asyncio
import logging
import random
import time
from typing import Any, Optional

import httpx

from ..core.config import get_settings
from ..core.flags import get_flags
from ..core.timeouts import with_timeout
from .prompts import get_template

logger = logging.getLogger(__name__)

# ── Reusable client (connection pool) ────────────────────────────────

_client: Optional[httpx.AsyncClient] = None


def _get_client() -> httpx.AsyncClient:
    global _client
    if _client is None or _client.is_closed:
        _client = httpx.AsyncClient(
            timeout=httpx.Timeout(connect=10, read=120, write=30, pool=10),
            limits=httpx.Limits(max_connections=50, max_keepalive_connections=20),
        )
    return _client


async def close_client():
    """Close the shared HTTP client. Call on app shutdown."""
    global _client
    if _client and not _client.is_closed:
        await _client.aclose()
        _client = None


# ── Provider config ──────────────────────────────────────────────────

def _get_provider_config(provider: Optional[str] = None) -> tuple[str, str, str]:
    """Returns (base_url, api_key, default_model) for a provider."""
    settings = get_settings()
    p = (provider or get_flags().llm_provider).lower()

    if p == "gemini":
        return (
            "https://generativelanguage.googleapis.com/v1beta/openai",
            settings.gemini_api_key,
            settings.default_llm_model,
        )
    # openai
    return settings.openai_base_url, settings.openai_api_key, settings.default_llm_model


# ── Retry logic ──────────────────────────────────────────────────────

RETRYABLE_STATUS = {429, 500, 502, 503, 504}
BASE_DELAY = 1.0
MAX_DELAY = 16.0


async def _retry_request(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    max_retries: int = 0,
    **kwargs,
) -> httpx.Response:
    """Execute request with exponential backoff + jitter. max_retries=0 means one attempt."""
    last_exc: Optional[Exception] = None

    for attempt in range(max_retries + 1):
        try:
            resp = await client.request(method, url, **kwargs)

            if resp.status_code not in RETRYABLE_STATUS:
                if resp.status_code >= 400:
                    logger.error("LLM API error %d: %s", resp.status_code, resp.text[:500])
                resp.raise_for_status()
                return resp

            last_exc = httpx.HTTPStatusError(
                f"{resp.status_code}", request=resp.request, response=resp
            )
            if attempt >= max_retries:
                break
            retry_after = resp.headers.get("retry-after")
            delay = float(retry_after) if retry_after else min(
                MAX_DELAY, BASE_DELAY * (2 ** attempt) + random.uniform(0, 1)
            )
            logger.warning(
                "LLM %d (attempt %d/%d), retrying in %.1fs",
                resp.status_code, attempt + 1, max_retries + 1, delay,
            )
            await asyncio.sleep(delay)

        except httpx.TimeoutException as e:
            last_exc = e
            if attempt >= max_retries:
                break
            delay = min(MAX_DELAY, BASE_DELAY * (2 ** attempt) + random.uniform(0, 1))
            logger.warning(
                "LLM timeout (attempt %d/%d), retrying in %.1fs",
                attempt + 1, max_retries + 1, delay,
            )
            await asyncio.sleep(delay)

    raise last_exc or RuntimeError("LLM request failed after retries")


# ── Completion ───────────────────────────────────────────────────────

async def _complete(messages: list[dict], api_key: str, base_url: str, model: str) -> str:
    settings = get_settings()
    payload: dict[str, Any] = {
        "model": model,
        "messages": messages,
        "temperature": settings.default_llm_temperature,
        "max_tokens": settings.default_llm_max_tokens,
    }
    url = f"{base_url.rstrip('/')}/chat/completions"
    headers = {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json",
    }

    resp = await _retry_request(
        _get_client(), "POST", url,
        max_retries=settings.llm_max_retries,
        json=payload, headers=headers,
    )
    data = resp.json()
    usage = data.get("usage", {})
    logger.debug(
        "LLM usage: in=%d out=%d tokens | model=%s",
        usage.get("prompt_tokens", 0), usage.get("completion_tokens", 0), model,
    )
    choices = data.get("choices") or [{}]
    return choices[0].get("message", {}).get("content") or ""


async def generate(template: str, payload: Optional[dict[str, Any]] = None) -> str:
    """
    Render `template` with `payload` and return the model's raw text.

    Returns "" when unconfigured, on any provider error, or on timeout.
    Raises UnknownTemplateError for an unregistered template.
    """
    prompt = get_template(template)
    payload = payload or {}
    settings = get_settings()
    provider = get_flags().llm_provider.lower()
    base_url, api_key, model = _get_provider_config(provider)

    if not api_key:
        logger.warning("No API key for LLM provider '%s', '%s' returns empty", provider, template)
        return ""

    messages = [
        {"role": "system", "content": prompt.system},
        {"role": "user", "content": prompt.user(payload)},
    ]

    start = time.monotonic()
    try:
        text = await with_timeout(
            _complete(messages, api_key, base_url, model),
            settings.llm_timeout_seconds,
            f"LLM '{template}'",
        )
    except Exception as e:
        logger.error(
            "LLM '%s' failed after %.1fs: %s",
            template, time.monotonic() - start, e,
        )
        return ""

    logger.info(
        "LLM %s: %dms | %d chars | model=%s",
        template, int((time.monotonic() - start) * 1000), len(text), model,
    )
    return text
