"""
Text/vision oracle client (Gemini REST).

Features:
  - Retry with exponential backoff + jitter (handles 429, 500, 502, 503, 504)
  - Reusable client (connection pooling)
  - Multimodal prompts (inline image/PDF bytes)
  - Intent-tagged embeddings (document vs. query), L2-normalized
  - Structured logging
"""

import asyncio
import base64
import enum
import json
import logging
import math
import random
import re
import time
from abc import ABC, abstractmethod
from typing import Any, Optional

import httpx

from ..core.config import get_settings
from ..core.errors import OracleUnavailable

logger = logging.getLogger(__name__)


class EmbeddingIntent(str, enum.Enum):
    DOCUMENT = "RETRIEVAL_DOCUMENT"
    QUERY = "RETRIEVAL_QUERY"


class Oracle(ABC):
    """Capability object for generation and embeddings. Injected, never global."""

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        image: Optional[bytes] = None,
        mime_type: Optional[str] = None,
    ) -> str:
        """Return generated text for a prompt, optionally grounded on file bytes."""
        ...

    @abstractmethod
    async def embed(self, text: str, intent: EmbeddingIntent) -> list[float]:
        """Return a normalized embedding vector for text."""
        ...


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


# ── Retry logic ──────────────────────────────────────────────────────

RETRYABLE_STATUS = {429, 500, 502, 503, 504}
MAX_RETRIES = 3
BASE_DELAY = 1.0
MAX_DELAY = 16.0


async def _retry_request(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    **kwargs,
) -> httpx.Response:
    """Execute request with exponential backoff + jitter."""
    last_exc = None

    for attempt in range(MAX_RETRIES + 1):
        try:
            resp = await client.request(method, url, **kwargs)

            if resp.status_code not in RETRYABLE_STATUS:
                if resp.status_code >= 400:
                    logger.error("Oracle API error %d: %s", resp.status_code, resp.text[:500])
                resp.raise_for_status()
                return resp

            # Retryable error
            retry_after = resp.headers.get("retry-after")
            delay = float(retry_after) if retry_after else min(
                MAX_DELAY, BASE_DELAY * (2 ** attempt) + random.uniform(0, 1)
            )
            logger.warning(
                "Oracle %d (attempt %d/%d) — retrying in %.1fs",
                resp.status_code, attempt + 1, MAX_RETRIES + 1, delay,
            )
            last_exc = httpx.HTTPStatusError(
                f"{resp.status_code}", request=resp.request, response=resp
            )
            if attempt < MAX_RETRIES:
                await asyncio.sleep(delay)

        except httpx.TimeoutException as e:
            delay = min(MAX_DELAY, BASE_DELAY * (2 ** attempt) + random.uniform(0, 1))
            logger.warning(
                "Oracle timeout (attempt %d/%d) — retrying in %.1fs",
                attempt + 1, MAX_RETRIES + 1, delay,
            )
            last_exc = e
            if attempt < MAX_RETRIES:
                await asyncio.sleep(delay)

        except httpx.HTTPStatusError:
            raise  # Non-retryable HTTP errors
        except httpx.TransportError as e:
            last_exc = e
            if attempt < MAX_RETRIES:
                delay = min(MAX_DELAY, BASE_DELAY * (2 ** attempt))
                await asyncio.sleep(delay)

    raise last_exc or RuntimeError("Oracle request failed after retries")


# ── Gemini implementation ────────────────────────────────────────────

class GeminiOracle(Oracle):
    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        embedding_model: Optional[str] = None,
        base_url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        settings = get_settings()
        self.api_key = api_key if api_key is not None else settings.gemini_api_key
        self.model = model or settings.gemini_model
        self.embedding_model = embedding_model or settings.gemini_embedding_model
        self.base_url = (base_url or settings.gemini_base_url).rstrip("/")
        self.max_output_tokens = settings.gemini_max_output_tokens
        self._client = client

    def _http(self) -> httpx.AsyncClient:
        return self._client or _get_client()

    def _headers(self) -> dict:
        if not self.api_key:
            raise OracleUnavailable("No API key for the oracle. Set GEMINI_API_KEY.")
        return {"x-goog-api-key": self.api_key, "Content-Type": "application/json"}

    async def _post(self, path: str, payload: dict) -> dict:
        url = f"{self.base_url}/{path}"
        try:
            resp = await _retry_request(
                self._http(), "POST", url, json=payload, headers=self._headers()
            )
            return resp.json()
        except (httpx.HTTPError, RuntimeError, ValueError) as e:
            if isinstance(e, OracleUnavailable):
                raise
            raise OracleUnavailable(f"Oracle request failed: {e}") from e

    async def generate(
        self,
        prompt: str,
        image: Optional[bytes] = None,
        mime_type: Optional[str] = None,
    ) -> str:
        parts: list[dict] = [{"text": prompt}]
        if image is not None:
            parts.append({
                "inlineData": {
                    "mimeType": mime_type or "application/octet-stream",
                    "data": base64.b64encode(image).decode("utf-8"),
                }
            })

        payload = {
            "contents": [{"parts": parts}],
            "generationConfig": {
                "temperature": 0.0,
                "maxOutputTokens": self.max_output_tokens,
                "thinkingConfig": {"thinkingBudget": 0},
            },
        }

        start = time.monotonic()
        data = await self._post(f"models/{self.model}:generateContent", payload)
        elapsed = time.monotonic() - start

        usage = data.get("usageMetadata", {})
        logger.info(
            "Oracle %s: %dms | in=%d out=%d tokens | model=%s",
            "vision" if image is not None else "text",
            int(elapsed * 1000),
            usage.get("promptTokenCount", 0),
            usage.get("candidatesTokenCount", 0),
            self.model,
        )

        candidates = data.get("candidates") or []
        if not candidates:
            logger.warning("Oracle returned no candidates")
            return ""

        content_parts = (candidates[0].get("content") or {}).get("parts") or []
        text = next((p["text"] for p in content_parts if p.get("text")), "")
        if not text.strip():
            logger.warning("Oracle returned an empty completion")
        return strip_code_fences(text)

    async def embed(self, text: str, intent: EmbeddingIntent) -> list[float]:
        payload = {
            "model": f"models/{self.embedding_model}",
            "content": {"parts": [{"text": text}]},
            "taskType": intent.value,
        }

        start = time.monotonic()
        data = await self._post(f"models/{self.embedding_model}:embedContent", payload)
        values = (data.get("embedding") or {}).get("values") or []
        if not values:
            raise OracleUnavailable("Oracle returned an empty embedding")

        logger.info(
            "Embedding %s: %dms | dims=%d | model=%s",
            intent.name.lower(), int((time.monotonic() - start) * 1000),
            len(values), self.embedding_model,
        )
        return normalize(values)


# ── Helpers ──────────────────────────────────────────────────────────

def normalize(vector: list[float]) -> list[float]:
    """L2-normalize a vector. Zero vectors are returned unchanged."""
    norm = math.sqrt(sum(v * v for v in vector))
    if norm == 0:
        return list(vector)
    return [v / norm for v in vector]


def strip_code_fences(text: str) -> str:
    """Remove a leading ```lang line and a trailing ``` fence."""
    if not text or not text.strip():
        return text
    if text.startswith("```"):
        newline = text.find("\n")
        if newline != -1:
            text = text[newline + 1:]
    fence = text.rfind("```")
    if fence != -1:
        text = text[:fence]
    return text.strip()


def parse_json_response(text: str) -> Optional[Any]:
    """Parse JSON from an oracle response, handling markdown code fences."""
    if not text:
        return None

    text = re.sub(r'```json\s*', '', text)
    text = re.sub(r'```\s*', '', text)
    text = text.strip()

    try:
        return json.loads(text)
    except json.JSONDecodeError:
        # Try to find a JSON object or array embedded in the text
        for pattern in (r'\{.*\}', r'\[.*\]'):
            match = re.search(pattern, text, re.DOTALL)
            if match:
                try:
                    return json.loads(match.group())
                except json.JSONDecodeError:
                    continue
    return None


def as_float(value: Any, default: float = 0.0) -> float:
    """Coerce a JSON number or numeric string to float."""
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        result = float(value)
    elif isinstance(value, str):
        try:
            result = float(value.strip())
        except ValueError:
            return default
    else:
        return default
    return default if math.isnan(result) else result
