"""
Central feature flags. One file controls every optional behavior.

Set via environment variables (prefix FF_) or .env file.
When a flag is OFF, the system skips that behavior. Nothing crashes.
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

    # ── Realtime ─────────────────────────────────────────────────────
    use_redis: bool = Field(default=False, alias="FF_USE_REDIS")
    # ON  → Redis pub/sub for document status events. Needs REDIS_URL.
    # OFF → Notifications silently skipped. Nothing breaks.

    # ── Search ───────────────────────────────────────────────────────
    use_tie_break: bool = Field(default=True, alias="FF_USE_TIE_BREAK")
    # ON  → Top-score ties are resolved with one extra oracle call.
    # OFF → Ties keep rerank + similarity order.

    filter_by_doc_type: bool = Field(default=False, alias="FF_FILTER_BY_DOC_TYPE")
    # ON  → Results whose docType differs from the effective filter are dropped.
    # OFF → The inferred/explicit docType is reported but not enforced.


@lru_cache
def get_flags() -> FeatureFlags:
    return FeatureFlags()
