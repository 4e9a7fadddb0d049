"""
Central configuration. All API keys and settings in one place.
"""

from functools import lru_cache
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- Environment ---
    env: str = Field(default="development", alias="ENV")
    log_level: str = Field(default="info", alias="LOG_LEVEL")
    debug: bool = Field(default=False, alias="DEBUG")

    # --- Database ---
    database_url: str = Field(
        default="sqlite+aiosqlite:///./data/docsense.db",
        alias="DATABASE_URL",
    )

    # --- File storage ---
    storage_root: str = Field(default="./data/files", alias="STORAGE_ROOT")

    # --- Oracle (Gemini) ---
    gemini_api_key: str = Field(default="", alias="GEMINI_API_KEY")
    gemini_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        alias="GEMINI_BASE_URL",
    )
    gemini_model: str = Field(default="gemini-2.5-flash-lite", alias="GEMINI_MODEL")
    gemini_embedding_model: str = Field(
        default="gemini-embedding-001", alias="GEMINI_EMBEDDING_MODEL"
    )
    gemini_max_output_tokens: int = Field(default=20000, alias="GEMINI_MAX_OUTPUT_TOKENS")

    # --- Vector index (Chroma) ---
    chroma_base_url: str = Field(default="http://localhost:8000", alias="CHROMA_BASE_URL")
    chroma_tenant: str = Field(default="default_tenant", alias="CHROMA_TENANT")
    chroma_database: str = Field(default="default_database", alias="CHROMA_DATABASE")
    chroma_collection: str = Field(default="documents", alias="CHROMA_COLLECTION")

    # --- Limits ---
    max_upload_size_mb: int = Field(default=20, alias="MAX_UPLOAD_SIZE_MB")
    max_files_per_batch: int = Field(default=20, alias="MAX_FILES_PER_BATCH")
    rerank_concurrency: int = Field(default=10, alias="RERANK_CONCURRENCY")
    default_top_k: int = Field(default=50, alias="DEFAULT_TOP_K")
    tie_break_threshold: float = Field(default=0.99, alias="TIE_BREAK_THRESHOLD")
    browse_default_page_size: int = Field(default=50, alias="BROWSE_DEFAULT_PAGE_SIZE")
    browse_max_page_size: int = Field(default=100, alias="BROWSE_MAX_PAGE_SIZE")

    # --- Redis ---
    redis_url: str = Field(default="", alias="REDIS_URL")

    # --- API ---
    api_host: str = Field(default="0.0.0.0", alias="API_HOST")
    api_port: int = Field(default=8080, alias="API_PORT")
    cors_origins: str = Field(default="*", alias="CORS_ORIGINS")


@lru_cache
def get_settings() -> Settings:
    return Settings()
