"""Application settings loaded from environment / .env file."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="DOCSHELF_",
        extra="ignore",
    )

    # ── Database ──────────────────────────────────────────
    database_url: str = "sqlite+aiosqlite:///./docshelf.db"

    # ── Uploads ───────────────────────────────────────────
    max_upload_bytes: int = 10 * 1024 * 1024  # 10 MB

    # ── Ranking offload ───────────────────────────────────
    ranking_offload_enabled: bool = True
    ranking_offload_timeout_ms: int = 1200
    ranking_offload_min_candidates: int = 6

    # ── Context assembly ──────────────────────────────────
    default_reserve_tokens: int = 300
    context_cache_ttl_seconds: float = 300.0

    # ── CORS ──────────────────────────────────────────────
    allowed_origins: str = "http://localhost:3000,http://127.0.0.1:3000"


@lru_cache
def get_settings() -> Settings:
    return Settings()
