from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parents[3]

DEFAULT_USER_AGENT = "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="USAGELENS_",
        env_file=(BASE_DIR / ".env", BASE_DIR / ".env.local"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    provider: Literal["claude", "codex"] = "claude"
    session_cookie: str | None = None
    claude_base_url: str = "https://claude.ai"
    codex_base_url: str = "https://chatgpt.com"
    codex_region_code: str = "US"
    user_agent: str = DEFAULT_USER_AGENT
    usage_fetch_timeout_seconds: float = Field(default=10.0, gt=0)
    usage_fetch_max_retries: int = Field(default=2, ge=0)
    usage_refresh_enabled: bool = True
    usage_refresh_interval_seconds: int = Field(default=300, ge=60)

    @field_validator("provider", mode="before")
    @classmethod
    def _normalize_provider(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("session_cookie", mode="before")
    @classmethod
    def _blank_cookie_is_none(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("codex_region_code")
    @classmethod
    def _upper_region(cls, value: str) -> str:
        return value.strip().upper() or "US"

    @field_validator("claude_base_url", "codex_base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
