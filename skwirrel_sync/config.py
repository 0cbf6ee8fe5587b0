"""
Application settings loaded from environment variables.

Uses pydantic-settings to validate and type-cast env vars at startup.
"""

from functools import lru_cache
from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Centralised application configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Application ───────────────────────────────────────────────────
    app_name: str = "SKWIRREL_PIM_SYNC"
    app_env: Literal["development", "staging", "production"] = "development"
    app_debug: bool = False
    app_version: str = "1.0.0"

    # ── Server ────────────────────────────────────────────────────────
    host: str = "0.0.0.0"
    port: int = 8000

    # ── Skwirrel PIM JSON-RPC endpoint ────────────────────────────────
    pim_endpoint: str = "https://example.skwirrel.eu/jsonrpc"
    pim_auth_type: Literal["bearer", "token"] = "bearer"
    pim_auth_token: str = ""
    pim_api_version: str = "2"
    pim_timeout: int = 30
    pim_batch_size: int = Field(default=100, ge=1, le=500)
    pim_include_languages: str = "nl-NL,nl"

    # ── Sync toggles ──────────────────────────────────────────────────
    sync_attributes: bool = True
    sync_trade_items: bool = False
    sync_translations: bool = False
    sync_grouped_products: bool = False
    custom_field_map: list[dict[str, Any]] = Field(default_factory=list)

    # ── Projection ────────────────────────────────────────────────────
    field_namespace: str = "skwirrel"
    default_currency: str = "EUR"
    attribute_language: str = "nl"
    auto_field_declarations: bool = False

    # ── Logging ───────────────────────────────────────────────────────
    log_level: str = "INFO"
    log_format: Literal["json", "console"] = "json"

    # ── CORS ──────────────────────────────────────────────────────────
    allowed_origins: str = "http://localhost:3000,http://localhost:8000"

    @field_validator("pim_endpoint")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @field_validator("pim_timeout")
    @classmethod
    def _clamp_timeout(cls, value: int) -> int:
        return max(5, min(120, value))

    @property
    def cors_origins(self) -> list[str]:
        """Parse comma-separated origins into a list."""
        return [o.strip() for o in self.allowed_origins.split(",") if o.strip()]

    @property
    def include_languages(self) -> list[str]:
        return [
            lang.strip()
            for lang in self.pim_include_languages.split(",")
            if lang.strip()
        ]

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"


@lru_cache
def get_settings() -> Settings:
    """
    Cached singleton — settings are read once and reused.
    """
    return Settings()
