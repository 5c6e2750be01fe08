"""
wodnow/config.py — Pydantic BaseSettings configuration
Resolved once at startup and injected into every component.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Any, Optional

from pydantic import ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    # ── Application ────────────────────────────────────────────────────────────
    environment: str = "development"
    log_level: str = "INFO"

    # ── Storage ────────────────────────────────────────────────────────────────
    database_url: str = "sqlite+aiosqlite:///./wodnow.db"
    database_pool_size: int = 20
    auto_create_schema: bool = True

    # ── Admin authentication ───────────────────────────────────────────────────
    # Unset means every admin request is rejected.
    admin_api_key: Optional[str] = None

    # ── Abuse protection ───────────────────────────────────────────────────────
    api_public_rate_limit_per_minute: int = 60
    api_admin_rate_limit_per_minute: int = 12
    api_admin_auth_failure_threshold: int = 5
    api_admin_lockout_base_seconds: int = 30
    api_admin_lockout_max_seconds: int = 900
    api_admin_request_max_bytes: int = 64 * 1024
    api_max_url_length: int = 2048

    # ── Request timeouts (milliseconds) ───────────────────────────────────────
    api_public_request_timeout_ms: int = 1500
    api_admin_request_timeout_ms: int = 2500

    # ── Random workout caching ─────────────────────────────────────────────────
    random_wod_cache_ttl_seconds: int = 30
    random_wod_cache_max_keys: int = 200
    # Cache-Control values for shared caches in front of the API
    random_wod_edge_cache_ttl_seconds: int = 30
    random_wod_edge_cache_swr_seconds: int = 120

    @field_validator("environment")
    @classmethod
    def validate_env(cls, v: str) -> str:
        allowed = {"development", "production", "testing"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v

    @field_validator(
        "database_pool_size",
        "api_public_rate_limit_per_minute",
        "api_admin_rate_limit_per_minute",
        "api_admin_auth_failure_threshold",
        "api_admin_lockout_base_seconds",
        "api_admin_lockout_max_seconds",
        "api_admin_request_max_bytes",
        "api_max_url_length",
        "api_public_request_timeout_ms",
        "api_admin_request_timeout_ms",
        "random_wod_cache_ttl_seconds",
        "random_wod_cache_max_keys",
        "random_wod_edge_cache_ttl_seconds",
        "random_wod_edge_cache_swr_seconds",
        mode="before",
    )
    @classmethod
    def positive_int_or_default(cls, v: Any, info: ValidationInfo) -> Any:
        """Unparseable or non-positive values fall back to the field default."""
        default = cls.model_fields[info.field_name].default
        if isinstance(v, bool):
            return default
        if isinstance(v, int):
            return v if v > 0 else default
        try:
            value = int(str(v).strip())
        except (TypeError, ValueError):
            return default
        return value if value > 0 else default

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def is_development(self) -> bool:
        return self.environment == "development"


@lru_cache()
def get_settings() -> Settings:
    """Return cached Settings instance. Use this everywhere."""
    return Settings()
