from __future__ import annotations

import os
from pathlib import Path
from typing import List, Optional

from pydantic import computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_prefix="TK_", case_sensitive=False)
    """Application runtime configuration."""

    app_name: str = "Daily Time Keeper"
    environment: str = "development"
    host: str = os.getenv("TK_HOST", "127.0.0.1")
    port: int = int(os.getenv("TK_PORT", "8080"))
    log_level: str = os.getenv("TK_LOG_LEVEL", "INFO")

    timezone: Optional[str] = os.getenv("TK_TIMEZONE") or None

    storage_backend: str = os.getenv("TK_STORAGE_BACKEND", "sqlite")
    sqlite_path: Path = Path(os.getenv("TK_SQLITE_PATH", "./data/timekeeper.db"))
    json_path: Path = Path(os.getenv("TK_JSON_PATH", "./data/timekeeper.json"))

    default_rounding_enabled: bool = os.getenv("TK_DEFAULT_ROUNDING_ENABLED", "true").lower() == "true"
    default_rounding_granularity: float = float(os.getenv("TK_DEFAULT_ROUNDING_GRANULARITY", "0.25"))

    cors_origins: str = os.getenv("TK_CORS_ORIGINS", "http://127.0.0.1:5173,http://localhost:5173")

    @field_validator("storage_backend")
    @classmethod
    def _check_backend(cls, value: str) -> str:
        value = value.strip().lower()
        if value not in {"sqlite", "json"}:
            raise ValueError(f"Unsupported storage backend: {value}")
        return value

    @field_validator("default_rounding_granularity")
    @classmethod
    def _check_granularity(cls, value: float) -> float:
        if int(60 * value) < 1:
            raise ValueError("Rounding granularity must cover at least one minute")
        return value

    @computed_field
    def cors_origin_list(self) -> List[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


settings = Settings()
