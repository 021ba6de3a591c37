from __future__ import annotations

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    SHOPIFY_APP_API_KEY: str
    SHOPIFY_APP_API_SECRET: str
    SHOPIFY_APP_SCOPES: str
    SHOPIFY_INTERNAL_API_TOKEN: str
    SCANVENTORY_DB_URL: str = "sqlite:///./scanventory.db"
    SHOPIFY_ADMIN_API_VERSION: str = "2025-10"
    SHOPIFY_REQUEST_TIMEOUT_SECONDS: float = 20.0

    SHOPIFY_RETRY_MAX_ATTEMPTS: int = Field(default=3, ge=1)
    SHOPIFY_RETRY_INITIAL_DELAY_MS: int = Field(default=1000, ge=0)

    LOG_LEVEL: str = "INFO"

    @field_validator("SHOPIFY_APP_SCOPES")
    @classmethod
    def validate_scopes(cls, value: str) -> str:
        scopes = [scope.strip() for scope in value.split(",") if scope.strip()]
        if not scopes:
            raise ValueError("SHOPIFY_APP_SCOPES must include at least one scope")
        return ",".join(scopes)

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unsupported LOG_LEVEL: {value}")
        return normalized

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()
