# app/core/config.py
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Centralized application settings loaded from environment.

    Required env vars (.env):
      - DATABASE_URL (Supabase Postgres connection string)
      - SUPABASE_JWT_SECRET (JWT signing secret from Supabase project settings)

    Payment gateway:
      - PAYMENT_GATEWAY: "toss" (default) or "fake" (dev/test only)
      - TOSS_PAYMENTS_SECRET_KEY: required when PAYMENT_GATEWAY=toss.
        Missing key is a server configuration error, never shown to buyers.
    """

    PROJECT_NAME: str = "Storefront Checkout API"
    API_V1_STR: str = "/api/v1"

    # Supabase / DB config
    DATABASE_URL: str

    # JWT verification (backend-side)
    SUPABASE_JWT_SECRET: str
    SUPABASE_JWT_ALG: str = "HS256"

    # Payment gateway
    PAYMENT_GATEWAY: str = "toss"
    PAYMENT_GATEWAY_URL: str = "https://api.tosspayments.com/v1"
    TOSS_PAYMENTS_SECRET_KEY: str | None = None
    PAYMENT_GATEWAY_TIMEOUT_SECONDS: float = 10.0

    # Decrement stock at checkout, release it on cancellation
    STOCK_RESERVATION_ENABLED: bool = True

    # Logging
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str | None = None

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings loader.
    Ensures we don't re-parse .env on every import / request.
    """
    return Settings()
