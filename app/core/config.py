# app/core/config.py
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Centralized application settings loaded from environment.

    Required env vars (.env):
      - DATABASE_URL (Postgres connection string)
      - JWT_SECRET (signing secret shared with the auth service)
      - STRIPE_SECRET_KEY
      - STRIPE_WEBHOOK_SECRET (signing secret of the webhook endpoint)

    Optional:
      - STRIPE_CURRENCY, STRIPE_TIMEOUT_SECONDS, STRIPE_MAX_NETWORK_RETRIES
      - FRONTEND_URL (used to build success/cancel redirect URLs)
    """

    PROJECT_NAME: str = "Educomm Backend"
    API_V1_STR: str = "/api/v1"

    # DB config
    DATABASE_URL: str

    # JWT verification (backend-side)
    JWT_SECRET: str
    JWT_ALG: str = "HS256"

    # Stripe
    STRIPE_SECRET_KEY: str
    STRIPE_WEBHOOK_SECRET: str
    STRIPE_CURRENCY: str = "inr"
    STRIPE_TIMEOUT_SECONDS: int = 10
    STRIPE_MAX_NETWORK_RETRIES: int = 2

    FRONTEND_URL: str = "http://localhost:5173"

    CORS_ORIGINS: list[str] = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "http://localhost:3000",
    ]

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings loader.
    Ensures we don't re-parse .env on every import / request.
    """
    return Settings()
