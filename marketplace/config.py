# marketplace/config.py
from functools import lru_cache
from typing import Annotated, Any, List, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

MOCK_SECRET_KEY = "sk_test_mock"


class Settings(BaseSettings):
    """Everything comes from env (Railway) or a local .env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Postgres (Supabase) – async SQLAlchemy URL, e.g. postgresql+asyncpg://...
    supabase_db_url: Optional[str] = None
    auto_create_schema: bool = False

    # Supabase auth
    supabase_url: Optional[str] = None
    supabase_service_role_key: Optional[str] = None
    supabase_jwt_secret: Optional[str] = None  # HS256 secret

    # Stripe
    stripe_secret_key: Optional[str] = None
    stripe_webhook_secret: Optional[str] = None
    stripe_publishable_key: Optional[str] = None
    stripe_api_base: Optional[str] = None
    stripe_mock_mode: bool = False
    stripe_currency: str = "gbp"
    stripe_price_credits_10: Optional[str] = None
    stripe_price_credits_25: Optional[str] = None
    stripe_price_credits_50: Optional[str] = None
    stripe_price_credits_100: Optional[str] = None

    site_url: str = "http://localhost:3000"
    cors_origins: Annotated[List[str], NoDecode] = ["*"]  # comma-separated in env
    port: int = 8000

    @field_validator("cors_origins", mode="before")
    @classmethod
    def split_origins(cls, v: Any) -> Any:
        if isinstance(v, str):
            return [o.strip() for o in v.split(",") if o.strip()]
        return v

    @property
    def mock_payments(self) -> bool:
        return self.stripe_mock_mode or self.stripe_secret_key == MOCK_SECRET_KEY or bool(self.stripe_api_base)

    @property
    def jwt_issuer(self) -> Optional[str]:
        if not self.supabase_url:
            return None
        return f"{self.supabase_url.rstrip('/')}/auth/v1"

    def price_override(self, package_id: str) -> Optional[str]:
        return getattr(self, f"stripe_price_{package_id}", None)


@lru_cache
def get_settings() -> Settings:
    return Settings()
