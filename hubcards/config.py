from __future__ import annotations

from functools import lru_cache
from typing import Optional
from urllib.parse import urlparse

from dotenv import load_dotenv
from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load env before anything else
load_dotenv()

DEFAULT_REDIRECT_URI = "https://txfsspgkakryggiodgic.supabase.co/functions/v1/oauth-callback-hubspot"


class Settings(BaseSettings):
    """Process-wide configuration read from the environment."""

    model_config = SettingsConfigDict(
        extra="ignore",
        env_ignore_empty=True,
        frozen=True,
    )

    database_url: str = "sqlite+aiosqlite:///:memory:"

    # Default HubSpot app credentials, used when a client account has none
    hubspot_client_id: Optional[str] = None
    # CLIENT_SECRET is the older name some deployments still set
    hubspot_client_secret: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("hubspot_client_secret", "client_secret"),
    )
    hubspot_redirect_uri: str = DEFAULT_REDIRECT_URI
    hubspot_scopes: str = "crm.objects.contacts.read"
    hubspot_authorize_url: str = "https://app.hubspot.com/oauth/authorize"
    hubspot_api_base: str = "https://api.hubapi.com"
    thank_you_url: str = "https://hsmini.netlify.app/thank-you"

    # Encryption of per-account app credentials
    encryption_key: Optional[str] = None
    secret_codec: str = "fernet"  # 'fernet' or 'supabase'
    supabase_url: Optional[str] = None
    supabase_service_role_key: Optional[str] = None

    http_timeout_seconds: float = 30.0
    log_level: str = "INFO"

    @field_validator("hubspot_api_base")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @field_validator("secret_codec")
    @classmethod
    def _lower(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator("log_level")
    @classmethod
    def _upper(cls, value: str) -> str:
        return value.strip().upper()

    @property
    def hubspot_token_url(self) -> str:
        return f"{self.hubspot_api_base}/oauth/v1/token"

    @property
    def hubspot_api_host(self) -> str:
        return urlparse(self.hubspot_api_base).hostname or ""

    @property
    def has_default_app_credentials(self) -> bool:
        return bool(self.hubspot_client_id and self.hubspot_client_secret)


@lru_cache
def get_settings() -> Settings:
    """FastAPI dependency returning the cached process settings."""
    return Settings()
