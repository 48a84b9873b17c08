from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, field_validator


class ClientCredentialsSave(BaseModel):
    id: str
    user_id: str
    hub_id: str
    hubspot_client_id: Optional[str] = None
    hubspot_client_secret: Optional[str] = None

    @field_validator("hub_id", mode="before")
    @classmethod
    def _hub_id_as_string(cls, value):
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("id", "user_id", "hub_id")
    @classmethod
    def _required(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be empty")
        return value


class ClientAccountOut(BaseModel):
    """Public view of a client account; tokens and secrets are never exposed."""

    id: str
    user_id: Optional[str] = None
    hub_id: Optional[str] = None
    integration_source: Optional[str] = None
    connected: bool = False
    has_custom_app: bool = False
    expires_at: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_account(cls, account) -> "ClientAccountOut":
        return cls(
            id=account.id,
            user_id=account.user_id,
            hub_id=account.hub_id,
            integration_source=account.integration_source,
            connected=bool(account.access_token),
            has_custom_app=account.has_custom_app,
            expires_at=account.expires_at.isoformat() if account.expires_at else None,
            created_at=account.created_at.isoformat() if account.created_at else None,
            updated_at=account.updated_at.isoformat() if account.updated_at else None,
        )
