from __future__ import annotations

from sqlalchemy import Column, DateTime, String, Text, UniqueConstraint
from sqlalchemy.sql import func

from hubcards.db import Base


class ClientAccount(Base):
    """A connected HubSpot account and its current OAuth token pair."""

    __tablename__ = "client"
    __table_args__ = (
        UniqueConstraint("user_id", "hub_id", name="uq_client_user_hub"),
    )

    # Caller-chosen internal id, stable across re-authorization
    id = Column(String(255), primary_key=True)
    user_id = Column(String(255), nullable=True, index=True)
    hub_id = Column(String(64), nullable=True, index=True)

    access_token = Column(Text, nullable=True)
    refresh_token = Column(Text, nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)

    # Per-account HubSpot app credentials (encrypted at rest)
    hubspot_client_id = Column(Text, nullable=True)
    hubspot_client_secret = Column(Text, nullable=True)

    integration_source = Column(String(64), nullable=True)  # 'hubspot_integration', 'manual_hubspot_integration'

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    @property
    def has_custom_app(self) -> bool:
        return bool(self.hubspot_client_id and self.hubspot_client_secret)
