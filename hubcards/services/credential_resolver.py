from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from hubcards.config import Settings
from hubcards.models.client_account import ClientAccount
from hubcards.services.credential_store import CredentialStore
from hubcards.services.errors import ConfigMissing
from hubcards.services.secret_codec import SecretCodec

logger = logging.getLogger(__name__)

SOURCE_ACCOUNT = "account"
SOURCE_DEFAULT = "default"


@dataclass(frozen=True)
class AppCredentials:
    client_id: str
    client_secret: str
    source: str  # 'account' or 'default'


class AppCredentialResolver:
    """Decides which HubSpot app (client id/secret) a given account uses.

    Accounts may carry their own encrypted app credentials; everything else
    falls back to the process-wide default app from settings.
    """

    def __init__(self, store: CredentialStore, settings: Settings, codec: Optional[SecretCodec]):
        self.store = store
        self.settings = settings
        self.codec = codec

    async def for_client(self, internal_id: Optional[str]) -> AppCredentials:
        record = await self.store.get_by_id(internal_id) if internal_id else None
        return await self.for_record(record)

    async def for_record(self, record: Optional[ClientAccount]) -> AppCredentials:
        if record is not None and record.has_custom_app:
            if self.codec is None:
                raise ConfigMissing(
                    f"Client account {record.id} has its own HubSpot app but ENCRYPTION_KEY is not set"
                )
            return AppCredentials(
                client_id=await self.codec.decrypt(record.hubspot_client_id),
                client_secret=await self.codec.decrypt(record.hubspot_client_secret),
                source=SOURCE_ACCOUNT,
            )
        return self.default()

    def default(self) -> AppCredentials:
        if not self.settings.has_default_app_credentials:
            raise ConfigMissing(
                "HubSpot API credentials (HUBSPOT_CLIENT_ID, HUBSPOT_CLIENT_SECRET) not set in environment variables."
            )
        return AppCredentials(
            client_id=self.settings.hubspot_client_id,
            client_secret=self.settings.hubspot_client_secret,
            source=SOURCE_DEFAULT,
        )
