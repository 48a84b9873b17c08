from __future__ import annotations

import datetime as dt
import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional
from urllib.parse import unquote, urlencode

from hubcards.config import Settings
from hubcards.models.client_account import ClientAccount
from hubcards.services.credential_resolver import AppCredentialResolver, AppCredentials
from hubcards.services.credential_store import CredentialStore
from hubcards.services.errors import BadRequest
from hubcards.services.secret_codec import SecretCodec
from hubcards.services.token_service import HubSpotOAuthClient, utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InstallState:
    """Decoded OAuth ``state`` round-tripped through HubSpot."""

    client_id: str
    user_id: Optional[str] = None
    hub_id: Optional[str] = None

    @classmethod
    def decode(cls, raw: Optional[str]) -> "InstallState":
        if not raw:
            raise BadRequest("Authorization code or state parameter missing.")
        try:
            payload = json.loads(unquote(raw))
        except ValueError as exc:
            raise BadRequest(f"Invalid state parameter format: {exc}") from exc

        if not isinstance(payload, dict):
            raise BadRequest("Invalid state parameter format: expected a JSON object")
        client_id = payload.get("client_id")
        if not isinstance(client_id, str) or not client_id.strip():
            raise BadRequest("Client ID missing from state parameter.")

        user_id = payload.get("user_id")
        hub_id = payload.get("hub_id")
        return cls(
            client_id=client_id,
            user_id=str(user_id) if user_id else None,
            hub_id=str(hub_id) if hub_id else None,
        )


def default_state(client_id: str) -> str:
    return json.dumps({"client_id": client_id}, separators=(",", ":"))


class OAuthFlowService:
    """HubSpot app installation: authorize redirect and code callback.

    No state is persisted between the two steps; HubSpot carries it in the
    ``code``/``state`` round trip.
    """

    def __init__(
        self,
        store: CredentialStore,
        apps: AppCredentialResolver,
        oauth: HubSpotOAuthClient,
        settings: Settings,
        codec: Optional[SecretCodec] = None,
        clock: Callable[[], dt.datetime] = utcnow,
    ):
        self.store = store
        self.apps = apps
        self.oauth = oauth
        self.settings = settings
        self.codec = codec
        self.clock = clock

    async def build_install_url(self, client_id: Optional[str], state: Optional[str] = None) -> str:
        """Return the HubSpot authorize URL for the given internal client id."""
        if not client_id:
            raise BadRequest("client_id is required")

        app = await self.apps.for_client(client_id)
        params = {
            "client_id": app.client_id,
            "scope": self.settings.hubspot_scopes,
            "redirect_uri": self.settings.hubspot_redirect_uri,
            # Caller-supplied state goes through untouched
            "state": state if state else default_state(client_id),
        }
        logger.info(f"Redirecting client {client_id} to HubSpot authorization ({app.source} app)")
        return f"{self.settings.hubspot_authorize_url}?{urlencode(params)}"

    async def complete_authorization(self, code: Optional[str], state: Optional[str]) -> ClientAccount:
        """Exchange ``code`` for tokens, discover the hub and persist the account."""
        if not code or not state:
            raise BadRequest("Authorization code or state parameter missing.")

        install = InstallState.decode(state)
        app = await self.apps.for_client(install.client_id)

        grant = await self.oauth.exchange_code(code, app)
        hub_id = await self.oauth.fetch_hub_id(grant.access_token)
        if install.hub_id and install.hub_id != hub_id:
            logger.warning(
                f"Client {install.client_id} re-authorized hub {hub_id}, state referenced hub {install.hub_id}"
            )

        encrypted = await self._encrypt_app(app)
        account = await self.store.upsert_authorization(
            internal_id=install.client_id,
            user_id=install.user_id,
            hub_id=hub_id,
            access_token=grant.access_token,
            refresh_token=grant.refresh_token,
            expires_at=grant.expires_at(self.clock()),
            encrypted_client_id=encrypted.get("client_id"),
            encrypted_client_secret=encrypted.get("client_secret"),
        )
        logger.info(f"Stored HubSpot tokens for client {account.id} (hub {hub_id})")
        return account

    async def _encrypt_app(self, app: AppCredentials) -> Dict[str, Any]:
        if self.codec is None:
            logger.warning("ENCRYPTION_KEY not set; app credentials used for this install are not stored")
            return {}
        return {
            "client_id": await self.codec.encrypt(app.client_id),
            "client_secret": await self.codec.encrypt(app.client_secret),
        }
