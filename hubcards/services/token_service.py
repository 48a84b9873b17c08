from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import httpx

from hubcards.config import Settings
from hubcards.models.client_account import ClientAccount
from hubcards.services.credential_resolver import AppCredentialResolver, AppCredentials
from hubcards.services.credential_store import CredentialStore
from hubcards.services.errors import (
    NotFound,
    RefreshFailed,
    TenantDiscoveryFailed,
    TokenExchangeFailed,
    describe_error_body,
)

logger = logging.getLogger(__name__)

FORM_HEADERS = {"Content-Type": "application/x-www-form-urlencoded"}


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def as_utc(value: dt.datetime) -> dt.datetime:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=dt.timezone.utc)
    return value


@dataclass(frozen=True)
class TokenGrant:
    access_token: str
    refresh_token: Optional[str]
    expires_in: int

    def expires_at(self, now: dt.datetime) -> dt.datetime:
        return now + dt.timedelta(seconds=self.expires_in)


class HubSpotOAuthClient:
    """Thin wrapper around HubSpot's OAuth token and introspection endpoints."""

    def __init__(self, http: httpx.AsyncClient, settings: Settings):
        self.http = http
        self.settings = settings

    async def exchange_code(self, code: str, app: AppCredentials) -> TokenGrant:
        """Exchange a temporary OAuth ``code`` for an access/refresh token pair."""
        data = {
            "grant_type": "authorization_code",
            "client_id": app.client_id,
            "client_secret": app.client_secret,
            "redirect_uri": self.settings.hubspot_redirect_uri,
            "code": code,
        }
        payload = await self._post_token(data, TokenExchangeFailed, "Failed to exchange code for tokens")
        return self._grant(payload, TokenExchangeFailed, "Failed to exchange code for tokens")

    async def refresh(self, refresh_token: str, app: AppCredentials) -> TokenGrant:
        # redirect_uri must match the one registered at install time
        data = {
            "grant_type": "refresh_token",
            "client_id": app.client_id,
            "client_secret": app.client_secret,
            "redirect_uri": self.settings.hubspot_redirect_uri,
            "refresh_token": refresh_token,
        }
        payload = await self._post_token(data, RefreshFailed, "Failed to refresh access token")
        return self._grant(payload, RefreshFailed, "Failed to refresh access token")

    async def fetch_hub_id(self, access_token: str) -> str:
        """Ask HubSpot which portal the token belongs to."""
        url = f"{self.settings.hubspot_api_base}/oauth/v1/access-tokens/{access_token}"
        try:
            response = await self.http.get(url)
        except httpx.HTTPError as exc:
            raise TenantDiscoveryFailed(f"Failed to look up HubSpot account for token: {exc}") from exc

        if response.status_code != 200:
            raise TenantDiscoveryFailed(
                f"Failed to look up HubSpot account for token: {response.status_code} - {response.text}"
            )
        try:
            hub_id = response.json().get("hub_id")
        except ValueError:
            hub_id = None
        if not hub_id:
            raise TenantDiscoveryFailed("HubSpot token information did not include a hub_id")
        return str(hub_id)

    async def _post_token(self, data: Dict[str, str], error_cls: type, prefix: str) -> Dict[str, Any]:
        try:
            response = await self.http.post(self.settings.hubspot_token_url, data=data, headers=FORM_HEADERS)
        except httpx.HTTPError as exc:
            raise error_cls(f"{prefix}: {exc}") from exc

        if response.is_success:
            try:
                return response.json()
            except ValueError as exc:
                raise error_cls(f"{prefix}: token endpoint returned invalid JSON") from exc

        try:
            detail = describe_error_body(response.json())
        except ValueError:
            detail = response.text
        logger.error(f"HubSpot token endpoint rejected {data['grant_type']} grant: {response.status_code} {detail}")
        raise error_cls(f"{prefix}: {detail}")

    @staticmethod
    def _grant(payload: Dict[str, Any], error_cls: type, prefix: str) -> TokenGrant:
        access_token = payload.get("access_token")
        if not access_token:
            raise error_cls(f"{prefix}: response did not include an access token")
        try:
            expires_in = int(payload.get("expires_in", 0))
        except (TypeError, ValueError):
            raise error_cls(f"{prefix}: invalid expires_in {payload.get('expires_in')!r}")
        return TokenGrant(
            access_token=access_token,
            refresh_token=payload.get("refresh_token"),
            expires_in=expires_in,
        )


class TokenResolver:
    """Returns a currently valid access token for a connected account.

    Every call re-reads the store; an expired token is refreshed once and the
    new pair is persisted before it is returned. Concurrent refreshes of the
    same account are not coordinated.
    """

    def __init__(
        self,
        store: CredentialStore,
        apps: AppCredentialResolver,
        oauth: HubSpotOAuthClient,
        clock: Callable[[], dt.datetime] = utcnow,
    ):
        self.store = store
        self.apps = apps
        self.oauth = oauth
        self.clock = clock

    async def resolve_by_hub_id(self, hub_id: str) -> str:
        account = await self.store.get_by_hub_id(hub_id)
        if account is None:
            raise NotFound(f"HubSpot integration not found for hub_id: {hub_id}")
        return await self.get_valid_access_token(account)

    async def resolve_by_client_id(self, internal_id: str) -> str:
        account = await self.store.get_by_id(internal_id)
        if account is None:
            raise NotFound("HubSpot integration not found for this client_id. Please install the app.")
        return await self.get_valid_access_token(account)

    async def get_valid_access_token(self, account: ClientAccount) -> str:
        if not account.access_token:
            raise NotFound(f"Client account {account.id} has not been connected to HubSpot yet")

        now = self.clock()
        if account.expires_at is not None and now < as_utc(account.expires_at):
            return account.access_token

        if not account.refresh_token:
            raise RefreshFailed(f"Access token for client account {account.id} expired and no refresh token is stored")

        logger.info(f"Access token expired for client account {account.id}, refreshing")
        app = await self.apps.for_record(account)
        grant = await self.oauth.refresh(account.refresh_token, app)

        await self.store.update_tokens(
            account,
            access_token=grant.access_token,
            # HubSpot does not always rotate the refresh token
            refresh_token=grant.refresh_token or account.refresh_token,
            expires_at=grant.expires_at(self.clock()),
        )
        logger.info(f"Successfully refreshed access token for client account {account.id}")
        return grant.access_token
