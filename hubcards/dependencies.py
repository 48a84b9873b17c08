from __future__ import annotations

from typing import AsyncGenerator, Optional

import httpx
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from hubcards.config import Settings, get_settings
from hubcards.db import get_db
from hubcards.services.action_service import ActionDispatcher, ActionService
from hubcards.services.credential_resolver import AppCredentialResolver
from hubcards.services.credential_store import CredentialStore
from hubcards.services.oauth_service import OAuthFlowService
from hubcards.services.secret_codec import SecretCodec, create_secret_codec
from hubcards.services.token_service import HubSpotOAuthClient, TokenResolver
from hubcards.services.webhook_service import WebhookService


async def get_http_client(
    settings: Settings = Depends(get_settings),
) -> AsyncGenerator[httpx.AsyncClient, None]:
    """One outbound HTTP client per request; no retries."""
    async with httpx.AsyncClient(timeout=settings.http_timeout_seconds) as client:
        yield client


def get_secret_codec(settings: Settings = Depends(get_settings)) -> Optional[SecretCodec]:
    return create_secret_codec(settings)


def get_credential_store(session: AsyncSession = Depends(get_db)) -> CredentialStore:
    return CredentialStore(session)


def get_app_resolver(
    store: CredentialStore = Depends(get_credential_store),
    settings: Settings = Depends(get_settings),
    codec: Optional[SecretCodec] = Depends(get_secret_codec),
) -> AppCredentialResolver:
    return AppCredentialResolver(store, settings, codec)


def get_oauth_client(
    http: httpx.AsyncClient = Depends(get_http_client),
    settings: Settings = Depends(get_settings),
) -> HubSpotOAuthClient:
    return HubSpotOAuthClient(http, settings)


def get_token_resolver(
    store: CredentialStore = Depends(get_credential_store),
    apps: AppCredentialResolver = Depends(get_app_resolver),
    oauth: HubSpotOAuthClient = Depends(get_oauth_client),
) -> TokenResolver:
    return TokenResolver(store, apps, oauth)


def get_oauth_flow(
    store: CredentialStore = Depends(get_credential_store),
    apps: AppCredentialResolver = Depends(get_app_resolver),
    oauth: HubSpotOAuthClient = Depends(get_oauth_client),
    settings: Settings = Depends(get_settings),
    codec: Optional[SecretCodec] = Depends(get_secret_codec),
) -> OAuthFlowService:
    return OAuthFlowService(store, apps, oauth, settings, codec)


def get_action_service(
    session: AsyncSession = Depends(get_db),
    tokens: TokenResolver = Depends(get_token_resolver),
    http: httpx.AsyncClient = Depends(get_http_client),
    settings: Settings = Depends(get_settings),
) -> ActionService:
    return ActionService(session, tokens, http, settings)


def get_webhook_service(
    session: AsyncSession = Depends(get_db),
    http: httpx.AsyncClient = Depends(get_http_client),
    settings: Settings = Depends(get_settings),
) -> WebhookService:
    return WebhookService(session, ActionDispatcher(http, settings))
