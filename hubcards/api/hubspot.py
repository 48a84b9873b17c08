from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx
from fastapi import APIRouter, Depends
from fastapi.responses import RedirectResponse

from hubcards.config import Settings, get_settings
from hubcards.dependencies import get_http_client, get_oauth_flow, get_token_resolver
from hubcards.services.errors import BadRequest
from hubcards.services.hubspot_service import HubSpotService
from hubcards.services.oauth_service import OAuthFlowService
from hubcards.services.token_service import TokenResolver

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/hubspot", tags=["HubSpot"])


@router.get("/install")
async def install_hubspot(
    client_id: Optional[str] = None,
    state: Optional[str] = None,
    flow: OAuthFlowService = Depends(get_oauth_flow),
) -> RedirectResponse:
    """Send the browser to HubSpot's authorization screen."""
    url = await flow.build_install_url(client_id, state)
    return RedirectResponse(url, status_code=302)


@router.get("/oauth-callback")
async def oauth_callback_hubspot(
    code: Optional[str] = None,
    state: Optional[str] = None,
    flow: OAuthFlowService = Depends(get_oauth_flow),
    settings: Settings = Depends(get_settings),
) -> RedirectResponse:
    """Finish the install: store the tokens and show the thank-you page."""
    await flow.complete_authorization(code, state)
    return RedirectResponse(settings.thank_you_url, status_code=302)


@router.get("/contacts")
async def list_hubspot_contacts(
    client_id: Optional[str] = None,
    tokens: TokenResolver = Depends(get_token_resolver),
    http: httpx.AsyncClient = Depends(get_http_client),
    settings: Settings = Depends(get_settings),
) -> Dict[str, Any]:
    """List the contacts of the HubSpot account connected under *client_id*."""
    if not client_id:
        raise BadRequest("client_id is required")

    access_token = await tokens.resolve_by_client_id(client_id)
    service = HubSpotService(http, settings, access_token)
    contacts = await service.list_contacts()
    return {"data": contacts}
