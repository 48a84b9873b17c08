from __future__ import annotations

import logging
from typing import Any, Dict, Optional
from urllib.parse import urlparse

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from hubcards.config import Settings
from hubcards.models.button import Button
from hubcards.services.errors import BadRequest, DownstreamCallFailed, NotFound
from hubcards.services.hubspot_service import HubSpotService
from hubcards.services.template_engine import (
    METHODS_WITH_BODY,
    SUPPORTED_METHODS,
    RenderedRequest,
    build_action_context,
    map_object_type,
    render_request,
)
from hubcards.services.token_service import TokenResolver

logger = logging.getLogger(__name__)


class ActionDispatcher:
    """Sends a rendered request to its target.

    The HubSpot bearer token is attached only when the target is the HubSpot
    API itself, so third-party webhooks never see it.
    """

    def __init__(self, http: httpx.AsyncClient, settings: Settings):
        self.http = http
        self.settings = settings

    def is_hubspot_target(self, url: str) -> bool:
        host = (urlparse(url).hostname or "").lower()
        return bool(host) and host == self.settings.hubspot_api_host.lower()

    async def dispatch(self, rendered: RenderedRequest, access_token: Optional[str] = None) -> Any:
        headers = {"Content-Type": "application/json"}
        if access_token and self.is_hubspot_target(rendered.url):
            headers["Authorization"] = f"Bearer {access_token}"

        content = None
        if rendered.method in METHODS_WITH_BODY and rendered.body:
            content = rendered.body.encode()

        try:
            response = await self.http.request(rendered.method, rendered.url, headers=headers, content=content)
        except httpx.HTTPError as e:
            logger.error(f"External API call to {rendered.url} failed: {e}")
            raise DownstreamCallFailed(None, str(e)) from e

        if not response.is_success:
            logger.error(f"External API call failed: {response.status_code} - {response.text}")
            raise DownstreamCallFailed(response.status_code, response.text)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text


class ActionService:
    """Executes a button's configured API call with HubSpot data substituted in."""

    def __init__(
        self,
        session: AsyncSession,
        tokens: TokenResolver,
        http: httpx.AsyncClient,
        settings: Settings,
    ):
        self.session = session
        self.tokens = tokens
        self.http = http
        self.settings = settings
        self.dispatcher = ActionDispatcher(http, settings)

    async def get_action(self, action_id: str) -> Button:
        button = await self.session.get(Button, action_id)
        if button is None:
            raise NotFound(f"Button action {action_id} not found")
        if not button.api_url or not button.api_method:
            raise BadRequest(f"Button {action_id} has no API action configured")
        if button.api_method.upper() not in SUPPORTED_METHODS:
            raise BadRequest(f"Unsupported HTTP method '{button.api_method}' on button {action_id}")
        return button

    async def render(
        self,
        button: Button,
        access_token: str,
        tenant_id: str,
        object_id: Optional[str] = None,
        object_type_id: Optional[str] = None,
    ) -> RenderedRequest:
        hubspot_object: Optional[Dict[str, Any]] = None
        object_unavailable = False

        if object_id and object_type_id:
            object_type = map_object_type(object_type_id)
            if object_type is None:
                logger.warning(f"Unsupported objectTypeId: {object_type_id}")
                object_unavailable = True
            else:
                hubspot = HubSpotService(self.http, self.settings, access_token)
                hubspot_object = await hubspot.fetch_object(object_type, object_id)

        context = build_action_context(
            object_id=object_id,
            object_type_id=object_type_id,
            tenant_id=tenant_id,
            action_id=str(button.id),
            hubspot_object=hubspot_object,
            object_unavailable=object_unavailable,
        )
        rendered = render_request(
            method=button.api_method,
            url=button.api_url,
            context=context,
            body_template=button.api_body_template,
            query_params=[(param.key, param.value) for param in button.query_params],
        )
        if rendered.unresolved:
            logger.warning(
                f"Button {button.id} has unresolved placeholders: {', '.join(rendered.unresolved_names)}"
            )
        return rendered

    async def execute(
        self,
        action_id: str,
        tenant_id: str,
        object_id: Optional[str] = None,
        object_type_id: Optional[str] = None,
    ) -> Any:
        button = await self.get_action(action_id)
        access_token = await self.tokens.resolve_by_hub_id(tenant_id)
        rendered = await self.render(button, access_token, tenant_id, object_id, object_type_id)
        logger.info(f"Executing button {button.id}: {rendered.method} {urlparse(rendered.url).netloc}")
        return await self.dispatcher.dispatch(rendered, access_token)
