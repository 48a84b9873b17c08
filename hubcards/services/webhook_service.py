from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from hubcards.models.webhook import Webhook
from hubcards.services.action_service import ActionDispatcher
from hubcards.services.errors import BadRequest, NotFound
from hubcards.services.template_engine import (
    SUPPORTED_METHODS,
    RenderedRequest,
    TemplateContext,
    escape_json,
    render,
)

logger = logging.getLogger(__name__)


class WebhookService:
    """Invokes stored webhooks with ``{{key}}`` placeholders filled from the caller's data."""

    def __init__(self, session: AsyncSession, dispatcher: ActionDispatcher):
        self.session = session
        self.dispatcher = dispatcher

    async def invoke(self, webhook_id: str, dynamic_data: Optional[Dict[str, Any]] = None) -> Any:
        webhook = await self.session.get(Webhook, webhook_id)
        if webhook is None:
            raise NotFound(f"Webhook {webhook_id} not found")

        method = (webhook.method or "POST").upper()
        if method not in SUPPORTED_METHODS:
            raise BadRequest(f"Unsupported HTTP method '{webhook.method}' on webhook {webhook_id}")

        context = TemplateContext(scalars=dict(dynamic_data or {}))
        body = render(webhook.body_template, context, escape=escape_json)
        if body.unresolved:
            names = ", ".join(sorted({p.name for p in body.unresolved}))
            logger.warning(f"Webhook {webhook_id} has unresolved placeholders: {names}")

        rendered = RenderedRequest(method=method, url=webhook.url, body=body.text or None, unresolved=body.unresolved)
        return await self.dispatcher.dispatch(rendered)
