from __future__ import annotations

from fastapi import APIRouter, Depends

from hubcards.dependencies import get_webhook_service
from hubcards.schemas.action import ActionResult, WebhookInvokeRequest
from hubcards.services.webhook_service import WebhookService

router = APIRouter(prefix="/api/webhooks", tags=["Webhooks"])


@router.post("/invoke")
async def invoke_webhook(
    request: WebhookInvokeRequest,
    service: WebhookService = Depends(get_webhook_service),
) -> ActionResult:
    response = await service.invoke(request.webhook_id, request.dynamic_data)
    return ActionResult(message="Webhook invoked successfully", response=response)
