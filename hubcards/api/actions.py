from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hubcards.db import get_db
from hubcards.dependencies import get_action_service
from hubcards.models.button import Button
from hubcards.schemas.action import ActionResult, ButtonOut, ExecuteActionRequest, QueryParamOut
from hubcards.services.action_service import ActionService

router = APIRouter(prefix="/api", tags=["Actions"])


@router.post("/actions/execute")
async def execute_button_action(
    request: ExecuteActionRequest,
    service: ActionService = Depends(get_action_service),
) -> ActionResult:
    """Run a button's API action against the given HubSpot account."""
    response = await service.execute(
        action_id=request.action_id,
        tenant_id=request.tenant_id,
        object_id=request.target_object_id,
        object_type_id=request.target_object_type,
    )
    return ActionResult(message="Button action executed successfully", response=response)


@router.get("/buttons")
async def get_all_buttons(session: AsyncSession = Depends(get_db)) -> Dict[str, Any]:
    """List every button with the title of its card, newest first."""
    stmt = select(Button).order_by(Button.created_at.desc())
    result = await session.execute(stmt)
    buttons = result.scalars().all()

    data = []
    for button in buttons:
        data.append(ButtonOut(
            id=str(button.id),
            card_id=button.card_id,
            card_title=button.card.title if button.card else None,
            button_text=button.button_text,
            button_url=button.button_url,
            api_url=button.api_url,
            api_method=button.api_method,
            api_body_template=button.api_body_template,
            query_params=[QueryParamOut(key=p.key, value=p.value) for p in button.query_params],
            created_at=button.created_at.isoformat() if button.created_at else None,
        ).model_dump())

    return {"data": data}
