from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, field_validator


class ExecuteActionRequest(BaseModel):
    action_id: str
    tenant_id: str
    target_object_id: Optional[str] = None
    target_object_type: Optional[str] = None

    @field_validator("action_id", "tenant_id", "target_object_id", "target_object_type", mode="before")
    @classmethod
    def _coerce_ids(cls, value: Any) -> Any:
        # HubSpot sends numeric ids; keep everything as strings
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("action_id", "tenant_id")
    @classmethod
    def _required(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be empty")
        return value


class ActionResult(BaseModel):
    message: str
    response: Any = None


class WebhookInvokeRequest(BaseModel):
    webhook_id: str
    dynamic_data: Optional[Dict[str, Any]] = None


class QueryParamOut(BaseModel):
    key: Optional[str] = None
    value: Optional[str] = None


class ButtonOut(BaseModel):
    id: str
    card_id: Optional[str] = None
    card_title: Optional[str] = None
    button_text: str
    button_url: Optional[str] = None
    api_url: Optional[str] = None
    api_method: Optional[str] = None
    api_body_template: Optional[str] = None
    query_params: List[QueryParamOut] = []
    created_at: Optional[str] = None
