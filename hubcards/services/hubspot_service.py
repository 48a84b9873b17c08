from __future__ import annotations

import logging
from typing import Any, Dict, List

import httpx

from hubcards.config import Settings
from hubcards.services.errors import ObjectFetchFailed, describe_error_body

logger = logging.getLogger(__name__)

CONTACT_PROPERTIES = ["firstname", "lastname", "email", "company"]


class HubSpotService:
    """CRM reads made on behalf of a connected account."""

    def __init__(self, http: httpx.AsyncClient, settings: Settings, access_token: str) -> None:
        self.http = http
        self.settings = settings
        self._access_token = access_token

    @property
    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self._access_token}",
            "Content-Type": "application/json",
        }

    async def fetch_object(self, object_type: str, object_id: str) -> Dict[str, Any]:
        """Fetch one CRM object (contact, company, deal, ticket) with its properties."""
        url = f"{self.settings.hubspot_api_base}/crm/v3/objects/{object_type}/{object_id}"
        try:
            response = await self.http.get(url, headers=self._headers)
        except httpx.HTTPError as e:
            raise ObjectFetchFailed(f"Failed to fetch {object_type} {object_id} from HubSpot: {e}") from e

        if not response.is_success:
            detail = _error_detail(response)
            logger.error(f"Failed to fetch {object_type} {object_id} from HubSpot: {response.status_code} {detail}")
            raise ObjectFetchFailed(f"Failed to fetch {object_type} {object_id} from HubSpot: {detail}")

        try:
            return response.json()
        except ValueError as e:
            raise ObjectFetchFailed(f"HubSpot returned invalid JSON for {object_type} {object_id}") from e

    async def list_contacts(self) -> List[Dict[str, Any]]:
        """List contacts, flattened to the shape the admin contact table expects."""
        url = f"{self.settings.hubspot_api_base}/crm/v3/objects/contacts"
        try:
            response = await self.http.get(
                url,
                headers=self._headers,
                params={"properties": ",".join(CONTACT_PROPERTIES)},
            )
        except httpx.HTTPError as e:
            raise ObjectFetchFailed(f"Failed to fetch contacts from HubSpot: {e}") from e

        if not response.is_success:
            raise ObjectFetchFailed(f"Failed to fetch contacts from HubSpot: {_error_detail(response)}")

        try:
            contacts = response.json().get("results", [])
        except (ValueError, AttributeError) as e:
            raise ObjectFetchFailed("HubSpot returned invalid JSON for contacts") from e
        return [self._transform_contact(contact) for contact in contacts]

    @staticmethod
    def _transform_contact(contact: Dict[str, Any]) -> Dict[str, Any]:
        props = contact.get("properties") or {}
        name = f"{props.get('firstname') or ''} {props.get('lastname') or ''}".strip()
        return {
            "id": contact.get("id"),
            "name": name,
            "deal_id": props.get("deal_id"),
            "created_at": contact.get("createdAt"),
        }


def _error_detail(response: httpx.Response) -> str:
    try:
        return describe_error_body(response.json())
    except ValueError:
        return response.text
