from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends

from hubcards.dependencies import get_credential_store, get_secret_codec
from hubcards.schemas.client_account import ClientAccountOut, ClientCredentialsSave
from hubcards.services.credential_store import CredentialStore
from hubcards.services.errors import BadRequest, ConfigMissing, NotFound
from hubcards.services.secret_codec import SecretCodec

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/clients", tags=["Client accounts"])


@router.post("")
async def save_client_credentials(
    payload: ClientCredentialsSave,
    store: CredentialStore = Depends(get_credential_store),
    codec: Optional[SecretCodec] = Depends(get_secret_codec),
) -> Dict[str, Any]:
    """Create or update a manually entered client account.

    App credentials are encrypted before storage and only overwritten when
    supplied.
    """
    encrypted_client_id = None
    encrypted_client_secret = None
    if payload.hubspot_client_id or payload.hubspot_client_secret:
        if codec is None:
            raise ConfigMissing("ENCRYPTION_KEY is not set; cannot store HubSpot app credentials")
        if payload.hubspot_client_id:
            encrypted_client_id = await codec.encrypt(payload.hubspot_client_id)
        if payload.hubspot_client_secret:
            encrypted_client_secret = await codec.encrypt(payload.hubspot_client_secret)

    account = await store.save_manual_account(
        internal_id=payload.id,
        user_id=payload.user_id,
        hub_id=payload.hub_id,
        encrypted_client_id=encrypted_client_id,
        encrypted_client_secret=encrypted_client_secret,
    )
    logger.info(f"Saved client account {account.id} for hub {account.hub_id}")
    return {
        "message": "Client credentials saved successfully",
        "data": ClientAccountOut.from_account(account).model_dump(),
    }


@router.get("")
async def list_client_accounts(
    user_id: Optional[str] = None,
    store: CredentialStore = Depends(get_credential_store),
) -> Dict[str, Any]:
    if not user_id:
        raise BadRequest("user_id is required")
    accounts = await store.list_for_user(user_id)
    data = [ClientAccountOut.from_account(account).model_dump() for account in accounts]
    return {"data": data, "count": len(data)}


@router.delete("/{client_id}")
async def delete_client_account(
    client_id: str,
    user_id: Optional[str] = None,
    store: CredentialStore = Depends(get_credential_store),
) -> Dict[str, Any]:
    """Disconnect an account; only its owner may do so."""
    if not user_id:
        raise BadRequest("user_id is required")
    if not await store.delete(client_id, user_id):
        raise NotFound(f"Client account {client_id} not found")
    logger.info(f"Deleted client account {client_id}")
    return {"message": "Client account deleted successfully", "id": client_id}
