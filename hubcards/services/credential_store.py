from __future__ import annotations

import datetime as dt
import logging
from typing import List, Optional

from sqlalchemy import and_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from hubcards.models.client_account import ClientAccount
from hubcards.services.errors import BadRequest

logger = logging.getLogger(__name__)

OAUTH_SOURCE = "hubspot_integration"
MANUAL_SOURCE = "manual_hubspot_integration"


class CredentialStore:
    """Reads and writes connected HubSpot accounts in the ``client`` table."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, internal_id: str) -> Optional[ClientAccount]:
        return await self.session.get(ClientAccount, internal_id)

    async def get_by_hub_id(self, hub_id: str) -> Optional[ClientAccount]:
        """Return the account connected to *hub_id*.

        Several users may have connected the same portal; the most recently
        updated record wins.
        """
        stmt = (
            select(ClientAccount)
            .where(ClientAccount.hub_id == str(hub_id))
            .order_by(ClientAccount.updated_at.desc(), ClientAccount.created_at.desc())
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def get_by_owner_and_hub(self, user_id: str, hub_id: str) -> Optional[ClientAccount]:
        stmt = select(ClientAccount).where(
            and_(ClientAccount.user_id == user_id, ClientAccount.hub_id == str(hub_id))
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def list_for_user(self, user_id: str) -> List[ClientAccount]:
        stmt = (
            select(ClientAccount)
            .where(ClientAccount.user_id == user_id)
            .order_by(ClientAccount.created_at.desc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def upsert_authorization(
        self,
        internal_id: str,
        user_id: Optional[str],
        hub_id: str,
        access_token: str,
        refresh_token: Optional[str],
        expires_at: dt.datetime,
        encrypted_client_id: Optional[str] = None,
        encrypted_client_secret: Optional[str] = None,
    ) -> ClientAccount:
        """Insert or update the account after a successful code exchange.

        The conflict key is ``(user_id, hub_id)``, with a missing owner matching
        only owner-less rows. When nothing matches, the row with the internal id
        is reused unless it belongs to another user. An existing row keeps its
        internal id.
        """
        hub_id = str(hub_id)
        account = await self._get_by_owner_and_hub(user_id, hub_id)

        if account is None:
            account = await self.get_by_id(internal_id)
            if account is not None and account.user_id and user_id and account.user_id != user_id:
                raise BadRequest(f"Client account {internal_id} belongs to another user")
            if account is not None and account.hub_id != hub_id:
                # Moving to a hub the owner already connected: update that row instead
                existing = await self._get_by_owner_and_hub(account.user_id, hub_id)
                if existing is not None:
                    account = existing

        if account is None:
            account = ClientAccount(id=internal_id)
            self.session.add(account)
        elif account.id != internal_id:
            logger.info(f"Re-authorization of hub {hub_id} updates existing account {account.id}")

        if user_id:
            account.user_id = user_id
        account.hub_id = hub_id
        account.access_token = access_token
        account.refresh_token = refresh_token
        account.expires_at = expires_at
        account.integration_source = OAUTH_SOURCE
        if encrypted_client_id and encrypted_client_secret:
            account.hubspot_client_id = encrypted_client_id
            account.hubspot_client_secret = encrypted_client_secret

        try:
            await self.session.commit()
        except IntegrityError as exc:
            await self.session.rollback()
            raise BadRequest(f"Hub {hub_id} is already connected for this user") from exc
        await self.session.refresh(account)
        return account

    async def _get_by_owner_and_hub(self, user_id: Optional[str], hub_id: str) -> Optional[ClientAccount]:
        if user_id:
            return await self.get_by_owner_and_hub(user_id, hub_id)
        stmt = select(ClientAccount).where(
            and_(ClientAccount.user_id.is_(None), ClientAccount.hub_id == hub_id)
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def update_tokens(
        self,
        account: ClientAccount,
        access_token: str,
        refresh_token: Optional[str],
        expires_at: dt.datetime,
    ) -> ClientAccount:
        account.access_token = access_token
        account.refresh_token = refresh_token
        account.expires_at = expires_at
        await self.session.commit()
        return account

    async def save_manual_account(
        self,
        internal_id: str,
        user_id: str,
        hub_id: str,
        encrypted_client_id: Optional[str] = None,
        encrypted_client_secret: Optional[str] = None,
    ) -> ClientAccount:
        """Upsert an account entered by hand; omitted app credentials are kept."""
        account = await self.get_by_id(internal_id)
        if account is None:
            account = ClientAccount(id=internal_id)
            self.session.add(account)

        account.user_id = user_id
        account.hub_id = str(hub_id)
        account.integration_source = MANUAL_SOURCE
        if encrypted_client_id is not None:
            account.hubspot_client_id = encrypted_client_id
        if encrypted_client_secret is not None:
            account.hubspot_client_secret = encrypted_client_secret

        try:
            await self.session.commit()
        except IntegrityError as exc:
            await self.session.rollback()
            raise BadRequest(f"Hub {hub_id} is already connected for this user") from exc
        await self.session.refresh(account)
        return account

    async def delete(self, internal_id: str, user_id: str) -> bool:
        account = await self.get_by_id(internal_id)
        if account is None or account.user_id != user_id:
            return False
        await self.session.delete(account)
        await self.session.commit()
        return True
