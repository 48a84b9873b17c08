from __future__ import annotations

import asyncio
import base64
import hashlib
import logging
from typing import Any, Optional

from cryptography.fernet import Fernet, InvalidToken

from hubcards.config import Settings
from hubcards.services.errors import ConfigMissing

logger = logging.getLogger(__name__)


class SecretCodec:
    """Encrypts per-account app credentials before they reach the store."""

    async def encrypt(self, plaintext: str) -> str:
        raise NotImplementedError

    async def decrypt(self, ciphertext: str) -> str:
        raise NotImplementedError


class FernetSecretCodec(SecretCodec):
    def __init__(self, encryption_key: str) -> None:
        self._fernet = Fernet(self._fernet_key(encryption_key))

    @staticmethod
    def _fernet_key(encryption_key: str) -> bytes:
        key = encryption_key.encode()
        try:
            Fernet(key)
            return key
        except ValueError:
            # Passphrase rather than a generated key
            return base64.urlsafe_b64encode(hashlib.sha256(key).digest())

    async def encrypt(self, plaintext: str) -> str:
        return self._fernet.encrypt(plaintext.encode()).decode()

    async def decrypt(self, ciphertext: str) -> str:
        try:
            return self._fernet.decrypt(ciphertext.encode()).decode()
        except InvalidToken as exc:
            raise ConfigMissing("Stored HubSpot app credentials could not be decrypted") from exc


class SupabaseSecretCodec(SecretCodec):
    """Delegates to the ``encrypt_secret`` / ``decrypt_secret`` database functions.

    Used where the credentials were written by the Postgres side with pgcrypto.
    """

    def __init__(self, client: Any, encryption_key: str) -> None:
        self._client = client
        self._key = encryption_key

    async def encrypt(self, plaintext: str) -> str:
        return await self._call("encrypt_secret", {"plain_text": plaintext, "key": self._key})

    async def decrypt(self, ciphertext: str) -> str:
        return await self._call("decrypt_secret", {"encrypted_text": ciphertext, "key": self._key})

    async def _call(self, function: str, params: dict) -> str:
        try:
            # The supabase client is synchronous; keep its round trip off the event loop
            response = await asyncio.to_thread(self._client.rpc(function, params).execute)
        except Exception as exc:
            logger.error(f"Supabase {function} RPC failed: {exc}")
            raise ConfigMissing(f"Failed to run {function}: {exc}") from exc
        if response.data is None:
            raise ConfigMissing(f"{function} returned no data")
        return str(response.data)


def create_secret_codec(settings: Settings) -> Optional[SecretCodec]:
    """Build the configured codec, or ``None`` when no encryption key is set."""
    if not settings.encryption_key:
        return None

    if settings.secret_codec == "supabase":
        if not settings.supabase_url or not settings.supabase_service_role_key:
            raise ConfigMissing("SECRET_CODEC=supabase requires SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY")
        from supabase import create_client

        client = create_client(settings.supabase_url, settings.supabase_service_role_key)
        return SupabaseSecretCodec(client, settings.encryption_key)

    if settings.secret_codec != "fernet":
        raise ConfigMissing(f"Unknown SECRET_CODEC '{settings.secret_codec}'")
    return FernetSecretCodec(settings.encryption_key)
