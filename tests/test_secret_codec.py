from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from hubcards.config import Settings
from hubcards.services.errors import ConfigMissing
from hubcards.services.secret_codec import (
    FernetSecretCodec,
    SupabaseSecretCodec,
    create_secret_codec,
)


class TestFernetSecretCodec:

    @pytest.mark.asyncio
    async def test_generated_key(self, codec):
        ciphertext = await codec.encrypt("client-secret")

        assert ciphertext != "client-secret"
        assert await codec.decrypt(ciphertext) == "client-secret"

    @pytest.mark.asyncio
    async def test_passphrase_key(self):
        codec = FernetSecretCodec("correct horse battery staple")

        assert await codec.decrypt(await codec.encrypt("client-secret")) == "client-secret"

    @pytest.mark.asyncio
    async def test_wrong_key_cannot_decrypt(self):
        ciphertext = await FernetSecretCodec("first passphrase").encrypt("client-secret")

        with pytest.raises(ConfigMissing):
            await FernetSecretCodec("second passphrase").decrypt(ciphertext)


class TestSupabaseSecretCodec:

    def make_client(self, data):
        client = MagicMock()
        client.rpc.return_value.execute.return_value = MagicMock(data=data)
        return client

    @pytest.mark.asyncio
    async def test_encrypt_calls_rpc(self):
        client = self.make_client("encrypted-value")
        codec = SupabaseSecretCodec(client, "db-key")

        assert await codec.encrypt("client-secret") == "encrypted-value"
        client.rpc.assert_called_once_with("encrypt_secret", {"plain_text": "client-secret", "key": "db-key"})

    @pytest.mark.asyncio
    async def test_decrypt_calls_rpc(self):
        client = self.make_client("client-secret")
        codec = SupabaseSecretCodec(client, "db-key")

        assert await codec.decrypt("encrypted-value") == "client-secret"
        client.rpc.assert_called_once_with("decrypt_secret", {"encrypted_text": "encrypted-value", "key": "db-key"})

    @pytest.mark.asyncio
    async def test_rpc_runs_in_worker_thread(self):
        client = self.make_client("encrypted-value")
        codec = SupabaseSecretCodec(client, "db-key")

        async def fake_to_thread(func, *args):
            return func(*args)

        with patch("hubcards.services.secret_codec.asyncio.to_thread", side_effect=fake_to_thread) as to_thread:
            await codec.encrypt("client-secret")

        to_thread.assert_called_once()
        assert to_thread.call_args.args[0] is client.rpc.return_value.execute

    @pytest.mark.asyncio
    async def test_empty_result(self):
        codec = SupabaseSecretCodec(self.make_client(None), "db-key")

        with pytest.raises(ConfigMissing):
            await codec.decrypt("encrypted-value")

    @pytest.mark.asyncio
    async def test_rpc_error(self):
        client = MagicMock()
        client.rpc.return_value.execute.side_effect = RuntimeError("function does not exist")
        codec = SupabaseSecretCodec(client, "db-key")

        with pytest.raises(ConfigMissing) as exc_info:
            await codec.encrypt("client-secret")
        assert "function does not exist" in exc_info.value.message


class TestCreateSecretCodec:

    def test_no_key(self):
        assert create_secret_codec(Settings(encryption_key=None)) is None

    def test_fernet_by_default(self):
        assert isinstance(create_secret_codec(Settings(encryption_key="passphrase")), FernetSecretCodec)

    def test_supabase_requires_connection_settings(self):
        settings = Settings(
            encryption_key="passphrase",
            secret_codec="supabase",
            supabase_url=None,
            supabase_service_role_key=None,
        )
        with pytest.raises(ConfigMissing):
            create_secret_codec(settings)

    def test_unknown_codec(self):
        with pytest.raises(ConfigMissing):
            create_secret_codec(Settings(encryption_key="passphrase", secret_codec="rot13"))
