from __future__ import annotations

import asyncio
from typing import Any, AsyncGenerator, Callable, List

import httpx
import pytest
import pytest_asyncio
from cryptography.fernet import Fernet
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, select
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool

from hubcards.config import Settings, get_settings
from hubcards.db import Base, get_db
from hubcards.dependencies import get_http_client
from hubcards.main import app
from hubcards.models.button import Button, QueryParam  # noqa: F401
from hubcards.models.card import Card  # noqa: F401
from hubcards.models.client_account import ClientAccount
from hubcards.models.webhook import Webhook  # noqa: F401
from hubcards.services.credential_resolver import AppCredentialResolver
from hubcards.services.credential_store import CredentialStore
from hubcards.services.secret_codec import FernetSecretCodec
from hubcards.services.token_service import HubSpotOAuthClient
from hubspot_fakes import FakeHubSpot


@pytest.fixture
def encryption_key() -> str:
    return Fernet.generate_key().decode()


@pytest.fixture
def settings(encryption_key: str) -> Settings:
    return Settings(
        hubspot_client_id="default-client-id",
        hubspot_client_secret="default-client-secret",
        hubspot_redirect_uri="https://hooks.example.com/api/hubspot/oauth-callback",
        encryption_key=encryption_key,
    )


@pytest.fixture
def codec(encryption_key: str) -> FernetSecretCodec:
    return FernetSecretCodec(encryption_key)


@pytest.fixture
def encrypt_secret(encryption_key: str) -> Callable[[str], str]:
    """Encrypt with the configured key from a synchronous test."""
    fernet = Fernet(encryption_key.encode())
    return lambda plaintext: fernet.encrypt(plaintext.encode()).decode()


@pytest.fixture
def decrypt_secret(encryption_key: str) -> Callable[[str], str]:
    fernet = Fernet(encryption_key.encode())
    return lambda ciphertext: fernet.decrypt(ciphertext.encode()).decode()


@pytest.fixture
def fake_hubspot() -> FakeHubSpot:
    return FakeHubSpot()


@pytest.fixture
def engine(tmp_path):
    """File-backed SQLite per test; NullPool lets the app and the tests use separate event loops."""
    db_path = tmp_path / "test.db"
    schema_engine = create_engine(f"sqlite:///{db_path}")
    Base.metadata.create_all(schema_engine)
    schema_engine.dispose()

    test_engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}", poolclass=NullPool)
    yield test_engine
    test_engine.sync_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database session for each test."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def http_client(fake_hubspot: FakeHubSpot) -> AsyncGenerator[httpx.AsyncClient, None]:
    async with fake_hubspot.client() as client:
        yield client


@pytest.fixture
def store(db_session: AsyncSession) -> CredentialStore:
    return CredentialStore(db_session)


@pytest.fixture
def app_resolver(store: CredentialStore, settings: Settings, codec: FernetSecretCodec) -> AppCredentialResolver:
    return AppCredentialResolver(store, settings, codec)


@pytest.fixture
def oauth_client(http_client: httpx.AsyncClient, settings: Settings) -> HubSpotOAuthClient:
    return HubSpotOAuthClient(http_client, settings)


@pytest.fixture
def seed(session_factory) -> Callable[..., None]:
    """Insert rows from a synchronous test."""

    def _seed(*objects: Any) -> None:
        async def _add() -> None:
            async with session_factory() as session:
                session.add_all(objects)
                await session.commit()

        asyncio.run(_add())

    return _seed


@pytest.fixture
def fetch_accounts(session_factory) -> Callable[[], List[ClientAccount]]:
    """Read every client account from a synchronous test."""

    def _fetch() -> List[ClientAccount]:
        async def _read() -> List[ClientAccount]:
            async with session_factory() as session:
                result = await session.execute(select(ClientAccount).order_by(ClientAccount.id))
                return list(result.scalars().all())

        return asyncio.run(_read())

    return _fetch


@pytest.fixture
def client(session_factory, settings: Settings, fake_hubspot: FakeHubSpot) -> TestClient:
    """Create a test client wired to the test database, settings and fake HubSpot."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    async def override_get_http_client() -> AsyncGenerator[httpx.AsyncClient, None]:
        async with fake_hubspot.client() as http:
            yield http

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_http_client] = override_get_http_client
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
