"""Pytest configuration for all tests."""

import asyncio
from datetime import timedelta
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from rotauth.application.services import RotationAuthority
from rotauth.domain.exceptions import UpstreamUnavailable
from rotauth.domain.ports import AccessTokenIssuer, SignedAccessToken
from rotauth.domain.services import ScopePolicy
from rotauth.infrastructure.audit import AuditDispatcher, MemoryAuditSink
from rotauth.infrastructure.auth.jwt_service import JWTService
from rotauth.infrastructure.persistence import models  # noqa: F401
from rotauth.infrastructure.persistence.database import Base
from rotauth.infrastructure.persistence.token_store import SqlAlchemyTokenStore

TEST_SECRET = "test-secret-key-for-access-tokens-0123456789"
ADMIN_KEY = "test-admin-key"


class ControllableIssuer(AccessTokenIssuer):
    """Access token issuer that can be told to fail or hang."""

    def __init__(self) -> None:
        self.inner = JWTService(secret_key=TEST_SECRET, issuer="rotauth-test")
        self.fail = False
        self.delay = 0.0
        self.calls = 0

    async def sign(self, subject_id, client_id, scope, audience) -> SignedAccessToken:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise UpstreamUnavailable("signer offline")
        return await self.inner.sign(subject_id, client_id, scope, audience)


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session.

    Uses an in-memory SQLite database for testing.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session_maker = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session_maker() as session:
        yield session
        await session.rollback()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """File-backed SQLite engine, one connection per session."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'rotauth-test.db'}",
        connect_args={"check_same_thread": False},
        echo=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
def store(session_factory) -> SqlAlchemyTokenStore:
    return SqlAlchemyTokenStore(session_factory)


@pytest.fixture
def issuer() -> ControllableIssuer:
    return ControllableIssuer()


@pytest.fixture
def audit_sink() -> MemoryAuditSink:
    return MemoryAuditSink()


@pytest_asyncio.fixture
async def dispatcher(audit_sink) -> AsyncGenerator[AuditDispatcher, None]:
    dispatcher = AuditDispatcher([audit_sink], retry_backoff=0)
    await dispatcher.start()
    yield dispatcher
    await dispatcher.stop()


@pytest.fixture
def make_authority(store, issuer, dispatcher):
    """Build authorities sharing the store, issuer and audit outbox."""

    def factory(token_store=None, **overrides) -> RotationAuthority:
        options = {
            "scope_policy": ScopePolicy("strict"),
            "refresh_token_lifetime": timedelta(days=30),
            "conflict_backoff": 0,
            "signing_timeout": 1.0,
        }
        options.update(overrides)
        return RotationAuthority(token_store or store, issuer, dispatcher, **options)

    return factory


@pytest.fixture
def authority(make_authority) -> RotationAuthority:
    return make_authority()


@pytest_asyncio.fixture
async def client(authority, dispatcher, monkeypatch) -> AsyncGenerator[AsyncClient, None]:
    """Create a test client wired to the test authority."""
    from rotauth.core.config import get_settings
    from rotauth.infrastructure.api.app import app

    monkeypatch.setattr(get_settings(), "admin_api_key", ADMIN_KEY)
    app.state.rotation_authority = authority
    app.state.audit_dispatcher = dispatcher

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.state.rotation_authority = None
    app.state.audit_dispatcher = None
