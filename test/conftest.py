import os
from types import SimpleNamespace
from typing import AsyncGenerator, Dict, List, Optional

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

# --- SETUP: keep the real Firebase credential out of the test process ---
for name in ("FIREBASE_SERVICE_ACCOUNT_JSON", "FIREBASE_SERVICE_ACCOUNT"):
    os.environ.pop(name, None)

from main import app
from swoptrader.database.connection import get_db
from swoptrader.database.models import Base
from swoptrader.services.offer_notifications import OfferNotificationDispatcher, get_offer_dispatcher

DATABASE_URL = "sqlite+aiosqlite:///:memory:"


class FakePushTransport:
    """
    Stands in for PushTransport. Records every multicast and answers with a
    firebase-admin shaped BatchResponse; `failures` maps a token to the
    exception its send response should carry.
    """

    def __init__(self, configured: bool = True, failures: Optional[Dict[str, Exception]] = None,
                 error: Optional[Exception] = None):
        self.configured = configured
        self.failures = failures or {}
        self.error = error
        self.sent: List = []

    def send_multicast(self, message):
        if self.error is not None:
            raise self.error
        self.sent.append(message)
        responses = []
        for token in message.tokens:
            exception = self.failures.get(token)
            responses.append(SimpleNamespace(
                success=exception is None,
                exception=exception,
                message_id=None if exception else f"projects/test/messages/{token}",
            ))
        success_count = sum(1 for response in responses if response.success)
        return SimpleNamespace(
            responses=responses,
            success_count=success_count,
            failure_count=len(responses) - success_count,
        )


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    engine = create_async_engine(
        DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture(scope="function")
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture(scope="function")
def fake_transport() -> FakePushTransport:
    return FakePushTransport()


@pytest.fixture(scope="function")
def dispatcher(fake_transport, session_factory) -> OfferNotificationDispatcher:
    return OfferNotificationDispatcher(fake_transport, session_factory)


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession, dispatcher) -> AsyncGenerator[AsyncClient, None]:
    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_offer_dispatcher] = lambda: dispatcher
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
