"""
Pytest fixtures: in-memory database, app client, users and a realtime probe.

Each test gets its own in-memory SQLite database (aiosqlite + StaticPool) and
its own broker, so published frames can be asserted without a websocket.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("DATABASE_URL_SYNC", "sqlite:///:memory:")
os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault("REALTIME_RELAY", "local")
os.environ.setdefault("ENVIRONMENT", "test")

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from backoffice.main import create_app
from backoffice.db.base import Base
from backoffice.db.session import build_engine, get_db
from backoffice.core.security import CurrentUser, create_access_token
from backoffice.realtime.broker import RealtimeBroker, Subscription

TEST_DATABASE_URL = os.environ["DATABASE_URL"]

ALICE = CurrentUser(id="user_alice", name="Alice Owner")
CAROL = CurrentUser(id="user_carol", name="Carol Agent")
DAVE = CurrentUser(id="user_dave", name="Dave Agent")

BOOKING_PAYLOAD = {
    "customerName": "John Traveller",
    "customerEmail": "john@example.com",
    "customerPhone": "+1 555 0100",
    "type": "hotel",
    "hotelName": "Seaside Resort",
    "totalAmount": 500,
    "status": "pending",
    "guests": {"adults": 2, "children": 1, "childrenAges": [7]},
}


def auth_headers(user: CurrentUser) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.id, user.name)}"}


def drain(subscription: Subscription) -> list[dict]:
    """Everything queued on a subscription so far."""
    frames = []
    while (frame := subscription.get_nowait()) is not None:
        frames.append(frame)
    return frames


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Fresh in-memory database per test."""
    engine = build_engine(TEST_DATABASE_URL, poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session

    await engine.dispose()


@pytest.fixture
def broker() -> RealtimeBroker:
    return RealtimeBroker(queue_size=50)


@pytest.fixture
def app(broker: RealtimeBroker):
    return create_app(broker=broker)


@pytest_asyncio.fixture(scope="function")
async def client(app, db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client that overrides the DB dependency with the test session."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def alice_headers() -> dict:
    return auth_headers(ALICE)


@pytest.fixture
def carol_headers() -> dict:
    return auth_headers(CAROL)


@pytest.fixture
def dave_headers() -> dict:
    return auth_headers(DAVE)


@pytest_asyncio.fixture
async def alice_booking(client: AsyncClient, alice_headers: dict) -> dict:
    """Booking B1 owned by Alice: hotel, amount 500, status pending."""
    response = await client.post("/api/v1/bookings", json=BOOKING_PAYLOAD, headers=alice_headers)
    assert response.status_code == 201
    return response.json()
