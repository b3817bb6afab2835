import asyncio
import uuid
from collections.abc import AsyncGenerator
from datetime import datetime, timedelta, timezone

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import StaticPool
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from focustimer.database import get_db
from focustimer.dependencies import get_current_user
from focustimer.main import app
from focustimer.models import Base
from focustimer.models.user import User

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


class FakePubSub:
    def __init__(self, redis: "FakeRedis"):
        self._redis = redis
        self._queue: asyncio.Queue = asyncio.Queue()
        self.channels: set[str] = set()

    async def subscribe(self, *channels: str) -> None:
        for channel in channels:
            self.channels.add(channel)
            self._redis._subscribers.setdefault(channel, []).append(self._queue)

    async def unsubscribe(self, *channels: str) -> None:
        for channel in channels:
            self.channels.discard(channel)
            queues = self._redis._subscribers.get(channel, [])
            if self._queue in queues:
                queues.remove(self._queue)

    async def listen(self):
        while True:
            yield await self._queue.get()

    async def close(self) -> None:
        pass


class FakeRedis:
    """In-memory Redis mock for testing."""

    def __init__(self):
        self._store: dict[str, str] = {}
        self._subscribers: dict[str, list[asyncio.Queue]] = {}
        self.published: list[tuple[str, str]] = []

    async def get(self, key: str) -> str | None:
        return self._store.get(key)

    async def set(self, key: str, value: str, ex: int | None = None) -> None:
        self._store[key] = str(value)

    async def publish(self, channel: str, message: str) -> int:
        self.published.append((channel, message))
        queues = self._subscribers.get(channel, [])
        for queue in queues:
            queue.put_nowait({"type": "message", "channel": channel, "data": message})
        return len(queues)

    def pubsub(self) -> FakePubSub:
        return FakePubSub(self)

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        pass


class FakeClock:
    """Manually advanced clock; monotonic and wall time move together."""

    def __init__(self, start: datetime | None = None):
        self._monotonic = 1000.0
        self._now = start or datetime(2024, 6, 5, 12, 0, tzinfo=timezone.utc)

    def monotonic(self) -> float:
        return self._monotonic

    def now(self) -> datetime:
        return self._now

    def advance(self, seconds: float) -> None:
        self._monotonic += seconds
        self._now += timedelta(seconds=seconds)


class ListRecorder:
    def __init__(self):
        self.drafts = []

    def record(self, draft) -> None:
        self.drafts.append(draft)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def recorder() -> ListRecorder:
    return ListRecorder()


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
async def db_engine():
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
async def test_user(db_session: AsyncSession) -> User:
    user = User(
        id=uuid.uuid4(),
        email="test@example.com",
        display_name="Test User",
        settings_json={},
        created_at=datetime.now(timezone.utc),
        updated_at=datetime.now(timezone.utc),
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest.fixture
async def second_user(db_session: AsyncSession) -> User:
    user = User(
        id=uuid.uuid4(),
        email="other@example.com",
        display_name="Other User",
        settings_json={},
        created_at=datetime.now(timezone.utc),
        updated_at=datetime.now(timezone.utc),
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


def _override_get_db(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    return override_get_db


@pytest.fixture
async def client(session_factory, test_user: User) -> AsyncGenerator[AsyncClient, None]:
    async def override_get_current_user():
        return test_user

    app.dependency_overrides[get_db] = _override_get_db(session_factory)
    app.dependency_overrides[get_current_user] = override_get_current_user
    app.state.redis = FakeRedis()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
async def anon_client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """Client that goes through real bearer authentication."""
    app.dependency_overrides[get_db] = _override_get_db(session_factory)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
