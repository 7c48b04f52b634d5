import os
from collections.abc import AsyncGenerator, Iterator
from datetime import timedelta
from fnmatch import fnmatch
from uuid import UUID, uuid4

# Settings are read at import time, so the environment must be ready first
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("JWT_SECRET", "test-secret-key-for-clinic-queue-tests")
os.environ.setdefault("LOG_FORMAT", "console")

import pytest
import pytest_asyncio
from dotenv import load_dotenv
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

load_dotenv()

from clinicq.core.redis_client import CacheManager
from clinicq.core.security import create_access_token
from clinicq.database import get_db
from clinicq.dependencies import get_cache_manager
from clinicq.main import app
from clinicq.models import metadata
from clinicq.schemas.auth import TokenUser, UserRole
from clinicq.services.notifier import RealtimeNotifier, get_notifier

# In-memory SQLite shared by every session of a test
test_engine = create_async_engine(
    "sqlite+aiosqlite://",
    echo=False,
    poolclass=StaticPool,
    connect_args={"check_same_thread": False},
)

TestSessionLocal = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class InMemoryRedis:
    """The subset of the redis client API used by CacheManager."""

    def __init__(self) -> None:
        self.store: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self.store.get(key)

    def set(self, key: str, value: str, ex: int | None = None) -> bool:
        self.store[key] = value
        return True

    def scan_iter(self, match: str) -> Iterator[str]:
        return iter([k for k in self.store if fnmatch(k, match)])

    def delete(self, *keys: str) -> int:
        return sum(1 for k in keys if self.store.pop(k, None) is not None)


class RecordingConnection:
    """A websocket stand-in that records every message sent to it."""

    def __init__(self, fail: bool = False) -> None:
        self.messages: list[dict] = []
        self.fail = fail

    async def send_json(self, data) -> None:
        if self.fail:
            raise RuntimeError("connection closed")
        self.messages.append(data)

    def events(self, name: str) -> list[dict]:
        return [m["data"] for m in self.messages if m["event"] == name]


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session over fresh tables."""
    async with test_engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)
        await conn.run_sync(metadata.create_all)

    async with TestSessionLocal() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)


@pytest.fixture
def fake_redis() -> InMemoryRedis:
    return InMemoryRedis()


@pytest.fixture
def cache_manager(fake_redis: InMemoryRedis) -> CacheManager:
    return CacheManager(redis_client=fake_redis)  # type: ignore[arg-type]


@pytest.fixture
def notifier() -> RealtimeNotifier:
    """A notifier private to the test."""
    return RealtimeNotifier()


@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession,
    cache_manager: CacheManager,
    notifier: RealtimeNotifier,
) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_cache_manager] = lambda: cache_manager
    app.dependency_overrides[get_notifier] = lambda: notifier

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


def make_headers(user_id: UUID, role: str) -> dict:
    token = create_access_token(user_id, role, expires_delta=timedelta(minutes=30))
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def doctor_id() -> UUID:
    return uuid4()


@pytest.fixture
def patient_id() -> UUID:
    return uuid4()


@pytest.fixture
def doctor(doctor_id: UUID) -> TokenUser:
    return TokenUser(id=doctor_id, role=UserRole.DOCTOR)


@pytest.fixture
def patient(patient_id: UUID) -> TokenUser:
    return TokenUser(id=patient_id, role=UserRole.PATIENT)


@pytest.fixture
def admin() -> TokenUser:
    return TokenUser(id=uuid4(), role=UserRole.ADMIN)


@pytest.fixture
def doctor_headers(doctor_id: UUID) -> dict:
    return make_headers(doctor_id, "doctor")


@pytest.fixture
def patient_headers(patient_id: UUID) -> dict:
    return make_headers(patient_id, "patient")


@pytest.fixture
def admin_headers() -> dict:
    return make_headers(uuid4(), "admin")


@pytest.fixture
def make_connection():
    """Factory for recording connections; ``fail=True`` makes every send raise."""
    return RecordingConnection
