"""
Pytest fixtures for test database, client, notifier and authentication.

Each test gets a fresh SQLite database file (or TEST_DATABASE_URL when set,
e.g. a PostgreSQL test database) with tables created up front and dropped
afterwards for isolation.
"""

import os

os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault("SWEEP_ENABLED", "false")
os.environ.setdefault("NOTIFIER_BACKEND", "log")

from datetime import date, datetime, timedelta, timezone
from typing import Any, AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker

from studio_booking.main import app
from studio_booking.db.base import Base
from studio_booking.db.session import get_db
from studio_booking.core.security import create_access_token
from studio_booking.models.class_instance import ClassInstance
from studio_booking.models.subscription import Subscription
from studio_booking.models.user import User
from studio_booking.services.interfaces.notifier import NotificationKind, Notifier
from studio_booking.services.notifier_factory import get_notifier


class RecordingNotifier(Notifier):
    """Captures notifications instead of delivering them."""

    def __init__(self) -> None:
        self.sent: list[tuple[int, NotificationKind, dict[str, Any]]] = []

    async def notify(self, user_id: int, kind: NotificationKind, payload: dict[str, Any]) -> None:
        self.sent.append((user_id, kind, payload))

    def kinds_for(self, user_id: int) -> list[NotificationKind]:
        return [kind for uid, kind, _ in self.sent if uid == user_id]


class FailingNotifier(Notifier):
    async def notify(self, user_id: int, kind: NotificationKind, payload: dict[str, Any]) -> None:
        raise RuntimeError("push provider down")


@pytest_asyncio.fixture(scope="function")
async def db_session(tmp_path) -> AsyncGenerator[AsyncSession, None]:
    """Create tables, yield session, then drop tables for isolation."""
    url = os.environ.get("TEST_DATABASE_URL") or f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"
    engine = create_async_engine(url, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest_asyncio.fixture(scope="function")
async def client(
    db_session: AsyncSession, notifier: RecordingNotifier
) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client that overrides the DB and notifier dependencies."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = lambda: notifier

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def make_user(db: AsyncSession, email: str, role: str = "client", **kwargs) -> User:
    user = User(email=email, full_name=email.split("@")[0].title(), role=role, **kwargs)
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def make_subscription(
    db: AsyncSession,
    user: User,
    credits: int = 10,
    category: str = "group",
    equipment_access: str = "both",
    **kwargs,
) -> Subscription:
    today = date.today()
    values = {
        "start_date": today - timedelta(days=1),
        "end_date": today + timedelta(days=30),
        "status": "active",
    }
    values.update(kwargs)
    subscription = Subscription(
        user_id=user.id,
        category=category,
        equipment_access=equipment_access,
        remaining_credits=credits,
        **values,
    )
    db.add(subscription)
    await db.commit()
    await db.refresh(subscription)
    return subscription


async def make_class(
    db: AsyncSession,
    capacity: int = 10,
    starts_in: timedelta = timedelta(days=3),
    category: str = "group",
    equipment_type: str = "mat",
    name: str = "Morning Mat",
    status: str = "scheduled",
) -> ClassInstance:
    class_ = ClassInstance(
        name=name,
        category=category,
        equipment_type=equipment_type,
        starts_at=datetime.now(timezone.utc) + starts_in,
        duration_minutes=50,
        capacity=capacity,
        reserved_seats=0,
        status=status,
    )
    db.add(class_)
    await db.commit()
    await db.refresh(class_)
    return class_


def headers_for(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(data={'sub': str(user.id)})}"}


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession) -> User:
    return await make_user(db_session, "alice@example.com")


@pytest_asyncio.fixture
async def other_user(db_session: AsyncSession) -> User:
    return await make_user(db_session, "bob@example.com")


@pytest_asyncio.fixture
async def staff_user(db_session: AsyncSession) -> User:
    return await make_user(db_session, "frontdesk@example.com", role="staff")


@pytest_asyncio.fixture
async def instructor_user(db_session: AsyncSession) -> User:
    return await make_user(db_session, "coach@example.com", role="instructor")


@pytest_asyncio.fixture
async def auth_headers(test_user: User) -> dict:
    """Authorization headers with Bearer token."""
    return headers_for(test_user)


@pytest_asyncio.fixture
async def staff_headers(staff_user: User) -> dict:
    return headers_for(staff_user)


@pytest_asyncio.fixture
async def instructor_headers(instructor_user: User) -> dict:
    return headers_for(instructor_user)


@pytest_asyncio.fixture
async def test_subscription(db_session: AsyncSession, test_user: User) -> Subscription:
    """Active group subscription with 10 credits covering all equipment."""
    return await make_subscription(db_session, test_user, credits=10)


@pytest_asyncio.fixture
async def test_class(db_session: AsyncSession) -> ClassInstance:
    """Scheduled mat class in three days with 10 seats."""
    return await make_class(db_session, capacity=10)


@pytest_asyncio.fixture
async def single_seat_class(db_session: AsyncSession) -> ClassInstance:
    return await make_class(db_session, capacity=1, name="Private Reformer Slot")
