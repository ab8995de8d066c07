from datetime import date, datetime, timezone
from typing import AsyncGenerator
import uuid

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from app.main import app
from app.db.base import Base
from app.api.deps import get_db, get_current_db_user
from app.models.user import User
from app.models.receipt import Receipt
from app.models.user_usage import UserUsage  # noqa: F401  registers the table
from app.models.enums import ReceiptStatus, PlanTier


# Use SQLite for testing
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create a test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def test_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async_session_maker = async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False
    )
    async with async_session_maker() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def test_user(test_session: AsyncSession) -> User:
    """Create a test user on the free plan."""
    user = User(
        id=str(uuid.uuid4()),
        firebase_uid="test_firebase_uid",
        email="test@example.com",
        display_name="Test User",
        is_active=True,
        plan_tier=PlanTier.FREE,
    )
    test_session.add(user)
    await test_session.commit()
    await test_session.refresh(user)
    return user


def _created(day: date) -> datetime:
    return datetime(day.year, day.month, day.day, 12, 0, tzinfo=timezone.utc)


@pytest_asyncio.fixture(scope="function")
async def test_receipts(test_session: AsyncSession, test_user: User) -> list[Receipt]:
    """Create receipts in January 2024, one of them still processing."""
    receipts_data = [
        {"merchant": "Office Depot", "receipt_date": "2024-01-02", "total": 120.0, "category": "Office Supplies", "currency": "$", "file_name": "depot.jpg"},
        {"merchant": "Office Depot", "receipt_date": "2024-01-05", "total": 30.0, "category": "Office Supplies", "currency": "$", "file_name": "depot2.jpg"},
        {"merchant": "Blue Bottle", "receipt_date": "2024-01-05", "total": 12.5, "category": "Meals & Entertainment", "file_name": "coffee.jpg"},
        {"merchant": "Whole Foods", "receipt_date": "2024-01-10", "total": 87.5, "category": "Groceries", "file_name": "groceries.jpg"},
        # Nothing extracted except the total; placed on its upload day
        {"merchant": None, "receipt_date": "not a date", "total": 50.0, "category": None, "file_name": "blurry.jpg", "created_at_day": date(2024, 1, 15)},
        # Still being processed, never part of analytics
        {"merchant": "Uber", "receipt_date": "2024-01-06", "total": 25.0, "category": "Transportation", "file_name": "uber.jpg", "status": ReceiptStatus.PROCESSING},
    ]

    receipts = []
    for data in receipts_data:
        data = dict(data)
        created_day = data.pop("created_at_day", date(2024, 1, 20))
        status = data.pop("status", ReceiptStatus.COMPLETED)
        r = Receipt(
            id=str(uuid.uuid4()),
            user_id=test_user.id,
            status=status,
            created_at=_created(created_day),
            **data,
        )
        test_session.add(r)
        receipts.append(r)

    await test_session.commit()
    for r in receipts:
        await test_session.refresh(r)

    return receipts


@pytest_asyncio.fixture(scope="function")
async def client(
    test_session: AsyncSession,
    test_user: User,
    test_receipts: list[Receipt],
) -> AsyncGenerator[AsyncClient, None]:
    """Create a test client with mocked dependencies."""

    async def override_get_db():
        yield test_session

    async def override_get_current_db_user():
        return test_user

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_db_user] = override_get_current_db_user

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def anonymous_client(test_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Client with a database but without an authenticated user."""

    async def override_get_db():
        yield test_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
