"""
Shaho Sync - Test Configuration

Pytest fixtures and configuration.

Each test gets its own file-backed SQLite database. Transactions start with
BEGIN IMMEDIATE so concurrent writers queue on the database lock the way
row locks serialise them on PostgreSQL.

Read results through fresh sessions from session_factory (or the helpers
below); a long-lived session holding an open transaction would block the
sync service's writers.
"""

from datetime import datetime, timezone
from typing import AsyncGenerator, List, Optional

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import selectinload

from shaho_sync.config import Settings, get_settings
from shaho_sync.database import Base, get_async_session, get_session_factory
from shaho_sync.models import (
    ApprovalRequest,
    BonusPayment,
    Dependent,
    PayrollMonth,
    ShahoEmployee,
    NEW_EMPLOYEE_CATEGORY,
    APPROVAL_STATUS_PENDING,
)
from shaho_sync.services.sync_context import SyncContext
from main import app


TEST_API_KEY = "test-sync-key"

# 2025-07-01 09:00 in Asia/Tokyo
FIXED_NOW = datetime(2025, 7, 1, 0, 0, tzinfo=timezone.utc)


@pytest_asyncio.fixture(scope="function")
async def engine(tmp_path):
    """Create a fresh SQLite database for each test."""
    test_engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'shaho_sync_test.db'}",
        connect_args={"timeout": 30},
    )

    @event.listens_for(test_engine.sync_engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        # Let SQLAlchemy emit BEGIN itself
        dbapi_connection.isolation_level = None

    @event.listens_for(test_engine.sync_engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    await test_engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Session for seeding data. Commit before running the sync."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def sync_context() -> SyncContext:
    return SyncContext.create(actor="test-sync", tz_name="Asia/Tokyo", now=FIXED_NOW)


@pytest.fixture
def test_settings() -> Settings:
    return Settings(sync_api_key=TEST_API_KEY, _env_file=None)


@pytest_asyncio.fixture(scope="function")
async def client(session_factory, test_settings) -> AsyncGenerator[AsyncClient, None]:
    """Create a test client with database and settings overrides."""

    async def override_get_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_async_session] = override_get_session
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_settings] = lambda: test_settings

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    return {"X-API-Key": TEST_API_KEY}


# ===========================================
# DATA FIXTURES
# ===========================================

@pytest_asyncio.fixture
async def existing_employee(session_factory) -> ShahoEmployee:
    """A registered employee E1 / 山田太郎."""
    async with session_factory() as session:
        employee = ShahoEmployee(
            employee_no="E1",
            name="山田太郎",
            department="営業部",
            work_prefecture="東京都",
            address="東京都千代田区1-1",
            health_standard_monthly=300000,
            has_dependent=False,
            created_by="seed",
            updated_by="seed",
        )
        session.add(employee)
        await session.commit()
        return employee


@pytest_asyncio.fixture
async def pending_reservation(session_factory) -> ApprovalRequest:
    """A pending new-hire request holding employee number E900."""
    async with session_factory() as session:
        request = ApprovalRequest(
            category=NEW_EMPLOYEE_CATEGORY,
            status=APPROVAL_STATUS_PENDING,
            employee_diffs=[{"employeeNo": "E 900", "name": "佐藤花子"}],
            employee_data={"basicInfo": {"employeeNo": "E901"}},
        )
        session.add(request)
        await session.commit()
        return request


# ===========================================
# READ HELPERS
# ===========================================

async def fetch_employee(factory, employee_no: str) -> Optional[ShahoEmployee]:
    async with factory() as session:
        result = await session.execute(
            select(ShahoEmployee)
            .options(selectinload(ShahoEmployee.dependents))
            .where(ShahoEmployee.employee_no == employee_no)
        )
        return result.scalar_one_or_none()


async def fetch_employees(factory) -> List[ShahoEmployee]:
    async with factory() as session:
        result = await session.execute(select(ShahoEmployee).order_by(ShahoEmployee.employee_no))
        return list(result.scalars().all())


async def fetch_month(factory, employee_no: str, year_month_key: str) -> Optional[PayrollMonth]:
    async with factory() as session:
        result = await session.execute(
            select(PayrollMonth)
            .join(ShahoEmployee, PayrollMonth.employee_id == ShahoEmployee.id)
            .options(selectinload(PayrollMonth.bonus_payments))
            .where(
                ShahoEmployee.employee_no == employee_no,
                PayrollMonth.year_month_key == year_month_key,
            )
        )
        return result.scalar_one_or_none()


async def fetch_dependents(factory, employee_no: str) -> List[Dependent]:
    async with factory() as session:
        result = await session.execute(
            select(Dependent)
            .join(ShahoEmployee, Dependent.employee_id == ShahoEmployee.id)
            .where(ShahoEmployee.employee_no == employee_no)
            .order_by(Dependent.position)
        )
        return list(result.scalars().all())


async def count_bonus_payments(factory) -> int:
    async with factory() as session:
        result = await session.execute(select(BonusPayment))
        return len(result.scalars().all())
