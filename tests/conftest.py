"""Shared test fixtures — async DB, client, auth helpers, factories.

Uses SQLite + aiosqlite for fast isolated tests without PostgreSQL.
"""

from __future__ import annotations

import os
import tempfile

# Set test settings before any other import touches pydantic-settings
os.environ.setdefault("JWT_SECRET", "test-secret-for-ci-do-not-use-in-production")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="leavedesk-uploads-"))

import uuid
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import AsyncGenerator, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from leavedesk.auth.service import hash_password
from leavedesk.common.constants import LeaveStatus, LeaveType, UserRole
from leavedesk.config import settings
from leavedesk.database import Base, get_db
from leavedesk.main import create_app

# Import ALL model modules so every table lands on Base.metadata
import leavedesk.common.audit  # noqa: F401
import leavedesk.expenses.models  # noqa: F401
import leavedesk.leave.models  # noqa: F401
import leavedesk.users.models  # noqa: F401

from leavedesk.leave.models import LeaveRequest
from leavedesk.users.models import User

# ── SQLite compat: compile PG-specific types ────────────────────────

from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.ext.compiler import compiles


@compiles(PG_UUID, "sqlite")
def _uuid_sqlite(element, compiler, **kw):
    return "CHAR(36)"


# ── Test database (SQLite in-memory) ────────────────────────────────

TEST_DATABASE_URL = "sqlite+aiosqlite://"

engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestSessionFactory = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False,
)

TEST_PASSWORD = "secret123"
# bcrypt is deliberately slow; hash once for every factory-built user
_TEST_PASSWORD_HASH = hash_password(TEST_PASSWORD)

# A fixed "today" for date-sensitive leave rules
TODAY = date(2026, 3, 2)


@pytest.fixture(autouse=True)
async def _setup_db():
    """Create all tables before each test, drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture(autouse=True)
def _reset_rate_limiter():
    """Reset rate limiter storage between tests to prevent cross-test interference."""
    from leavedesk.common.rate_limit import limiter

    limiter.reset()
    yield


@pytest.fixture(autouse=True)
def _fixed_today(monkeypatch):
    """Pin the service clock so past-date checks are deterministic."""
    monkeypatch.setattr("leavedesk.leave.service._today", lambda: TODAY)
    monkeypatch.setattr("leavedesk.dashboard.service._today", lambda: TODAY)


async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# ── FastAPI test client ─────────────────────────────────────────────

@pytest.fixture
async def app():
    """Create a fresh app instance with DB dependency overridden."""
    application = create_app()
    application.dependency_overrides[get_db] = _override_get_db
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client wired to the test app."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


# ── Database session (for direct DB operations in tests) ────────────

@pytest.fixture
async def db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        yield session
        await session.commit()


# ── Model factories ─────────────────────────────────────────────────

def _make_user(
    *,
    name: str = "Test User",
    email: Optional[str] = None,
    role: UserRole = UserRole.employee,
    department: str = "Engineering",
    position: str = "Engineer",
    manager_id: Optional[uuid.UUID] = None,
    is_active: bool = True,
    annual: Decimal = Decimal("20"),
    sick: Decimal = Decimal("10"),
    casual: Decimal = Decimal("5"),
    joined_date: date = date(2024, 1, 15),
) -> dict:
    return dict(
        id=uuid.uuid4(),
        name=name,
        email=email or f"user-{uuid.uuid4().hex[:8]}@company.com",
        password_hash=_TEST_PASSWORD_HASH,
        role=role,
        department=department,
        position=position,
        manager_id=manager_id,
        is_active=is_active,
        annual_balance=annual,
        sick_balance=sick,
        casual_balance=casual,
        unpaid_balance=Decimal("999"),
        joined_date=joined_date,
        created_at=datetime.now(timezone.utc),
        updated_at=datetime.now(timezone.utc),
    )


async def seed_user(db: AsyncSession, **overrides) -> User:
    user = User(**_make_user(**overrides))
    db.add(user)
    await db.flush()
    return user


async def seed_team(db: AsyncSession) -> tuple[User, User, User, User]:
    """(admin, manager, employee reporting to manager, outsider employee)."""
    admin = await seed_user(db, name="Ada Admin", email="admin@company.com", role=UserRole.admin)
    manager = await seed_user(
        db, name="Mia Manager", email="mia@company.com", role=UserRole.manager,
    )
    employee = await seed_user(
        db, name="Eve Employee", email="eve@company.com", manager_id=manager.id,
    )
    outsider = await seed_user(
        db, name="Oscar Other", email="oscar@company.com", department="Design",
    )
    return admin, manager, employee, outsider


async def seed_leave(
    db: AsyncSession,
    employee: User,
    *,
    leave_type: LeaveType = LeaveType.annual,
    start_date: date = TODAY + timedelta(days=7),
    end_date: Optional[date] = None,
    status: LeaveStatus = LeaveStatus.pending,
    total_days: Optional[Decimal] = None,
) -> LeaveRequest:
    end_date = end_date or start_date
    req = LeaveRequest(
        id=uuid.uuid4(),
        employee_id=employee.id,
        leave_type=leave_type,
        start_date=start_date,
        end_date=end_date,
        total_days=total_days or Decimal((end_date - start_date).days + 1),
        is_half_day=False,
        reason="Seeded leave request for tests",
        status=status,
        review_comment="",
        created_at=datetime.now(timezone.utc),
        updated_at=datetime.now(timezone.utc),
    )
    db.add(req)
    await db.flush()
    return req


# ── Auth helpers ────────────────────────────────────────────────────

def create_access_token(
    user_id: uuid.UUID,
    role: UserRole = UserRole.employee,
    expired: bool = False,
    token_type: str = "access",
) -> str:
    """Generate a JWT access token for testing."""
    if expired:
        exp = datetime.now(timezone.utc) - timedelta(hours=1)
    else:
        exp = datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRY_HOURS)
    payload = {
        "sub": str(user_id),
        "role": role.value,
        "type": token_type,
        "exp": exp,
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def auth_headers(user: User) -> dict[str, str]:
    """Bearer headers for *user* (the role claim mirrors the stored role)."""
    return {"Authorization": f"Bearer {create_access_token(user.id, user.role)}"}
