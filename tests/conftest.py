"""Shared test fixtures — async DB, client, auth helpers, factories.

Uses SQLite + aiosqlite for fast isolated tests without PostgreSQL.
"""

from __future__ import annotations

import os

# Set test settings before any other import touches pydantic-settings
os.environ.setdefault("JWT_SECRET", "test-secret-for-ci-do-not-use-in-production")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

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

from leavedesk.common.constants import MemberRole, MembershipStatus
from leavedesk.config import settings
from leavedesk.database import Base, get_db
from leavedesk.main import create_app
from leavedesk.notifications.dispatcher import set_dispatcher, wait_for_deliveries

# Import ALL model modules so create_all sees every table
import leavedesk.common.audit  # noqa: F401
import leavedesk.holidays.models  # noqa: F401
import leavedesk.leave.models  # noqa: F401
import leavedesk.organizations.models  # noqa: F401

from leavedesk.leave.models import LeaveBalance, LeaveType
from leavedesk.organizations.models import Organization, OrganizationMember, User

# ── SQLite compat: compile PG-specific types ────────────────────────

from sqlalchemy.dialects.postgresql import JSONB, UUID as PG_UUID
from sqlalchemy.ext.compiler import compiles


@compiles(JSONB, "sqlite")
def _jsonb_sqlite(element, compiler, **kw):
    return "TEXT"


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


@pytest.fixture(autouse=True)
async def _setup_db():
    """Create all tables before each test, drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture(autouse=True)
async def _reset_dispatcher():
    """Restore the logging dispatcher and drain deliveries after each test."""
    yield
    await wait_for_deliveries()
    set_dispatcher(None)


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

async def seed_organization(
    db: AsyncSession,
    *,
    name: str = "Acme GmbH",
    country: str = "DE",
    region: Optional[str] = "BY",
) -> Organization:
    org = Organization(
        id=uuid.uuid4(),
        name=name,
        slug=f"{name.lower().split()[0]}-{uuid.uuid4().hex[:6]}",
        country=country,
        region=region,
    )
    db.add(org)
    await db.flush()
    return org


async def seed_member(
    db: AsyncSession,
    organization: Organization,
    *,
    role: MemberRole = MemberRole.member,
    name: str = "Test User",
    joined_on: Optional[date] = date(2020, 1, 1),
    status: MembershipStatus = MembershipStatus.active,
) -> OrganizationMember:
    """Insert a user plus membership; returns the membership."""
    user = User(
        id=uuid.uuid4(),
        email=f"{name.lower().replace(' ', '.')}.{uuid.uuid4().hex[:6]}@acme.test",
        name=name,
    )
    db.add(user)
    await db.flush()

    member = OrganizationMember(
        id=uuid.uuid4(),
        organization_id=organization.id,
        user_id=user.id,
        role=role,
        status=status,
        joined_on=joined_on,
    )
    db.add(member)
    await db.flush()
    return member


async def seed_leave_type(
    db: AsyncSession,
    *,
    organization_id: Optional[uuid.UUID] = None,
    code: str = "VACATION",
    name: str = "Vacation",
    default_days_per_year: Optional[Decimal] = Decimal("30"),
    has_allowance: bool = True,
    allow_negative: bool = False,
    allow_half_days: bool = True,
    allow_carryover: bool = False,
    max_carryover_days: Optional[Decimal] = None,
    is_active: bool = True,
    sort_order: int = 0,
) -> LeaveType:
    lt = LeaveType(
        id=uuid.uuid4(),
        organization_id=organization_id,
        code=code,
        name=name,
        default_days_per_year=default_days_per_year,
        has_allowance=has_allowance,
        allow_negative=allow_negative,
        allow_half_days=allow_half_days,
        allow_carryover=allow_carryover,
        max_carryover_days=max_carryover_days,
        is_active=is_active,
        sort_order=sort_order,
    )
    db.add(lt)
    await db.flush()
    return lt


async def seed_balance(
    db: AsyncSession,
    member: OrganizationMember,
    leave_type: LeaveType,
    *,
    year: int = 2024,
    entitled: Decimal = Decimal("30"),
    carried_over: Decimal = Decimal("0"),
    adjustment: Decimal = Decimal("0"),
    used: Decimal = Decimal("0"),
    pending: Decimal = Decimal("0"),
) -> LeaveBalance:
    bal = LeaveBalance(
        id=uuid.uuid4(),
        organization_id=member.organization_id,
        user_id=member.user_id,
        leave_type_id=leave_type.id,
        year=year,
        entitled=entitled,
        carried_over=carried_over,
        adjustment=adjustment,
        used=used,
        pending=pending,
    )
    db.add(bal)
    await db.flush()
    return bal


@pytest.fixture
async def organization(db) -> Organization:
    return await seed_organization(db)


@pytest.fixture
async def employee(db, organization) -> OrganizationMember:
    return await seed_member(db, organization, name="Erika Employee")


@pytest.fixture
async def manager(db, organization) -> OrganizationMember:
    return await seed_member(db, organization, role=MemberRole.manager, name="Max Manager")


@pytest.fixture
async def admin(db, organization) -> OrganizationMember:
    return await seed_member(db, organization, role=MemberRole.admin, name="Anna Admin")


@pytest.fixture
async def vacation(db) -> LeaveType:
    """System-wide vacation type with a 30 day allowance."""
    return await seed_leave_type(db)


# ── Auth helpers ────────────────────────────────────────────────────

def create_access_token(
    user_id: uuid.UUID,
    *,
    expired: bool = False,
    token_type: str = "access",
) -> str:
    """Generate a JWT access token for testing."""
    if expired:
        exp = datetime.now(timezone.utc) - timedelta(hours=1)
    else:
        exp = datetime.now(timezone.utc) + timedelta(hours=1)
    payload = {
        "sub": str(user_id),
        "type": token_type,
        "exp": exp,
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def auth_headers(member: OrganizationMember) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(member.user_id)}"}
