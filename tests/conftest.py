"""
Pytest Configuration and Fixtures.
Shared test fixtures for all test modules.

Services run against an in-memory SQLite database (aiosqlite) so the
lifecycle rules are exercised through real ORM round trips.
"""

import os

# Settings are read at import time; these must be set before any src import
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-the-backoffice-suite-0123456789")
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from datetime import date
from decimal import Decimal
from types import SimpleNamespace
from typing import Any, Optional

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from src.core.enums import AffiliateType, ClaimStatus, Role
from src.models import (
    Affiliate,
    Base,
    Claim,
    Client,
    Insurer,
    Policy,
    User,
    UserClientAccess,
)


@pytest.fixture
async def engine():
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def session(engine):
    """Session configured like the application's session maker."""
    session_maker = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    async with session_maker() as session:
        yield session


# =============================================================================
# Seed Data
# =============================================================================


def _user(email: str, role: Optional[str], **extra: Any) -> User:
    return User(email=email, full_name=email.split("@")[0].replace(".", " ").title(), role=role, **extra)


@pytest.fixture
async def world(session: AsyncSession) -> SimpleNamespace:
    """
    A small brokerage: two clients, one insurer, users for every role,
    an owner affiliate with a dependent, and an affiliate of the other client.
    """
    acme = Client(name="Acme Corp", tax_id="0990000001001")
    globex = Client(name="Globex", tax_id="0990000002001")
    insurer = Insurer(name="Seguros Andinos", code="SAND")
    other_insurer = Insurer(name="Vida Segura", code="VSEG")
    session.add_all([acme, globex, insurer, other_insurer])
    await session.flush()

    super_admin = _user("root@broker.test", Role.SUPER_ADMIN.value)
    claims_employee = _user("claims@broker.test", Role.CLAIMS_EMPLOYEE.value)
    operations_employee = _user("ops@broker.test", Role.OPERATIONS_EMPLOYEE.value)
    client_admin = _user("hr@acme.test", Role.CLIENT_ADMIN.value)
    affiliate_user = _user("ana.perez@acme.test", Role.AFFILIATE.value)
    stranger = _user("nobody@broker.test", "INTERN")
    inactive = _user("former@broker.test", Role.SUPER_ADMIN.value, is_active=False)
    session.add_all(
        [super_admin, claims_employee, operations_employee, client_admin, affiliate_user, stranger, inactive]
    )
    await session.flush()

    session.add(UserClientAccess(user_id=client_admin.id, client_id=acme.id))

    owner = Affiliate(
        first_name="Ana",
        last_name="Perez",
        client_id=acme.id,
        user_id=affiliate_user.id,
        affiliate_type=AffiliateType.OWNER,
    )
    colleague = Affiliate(first_name="Luis", last_name="Mora", client_id=acme.id)
    outsider = Affiliate(first_name="Eva", last_name="Rios", client_id=globex.id)
    session.add_all([owner, colleague, outsider])
    await session.flush()

    dependent = Affiliate(
        first_name="Sofia",
        last_name="Perez",
        client_id=acme.id,
        affiliate_type=AffiliateType.DEPENDENT,
        primary_affiliate_id=owner.id,
    )
    session.add(dependent)
    await session.commit()

    return SimpleNamespace(
        acme=acme,
        globex=globex,
        insurer=insurer,
        other_insurer=other_insurer,
        super_admin=super_admin,
        claims_employee=claims_employee,
        operations_employee=operations_employee,
        client_admin=client_admin,
        affiliate_user=affiliate_user,
        stranger=stranger,
        inactive=inactive,
        owner=owner,
        dependent=dependent,
        colleague=colleague,
        outsider=outsider,
    )


@pytest.fixture
def make_policy(session: AsyncSession):
    """Insert a policy directly, bypassing the edit service."""

    async def _make(client: Client, insurer: Insurer, number: str = "POL-001", **fields: Any) -> Policy:
        policy = Policy(
            policy_number=number,
            client_id=client.id,
            insurer_id=insurer.id,
            start_date=fields.pop("start_date", date(2025, 1, 1)),
            end_date=fields.pop("end_date", date(2025, 12, 31)),
            **fields,
        )
        session.add(policy)
        await session.commit()
        return policy

    return _make


@pytest.fixture
def make_claim(session: AsyncSession):
    """Insert a claim directly in any status, bypassing the edit service."""
    counter = {"value": 0}

    async def _make(world: SimpleNamespace, status: ClaimStatus = ClaimStatus.DRAFT, **fields: Any) -> Claim:
        counter["value"] += 1
        sequence = 1000 + counter["value"]
        claim = Claim(
            claim_sequence=sequence,
            claim_number=f"CLM-2025-{sequence:06d}",
            status=status,
            client_id=fields.pop("client_id", world.acme.id),
            affiliate_id=fields.pop("affiliate_id", world.owner.id),
            patient_id=fields.pop("patient_id", world.owner.id),
            amount_submitted=fields.pop("amount_submitted", Decimal("120.00")),
            created_by_id=world.claims_employee.id,
            **fields,
        )
        session.add(claim)
        await session.commit()
        return claim

    return _make


# Configure pytest markers
def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")
    config.addinivalue_line("markers", "api: mark test as an API test")
