"""Pytest configuration and shared fixtures"""

import pytest
import os
import sys
import itertools
from typing import AsyncGenerator
from datetime import datetime, date
from decimal import Decimal
from unittest.mock import patch
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

# Keep the app's own engine off the filesystem during tests
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from billdesk.models.database import Base
from billdesk.models.bill import Bill, BillDraft, BillSettings, BillStatus, LineItem, OwnerSession
from billdesk.services.bill_service import BillService


# Test database setup (SQLite in-memory)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

test_engine = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
    echo=False
)

TestingSessionLocal = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False
)

# Fixed "now" for overdue projections: 15 June 2024, noon
FIXED_NOW = datetime(2024, 6, 15, 12, 0, 0)


@pytest.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Create a fresh database session for each test

    Yields:
        Async database session
    """
    # Create tables
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    # Create session
    async with TestingSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()

    # Drop tables after test
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
def bill_settings() -> BillSettings:
    """Default presentation settings"""
    return BillSettings()


@pytest.fixture
def owner() -> OwnerSession:
    return OwnerSession(owner_id="owner-1")


@pytest.fixture
def sequential_bill_numbers():
    """Deterministic bill numbers so same-day bills never collide in tests"""
    counter = itertools.count(1)
    with patch(
        "billdesk.services.bill_service.generate_bill_number",
        side_effect=lambda: f"BILL-20240615-{next(counter):03d}"
    ) as mock_generate:
        yield mock_generate


@pytest.fixture
def bill_service(db_session, owner, bill_settings, sequential_bill_numbers) -> BillService:
    """BillService on the test database with a fixed clock"""
    return BillService(owner, bill_settings=bill_settings, db=db_session, clock=lambda: FIXED_NOW)


@pytest.fixture
def widget_draft() -> BillDraft:
    """One widget line: 3 x 100 at 18% tax"""
    return BillDraft(
        customer_name="Acme Traders",
        customer_email="accounts@acme.example",
        customer_phone="+91 98765 43210",
        due_date=date(2024, 7, 15),
        tax_rate=Decimal("18"),
        items=[LineItem(description="Widget", quantity=Decimal("3"), rate=Decimal("100"))],
    )


@pytest.fixture
def sample_bill() -> Bill:
    """Stored bill, already finalized"""
    return Bill(
        id="bill-123",
        owner_id="owner-1",
        bill_number="BILL-20240601-042",
        customer_name="Acme Traders",
        customer_email="accounts@acme.example",
        customer_phone="+91 98765 43210",
        items=[
            LineItem(
                description="Widget",
                quantity=Decimal("3"),
                rate=Decimal("100"),
                amount=Decimal("300")
            ),
            LineItem(
                description="Installation",
                quantity=Decimal("1"),
                rate=Decimal("250.50"),
                amount=Decimal("250.50")
            ),
        ],
        subtotal=Decimal("550.50"),
        tax_amount=Decimal("99.09"),
        total_amount=Decimal("649.59"),
        status=BillStatus.SENT,
        due_date=date(2024, 7, 1),
        created_at=datetime(2024, 6, 1, 9, 30, 0),
        updated_at=datetime(2024, 6, 1, 9, 30, 0),
    )
