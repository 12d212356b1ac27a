"""Shared test fixtures for all test modules."""

import asyncio
import contextlib
from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import couponengine.models  # noqa: F401
from couponengine.core import database as db_module
from couponengine.core import messages
from couponengine.core.database import Base, get_db
from couponengine.repositories.coupon_repository import CouponRepository
from couponengine.schemas.coupon import Coupon, CouponValidationResponse

# Create an in-memory SQLite engine with StaticPool so all connections
# share the same database state and there are no file-locking issues.
_test_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
_TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=_test_engine)

# Reference time for expiry checks; close to the wall clock so code that
# defaults to "now" agrees with tests that pass it explicitly.
NOW = datetime.now(UTC).replace(microsecond=0)


@pytest.fixture(autouse=True)
def setup_database():
    """Create tables before each test and clear all rows after.

    Patches the module-level engine and SessionLocal so all application code
    uses the in-memory test database.
    """
    original_engine = db_module.engine
    original_session = db_module.SessionLocal
    db_module.engine = _test_engine
    db_module.SessionLocal = _TestSessionLocal

    Base.metadata.create_all(bind=_test_engine)

    yield
    with _test_engine.connect() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            with contextlib.suppress(OperationalError):
                conn.execute(table.delete())
        conn.commit()

    db_module.engine = original_engine
    db_module.SessionLocal = original_session


@pytest.fixture
def db_session():
    """Create a database session for direct repository testing."""
    gen = get_db()
    db = next(gen)
    try:
        yield db
    finally:
        for _ in gen:
            pass


def make_coupon(**overrides) -> Coupon:
    """Build a Coupon with sensible defaults for tests."""
    data = {
        "code": "SAVE10",
        "discount_percent": Decimal("10"),
        "is_active": True,
    }
    data.update(overrides)
    return Coupon(**data)


@pytest.fixture
def stored_coupons(db_session):
    """Seed the coupon table with one coupon per validation outcome."""
    repo = CouponRepository(db_session)
    return {
        "SAVE10": repo.create(make_coupon(code="SAVE10", description="10% off everything")),
        "SAVE20": repo.create(
            make_coupon(code="SAVE20", discount_percent=Decimal("20"), max_discount=Decimal("50"))
        ),
        "INACTIVE": repo.create(make_coupon(code="INACTIVE", is_active=False)),
        "EXPIRED": repo.create(make_coupon(code="EXPIRED", expiry_date=NOW - timedelta(days=1))),
        "BIGORDER": repo.create(
            make_coupon(
                code="BIGORDER",
                discount_percent=Decimal("15"),
                min_order_value=Decimal("500"),
                expiry_date=NOW + timedelta(days=30),
            )
        ),
        "USEDUP": repo.create(make_coupon(code="USEDUP", max_uses=3, used_count=3)),
        "LASTONE": repo.create(make_coupon(code="LASTONE", max_uses=1)),
    }


class FakeBackend:
    """Validation backend answering from a table of canned responses.

    ``gates`` holds an ``asyncio.Event`` per code that the call waits on,
    which lets tests control the order in which responses arrive.
    """

    def __init__(self, coupons=None):
        self.responses = {
            coupon.code: CouponValidationResponse(is_valid=True, coupon=coupon)
            for coupon in (coupons or [])
        }
        self.calls: list[tuple[str, Decimal]] = []
        self.gates: dict[str, asyncio.Event] = {}
        self.error: Exception | None = None
        self.delay = 0.0

    async def validate(self, code, order_value):
        self.calls.append((code, order_value))
        gate = self.gates.get(code)
        if gate is not None:
            await gate.wait()
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.responses.get(
            code.upper(),
            CouponValidationResponse(is_valid=False, error=messages.COUPON_INVALID),
        )


class Clock:
    """Settable stand-in for ``utc_now``."""

    def __init__(self, now=NOW):
        self.now = now

    def __call__(self):
        return self.now
