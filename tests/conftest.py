import os

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("SCHEDULER_ENABLED", "false")

from datetime import date, timedelta
from decimal import Decimal

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from spice_ledger import models  # noqa: F401
from spice_ledger.core.security import create_access_token
from spice_ledger.database import Base, get_db
from spice_ledger.main import app
from spice_ledger.schemas.caterer import CatererCreate
from spice_ledger.schemas.distribution import DistributionCreate, DistributionItemCreate
from spice_ledger.services.caterer_service import CatererService
from spice_ledger.services.distribution_service import DistributionService


TODAY = date(2024, 1, 15)


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def caterer(db):
    caterer = await CatererService(db).create_caterer(
        CatererCreate(name="Sharma Caterers", phone="9876543210")
    )
    await db.commit()
    return caterer


@pytest.fixture
def make_bill(db, caterer):
    """Create a single-line bill; defaults to 1000.00 with no GST, dated TODAY."""

    async def _make_bill(
        rate="1000",
        quantity="1",
        gst_percentage="0",
        amount_paid="0",
        distribution_date=TODAY,
        due_date=None,
        caterer_id=None,
        today=TODAY,
    ):
        distribution = await DistributionService(db).create_distribution(
            DistributionCreate(
                caterer_id=caterer_id or caterer.id,
                distribution_date=distribution_date,
                due_date=due_date,
                amount_paid=Decimal(amount_paid),
                items=[
                    DistributionItemCreate(
                        item_name="Turmeric Powder",
                        quantity=Decimal(quantity),
                        rate=Decimal(rate),
                        gst_percentage=Decimal(gst_percentage),
                    )
                ],
            ),
            today=today,
        )
        await db.commit()
        return distribution

    return _make_bill


@pytest.fixture
def days():
    return lambda n: TODAY + timedelta(days=n)


@pytest.fixture
def auth_headers():
    token = create_access_token(subject="owner")
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def client(session_factory, auth_headers):
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.state.notification_state = None
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(
        transport=transport,
        base_url="http://test",
        headers=auth_headers,
    ) as client:
        yield client
    app.dependency_overrides.clear()
