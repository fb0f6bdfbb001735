import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("LOG_FORMAT", "text")

from datetime import date, datetime, timedelta

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from gymflow.core.database import Base

# Import models so Base.metadata is populated for create_all.
import gymflow.staff.models  # noqa: F401
import gymflow.members.models  # noqa: F401
from gymflow.members.models import Subscription, SubscriptionStatus
from gymflow.staff.crud.classes import create_class
from gymflow.staff.models import ClassTemplate

ORG_ID = 1
CLASS_START = datetime(2030, 5, 6, 18, 0)


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # Let SQLAlchemy own BEGIN so SAVEPOINTs behave like on PostgreSQL.
    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )


@pytest_asyncio.fixture
async def db(session_factory) -> AsyncSession:
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_template(db):
    async def _make(**overrides) -> ClassTemplate:
        data = {
            "org_id": ORG_ID,
            "name": "Morning Yoga",
            "description": None,
            "class_type": "group",
            "duration_minutes": 60,
            "capacity": 2,
            "location": "Studio A",
            "color": "#3b82f6",
            "requires_subscription": True,
            "drop_in_price": None,
            "is_active": True,
        }
        data.update(overrides)
        template = ClassTemplate(**data)
        db.add(template)
        await db.flush()
        await db.refresh(template)
        await db.commit()
        return template

    return _make


@pytest.fixture
def make_class(db):
    async def _make(**overrides):
        data = {
            "org_id": ORG_ID,
            "template_id": None,
            "name": "Evening HIIT",
            "class_type": "group",
            "start_time": CLASS_START,
            "duration_minutes": 45,
            "capacity": 2,
            "location": "Main Hall",
            "coach_id": None,
            "color": "#ef4444",
            "requires_subscription": True,
            "drop_in_price": None,
            "status": "scheduled",
        }
        data.update(overrides)
        scheduled_class = await create_class(db, data)
        await db.commit()
        return scheduled_class

    return _make


@pytest.fixture
def make_subscription(db):
    async def _make(member_id: int, **overrides) -> Subscription:
        data = {
            "org_id": ORG_ID,
            "member_id": member_id,
            "status": SubscriptionStatus.active.value,
            "start_date": date.today() - timedelta(days=30),
            "end_date": date.today() + timedelta(days=30),
            "sessions_total": 10,
            "sessions_used": 0,
        }
        data.update(overrides)
        subscription = Subscription(**data)
        db.add(subscription)
        await db.flush()
        await db.refresh(subscription)
        await db.commit()
        return subscription

    return _make
