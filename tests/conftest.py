"""
Shared test fixtures.

Uses a throw-away SQLite file per test (via aiosqlite) so tests run without
Docker / PostgreSQL / Redis.  The production models are used as-is.

Every transaction is opened with ``BEGIN IMMEDIATE``: SQLite then lets only
one writer in at a time, so two sessions racing for the same bicycle or the
same event seat behave like two concurrent requests against PostgreSQL.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from bikerental.domain.entities import Location
from bikerental.domain.enums import BicycleStatus
from bikerental.infrastructure.database import Base
from bikerental.infrastructure.models import BicycleModel, UserModel
from bikerental.domain import spatial

T0 = datetime(2026, 5, 4, 9, 0, tzinfo=timezone.utc)


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta) -> datetime:
        self.now = self.now + timedelta(**delta)
        return self.now


# ── Test DB (SQLite file) ─────────────────────────────────────────────


@pytest_asyncio.fixture
async def test_engine(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'bikerental.db'}", echo=False
    )

    # Let SQLAlchemy, not pysqlite, decide when transactions start
    @event.listens_for(engine.sync_engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False
    )


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


# ── Factories ─────────────────────────────────────────────────────────


@pytest.fixture
def make_user(db_session):
    counter = {"n": 0}

    async def _make(stratum: Optional[int] = None, **fields) -> UserModel:
        counter["n"] += 1
        user = UserModel(
            first_name=fields.pop("first_name", "Rider"),
            last_name=fields.pop("last_name", str(counter["n"])),
            email=fields.pop("email", f"rider{counter['n']}@example.com"),
            socioeconomic_stratum=stratum,
            is_active=True,
            **fields,
        )
        db_session.add(user)
        await db_session.flush()
        return user

    return _make


@pytest.fixture
def make_bicycle(db_session):
    counter = {"n": 0}

    async def _make(
        price: str = "5000",
        status: BicycleStatus = BicycleStatus.AVAILABLE,
        location: Optional[Location] = None,
        **fields,
    ) -> BicycleModel:
        counter["n"] += 1
        bicycle = BicycleModel(
            code=fields.pop("code", f"BIC-{counter['n']:03d}"),
            brand=fields.pop("brand", "Trek"),
            color=fields.pop("color", "red"),
            rental_price_per_hour=Decimal(price),
            status=status,
            is_active=fields.pop("is_active", True),
            **fields,
        )
        if location is not None:
            bicycle.current_lat = location.latitude
            bicycle.current_lng = location.longitude
            bicycle.h3_cell = spatial.location_cell(
                location.latitude, location.longitude
            )
        db_session.add(bicycle)
        await db_session.flush()
        return bicycle

    return _make
