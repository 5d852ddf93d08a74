"""
Concurrency safety tests.

Demonstrates:
1. Two riders racing for the same bicycle: exactly one rental is created.
2. Two riders racing for the last event seat: exactly one registration.
3. Two returns of the same rental: exactly one is billed.

Each contender uses its own session (its own transaction), committed or
rolled back on its own, like two API requests served at the same time.
"""

import asyncio
from datetime import timedelta

import pytest

from bikerental.domain.enums import BicycleStatus, EventStatus, RentalStatus
from bikerental.domain.errors import (
    BicycleNotAvailable,
    DomainError,
    EventFull,
    RentalNotActive,
    UserHasActiveRental,
)
from bikerental.infrastructure.repositories import (
    BicycleRepository,
    EventRepository,
    RentalRepository,
)
from bikerental.services.events import EventCapacityManager
from bikerental.services.rentals import RentalLedger


async def _attempt(session_factory, operation):
    """Run *operation(session)* in its own transaction; return result or error."""
    async with session_factory() as session:
        try:
            result = await operation(session)
            await session.commit()
            return result
        except DomainError as exc:
            await session.rollback()
            return exc


@pytest.mark.asyncio
async def test_two_riders_one_bicycle(db_session, session_factory, make_user, make_bicycle):
    alice = await make_user()
    bob = await make_user()
    bike = await make_bicycle()
    await db_session.commit()

    outcomes = await asyncio.gather(
        _attempt(session_factory, lambda s: RentalLedger(s).rent(alice.id, bike.id)),
        _attempt(session_factory, lambda s: RentalLedger(s).rent(bob.id, bike.id)),
    )

    errors = [o for o in outcomes if isinstance(o, DomainError)]
    rentals = [o for o in outcomes if not isinstance(o, DomainError)]
    assert len(rentals) == 1
    assert len(errors) == 1
    assert isinstance(errors[0], BicycleNotAvailable)

    async with session_factory() as check:
        active = await RentalRepository(check).list_all(status=RentalStatus.ACTIVE)
        assert [r.id for r in active] == [rentals[0].id]
        bicycle = await BicycleRepository(check).get_by_id(bike.id)
        assert bicycle.status == BicycleStatus.RENTED


@pytest.mark.asyncio
async def test_one_rider_two_bicycles(db_session, session_factory, make_user, make_bicycle):
    rider = await make_user()
    first = await make_bicycle()
    second = await make_bicycle()
    await db_session.commit()

    outcomes = await asyncio.gather(
        _attempt(session_factory, lambda s: RentalLedger(s).rent(rider.id, first.id)),
        _attempt(session_factory, lambda s: RentalLedger(s).rent(rider.id, second.id)),
    )

    errors = [o for o in outcomes if isinstance(o, DomainError)]
    assert len(errors) == 1
    assert isinstance(errors[0], UserHasActiveRental)

    async with session_factory() as check:
        repo = BicycleRepository(check)
        statuses = [
            BicycleStatus((await repo.get_by_id(b.id)).status).value
            for b in (first, second)
        ]
        assert sorted(statuses) == ["available", "rented"]


@pytest.mark.asyncio
async def test_last_seat_goes_to_one_rider(
    db_session, session_factory, make_user, clock
):
    alice = await make_user()
    bob = await make_user()
    event = await EventCapacityManager(db_session, clock=clock).create(
        name="Ciclovia",
        event_date=clock.now + timedelta(days=3),
        start_time="07:00",
        max_participants=1,
        status=EventStatus.PUBLISHED,
    )
    await db_session.commit()

    outcomes = await asyncio.gather(
        _attempt(
            session_factory,
            lambda s: EventCapacityManager(s, clock=clock).register(event.id, alice.id),
        ),
        _attempt(
            session_factory,
            lambda s: EventCapacityManager(s, clock=clock).register(event.id, bob.id),
        ),
    )

    errors = [o for o in outcomes if isinstance(o, DomainError)]
    assert len(errors) == 1
    assert isinstance(errors[0], EventFull)

    async with session_factory() as check:
        repo = EventRepository(check)
        fresh = await repo.get_by_id(event.id)
        assert fresh.current_participants == 1
        assert await repo.count_participants(event.id) == 1


@pytest.mark.asyncio
async def test_double_return_bills_once(
    db_session, session_factory, make_user, make_bicycle
):
    rider = await make_user(stratum=1)
    bike = await make_bicycle()
    rental = await RentalLedger(db_session).rent(rider.id, bike.id)
    await db_session.commit()

    outcomes = await asyncio.gather(
        _attempt(session_factory, lambda s: RentalLedger(s).return_rental(rental.id)),
        _attempt(session_factory, lambda s: RentalLedger(s).return_rental(rental.id)),
    )

    errors = [o for o in outcomes if isinstance(o, DomainError)]
    assert len(errors) == 1
    assert isinstance(errors[0], RentalNotActive)

    async with session_factory() as check:
        closed = await RentalRepository(check).get_by_id(rental.id)
        assert closed.status == RentalStatus.COMPLETED
        bicycle = await BicycleRepository(check).get_by_id(bike.id)
        assert bicycle.status == BicycleStatus.AVAILABLE
