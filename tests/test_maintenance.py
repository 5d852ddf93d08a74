"""Service-level tests for the maintenance log."""

from datetime import timedelta
from decimal import Decimal

import pytest

from bikerental.domain.entities import as_utc
from bikerental.domain.enums import BicycleStatus, MaintenanceType
from bikerental.domain.errors import (
    BicycleNotFound,
    MaintenanceAlreadyCompleted,
    MaintenanceLogNotFound,
)
from bikerental.services.maintenance import MaintenanceService


@pytest.fixture
def service(db_session, clock):
    return MaintenanceService(db_session, clock=clock)


async def _status(service: MaintenanceService, bicycle_id: int) -> BicycleStatus:
    return BicycleStatus((await service.registry.repo.reload(bicycle_id)).status)


@pytest.mark.asyncio
async def test_create_leaves_bicycle_status_alone(service, make_bicycle, clock):
    bike = await make_bicycle()
    log = await service.create(
        bicycle_id=bike.id,
        maintenance_type=MaintenanceType.INSPECTION,
        cost=Decimal("15000"),
    )

    assert log.completed is False
    assert as_utc(log.maintenance_date) == clock.now
    assert await _status(service, bike.id) == BicycleStatus.AVAILABLE


@pytest.mark.asyncio
async def test_create_for_unknown_bicycle(service):
    with pytest.raises(BicycleNotFound):
        await service.create(bicycle_id=9999, maintenance_type=MaintenanceType.REPAIR)


@pytest.mark.asyncio
async def test_complete_returns_bicycle_to_service(service, make_bicycle, clock):
    bike = await make_bicycle(status=BicycleStatus.MAINTENANCE)
    log = await service.create(bicycle_id=bike.id, maintenance_type=MaintenanceType.REPAIR)
    clock.advance(days=2)

    done = await service.complete(log.id)

    assert done.completed is True
    assert as_utc(done.completed_at) == clock.now
    assert await _status(service, bike.id) == BicycleStatus.AVAILABLE
    bicycle = await service.registry.repo.reload(bike.id)
    assert bicycle.last_maintenance_date == clock.now.date()


@pytest.mark.asyncio
async def test_complete_does_not_touch_a_rented_bicycle(service, make_bicycle):
    bike = await make_bicycle(status=BicycleStatus.RENTED)
    log = await service.create(bicycle_id=bike.id, maintenance_type=MaintenanceType.INSPECTION)

    await service.complete(log.id)

    assert await _status(service, bike.id) == BicycleStatus.RENTED


@pytest.mark.asyncio
async def test_complete_twice_rejected(service, make_bicycle):
    bike = await make_bicycle(status=BicycleStatus.MAINTENANCE)
    log = await service.create(bicycle_id=bike.id, maintenance_type=MaintenanceType.REPAIR)
    await service.complete(log.id)

    with pytest.raises(MaintenanceAlreadyCompleted):
        await service.complete(log.id)


@pytest.mark.asyncio
async def test_upcoming_and_overdue(service, make_bicycle, clock):
    bike = await make_bicycle()
    overdue = await service.create(
        bicycle_id=bike.id,
        maintenance_type=MaintenanceType.PREVENTIVE,
        next_maintenance_date=clock.now - timedelta(days=1),
    )
    soon = await service.create(
        bicycle_id=bike.id,
        maintenance_type=MaintenanceType.PREVENTIVE,
        next_maintenance_date=clock.now + timedelta(days=5),
    )
    await service.create(
        bicycle_id=bike.id,
        maintenance_type=MaintenanceType.PREVENTIVE,
        next_maintenance_date=clock.now + timedelta(days=60),
    )

    assert [log.id for log in await service.list_upcoming()] == [soon.id]
    assert len(await service.list_upcoming(days=90)) == 2
    assert [log.id for log in await service.list_overdue()] == [overdue.id]


@pytest.mark.asyncio
async def test_history_update_and_delete(service, make_bicycle, clock):
    bike = await make_bicycle()
    first = await service.create(bicycle_id=bike.id, maintenance_type=MaintenanceType.OTHER)
    clock.advance(days=1)
    second = await service.create(bicycle_id=bike.id, maintenance_type=MaintenanceType.OTHER)

    history = await service.list_for_bicycle(bike.id)
    assert [log.id for log in history] == [second.id, first.id]

    updated = await service.update(first.id, description="Spokes trued", performed_by="Ana")
    assert updated.description == "Spokes trued"

    await service.delete(first.id)
    with pytest.raises(MaintenanceLogNotFound):
        await service.get(first.id)
