"""Service-level tests for the bicycle registry."""

from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from bikerental.domain.entities import Location
from bikerental.domain.enums import BicycleStatus
from bikerental.domain.errors import (
    BicycleNotAvailable,
    BicycleNotFound,
    DuplicateBicycleCode,
    InvalidTransition,
)
from bikerental.domain.spatial import location_cell
from bikerental.services.bicycles import BicycleRegistry

PLAZA = Location(4.5981, -74.0758)


@pytest.fixture
def registry(db_session):
    return BicycleRegistry(db_session)


@pytest.mark.asyncio
async def test_create_registers_an_available_bicycle(registry):
    bike = await registry.create(
        code="BIC-100",
        brand="Trek",
        color="blue",
        rental_price_per_hour=Decimal("5000"),
        location=PLAZA,
    )

    assert bike.status == BicycleStatus.AVAILABLE
    assert bike.is_active
    assert bike.h3_cell == location_cell(PLAZA.latitude, PLAZA.longitude)
    assert (await registry.get_by_code("BIC-100")).id == bike.id


@pytest.mark.asyncio
async def test_duplicate_code_rejected(registry, make_bicycle):
    await make_bicycle(code="BIC-100")
    with pytest.raises(DuplicateBicycleCode):
        await registry.create(
            code="BIC-100", brand="Giant", color="red", rental_price_per_hour=Decimal("1")
        )


@pytest.mark.asyncio
async def test_update_to_taken_code_rejected(registry, make_bicycle):
    await make_bicycle(code="BIC-100")
    other = await make_bicycle(code="BIC-200")
    with pytest.raises(DuplicateBicycleCode):
        await registry.update(other.id, code="BIC-100")


@pytest.mark.asyncio
async def test_update_descriptive_fields(registry, make_bicycle):
    bike = await make_bicycle(price="5000")
    updated = await registry.update(bike.id, color="green", rental_price_per_hour=Decimal("6000"))
    assert updated.color == "green"
    assert updated.rental_price_per_hour == Decimal("6000")


@pytest.mark.asyncio
async def test_update_clearing_a_required_column_is_not_a_code_clash(
    registry, make_bicycle
):
    bike = await make_bicycle()
    with pytest.raises(IntegrityError):
        await registry.update(bike.id, brand=None)


@pytest.mark.asyncio
async def test_update_refuses_status(registry, make_bicycle):
    bike = await make_bicycle()
    with pytest.raises(ValueError):
        await registry.update(bike.id, status=BicycleStatus.RETIRED)


@pytest.mark.asyncio
async def test_unknown_bicycle(registry):
    with pytest.raises(BicycleNotFound):
        await registry.get(9999)
    with pytest.raises(BicycleNotFound):
        await registry.get_by_code("nope")
    with pytest.raises(BicycleNotFound):
        await registry.set_status(9999, BicycleStatus.MAINTENANCE)


# ── Status changes ────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_set_status_follows_the_table(registry, make_bicycle):
    bike = await make_bicycle()
    await registry.set_status(bike.id, BicycleStatus.MAINTENANCE)
    await registry.set_status(bike.id, BicycleStatus.AVAILABLE)
    retired = await registry.set_status(bike.id, BicycleStatus.RETIRED)
    assert retired.status == BicycleStatus.RETIRED

    with pytest.raises(InvalidTransition):
        await registry.set_status(bike.id, BicycleStatus.AVAILABLE)


@pytest.mark.asyncio
async def test_override_cannot_enter_rented(registry, make_bicycle):
    bike = await make_bicycle()
    with pytest.raises(InvalidTransition):
        await registry.override_status(bike.id, BicycleStatus.RENTED)
    assert (await registry.repo.reload(bike.id)).status == BicycleStatus.AVAILABLE


@pytest.mark.asyncio
async def test_override_cannot_leave_rented(registry, make_bicycle):
    bike = await make_bicycle(status=BicycleStatus.RENTED)
    for target in (BicycleStatus.AVAILABLE, BicycleStatus.MAINTENANCE, BicycleStatus.RETIRED):
        with pytest.raises(InvalidTransition):
            await registry.override_status(bike.id, target)
    assert (await registry.repo.reload(bike.id)).status == BicycleStatus.RENTED


@pytest.mark.asyncio
async def test_override_to_maintenance_and_back(registry, make_bicycle):
    bike = await make_bicycle()
    assert (
        await registry.override_status(bike.id, BicycleStatus.MAINTENANCE)
    ).status == BicycleStatus.MAINTENANCE
    assert not registry.is_rentable(bike)
    assert (
        await registry.override_status(bike.id, BicycleStatus.AVAILABLE)
    ).status == BicycleStatus.AVAILABLE
    assert registry.is_rentable(bike)


@pytest.mark.asyncio
async def test_claim_only_from_available(registry, make_bicycle):
    bike = await make_bicycle()
    claimed = await registry.claim_for_rental(bike.id)
    assert claimed.status == BicycleStatus.RENTED

    with pytest.raises(BicycleNotAvailable):
        await registry.claim_for_rental(bike.id)


# ── Listing & search ──────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_listing_and_counts(registry, make_bicycle):
    await make_bicycle()
    await make_bicycle()
    await make_bicycle(status=BicycleStatus.MAINTENANCE)
    await make_bicycle(status=BicycleStatus.RENTED)
    await make_bicycle(is_active=False)

    assert len(await registry.list_all()) == 4
    assert len(await registry.list_available()) == 2
    assert len(await registry.list_all(status=BicycleStatus.MAINTENANCE)) == 1

    counts = await registry.count_by_status()
    assert counts[BicycleStatus.AVAILABLE] == 2
    assert counts[BicycleStatus.RENTED] == 1
    assert counts[BicycleStatus.MAINTENANCE] == 1
    assert counts[BicycleStatus.RETIRED] == 0


@pytest.mark.asyncio
async def test_find_nearby(registry, make_bicycle):
    near = await make_bicycle(location=Location(4.5990, -74.0758))      # ~100 m
    mid = await make_bicycle(location=Location(4.6200, -74.0758))       # ~2.4 km
    await make_bicycle(location=Location(4.7000, -74.0758))             # ~11 km
    await make_bicycle(
        location=Location(4.5985, -74.0758), status=BicycleStatus.MAINTENANCE
    )
    await make_bicycle()  # no location

    found = await registry.find_nearby(PLAZA.latitude, PLAZA.longitude, 5000)

    assert [b.id for b, _ in found] == [near.id, mid.id]
    assert found[0][1] < 150
    assert 2000 < found[1][1] < 3000


@pytest.mark.asyncio
async def test_find_nearby_can_include_busy_bicycles(registry, make_bicycle):
    busy = await make_bicycle(
        location=Location(4.5985, -74.0758), status=BicycleStatus.RENTED
    )
    found = await registry.find_nearby(
        PLAZA.latitude, PLAZA.longitude, 1000, available_only=False
    )
    assert [b.id for b, _ in found] == [busy.id]


@pytest.mark.asyncio
async def test_update_location_moves_the_cell(registry, make_bicycle):
    bike = await make_bicycle(location=PLAZA)
    moved = await registry.update_location(bike.id, Location(4.6766, -74.0483))
    assert moved.h3_cell == location_cell(4.6766, -74.0483)
    assert moved.h3_cell != location_cell(PLAZA.latitude, PLAZA.longitude)


# ── Soft delete ───────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_delete_hides_the_bicycle(registry, make_bicycle):
    bike = await make_bicycle()
    await registry.delete(bike.id)

    assert await registry.list_all() == []
    assert not (await registry.repo.reload(bike.id)).is_active
    with pytest.raises(BicycleNotAvailable):
        await registry.claim_for_rental(bike.id)


@pytest.mark.asyncio
async def test_rented_bicycle_cannot_be_deleted(registry, make_bicycle):
    bike = await make_bicycle(status=BicycleStatus.RENTED)
    with pytest.raises(BicycleNotAvailable):
        await registry.delete(bike.id)


@pytest.mark.asyncio
async def test_status_change_reads_the_current_row(registry, make_bicycle):
    bike = await make_bicycle()
    # another writer moved the bicycle to maintenance behind the identity map
    await registry.repo.compare_and_set_status(
        bike.id, {BicycleStatus.AVAILABLE}, BicycleStatus.MAINTENANCE
    )

    with pytest.raises(InvalidTransition):
        await registry.set_status(bike.id, BicycleStatus.RENTED)
    back = await registry.set_status(bike.id, BicycleStatus.AVAILABLE)
    assert back.status == BicycleStatus.AVAILABLE
