"""
Bicycle endpoints
=================

POST   /api/v1/bicycles                          -- register a bicycle (201)
GET    /api/v1/bicycles                          -- list (optionally by status)
GET    /api/v1/bicycles/available                -- rentable bicycles
GET    /api/v1/bicycles/nearby                   -- available bicycles near a point
GET    /api/v1/bicycles/stats/count-by-status    -- fleet summary
GET    /api/v1/bicycles/code/{code}              -- lookup by code
GET    /api/v1/bicycles/{bicycle_id}             -- one bicycle
PUT    /api/v1/bicycles/{bicycle_id}             -- edit descriptive fields
PATCH  /api/v1/bicycles/{bicycle_id}/status      -- administrative status change
PATCH  /api/v1/bicycles/{bicycle_id}/location    -- move a bicycle
DELETE /api/v1/bicycles/{bicycle_id}             -- soft delete (204)
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from bikerental.api.dependencies import get_db
from bikerental.api.middleware import RATE_LIMIT, limiter
from bikerental.api.schemas import (
    BicycleCreateRequest,
    BicycleLocationRequest,
    BicycleResponse,
    BicycleStatusRequest,
    BicycleUpdateRequest,
    ErrorResponse,
    NearbyBicycleResponse,
)
from bikerental.domain.enums import BicycleStatus
from bikerental.services.bicycles import BicycleRegistry

router = APIRouter(prefix="/bicycles", tags=["bicycles"])

CONFLICT = {409: {"model": ErrorResponse}, 404: {"model": ErrorResponse}}


@router.post(
    "",
    status_code=201,
    response_model=BicycleResponse,
    summary="Register a new bicycle",
    responses=CONFLICT,
)
@limiter.limit(RATE_LIMIT)
async def create_bicycle(
    request: Request,
    body: BicycleCreateRequest,
    db: AsyncSession = Depends(get_db),
):
    bicycle = await BicycleRegistry(db).create(
        code=body.code,
        brand=body.brand,
        model=body.model,
        color=body.color,
        rental_price_per_hour=body.rental_price_per_hour,
        location=body.current_location.to_domain() if body.current_location else None,
        purchase_date=body.purchase_date,
        last_maintenance_date=body.last_maintenance_date,
    )
    return BicycleResponse.from_model(bicycle)


@router.get("", response_model=list[BicycleResponse], summary="List bicycles")
@limiter.limit(RATE_LIMIT)
async def list_bicycles(
    request: Request,
    status: Optional[BicycleStatus] = None,
    db: AsyncSession = Depends(get_db),
):
    bicycles = await BicycleRegistry(db).list_all(status=status)
    return [BicycleResponse.from_model(b) for b in bicycles]


@router.get(
    "/available",
    response_model=list[BicycleResponse],
    summary="List bicycles that can be rented right now",
)
@limiter.limit(RATE_LIMIT)
async def list_available_bicycles(
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    bicycles = await BicycleRegistry(db).list_available()
    return [BicycleResponse.from_model(b) for b in bicycles]


@router.get(
    "/nearby",
    response_model=list[NearbyBicycleResponse],
    summary="Available bicycles within a radius, nearest first",
)
@limiter.limit(RATE_LIMIT)
async def find_nearby_bicycles(
    request: Request,
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    max_distance: Optional[float] = Query(None, gt=0, description="Metres"),
    db: AsyncSession = Depends(get_db),
):
    found = await BicycleRegistry(db).find_nearby(lat, lng, max_distance)
    return [
        NearbyBicycleResponse(
            bicycle=BicycleResponse.from_model(b), distance_m=round(d, 1)
        )
        for b, d in found
    ]


@router.get(
    "/stats/count-by-status",
    response_model=dict[str, int],
    summary="Number of bicycles per status",
)
@limiter.limit(RATE_LIMIT)
async def count_bicycles_by_status(
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    counts = await BicycleRegistry(db).count_by_status()
    return {BicycleStatus(s).value: n for s, n in counts.items()}


@router.get(
    "/code/{code}",
    response_model=BicycleResponse,
    summary="Find a bicycle by its code",
    responses=CONFLICT,
)
@limiter.limit(RATE_LIMIT)
async def get_bicycle_by_code(
    request: Request,
    code: str,
    db: AsyncSession = Depends(get_db),
):
    return BicycleResponse.from_model(await BicycleRegistry(db).get_by_code(code))


@router.get(
    "/{bicycle_id}",
    response_model=BicycleResponse,
    summary="Get a bicycle",
    responses=CONFLICT,
)
@limiter.limit(RATE_LIMIT)
async def get_bicycle(
    request: Request,
    bicycle_id: int,
    db: AsyncSession = Depends(get_db),
):
    return BicycleResponse.from_model(await BicycleRegistry(db).get(bicycle_id))


@router.put(
    "/{bicycle_id}",
    response_model=BicycleResponse,
    summary="Edit a bicycle",
    responses=CONFLICT,
)
@limiter.limit(RATE_LIMIT)
async def update_bicycle(
    request: Request,
    bicycle_id: int,
    body: BicycleUpdateRequest,
    db: AsyncSession = Depends(get_db),
):
    bicycle = await BicycleRegistry(db).update(
        bicycle_id, **body.model_dump(exclude_unset=True)
    )
    return BicycleResponse.from_model(bicycle)


@router.patch(
    "/{bicycle_id}/status",
    response_model=BicycleResponse,
    summary="Change a bicycle's status",
    description=(
        "Administrative override between available, maintenance and retired. "
        "The rented status is only ever set by renting and returning, so a "
        "bicycle that is currently rented is refused (409 InvalidTransition), "
        "including retiring it; return or cancel the rental first."
    ),
    responses=CONFLICT,
)
@limiter.limit(RATE_LIMIT)
async def change_bicycle_status(
    request: Request,
    bicycle_id: int,
    body: BicycleStatusRequest,
    db: AsyncSession = Depends(get_db),
):
    bicycle = await BicycleRegistry(db).override_status(bicycle_id, body.status)
    return BicycleResponse.from_model(bicycle)


@router.patch(
    "/{bicycle_id}/location",
    response_model=BicycleResponse,
    summary="Move a bicycle",
    responses=CONFLICT,
)
@limiter.limit(RATE_LIMIT)
async def update_bicycle_location(
    request: Request,
    bicycle_id: int,
    body: BicycleLocationRequest,
    db: AsyncSession = Depends(get_db),
):
    bicycle = await BicycleRegistry(db).update_location(
        bicycle_id, body.location.to_domain()
    )
    return BicycleResponse.from_model(bicycle)


@router.delete(
    "/{bicycle_id}",
    status_code=204,
    summary="Remove a bicycle from the fleet",
    responses=CONFLICT,
)
@limiter.limit(RATE_LIMIT)
async def delete_bicycle(
    request: Request,
    bicycle_id: int,
    db: AsyncSession = Depends(get_db),
):
    await BicycleRegistry(db).delete(bicycle_id)
    return Response(status_code=204)
