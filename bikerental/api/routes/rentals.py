"""
Rental endpoints
================

POST   /api/v1/rentals                      -- rent a bicycle (201)
GET    /api/v1/rentals/my/active            -- caller's active rental (or null)
GET    /api/v1/rentals/my                   -- caller's rental history
GET    /api/v1/rentals/estimate/{bike_id}   -- 1 h / 3 h cost preview
GET    /api/v1/rentals/{rental_id}          -- one rental (?expand=bicycle)
GET    /api/v1/rentals                      -- all rentals (admin)
PUT    /api/v1/rentals/{rental_id}/return   -- return and bill
DELETE /api/v1/rentals/{rental_id}          -- cancel, no charge
"""

from typing import Literal, Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from bikerental.api.dependencies import (
    get_current_user_id,
    get_db,
    get_optional_user_id,
)
from bikerental.api.middleware import RATE_LIMIT, limiter
from bikerental.api.schemas import (
    CostEstimate,
    EstimateResponse,
    ErrorResponse,
    RentalCreateRequest,
    RentalResponse,
    RentalReturnRequest,
)
from bikerental.domain.enums import RentalStatus
from bikerental.services.rentals import RentalLedger

router = APIRouter(prefix="/rentals", tags=["rentals"])

CONFLICT = {409: {"model": ErrorResponse}, 404: {"model": ErrorResponse}}


async def _render(ledger: RentalLedger, rental, expand: Optional[str]) -> RentalResponse:
    bicycle = None
    if expand == "bicycle":
        bicycle = await ledger.registry.get(rental.bicycle_id)
    return RentalResponse.from_model(rental, bicycle)


@router.post(
    "",
    status_code=201,
    response_model=RentalResponse,
    summary="Rent an available bicycle",
    responses=CONFLICT,
)
@limiter.limit(RATE_LIMIT)
async def rent_bicycle(
    request: Request,
    body: RentalCreateRequest,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    ledger = RentalLedger(db)
    rental = await ledger.rent(
        user_id,
        body.bicycle_id,
        body.start_location.to_domain() if body.start_location else None,
    )
    return RentalResponse.from_model(rental)


@router.get(
    "/my/active",
    response_model=Optional[RentalResponse],
    summary="The caller's active rental, if any",
)
@limiter.limit(RATE_LIMIT)
async def get_active_rental(
    request: Request,
    expand: Optional[Literal["bicycle"]] = None,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    ledger = RentalLedger(db)
    rental = await ledger.get_active_rental(user_id)
    if rental is None:
        return None
    return await _render(ledger, rental, expand)


@router.get(
    "/my",
    response_model=list[RentalResponse],
    summary="The caller's rental history",
)
@limiter.limit(RATE_LIMIT)
async def get_my_rentals(
    request: Request,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    rentals = await RentalLedger(db).list_for_user(user_id)
    return [RentalResponse.from_model(r) for r in rentals]


@router.get(
    "/estimate/{bicycle_id}",
    response_model=EstimateResponse,
    summary="Preview the cost of renting a bicycle",
    responses=CONFLICT,
)
@limiter.limit(RATE_LIMIT)
async def estimate_cost(
    request: Request,
    bicycle_id: int,
    user_id: Optional[int] = Depends(get_optional_user_id),
    db: AsyncSession = Depends(get_db),
):
    estimates = await RentalLedger(db).estimate(bicycle_id, user_id)
    return EstimateResponse(
        bicycle_id=bicycle_id,
        estimates=[CostEstimate.from_breakdown(h, c) for h, c in estimates.items()],
    )


@router.get(
    "/{rental_id}",
    response_model=RentalResponse,
    summary="Get a rental",
    responses=CONFLICT,
)
@limiter.limit(RATE_LIMIT)
async def get_rental(
    request: Request,
    rental_id: int,
    expand: Optional[Literal["bicycle"]] = None,
    db: AsyncSession = Depends(get_db),
):
    ledger = RentalLedger(db)
    return await _render(ledger, await ledger.get(rental_id), expand)


@router.get("", response_model=list[RentalResponse], summary="List all rentals")
@limiter.limit(RATE_LIMIT)
async def list_rentals(
    request: Request,
    status: Optional[RentalStatus] = None,
    db: AsyncSession = Depends(get_db),
):
    rentals = await RentalLedger(db).list_all(status=status)
    return [RentalResponse.from_model(r) for r in rentals]


@router.put(
    "/{rental_id}/return",
    response_model=RentalResponse,
    summary="Return a rented bicycle",
    description=(
        "Completes an ACTIVE rental, bills every started hour with the "
        "rider's stratum discount and makes the bicycle available again."
    ),
    responses=CONFLICT,
)
@limiter.limit(RATE_LIMIT)
async def return_bicycle(
    request: Request,
    rental_id: int,
    body: Optional[RentalReturnRequest] = None,
    db: AsyncSession = Depends(get_db),
):
    end_location = body.end_location.to_domain() if body and body.end_location else None
    rental = await RentalLedger(db).return_rental(rental_id, end_location)
    return RentalResponse.from_model(rental)


@router.delete(
    "/{rental_id}",
    response_model=RentalResponse,
    summary="Cancel an active rental",
    responses=CONFLICT,
)
@limiter.limit(RATE_LIMIT)
async def cancel_rental(
    request: Request,
    rental_id: int,
    db: AsyncSession = Depends(get_db),
):
    rental = await RentalLedger(db).cancel(rental_id)
    return RentalResponse.from_model(rental)
