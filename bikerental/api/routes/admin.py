"""
Admin / observability endpoints
===============================

GET /api/v1/admin/active-rentals -- every open rental with its bicycle expanded
GET /api/v1/admin/health         -- simple health check
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from bikerental.api.dependencies import get_db
from bikerental.api.middleware import RATE_LIMIT, limiter
from bikerental.api.schemas import HealthResponse, RentalResponse
from bikerental.domain.enums import RentalStatus
from bikerental.services.rentals import RentalLedger

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get(
    "/active-rentals",
    response_model=list[RentalResponse],
    summary="List all active rentals with their bicycles",
)
@limiter.limit(RATE_LIMIT)
async def get_active_rentals(
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    ledger = RentalLedger(db)
    rentals = await ledger.list_all(status=RentalStatus.ACTIVE)
    result: list[RentalResponse] = []
    for r in rentals:
        bicycle = await ledger.registry.get(r.bicycle_id)
        result.append(RentalResponse.from_model(r, bicycle))
    return result


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health():
    return HealthResponse()
