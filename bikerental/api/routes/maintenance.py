"""
Maintenance endpoints
=====================

POST   /api/v1/maintenance                         -- open a log entry (201)
GET    /api/v1/maintenance                         -- all entries
GET    /api/v1/maintenance/upcoming                -- next service due soon
GET    /api/v1/maintenance/overdue                 -- next service date passed
GET    /api/v1/maintenance/bicycle/{bicycle_id}    -- history of one bicycle
GET    /api/v1/maintenance/{log_id}                -- one entry
PUT    /api/v1/maintenance/{log_id}                -- edit
DELETE /api/v1/maintenance/{log_id}                -- remove (204)
POST   /api/v1/maintenance/{log_id}/complete       -- finish; bicycle back to available
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from bikerental.api.dependencies import get_db
from bikerental.api.middleware import RATE_LIMIT, limiter
from bikerental.api.schemas import (
    ErrorResponse,
    MaintenanceCreateRequest,
    MaintenanceResponse,
    MaintenanceUpdateRequest,
)
from bikerental.services.maintenance import MaintenanceService

router = APIRouter(prefix="/maintenance", tags=["maintenance"])

CONFLICT = {409: {"model": ErrorResponse}, 404: {"model": ErrorResponse}}


def _render_all(logs) -> list[MaintenanceResponse]:
    return [MaintenanceResponse.model_validate(log) for log in logs]


@router.post(
    "",
    status_code=201,
    response_model=MaintenanceResponse,
    summary="Open a maintenance log entry",
    responses=CONFLICT,
)
@limiter.limit(RATE_LIMIT)
async def create_maintenance_log(
    request: Request,
    body: MaintenanceCreateRequest,
    db: AsyncSession = Depends(get_db),
):
    log = await MaintenanceService(db).create(**body.model_dump())
    return MaintenanceResponse.model_validate(log)


@router.get("", response_model=list[MaintenanceResponse], summary="List maintenance logs")
@limiter.limit(RATE_LIMIT)
async def list_maintenance_logs(
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    return _render_all(await MaintenanceService(db).list_all())


@router.get(
    "/upcoming",
    response_model=list[MaintenanceResponse],
    summary="Entries whose next service falls within the window",
)
@limiter.limit(RATE_LIMIT)
async def list_upcoming_maintenance(
    request: Request,
    days: Optional[int] = Query(None, ge=1, le=365),
    db: AsyncSession = Depends(get_db),
):
    return _render_all(await MaintenanceService(db).list_upcoming(days))


@router.get(
    "/overdue",
    response_model=list[MaintenanceResponse],
    summary="Entries whose next service date has passed",
)
@limiter.limit(RATE_LIMIT)
async def list_overdue_maintenance(
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    return _render_all(await MaintenanceService(db).list_overdue())


@router.get(
    "/bicycle/{bicycle_id}",
    response_model=list[MaintenanceResponse],
    summary="Maintenance history of a bicycle",
    responses=CONFLICT,
)
@limiter.limit(RATE_LIMIT)
async def list_bicycle_maintenance(
    request: Request,
    bicycle_id: int,
    db: AsyncSession = Depends(get_db),
):
    return _render_all(await MaintenanceService(db).list_for_bicycle(bicycle_id))


@router.get(
    "/{log_id}",
    response_model=MaintenanceResponse,
    summary="Get a maintenance log entry",
    responses=CONFLICT,
)
@limiter.limit(RATE_LIMIT)
async def get_maintenance_log(
    request: Request,
    log_id: int,
    db: AsyncSession = Depends(get_db),
):
    return MaintenanceResponse.model_validate(await MaintenanceService(db).get(log_id))


@router.put(
    "/{log_id}",
    response_model=MaintenanceResponse,
    summary="Edit a maintenance log entry",
    responses=CONFLICT,
)
@limiter.limit(RATE_LIMIT)
async def update_maintenance_log(
    request: Request,
    log_id: int,
    body: MaintenanceUpdateRequest,
    db: AsyncSession = Depends(get_db),
):
    log = await MaintenanceService(db).update(
        log_id, **body.model_dump(exclude_unset=True)
    )
    return MaintenanceResponse.model_validate(log)


@router.delete(
    "/{log_id}",
    status_code=204,
    summary="Delete a maintenance log entry",
    responses=CONFLICT,
)
@limiter.limit(RATE_LIMIT)
async def delete_maintenance_log(
    request: Request,
    log_id: int,
    db: AsyncSession = Depends(get_db),
):
    await MaintenanceService(db).delete(log_id)
    return Response(status_code=204)


@router.post(
    "/{log_id}/complete",
    response_model=MaintenanceResponse,
    summary="Complete a maintenance job",
    description="The bicycle goes back to available if it was in maintenance.",
    responses=CONFLICT,
)
@limiter.limit(RATE_LIMIT)
async def complete_maintenance(
    request: Request,
    log_id: int,
    db: AsyncSession = Depends(get_db),
):
    log = await MaintenanceService(db).complete(log_id)
    return MaintenanceResponse.model_validate(log)
