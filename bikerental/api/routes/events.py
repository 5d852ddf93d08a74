"""
Event endpoints
===============

POST   /api/v1/events                              -- create (201)
GET    /api/v1/events                              -- list (optionally by status)
GET    /api/v1/events/upcoming                     -- published, not yet held
GET    /api/v1/events/my                           -- events the caller joined
GET    /api/v1/events/{event_id}                   -- one event
PUT    /api/v1/events/{event_id}                   -- edit
DELETE /api/v1/events/{event_id}                   -- delete draft/cancelled (204)
POST   /api/v1/events/{event_id}/publish           -- draft -> published
POST   /api/v1/events/{event_id}/cancel            -- -> cancelled
POST   /api/v1/events/{event_id}/complete          -- published -> completed
GET    /api/v1/events/{event_id}/participants      -- registrations
POST   /api/v1/events/{event_id}/register          -- caller takes a seat
DELETE /api/v1/events/{event_id}/register          -- caller gives the seat back
POST   /api/v1/events/{event_id}/attendance/{uid}  -- mark a participant present
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from bikerental.api.dependencies import (
    get_current_user_id,
    get_db,
    get_optional_user_id,
)
from bikerental.api.middleware import RATE_LIMIT, limiter
from bikerental.api.schemas import (
    ErrorResponse,
    EventCreateRequest,
    EventResponse,
    EventUpdateRequest,
    ParticipantResponse,
)
from bikerental.domain.enums import EventStatus
from bikerental.services.events import EventCapacityManager

router = APIRouter(prefix="/events", tags=["events"])

CONFLICT = {409: {"model": ErrorResponse}, 404: {"model": ErrorResponse}}


def _render(manager: EventCapacityManager, event) -> EventResponse:
    return EventResponse.from_model(event, manager.effective_status(event))


@router.post(
    "",
    status_code=201,
    response_model=EventResponse,
    summary="Create an event",
    responses=CONFLICT,
)
@limiter.limit(RATE_LIMIT)
async def create_event(
    request: Request,
    body: EventCreateRequest,
    user_id: Optional[int] = Depends(get_optional_user_id),
    db: AsyncSession = Depends(get_db),
):
    manager = EventCapacityManager(db)
    event = await manager.create(created_by=user_id, **body.model_dump())
    return _render(manager, event)


@router.get("", response_model=list[EventResponse], summary="List events")
@limiter.limit(RATE_LIMIT)
async def list_events(
    request: Request,
    status: Optional[EventStatus] = None,
    db: AsyncSession = Depends(get_db),
):
    manager = EventCapacityManager(db)
    return [_render(manager, e) for e in await manager.list_all(status=status)]


@router.get(
    "/upcoming",
    response_model=list[EventResponse],
    summary="Published events that have not happened yet",
)
@limiter.limit(RATE_LIMIT)
async def list_upcoming_events(
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    manager = EventCapacityManager(db)
    return [_render(manager, e) for e in await manager.list_upcoming()]


@router.get(
    "/my",
    response_model=list[EventResponse],
    summary="Events the caller is registered for",
)
@limiter.limit(RATE_LIMIT)
async def list_my_events(
    request: Request,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    manager = EventCapacityManager(db)
    return [_render(manager, e) for e in await manager.list_for_user(user_id)]


@router.get(
    "/{event_id}",
    response_model=EventResponse,
    summary="Get an event",
    responses=CONFLICT,
)
@limiter.limit(RATE_LIMIT)
async def get_event(
    request: Request,
    event_id: int,
    db: AsyncSession = Depends(get_db),
):
    manager = EventCapacityManager(db)
    return _render(manager, await manager.get(event_id))


@router.put(
    "/{event_id}",
    response_model=EventResponse,
    summary="Edit an event",
    description=(
        "A new status must be reachable from the current one, and "
        "max_participants can not drop below the seats already taken."
    ),
    responses=CONFLICT,
)
@limiter.limit(RATE_LIMIT)
async def update_event(
    request: Request,
    event_id: int,
    body: EventUpdateRequest,
    db: AsyncSession = Depends(get_db),
):
    manager = EventCapacityManager(db)
    event = await manager.update(event_id, **body.model_dump(exclude_unset=True))
    return _render(manager, event)


@router.delete(
    "/{event_id}",
    status_code=204,
    summary="Delete a draft or cancelled event",
    responses=CONFLICT,
)
@limiter.limit(RATE_LIMIT)
async def delete_event(
    request: Request,
    event_id: int,
    db: AsyncSession = Depends(get_db),
):
    await EventCapacityManager(db).delete(event_id)
    return Response(status_code=204)


@router.post(
    "/{event_id}/publish",
    response_model=EventResponse,
    summary="Open an event for registration",
    responses=CONFLICT,
)
@limiter.limit(RATE_LIMIT)
async def publish_event(
    request: Request,
    event_id: int,
    db: AsyncSession = Depends(get_db),
):
    manager = EventCapacityManager(db)
    return _render(manager, await manager.publish(event_id))


@router.post(
    "/{event_id}/cancel",
    response_model=EventResponse,
    summary="Cancel an event",
    responses=CONFLICT,
)
@limiter.limit(RATE_LIMIT)
async def cancel_event(
    request: Request,
    event_id: int,
    db: AsyncSession = Depends(get_db),
):
    manager = EventCapacityManager(db)
    return _render(manager, await manager.cancel_event(event_id))


@router.post(
    "/{event_id}/complete",
    response_model=EventResponse,
    summary="Mark an event as completed",
    responses=CONFLICT,
)
@limiter.limit(RATE_LIMIT)
async def complete_event(
    request: Request,
    event_id: int,
    db: AsyncSession = Depends(get_db),
):
    manager = EventCapacityManager(db)
    return _render(manager, await manager.complete_event(event_id))


@router.get(
    "/{event_id}/participants",
    response_model=list[ParticipantResponse],
    summary="List an event's registrations",
    responses=CONFLICT,
)
@limiter.limit(RATE_LIMIT)
async def list_participants(
    request: Request,
    event_id: int,
    db: AsyncSession = Depends(get_db),
):
    participants = await EventCapacityManager(db).list_participants(event_id)
    return [ParticipantResponse.model_validate(p) for p in participants]


@router.post(
    "/{event_id}/register",
    response_model=EventResponse,
    summary="Register the caller for an event",
    responses=CONFLICT,
)
@limiter.limit(RATE_LIMIT)
async def register_for_event(
    request: Request,
    event_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    manager = EventCapacityManager(db)
    return _render(manager, await manager.register(event_id, user_id))


@router.delete(
    "/{event_id}/register",
    response_model=EventResponse,
    summary="Withdraw the caller's registration",
    responses=CONFLICT,
)
@limiter.limit(RATE_LIMIT)
async def cancel_event_registration(
    request: Request,
    event_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    manager = EventCapacityManager(db)
    return _render(manager, await manager.cancel_registration(event_id, user_id))


@router.post(
    "/{event_id}/attendance/{user_id}",
    response_model=ParticipantResponse,
    summary="Mark a registered user as present",
    responses=CONFLICT,
)
@limiter.limit(RATE_LIMIT)
async def mark_attendance(
    request: Request,
    event_id: int,
    user_id: int,
    db: AsyncSession = Depends(get_db),
):
    participant = await EventCapacityManager(db).mark_attendance(event_id, user_id)
    return ParticipantResponse.model_validate(participant)
