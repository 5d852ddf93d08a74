"""
Event Capacity Manager
======================

Owns events and their participants.

Registration invariants
-----------------------
* ``current_participants <= max_participants`` whenever a ceiling is set.
* ``current_participants`` equals the number of participant rows.
* A user is registered at most once per event.

The seat is taken with a single conditional UPDATE
(``current_participants + 1 WHERE status = 'published' AND (max IS NULL OR
current < max)``) and the participant row is inserted in the same
transaction; the ``(event_id, user_id)`` unique constraint rejects a
duplicate registration racing the first one.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from bikerental.domain.entities import (
    Capacity,
    RegistrationWindow,
    as_utc,
    ensure_transition,
    utcnow,
)
from bikerental.domain.enums import EVENT_TRANSITIONS, EventStatus, sources_for
from bikerental.domain.errors import (
    AlreadyRegistered,
    CapacityBelowParticipants,
    EventFull,
    EventNotFound,
    EventNotPublished,
    InvalidTransition,
    NotRegistered,
    UserNotFound,
)
from bikerental.infrastructure.models import EventModel, EventParticipantModel
from bikerental.infrastructure.repositories import EventRepository, UserRepository

logger = logging.getLogger(__name__)

_EDITABLE_FIELDS = {
    "name",
    "description",
    "event_type",
    "event_date",
    "start_time",
    "end_time",
    "route_description",
    "meeting_point",
}

_INITIAL_STATUSES = {EventStatus.DRAFT, EventStatus.PUBLISHED}
_DELETABLE_STATUSES = {EventStatus.DRAFT, EventStatus.CANCELLED}


def window_of(event: EventModel) -> RegistrationWindow:
    return RegistrationWindow(EventStatus(event.status), as_utc(event.event_date))


def capacity_of(event: EventModel) -> Capacity:
    return Capacity(event.current_participants, event.max_participants)


class EventCapacityManager:
    def __init__(
        self,
        session: AsyncSession,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session = session
        self.events = EventRepository(session)
        self.users = UserRepository(session)
        self.clock = clock

    # ── queries ───────────────────────────────────────────────────

    async def get(self, event_id: int) -> EventModel:
        event = await self.events.get_by_id(event_id)
        if event is None:
            raise EventNotFound()
        return event

    async def list_all(self, status: Optional[EventStatus] = None) -> list[EventModel]:
        return await self.events.list_all(status=status)

    async def list_upcoming(self) -> list[EventModel]:
        return await self.events.list_upcoming(self.clock())

    async def list_for_user(self, user_id: int) -> list[EventModel]:
        return await self.events.list_for_user(user_id)

    async def list_participants(self, event_id: int) -> list[EventParticipantModel]:
        await self.get(event_id)
        return await self.events.list_participants(event_id)

    def effective_status(self, event: EventModel) -> EventStatus:
        return window_of(event).effective_status(self.clock())

    # ── admin lifecycle ───────────────────────────────────────────

    async def create(
        self,
        *,
        name: str,
        event_date: datetime,
        start_time: str,
        max_participants: Optional[int] = None,
        status: EventStatus = EventStatus.DRAFT,
        created_by: Optional[int] = None,
        **details,
    ) -> EventModel:
        if status not in _INITIAL_STATUSES:
            raise InvalidTransition(EventStatus.DRAFT, status)
        unknown = set(details) - _EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown event fields: {sorted(unknown)}")

        event = EventModel(
            name=name,
            event_date=as_utc(event_date),
            start_time=start_time,
            max_participants=max_participants,
            current_participants=0,
            status=status,
            created_by=created_by,
            **details,
        )
        await self.events.add(event)
        logger.info("Event %s created (%s)", event.id, status.value)
        return event

    async def update(self, event_id: int, **fields) -> EventModel:
        """
        Edit an event.  ``status`` follows the event state machine and
        ``max_participants`` may never drop below the seats already taken.
        """
        event = await self.get(event_id)
        status = fields.pop("status", None)
        unset = object()
        max_participants = fields.pop("max_participants", unset)

        unknown = set(fields) - _EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields cannot be updated here: {sorted(unknown)}")
        if "event_date" in fields:
            fields["event_date"] = as_utc(fields["event_date"])
        for name, value in fields.items():
            setattr(event, name, value)
        await self.session.flush()

        if max_participants is not unset:
            if not capacity_of(event).allows_maximum(max_participants):
                raise CapacityBelowParticipants()
            if not await self.events.update_max_participants(
                event_id, max_participants
            ):
                raise CapacityBelowParticipants()

        if status is not None and status != event.status:
            await self.transition(event_id, EventStatus(status))

        return await self.events.reload(event_id)

    async def transition(self, event_id: int, new_status: EventStatus) -> EventModel:
        event = await self.events.reload(event_id)
        if event is None:
            raise EventNotFound()
        ensure_transition(EVENT_TRANSITIONS, EventStatus(event.status), new_status)

        if not await self.events.compare_and_set_status(
            event_id, sources_for(EVENT_TRANSITIONS, new_status), new_status
        ):
            event = await self.events.reload(event_id)
            raise InvalidTransition(event.status, new_status)

        logger.info("Event %s -> %s", event_id, new_status.value)
        return await self.events.reload(event_id)

    async def publish(self, event_id: int) -> EventModel:
        return await self.transition(event_id, EventStatus.PUBLISHED)

    async def cancel_event(self, event_id: int) -> EventModel:
        return await self.transition(event_id, EventStatus.CANCELLED)

    async def complete_event(self, event_id: int) -> EventModel:
        return await self.transition(event_id, EventStatus.COMPLETED)

    async def delete(self, event_id: int) -> None:
        event = await self.get(event_id)
        if event.status not in _DELETABLE_STATUSES:
            raise InvalidTransition(
                event.status,
                None,
                "Only draft or cancelled events can be deleted",
            )
        await self.events.delete(event)
        logger.info("Event %s deleted", event_id)

    # ── registration ──────────────────────────────────────────────

    async def register(self, event_id: int, user_id: int) -> EventModel:
        event = await self.get(event_id)
        if await self.users.get_by_id(user_id) is None:
            raise UserNotFound()

        window_of(event).ensure_open(self.clock())
        if await self.events.get_participant(event_id, user_id) is not None:
            raise AlreadyRegistered()
        if not capacity_of(event).has_room():
            raise EventFull()

        if not await self.events.try_increment_participants(event_id):
            fresh = await self.events.reload(event_id)
            if fresh.status != EventStatus.PUBLISHED:
                raise EventNotPublished()
            raise EventFull()

        participant = EventParticipantModel(
            event_id=event_id,
            user_id=user_id,
            registration_date=self.clock(),
            attended=False,
        )
        try:
            await self.events.add(participant)
        except IntegrityError as exc:
            raise AlreadyRegistered() from exc

        logger.info("User %s registered for event %s", user_id, event_id)
        return await self.events.reload(event_id)

    async def cancel_registration(self, event_id: int, user_id: int) -> EventModel:
        await self.get(event_id)
        if not await self.events.remove_participant(event_id, user_id):
            raise NotRegistered()
        await self.events.decrement_participants(event_id)
        logger.info("User %s unregistered from event %s", user_id, event_id)
        return await self.events.reload(event_id)

    async def mark_attendance(
        self, event_id: int, user_id: int
    ) -> EventParticipantModel:
        event = await self.get(event_id)
        participant = await self.events.get_participant(event_id, user_id)
        if participant is None:
            raise NotRegistered()
        window_of(event).ensure_occurred(self.clock())

        participant.attended = True
        await self.session.flush()
        return participant
