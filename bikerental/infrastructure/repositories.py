"""
Repository Pattern -- abstracts DB access so domain logic stays DB-agnostic.

Each repository receives an ``AsyncSession`` (unit-of-work) and exposes
domain-relevant queries only.  The ``compare_and_set_*`` / ``try_*``
methods are single conditional UPDATE statements: they succeed for exactly
one of several concurrent callers and report the outcome via ``rowcount``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import (
    BicycleModel,
    EventModel,
    EventParticipantModel,
    MaintenanceLogModel,
    RentalModel,
    UserModel,
)
from bikerental.domain.enums import (
    RENTAL_TRANSITIONS,
    BicycleStatus,
    EventStatus,
    RentalStatus,
    sources_for,
)


class _Repository:
    model = None

    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(self, obj):
        self.session.add(obj)
        await self.session.flush()
        return obj

    async def get_by_id(self, obj_id: int):
        return await self.session.get(self.model, obj_id)

    async def reload(self, obj_id: int):
        """Fetch a row, overwriting whatever the identity map holds."""
        return await self.session.get(self.model, obj_id, populate_existing=True)

    async def _conditional_update(self, *criteria, **values) -> bool:
        result = await self.session.execute(
            update(self.model)
            .where(*criteria)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1


class UserRepository(_Repository):
    model = UserModel


class BicycleRepository(_Repository):
    model = BicycleModel

    async def get_by_code(self, code: str) -> Optional[BicycleModel]:
        result = await self.session.execute(
            select(BicycleModel).where(BicycleModel.code == code)
        )
        return result.scalar_one_or_none()

    async def list_all(
        self,
        status: Optional[BicycleStatus] = None,
        include_inactive: bool = False,
    ) -> list[BicycleModel]:
        query = select(BicycleModel).order_by(BicycleModel.code)
        if status is not None:
            query = query.where(BicycleModel.status == status)
        if not include_inactive:
            query = query.where(BicycleModel.is_active.is_(True))
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def list_in_cells(
        self, cells: Iterable[str], status: Optional[BicycleStatus] = None
    ) -> list[BicycleModel]:
        query = select(BicycleModel).where(
            BicycleModel.h3_cell.in_(list(cells)),
            BicycleModel.is_active.is_(True),
        )
        if status is not None:
            query = query.where(BicycleModel.status == status)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def count_by_status(self) -> dict[BicycleStatus, int]:
        result = await self.session.execute(
            select(BicycleModel.status, func.count())
            .where(BicycleModel.is_active.is_(True))
            .group_by(BicycleModel.status)
        )
        counts = {s: 0 for s in BicycleStatus}
        for status, n in result.all():
            counts[BicycleStatus(status)] = n
        return counts

    async def compare_and_set_status(
        self,
        bicycle_id: int,
        expected: Iterable[BicycleStatus],
        new_status: BicycleStatus,
        require_active: bool = False,
    ) -> bool:
        """``UPDATE bicycles SET status = new WHERE id = :id AND status IN expected``."""
        criteria = [
            BicycleModel.id == bicycle_id,
            BicycleModel.status.in_(list(expected)),
        ]
        if require_active:
            criteria.append(BicycleModel.is_active.is_(True))
        return await self._conditional_update(*criteria, status=new_status)

    async def deactivate_unless_rented(self, bicycle_id: int) -> bool:
        return await self._conditional_update(
            BicycleModel.id == bicycle_id,
            BicycleModel.status != BicycleStatus.RENTED,
            is_active=False,
        )


class RentalRepository(_Repository):
    model = RentalModel

    async def get_active_for_user(self, user_id: int) -> Optional[RentalModel]:
        result = await self.session.execute(
            select(RentalModel).where(
                RentalModel.user_id == user_id,
                RentalModel.status == RentalStatus.ACTIVE,
            )
        )
        return result.scalar_one_or_none()

    async def get_active_for_bicycle(self, bicycle_id: int) -> Optional[RentalModel]:
        result = await self.session.execute(
            select(RentalModel).where(
                RentalModel.bicycle_id == bicycle_id,
                RentalModel.status == RentalStatus.ACTIVE,
            )
        )
        return result.scalar_one_or_none()

    async def list_for_user(self, user_id: int) -> list[RentalModel]:
        result = await self.session.execute(
            select(RentalModel)
            .where(RentalModel.user_id == user_id)
            .order_by(RentalModel.start_date.desc(), RentalModel.id.desc())
        )
        return list(result.scalars().all())

    async def list_all(
        self, status: Optional[RentalStatus] = None
    ) -> list[RentalModel]:
        query = select(RentalModel).order_by(RentalModel.start_date.desc())
        if status is not None:
            query = query.where(RentalModel.status == status)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def close_if_active(
        self, rental_id: int, new_status: RentalStatus, **values
    ) -> bool:
        """Terminal transition; only one concurrent caller can win it."""
        return await self._conditional_update(
            RentalModel.id == rental_id,
            RentalModel.status.in_(list(sources_for(RENTAL_TRANSITIONS, new_status))),
            status=new_status,
            **values,
        )


class EventRepository(_Repository):
    model = EventModel

    async def list_all(self, status: Optional[EventStatus] = None) -> list[EventModel]:
        query = select(EventModel).order_by(EventModel.event_date)
        if status is not None:
            query = query.where(EventModel.status == status)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def list_upcoming(self, now: datetime) -> list[EventModel]:
        result = await self.session.execute(
            select(EventModel)
            .where(
                EventModel.status == EventStatus.PUBLISHED,
                EventModel.event_date >= now,
            )
            .order_by(EventModel.event_date)
        )
        return list(result.scalars().all())

    async def list_for_user(self, user_id: int) -> list[EventModel]:
        result = await self.session.execute(
            select(EventModel)
            .join(
                EventParticipantModel,
                EventParticipantModel.event_id == EventModel.id,
            )
            .where(EventParticipantModel.user_id == user_id)
            .order_by(EventModel.event_date)
        )
        return list(result.scalars().all())

    async def try_increment_participants(self, event_id: int) -> bool:
        """Take one seat iff the event is published and below its ceiling."""
        return await self._conditional_update(
            EventModel.id == event_id,
            EventModel.status == EventStatus.PUBLISHED,
            or_(
                EventModel.max_participants.is_(None),
                EventModel.current_participants < EventModel.max_participants,
            ),
            current_participants=EventModel.current_participants + 1,
        )

    async def decrement_participants(self, event_id: int) -> bool:
        return await self._conditional_update(
            EventModel.id == event_id,
            EventModel.current_participants > 0,
            current_participants=EventModel.current_participants - 1,
        )

    async def compare_and_set_status(
        self,
        event_id: int,
        expected: Iterable[EventStatus],
        new_status: EventStatus,
    ) -> bool:
        return await self._conditional_update(
            EventModel.id == event_id,
            EventModel.status.in_(list(expected)),
            status=new_status,
        )

    async def update_max_participants(
        self, event_id: int, max_participants: Optional[int]
    ) -> bool:
        """Lower or raise the ceiling without dropping below current seats."""
        criteria = [EventModel.id == event_id]
        if max_participants is not None:
            criteria.append(EventModel.current_participants <= max_participants)
        return await self._conditional_update(
            *criteria, max_participants=max_participants
        )

    async def delete(self, event: EventModel) -> None:
        await self.session.execute(
            delete(EventParticipantModel).where(
                EventParticipantModel.event_id == event.id
            )
        )
        await self.session.delete(event)
        await self.session.flush()

    # ── participants ──────────────────────────────────────────────

    async def get_participant(
        self, event_id: int, user_id: int
    ) -> Optional[EventParticipantModel]:
        result = await self.session.execute(
            select(EventParticipantModel).where(
                EventParticipantModel.event_id == event_id,
                EventParticipantModel.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def remove_participant(self, event_id: int, user_id: int) -> bool:
        result = await self.session.execute(
            delete(EventParticipantModel)
            .where(
                EventParticipantModel.event_id == event_id,
                EventParticipantModel.user_id == user_id,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def list_participants(self, event_id: int) -> list[EventParticipantModel]:
        result = await self.session.execute(
            select(EventParticipantModel)
            .where(EventParticipantModel.event_id == event_id)
            .order_by(EventParticipantModel.registration_date)
        )
        return list(result.scalars().all())

    async def count_participants(self, event_id: int) -> int:
        result = await self.session.execute(
            select(func.count())
            .select_from(EventParticipantModel)
            .where(EventParticipantModel.event_id == event_id)
        )
        return result.scalar() or 0


class MaintenanceLogRepository(_Repository):
    model = MaintenanceLogModel

    async def list_all(self) -> list[MaintenanceLogModel]:
        result = await self.session.execute(
            select(MaintenanceLogModel).order_by(
                MaintenanceLogModel.maintenance_date.desc()
            )
        )
        return list(result.scalars().all())

    async def list_for_bicycle(self, bicycle_id: int) -> list[MaintenanceLogModel]:
        result = await self.session.execute(
            select(MaintenanceLogModel)
            .where(MaintenanceLogModel.bicycle_id == bicycle_id)
            .order_by(MaintenanceLogModel.maintenance_date.desc())
        )
        return list(result.scalars().all())

    async def list_due_between(
        self, start: Optional[datetime], end: datetime
    ) -> list[MaintenanceLogModel]:
        """Logs whose ``next_maintenance_date`` falls in ``[start, end)``."""
        query = select(MaintenanceLogModel).where(
            MaintenanceLogModel.next_maintenance_date.is_not(None),
            MaintenanceLogModel.next_maintenance_date < end,
        )
        if start is not None:
            query = query.where(MaintenanceLogModel.next_maintenance_date >= start)
        result = await self.session.execute(
            query.order_by(MaintenanceLogModel.next_maintenance_date)
        )
        return list(result.scalars().all())

    async def mark_completed(self, log_id: int, completed_at: datetime) -> bool:
        return await self._conditional_update(
            MaintenanceLogModel.id == log_id,
            MaintenanceLogModel.completed.is_(False),
            completed=True,
            completed_at=completed_at,
        )

    async def delete(self, log: MaintenanceLogModel) -> None:
        await self.session.delete(log)
        await self.session.flush()
