"""
Maintenance Log
===============

Service history per bicycle.  Creating an entry never touches the
bicycle's status (admins set ``maintenance`` explicitly); completing one is
the single place where the log drives the bicycle back to ``available``.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from bikerental.config import settings
from bikerental.domain.entities import as_utc, utcnow
from bikerental.domain.enums import MaintenanceType
from bikerental.domain.errors import (
    MaintenanceAlreadyCompleted,
    MaintenanceLogNotFound,
)
from bikerental.infrastructure.models import MaintenanceLogModel
from bikerental.infrastructure.repositories import MaintenanceLogRepository
from bikerental.services.bicycles import BicycleRegistry

logger = logging.getLogger(__name__)

_EDITABLE_FIELDS = {
    "bicycle_id",
    "maintenance_type",
    "description",
    "cost",
    "performed_by",
    "maintenance_date",
    "next_maintenance_date",
}
_DATE_FIELDS = ("maintenance_date", "next_maintenance_date")


class MaintenanceService:
    def __init__(
        self,
        session: AsyncSession,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session = session
        self.logs = MaintenanceLogRepository(session)
        self.registry = BicycleRegistry(session)
        self.clock = clock

    async def get(self, log_id: int) -> MaintenanceLogModel:
        log = await self.logs.get_by_id(log_id)
        if log is None:
            raise MaintenanceLogNotFound()
        return log

    async def list_all(self) -> list[MaintenanceLogModel]:
        return await self.logs.list_all()

    async def list_for_bicycle(self, bicycle_id: int) -> list[MaintenanceLogModel]:
        await self.registry.get(bicycle_id)
        return await self.logs.list_for_bicycle(bicycle_id)

    async def list_upcoming(self, days: Optional[int] = None) -> list[MaintenanceLogModel]:
        now = self.clock()
        window = timedelta(days=days or settings.maintenance_upcoming_days)
        return await self.logs.list_due_between(now, now + window)

    async def list_overdue(self) -> list[MaintenanceLogModel]:
        return await self.logs.list_due_between(None, self.clock())

    async def create(
        self,
        *,
        bicycle_id: int,
        maintenance_type: MaintenanceType,
        description: Optional[str] = None,
        cost: Optional[Decimal] = None,
        performed_by: Optional[str] = None,
        maintenance_date: Optional[datetime] = None,
        next_maintenance_date: Optional[datetime] = None,
    ) -> MaintenanceLogModel:
        await self.registry.get(bicycle_id)
        log = MaintenanceLogModel(
            bicycle_id=bicycle_id,
            maintenance_type=maintenance_type,
            description=description,
            cost=cost,
            performed_by=performed_by,
            maintenance_date=as_utc(maintenance_date) or self.clock(),
            next_maintenance_date=as_utc(next_maintenance_date),
            completed=False,
        )
        await self.logs.add(log)
        logger.info(
            "Maintenance log %s opened for bicycle %s (%s)",
            log.id,
            bicycle_id,
            MaintenanceType(maintenance_type).value,
        )
        return log

    async def update(self, log_id: int, **fields) -> MaintenanceLogModel:
        log = await self.get(log_id)
        unknown = set(fields) - _EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields cannot be updated here: {sorted(unknown)}")
        if "bicycle_id" in fields:
            await self.registry.get(fields["bicycle_id"])
        for name in _DATE_FIELDS:
            if name in fields:
                fields[name] = as_utc(fields[name])
        for name, value in fields.items():
            setattr(log, name, value)
        await self.session.flush()
        return log

    async def delete(self, log_id: int) -> None:
        await self.logs.delete(await self.get(log_id))

    async def complete(self, log_id: int) -> MaintenanceLogModel:
        log = await self.get(log_id)
        if log.completed:
            raise MaintenanceAlreadyCompleted()

        now = self.clock()
        if not await self.logs.mark_completed(log_id, now):
            raise MaintenanceAlreadyCompleted()

        bicycle = await self.registry.get(log.bicycle_id)
        bicycle.last_maintenance_date = now.date()
        await self.session.flush()
        await self.registry.release_from_maintenance(log.bicycle_id)

        logger.info("Maintenance log %s completed", log_id)
        return await self.logs.reload(log_id)
