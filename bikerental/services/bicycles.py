"""
Bicycle Registry
================

Single source of truth for whether a bicycle may be rented.

Concurrency safety
------------------
Every status change is one conditional UPDATE::

    UPDATE bicycles SET status = :new
     WHERE id = :id AND status IN (<statuses that may move to :new>)

so two simultaneous callers racing for the same bicycle cannot both win;
the loser sees ``rowcount == 0`` and gets a definite rejection.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from bikerental.config import settings
from bikerental.domain import spatial
from bikerental.domain.entities import Location, ensure_transition, is_rentable
from bikerental.domain.enums import (
    ADMIN_BICYCLE_TRANSITIONS,
    BICYCLE_TRANSITIONS,
    BicycleStatus,
    sources_for,
)
from bikerental.domain.errors import (
    BicycleNotAvailable,
    BicycleNotFound,
    DuplicateBicycleCode,
    InvalidTransition,
)
from bikerental.infrastructure.models import BicycleModel
from bikerental.infrastructure.repositories import BicycleRepository

logger = logging.getLogger(__name__)

_EDITABLE_FIELDS = {
    "code",
    "brand",
    "model",
    "color",
    "rental_price_per_hour",
    "purchase_date",
    "last_maintenance_date",
}


class BicycleRegistry:
    def __init__(self, session: AsyncSession, h3_resolution: Optional[int] = None):
        self.session = session
        self.repo = BicycleRepository(session)
        self.h3_resolution = h3_resolution or settings.h3_resolution

    # ── queries ───────────────────────────────────────────────────

    async def get(self, bicycle_id: int) -> BicycleModel:
        bicycle = await self.repo.get_by_id(bicycle_id)
        if bicycle is None:
            raise BicycleNotFound()
        return bicycle

    async def get_by_code(self, code: str) -> BicycleModel:
        bicycle = await self.repo.get_by_code(code)
        if bicycle is None:
            raise BicycleNotFound()
        return bicycle

    async def list_all(self, status: Optional[BicycleStatus] = None) -> list[BicycleModel]:
        return await self.repo.list_all(status=status)

    async def list_available(self) -> list[BicycleModel]:
        return await self.repo.list_all(status=BicycleStatus.AVAILABLE)

    async def count_by_status(self) -> dict[BicycleStatus, int]:
        return await self.repo.count_by_status()

    async def find_nearby(
        self,
        lat: float,
        lng: float,
        max_distance_m: Optional[float] = None,
        available_only: bool = True,
    ) -> list[tuple[BicycleModel, float]]:
        """Located bicycles within *max_distance_m*, nearest first."""
        radius = max_distance_m or settings.nearby_default_distance_m
        cells = spatial.search_cells(lat, lng, radius, self.h3_resolution)
        candidates = await self.repo.list_in_cells(
            cells, status=BicycleStatus.AVAILABLE if available_only else None
        )
        return spatial.within_radius(
            (lat, lng),
            [(b, b.current_lat, b.current_lng) for b in candidates],
            radius,
        )

    @staticmethod
    def is_rentable(bicycle: BicycleModel) -> bool:
        return is_rentable(BicycleStatus(bicycle.status), bicycle.is_active)

    # ── admin CRUD ────────────────────────────────────────────────

    async def create(
        self,
        *,
        code: str,
        brand: str,
        color: str,
        rental_price_per_hour: Decimal,
        model: Optional[str] = None,
        location: Optional[Location] = None,
        purchase_date=None,
        last_maintenance_date=None,
    ) -> BicycleModel:
        if await self.repo.get_by_code(code) is not None:
            raise DuplicateBicycleCode()

        bicycle = BicycleModel(
            code=code,
            brand=brand,
            model=model,
            color=color,
            rental_price_per_hour=rental_price_per_hour,
            status=BicycleStatus.AVAILABLE,
            purchase_date=purchase_date,
            last_maintenance_date=last_maintenance_date,
            is_active=True,
        )
        if location is not None:
            self._place(bicycle, location)
        try:
            await self.repo.add(bicycle)
        except IntegrityError as exc:
            raise DuplicateBicycleCode() from exc
        logger.info("Bicycle %s registered (code=%s)", bicycle.id, code)
        return bicycle

    async def update(self, bicycle_id: int, **fields) -> BicycleModel:
        """Edit descriptive fields; status changes go through ``set_status``."""
        bicycle = await self.get(bicycle_id)
        unknown = set(fields) - _EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields cannot be updated here: {sorted(unknown)}")

        new_code = fields.get("code")
        code_changes = bool(new_code) and new_code != bicycle.code
        if code_changes:
            if await self.repo.get_by_code(new_code) is not None:
                raise DuplicateBicycleCode()

        for name, value in fields.items():
            setattr(bicycle, name, value)
        try:
            await self.session.flush()
        except IntegrityError as exc:
            # only the code carries a unique constraint
            if code_changes:
                raise DuplicateBicycleCode() from exc
            raise
        return bicycle

    async def update_location(self, bicycle_id: int, location: Location) -> BicycleModel:
        bicycle = await self.get(bicycle_id)
        self._place(bicycle, location)
        await self.session.flush()
        return bicycle

    async def delete(self, bicycle_id: int) -> None:
        """Soft delete: the bicycle disappears from listings but keeps history."""
        await self.get(bicycle_id)
        removed = await self.repo.deactivate_unless_rented(bicycle_id)
        if not removed:
            raise BicycleNotAvailable("Cannot delete a bicycle that is rented")
        logger.info("Bicycle %s deactivated", bicycle_id)

    # ── status transitions ────────────────────────────────────────

    async def set_status(
        self,
        bicycle_id: int,
        new_status: BicycleStatus,
        transitions: Optional[dict] = None,
    ) -> BicycleModel:
        """Apply *new_status* iff the current status allows it, atomically."""
        table = BICYCLE_TRANSITIONS if transitions is None else transitions
        bicycle = await self.repo.reload(bicycle_id)
        if bicycle is None:
            raise BicycleNotFound()
        ensure_transition(table, BicycleStatus(bicycle.status), new_status)

        if not await self.repo.compare_and_set_status(
            bicycle_id, sources_for(table, new_status), new_status
        ):
            # changed underneath us since the read above
            bicycle = await self.repo.reload(bicycle_id)
            raise InvalidTransition(bicycle.status, new_status)

        logger.info("Bicycle %s -> %s", bicycle_id, new_status.value)
        return await self.repo.reload(bicycle_id)

    async def override_status(
        self, bicycle_id: int, new_status: BicycleStatus
    ) -> BicycleModel:
        """Administrative change; ``rented`` can only be entered or left by rentals."""
        bicycle = await self.get(bicycle_id)
        if BicycleStatus.RENTED in (new_status, bicycle.status):
            raise InvalidTransition(
                bicycle.status,
                new_status,
                "Rented status is managed by rentals and cannot be set manually",
            )
        return await self.set_status(
            bicycle_id, new_status, transitions=ADMIN_BICYCLE_TRANSITIONS
        )

    async def claim_for_rental(self, bicycle_id: int) -> BicycleModel:
        """available -> rented, or ``BicycleNotAvailable``."""
        claimed = await self.repo.compare_and_set_status(
            bicycle_id,
            {BicycleStatus.AVAILABLE},
            BicycleStatus.RENTED,
            require_active=True,
        )
        bicycle = await self.repo.reload(bicycle_id)
        if bicycle is None:
            raise BicycleNotFound()
        if not claimed:
            raise BicycleNotAvailable(
                f"Bicycle {bicycle.code} is not available (status: "
                f"{BicycleStatus(bicycle.status).value})"
            )
        return bicycle

    async def release_from_rental(self, bicycle_id: int) -> bool:
        return await self._release(bicycle_id, BicycleStatus.RENTED)

    async def release_from_maintenance(self, bicycle_id: int) -> bool:
        return await self._release(bicycle_id, BicycleStatus.MAINTENANCE)

    async def _release(self, bicycle_id: int, expected: BicycleStatus) -> bool:
        released = await self.repo.compare_and_set_status(
            bicycle_id, {expected}, BicycleStatus.AVAILABLE
        )
        if released:
            logger.info("Bicycle %s %s -> available", bicycle_id, expected.value)
        else:
            # moved on by another path (e.g. retired); keep what is there
            logger.info(
                "Bicycle %s was not %s; status left unchanged",
                bicycle_id,
                expected.value,
            )
        return released

    def _place(self, bicycle: BicycleModel, location: Location) -> None:
        bicycle.current_lat = location.latitude
        bicycle.current_lng = location.longitude
        bicycle.h3_cell = spatial.location_cell(
            location.latitude, location.longitude, self.h3_resolution
        )
