"""
Rental Ledger
=============

Owns rental records and drives the ``available <-> rented`` transition of
the rented bicycle.

Concurrency safety
------------------
* **Rent** -- the bicycle is claimed with a conditional UPDATE
  (``status = 'available'`` -> ``'rented'``) in the same transaction that
  inserts the rental.  Partial unique indexes on active rentals per user and
  per bicycle back this up at the storage level, which also closes the
  "same user, two bicycles, same instant" race.
* **Return / cancel** -- the rental is closed with a conditional UPDATE
  (``WHERE status = 'active'``); a second concurrent return finds nothing to
  update and is rejected before the bicycle is touched again.

The caller's session commits everything or nothing.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from bikerental.config import settings
from bikerental.domain.entities import Location, as_utc, ensure_transition, utcnow
from bikerental.domain.enums import RENTAL_TRANSITIONS, RentalStatus
from bikerental.domain.errors import (
    BicycleNotAvailable,
    InvalidTransition,
    RentalNotActive,
    RentalNotFound,
    UserHasActiveRental,
    UserNotFound,
)
from bikerental.domain.pricing import CostBreakdown, PricingEngine
from bikerental.infrastructure.models import RentalModel, UserModel
from bikerental.infrastructure.repositories import RentalRepository, UserRepository
from bikerental.services.bicycles import BicycleRegistry

logger = logging.getLogger(__name__)


def default_pricing() -> PricingEngine:
    return PricingEngine(
        stratum_discounts=settings.stratum_discounts,
        estimate_hours=settings.estimate_hours,
    )


class RentalLedger:
    def __init__(
        self,
        session: AsyncSession,
        pricing: Optional[PricingEngine] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session = session
        self.rentals = RentalRepository(session)
        self.users = UserRepository(session)
        self.registry = BicycleRegistry(session)
        self.pricing = pricing or default_pricing()
        self.clock = clock

    # ── queries ───────────────────────────────────────────────────

    async def get(self, rental_id: int) -> RentalModel:
        rental = await self.rentals.get_by_id(rental_id)
        if rental is None:
            raise RentalNotFound()
        return rental

    async def get_active_rental(self, user_id: int) -> Optional[RentalModel]:
        return await self.rentals.get_active_for_user(user_id)

    async def list_for_user(self, user_id: int) -> list[RentalModel]:
        return await self.rentals.list_for_user(user_id)

    async def list_all(self, status: Optional[RentalStatus] = None) -> list[RentalModel]:
        return await self.rentals.list_all(status=status)

    async def estimate(
        self, bicycle_id: int, user_id: Optional[int] = None
    ) -> dict[int, CostBreakdown]:
        """Preview the cost of renting *bicycle_id* for the configured durations."""
        bicycle = await self.registry.get(bicycle_id)
        stratum = None
        if user_id is not None:
            stratum = (await self._user(user_id)).socioeconomic_stratum
        return self.pricing.estimate(bicycle.rental_price_per_hour, stratum)

    # ── lifecycle ─────────────────────────────────────────────────

    async def rent(
        self,
        user_id: int,
        bicycle_id: int,
        start_location: Optional[Location] = None,
    ) -> RentalModel:
        user = await self._user(user_id)
        if await self.rentals.get_active_for_user(user_id) is not None:
            raise UserHasActiveRental()

        bicycle = await self.registry.claim_for_rental(bicycle_id)

        estimate = self.pricing.estimate(
            bicycle.rental_price_per_hour, user.socioeconomic_stratum, hours=(1,)
        )[1]
        rental = RentalModel(
            user_id=user_id,
            bicycle_id=bicycle_id,
            start_date=self.clock(),
            status=RentalStatus.ACTIVE,
            estimated_cost=estimate.total,
        )
        if start_location is not None:
            rental.start_lat = start_location.latitude
            rental.start_lng = start_location.longitude

        try:
            await self.rentals.add(rental)
        except IntegrityError as exc:
            raise _active_rental_conflict(exc) from exc

        logger.info(
            "Rental %s started: user=%s bicycle=%s", rental.id, user_id, bicycle_id
        )
        return rental

    async def return_rental(
        self, rental_id: int, end_location: Optional[Location] = None
    ) -> RentalModel:
        rental = await self.get(rental_id)
        _ensure_closable(rental, RentalStatus.COMPLETED)

        bicycle = await self.registry.get(rental.bicycle_id)
        user = await self.users.get_by_id(rental.user_id)
        stratum = user.socioeconomic_stratum if user is not None else None

        end = self.clock()
        hours, cost = self.pricing.price_rental(
            bicycle.rental_price_per_hour, as_utc(rental.start_date), end, stratum
        )

        values = dict(
            end_date=end,
            duration_in_hours=float(hours),
            subtotal=cost.subtotal,
            discount=cost.discount,
            discount_percentage=cost.discount_percentage,
            final_cost=cost.total,
            total_cost=cost.total,
        )
        if end_location is not None:
            values.update(end_lat=end_location.latitude, end_lng=end_location.longitude)

        if not await self.rentals.close_if_active(
            rental_id, RentalStatus.COMPLETED, **values
        ):
            raise RentalNotActive()

        await self.registry.release_from_rental(rental.bicycle_id)
        if end_location is not None:
            await self.registry.update_location(rental.bicycle_id, end_location)

        logger.info(
            "Rental %s returned: %sh, total=%s (discount %s%%)",
            rental_id,
            hours,
            cost.total,
            cost.discount_percentage,
        )
        return await self.rentals.reload(rental_id)

    async def cancel(self, rental_id: int) -> RentalModel:
        rental = await self.get(rental_id)
        _ensure_closable(rental, RentalStatus.CANCELLED)

        if not await self.rentals.close_if_active(
            rental_id, RentalStatus.CANCELLED, end_date=self.clock()
        ):
            raise RentalNotActive()

        await self.registry.release_from_rental(rental.bicycle_id)
        logger.info("Rental %s cancelled", rental_id)
        return await self.rentals.reload(rental_id)

    async def _user(self, user_id: int) -> UserModel:
        user = await self.users.get_by_id(user_id)
        if user is None:
            raise UserNotFound()
        return user


def _ensure_closable(rental: RentalModel, new_status: RentalStatus) -> None:
    try:
        ensure_transition(RENTAL_TRANSITIONS, RentalStatus(rental.status), new_status)
    except InvalidTransition as exc:
        raise RentalNotActive() from exc


def _active_rental_conflict(exc: IntegrityError) -> Exception:
    """Translate a violated active-rental index into the matching rejection."""
    detail = str(exc.orig)
    if "uq_rentals_active_bicycle" in detail or "rentals.bicycle_id" in detail:
        return BicycleNotAvailable()
    return UserHasActiveRental()
