"""
Seed script -- populates the database with sample data for reviewers.

Run after migrations:
    python seed.py

Creates:
  - 8 sample users (one per stratum plus an admin and a rider without one)
  - 12 sample bicycles (spread around central Bogota)
  - 3 sample events (published, draft, already held)
  - 2 sample maintenance logs, one of them on a bicycle in the workshop
  - 1 completed rental so the history endpoints have something to show
"""

import asyncio
from datetime import date, timedelta
from decimal import Decimal

from sqlalchemy import text

from bikerental.domain.entities import Location, utcnow
from bikerental.domain.enums import (
    BicycleStatus,
    EventStatus,
    MaintenanceType,
    UserRole,
)
from bikerental.infrastructure.database import async_session_factory, engine
from bikerental.infrastructure.models import UserModel
from bikerental.services.bicycles import BicycleRegistry
from bikerental.services.events import EventCapacityManager
from bikerental.services.maintenance import MaintenanceService
from bikerental.services.rentals import RentalLedger


USERS = [
    {"first_name": "Camila", "last_name": "Rojas", "email": "camila@example.com", "stratum": 1},
    {"first_name": "Andres", "last_name": "Gomez", "email": "andres@example.com", "stratum": 2},
    {"first_name": "Valentina", "last_name": "Diaz", "email": "valentina@example.com", "stratum": 3},
    {"first_name": "Santiago", "last_name": "Lopez", "email": "santiago@example.com", "stratum": 4},
    {"first_name": "Mariana", "last_name": "Torres", "email": "mariana@example.com", "stratum": 5},
    {"first_name": "Juan", "last_name": "Martinez", "email": "juan@example.com", "stratum": 6},
    {"first_name": "Laura", "last_name": "Herrera", "email": "laura@example.com", "stratum": None},
    {
        "first_name": "Admin",
        "last_name": "Fleet",
        "email": "admin@example.com",
        "stratum": None,
        "role": UserRole.ADMIN,
    },
]

BICYCLES = [
    {"code": "BIC-001", "brand": "Trek", "model": "FX 2", "color": "red", "price": "5000", "lat": 4.6100, "lng": -74.0820},
    {"code": "BIC-002", "brand": "Trek", "model": "FX 2", "color": "blue", "price": "5000", "lat": 4.6112, "lng": -74.0801},
    {"code": "BIC-003", "brand": "Giant", "model": "Escape 3", "color": "black", "price": "4500", "lat": 4.6085, "lng": -74.0835},
    {"code": "BIC-004", "brand": "Giant", "model": "Escape 3", "color": "white", "price": "4500", "lat": 4.6150, "lng": -74.0770},
    {"code": "BIC-005", "brand": "Specialized", "model": "Sirrus", "color": "green", "price": "6000", "lat": 4.6201, "lng": -74.0702},
    {"code": "BIC-006", "brand": "Specialized", "model": "Sirrus", "color": "grey", "price": "6000", "lat": 4.6300, "lng": -74.0650},
    {"code": "BIC-007", "brand": "GW", "model": "Lynx", "color": "orange", "price": "3500", "lat": 4.6010, "lng": -74.0900},
    {"code": "BIC-008", "brand": "GW", "model": "Lynx", "color": "yellow", "price": "3500", "lat": 4.5950, "lng": -74.0950},
    {"code": "BIC-009", "brand": "Scott", "model": "Sub Cross", "color": "black", "price": "7000", "lat": 4.6480, "lng": -74.0600},
    {"code": "BIC-010", "brand": "Scott", "model": "Sub Cross", "color": "blue", "price": "7000", "lat": 4.6600, "lng": -74.0550},
    {"code": "BIC-011", "brand": "Cannondale", "model": "Quick 4", "color": "red", "price": "6500", "lat": 4.6090, "lng": -74.0810},
    {"code": "BIC-012", "brand": "Cannondale", "model": "Quick 4", "color": "white", "price": "6500", "lat": None, "lng": None},
]


async def seed():
    async with async_session_factory() as session:
        # Check if already seeded
        result = await session.execute(text("SELECT count(*) FROM users"))
        if result.scalar() > 0:
            print("Database already seeded. Skipping.")
            return

        now = utcnow()

        # ── Users ─────────────────────────────────────────────────────
        user_models = []
        for u in USERS:
            m = UserModel(
                first_name=u["first_name"],
                last_name=u["last_name"],
                email=u["email"],
                role=u.get("role", UserRole.USER),
                socioeconomic_stratum=u["stratum"],
                is_active=True,
            )
            session.add(m)
            user_models.append(m)
        await session.flush()
        admin = user_models[-1]
        print(f"  Created {len(user_models)} users")

        # ── Bicycles ──────────────────────────────────────────────────
        registry = BicycleRegistry(session)
        bicycles = []
        for b in BICYCLES:
            location = Location(b["lat"], b["lng"]) if b["lat"] is not None else None
            bicycles.append(
                await registry.create(
                    code=b["code"],
                    brand=b["brand"],
                    model=b["model"],
                    color=b["color"],
                    rental_price_per_hour=Decimal(b["price"]),
                    location=location,
                    purchase_date=date(2025, 3, 1),
                )
            )
        print(f"  Created {len(bicycles)} bicycles")

        # ── Maintenance ───────────────────────────────────────────────
        maintenance = MaintenanceService(session)
        await registry.override_status(bicycles[6].id, BicycleStatus.MAINTENANCE)
        await maintenance.create(
            bicycle_id=bicycles[6].id,
            maintenance_type=MaintenanceType.CORRECTIVE,
            description="Rear brake pads worn out",
            cost=Decimal("35000"),
            performed_by="Taller Central",
            next_maintenance_date=now + timedelta(days=90),
        )
        await maintenance.create(
            bicycle_id=bicycles[0].id,
            maintenance_type=MaintenanceType.PREVENTIVE,
            description="Chain lubrication and tyre pressure",
            performed_by="Taller Central",
            maintenance_date=now - timedelta(days=80),
            next_maintenance_date=now + timedelta(days=10),
        )
        await registry.override_status(bicycles[11].id, BicycleStatus.RETIRED)
        print("  Created 2 maintenance logs")

        # ── Events ────────────────────────────────────────────────────
        events = EventCapacityManager(session)
        ciclovia = await events.create(
            name="Ciclovia dominical",
            description="Easy group ride along Carrera Septima",
            event_type="group_ride",
            event_date=now + timedelta(days=7),
            start_time="07:00",
            end_time="10:00",
            meeting_point="Plaza de Bolivar",
            max_participants=20,
            status=EventStatus.PUBLISHED,
            created_by=admin.id,
        )
        await events.register(ciclovia.id, user_models[0].id)
        await events.register(ciclovia.id, user_models[2].id)
        await events.create(
            name="Night ride to Usaquen",
            event_type="night_ride",
            event_date=now + timedelta(days=21),
            start_time="19:30",
            max_participants=12,
            created_by=admin.id,
        )
        await events.create(
            name="Monserrate climb",
            event_type="training",
            event_date=now - timedelta(days=14),
            start_time="06:00",
            status=EventStatus.PUBLISHED,
            created_by=admin.id,
        )
        print("  Created 3 events")

        # ── Rentals ───────────────────────────────────────────────────
        two_hours_ago = now - timedelta(hours=2, minutes=10)
        ledger = RentalLedger(session, clock=lambda: two_hours_ago)
        rental = await ledger.rent(
            user_models[1].id, bicycles[1].id, Location(4.6112, -74.0801)
        )
        ledger.clock = lambda: now
        await ledger.return_rental(rental.id, Location(4.6150, -74.0760))
        print("  Created 1 completed rental")

        await session.commit()
        print("\nSeed complete!")


async def main():
    print("Seeding database...")
    await seed()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
