"""
SQLAlchemy ORM models  (maps to PostgreSQL).

Tables
------
* ``users``               -- riders and administrators (stratum lives here)
* ``bicycles``            -- fleet, with the status every rental depends on
* ``rentals``             -- one row per rent; ``active`` until returned/cancelled
* ``events``              -- group rides with an optional participant ceiling
* ``event_participants``  -- one row per (event, user) registration
* ``maintenance_logs``    -- service history per bicycle

Indexes
-------
* **Partial unique** on ``rentals(user_id)`` and ``rentals(bicycle_id)``
  where ``status = 'active'``: the storage-level guarantee behind "one
  active rental per user" and "one open rental per bicycle".
* **Unique** on ``event_participants(event_id, user_id)``.
* **B-Tree** on ``status``, ``h3_cell``, foreign keys and dates used by the
  listing queries.
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)

from .database import Base
from bikerental.domain.enums import (
    BicycleStatus,
    EventStatus,
    MaintenanceType,
    RentalStatus,
    UserRole,
)


def _enum(enum_cls, name: str) -> Enum:
    # Persist the lowercase values ("available"), not the member names.
    return Enum(
        enum_cls,
        name=name,
        values_callable=lambda e: [m.value for m in e],
        validate_strings=True,
    )


ACTIVE_RENTAL = text("status = 'active'")


class UserModel(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    role = Column(_enum(UserRole, "user_role"), default=UserRole.USER, nullable=False)
    socioeconomic_stratum = Column(Integer, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint(
            "socioeconomic_stratum IS NULL OR socioeconomic_stratum BETWEEN 1 AND 6",
            name="ck_users_stratum_range",
        ),
    )


class BicycleModel(Base):
    __tablename__ = "bicycles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    code = Column(String(50), unique=True, nullable=False)
    brand = Column(String(100), nullable=False)
    model = Column(String(100), nullable=True)
    color = Column(String(50), nullable=False)
    status = Column(
        _enum(BicycleStatus, "bicycle_status"),
        default=BicycleStatus.AVAILABLE,
        nullable=False,
    )
    rental_price_per_hour = Column(Numeric(12, 2), nullable=False)

    # Plain floats plus the H3 cell used for the nearby search
    current_lat = Column(Float, nullable=True)
    current_lng = Column(Float, nullable=True)
    h3_cell = Column(String(20), nullable=True)

    purchase_date = Column(Date, nullable=True)
    last_maintenance_date = Column(Date, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint("rental_price_per_hour > 0", name="ck_bicycles_price_positive"),
        Index("idx_bicycles_status", "status"),
        Index("idx_bicycles_cell", "h3_cell"),
    )


class RentalModel(Base):
    __tablename__ = "rentals"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    bicycle_id = Column(Integer, ForeignKey("bicycles.id"), nullable=False)

    start_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True), nullable=True)
    start_lat = Column(Float, nullable=True)
    start_lng = Column(Float, nullable=True)
    end_lat = Column(Float, nullable=True)
    end_lng = Column(Float, nullable=True)

    status = Column(
        _enum(RentalStatus, "rental_status"),
        default=RentalStatus.ACTIVE,
        nullable=False,
    )

    estimated_cost = Column(Numeric(12, 2), nullable=True)
    subtotal = Column(Numeric(12, 2), nullable=True)
    discount = Column(Numeric(12, 2), nullable=True)
    discount_percentage = Column(Numeric(5, 2), nullable=True)
    final_cost = Column(Numeric(12, 2), nullable=True)
    total_cost = Column(Numeric(12, 2), nullable=True)
    duration_in_hours = Column(Float, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index(
            "uq_rentals_active_user",
            "user_id",
            unique=True,
            postgresql_where=ACTIVE_RENTAL,
            sqlite_where=ACTIVE_RENTAL,
        ),
        Index(
            "uq_rentals_active_bicycle",
            "bicycle_id",
            unique=True,
            postgresql_where=ACTIVE_RENTAL,
            sqlite_where=ACTIVE_RENTAL,
        ),
        Index("idx_rentals_status", "status"),
        Index("idx_rentals_user", "user_id"),
        Index("idx_rentals_bicycle", "bicycle_id"),
    )


class EventModel(Base):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    event_type = Column(String(50), nullable=True)
    event_date = Column(DateTime(timezone=True), nullable=False)
    start_time = Column(String(5), nullable=False)  # HH:MM
    end_time = Column(String(5), nullable=True)
    route_description = Column(Text, nullable=True)
    meeting_point = Column(String(255), nullable=True)

    max_participants = Column(Integer, nullable=True)
    current_participants = Column(Integer, default=0, nullable=False)
    status = Column(
        _enum(EventStatus, "event_status"),
        default=EventStatus.DRAFT,
        nullable=False,
    )
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint("current_participants >= 0", name="ck_events_current_non_negative"),
        CheckConstraint(
            "max_participants IS NULL OR current_participants <= max_participants",
            name="ck_events_within_capacity",
        ),
        Index("idx_events_status_date", "status", "event_date"),
    )


class EventParticipantModel(Base):
    __tablename__ = "event_participants"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(
        Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False
    )
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    registration_date = Column(DateTime(timezone=True), nullable=False)
    attended = Column(Boolean, default=False, nullable=False)

    __table_args__ = (
        UniqueConstraint("event_id", "user_id", name="uq_event_participants_event_user"),
        Index("idx_event_participants_user", "user_id"),
    )


class MaintenanceLogModel(Base):
    __tablename__ = "maintenance_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    bicycle_id = Column(Integer, ForeignKey("bicycles.id"), nullable=False)
    maintenance_type = Column(
        _enum(MaintenanceType, "maintenance_type"), nullable=False
    )
    description = Column(Text, nullable=True)
    cost = Column(Numeric(12, 2), nullable=True)
    performed_by = Column(String(120), nullable=True)
    maintenance_date = Column(DateTime(timezone=True), nullable=False)
    next_maintenance_date = Column(DateTime(timezone=True), nullable=True)
    completed = Column(Boolean, default=False, nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("idx_maintenance_bicycle", "bicycle_id"),
        Index("idx_maintenance_next_date", "next_maintenance_date"),
    )
