"""Domain enumerations and state-transition rules."""

import enum


class BicycleStatus(str, enum.Enum):
    AVAILABLE = "available"
    RENTED = "rented"
    MAINTENANCE = "maintenance"
    RETIRED = "retired"


class RentalStatus(str, enum.Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class EventStatus(str, enum.Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class MaintenanceType(str, enum.Enum):
    PREVENTIVE = "preventive"
    CORRECTIVE = "corrective"
    INSPECTION = "inspection"
    REPAIR = "repair"
    OTHER = "other"


class UserRole(str, enum.Enum):
    USER = "user"
    ADMIN = "admin"


# State machines: map current status -> set of valid next statuses

BICYCLE_TRANSITIONS: dict[BicycleStatus, set[BicycleStatus]] = {
    BicycleStatus.AVAILABLE: {
        BicycleStatus.RENTED,
        BicycleStatus.MAINTENANCE,
        BicycleStatus.RETIRED,
    },
    BicycleStatus.RENTED: {BicycleStatus.AVAILABLE, BicycleStatus.RETIRED},
    BicycleStatus.MAINTENANCE: {BicycleStatus.AVAILABLE, BicycleStatus.RETIRED},
    BicycleStatus.RETIRED: set(),
}

# ``rented`` is owned by the rental ledger; manual overrides never touch it.
ADMIN_BICYCLE_TRANSITIONS: dict[BicycleStatus, set[BicycleStatus]] = {
    current: {s for s in targets if s != BicycleStatus.RENTED}
    for current, targets in BICYCLE_TRANSITIONS.items()
    if current != BicycleStatus.RENTED
}

RENTAL_TRANSITIONS: dict[RentalStatus, set[RentalStatus]] = {
    RentalStatus.ACTIVE: {RentalStatus.COMPLETED, RentalStatus.CANCELLED},
    RentalStatus.COMPLETED: set(),
    RentalStatus.CANCELLED: set(),
}

EVENT_TRANSITIONS: dict[EventStatus, set[EventStatus]] = {
    EventStatus.DRAFT: {EventStatus.PUBLISHED, EventStatus.CANCELLED},
    EventStatus.PUBLISHED: {EventStatus.CANCELLED, EventStatus.COMPLETED},
    EventStatus.CANCELLED: set(),
    EventStatus.COMPLETED: set(),
}


def sources_for(transitions: dict, target) -> set:
    """Return every status from which *target* is reachable in one step."""
    return {current for current, nxt in transitions.items() if target in nxt}
