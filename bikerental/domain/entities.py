"""
Domain value objects and lifecycle rules.

Patterns used
-------------
- **State Pattern** via ``ensure_transition``: admin status overrides, event
  lifecycle moves and closing a rental are checked against their transition
  table before the conditional UPDATE applies them.
- ``Capacity`` encapsulates the max-participants invariant of an event.
- ``RegistrationWindow`` decides whether an event accepts registrations or
  attendance at a given instant.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from .enums import BicycleStatus, EventStatus
from .errors import EventInPast, EventNotPublished, EventNotStarted, InvalidTransition


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalise to UTC; naive values are taken to be UTC already."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def ensure_transition(transitions: dict, current, new) -> None:
    """Raise ``InvalidTransition`` unless *current* -> *new* is in the table."""
    if new not in transitions.get(current, set()):
        raise InvalidTransition(current, new)


def is_rentable(status: BicycleStatus, is_active: bool = True) -> bool:
    return is_active and status == BicycleStatus.AVAILABLE


# ── Value Objects ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class Location:
    latitude: float
    longitude: float


@dataclass(frozen=True)
class Capacity:
    current: int
    maximum: Optional[int] = None

    def has_room(self) -> bool:
        return self.maximum is None or self.current < self.maximum

    def allows_maximum(self, new_maximum: Optional[int]) -> bool:
        return new_maximum is None or new_maximum >= self.current


@dataclass(frozen=True)
class RegistrationWindow:
    status: EventStatus
    event_date: datetime

    def has_occurred(self, now: datetime) -> bool:
        return as_utc(self.event_date) < as_utc(now)

    def ensure_open(self, now: datetime) -> None:
        if self.status != EventStatus.PUBLISHED:
            raise EventNotPublished()
        if self.has_occurred(now):
            raise EventInPast()

    def ensure_occurred(self, now: datetime) -> None:
        if not self.has_occurred(now):
            raise EventNotStarted()

    def effective_status(self, now: datetime) -> EventStatus:
        """A published event whose date has passed reads as completed."""
        if self.status == EventStatus.PUBLISHED and self.has_occurred(now):
            return EventStatus.COMPLETED
        return self.status
