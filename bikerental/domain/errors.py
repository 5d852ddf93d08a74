"""
Error taxonomy for the rental core.

Two families, both carrying a machine-readable ``kind`` (the class name):

* :class:`PreconditionViolation` -- the request was valid but the current
  state forbids it.  Expected, recoverable by the caller re-querying state.
* :class:`NotFound` -- the referenced record does not exist.

Anything else (driver errors, lost connections) is an infrastructure failure
and propagates untouched; the surrounding transaction is rolled back.
"""

from __future__ import annotations


class DomainError(Exception):
    """Base class for every rejection raised by the core."""

    default_message = "Operation rejected"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    @property
    def kind(self) -> str:
        return type(self).__name__


class PreconditionViolation(DomainError):
    pass


class NotFound(DomainError):
    pass


# ── Not found ─────────────────────────────────────────────────────────


class BicycleNotFound(NotFound):
    default_message = "Bicycle not found"


class RentalNotFound(NotFound):
    default_message = "Rental not found"


class EventNotFound(NotFound):
    default_message = "Event not found"


class UserNotFound(NotFound):
    default_message = "User not found"


class MaintenanceLogNotFound(NotFound):
    default_message = "Maintenance log not found"


# ── Preconditions ─────────────────────────────────────────────────────


class InvalidTransition(PreconditionViolation):
    """Raised when a status change is not in the allowed-transition table."""

    def __init__(self, current, new, message: str | None = None):
        self.current = current
        self.new = new
        super().__init__(
            message
            or f"Cannot transition from {_label(current)} to {_label(new)}"
        )


class BicycleNotAvailable(PreconditionViolation):
    default_message = "Bicycle is not available for rent"


class DuplicateBicycleCode(PreconditionViolation):
    default_message = "A bicycle with this code already exists"


class UserHasActiveRental(PreconditionViolation):
    default_message = "User already has an active rental"


class RentalNotActive(PreconditionViolation):
    default_message = "Rental is not active"


class EventNotPublished(PreconditionViolation):
    default_message = "Event is not open for registration"


class EventInPast(PreconditionViolation):
    default_message = "Event has already taken place"


class EventNotStarted(PreconditionViolation):
    default_message = "Event has not taken place yet"


class EventFull(PreconditionViolation):
    default_message = "Event has reached its maximum number of participants"


class AlreadyRegistered(PreconditionViolation):
    default_message = "User is already registered for this event"


class NotRegistered(PreconditionViolation):
    default_message = "User is not registered for this event"


class CapacityBelowParticipants(PreconditionViolation):
    default_message = (
        "Maximum participants cannot be lower than current registrations"
    )


class MaintenanceAlreadyCompleted(PreconditionViolation):
    default_message = "Maintenance log is already completed"


def _label(status) -> str:
    return getattr(status, "value", status)
