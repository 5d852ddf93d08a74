"""Service-level tests for events, capacity and registrations."""

from datetime import timedelta

import pytest

from bikerental.domain.enums import EventStatus
from bikerental.domain.errors import (
    AlreadyRegistered,
    CapacityBelowParticipants,
    EventFull,
    EventInPast,
    EventNotFound,
    EventNotPublished,
    EventNotStarted,
    InvalidTransition,
    NotRegistered,
    UserNotFound,
)
from bikerental.services.events import EventCapacityManager


@pytest.fixture
def manager(db_session, clock):
    return EventCapacityManager(db_session, clock=clock)


@pytest.fixture
def make_event(manager, clock):
    async def _make(
        max_participants=None,
        status=EventStatus.PUBLISHED,
        days_ahead=7,
        **details,
    ):
        return await manager.create(
            name=details.pop("name", "Ciclovia"),
            event_date=clock.now + timedelta(days=days_ahead),
            start_time="07:00",
            max_participants=max_participants,
            status=status,
            **details,
        )

    return _make


# ── Lifecycle ─────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_create_starts_empty(make_event):
    event = await make_event(max_participants=10, meeting_point="Plaza")
    assert event.current_participants == 0
    assert event.status == EventStatus.PUBLISHED
    assert event.meeting_point == "Plaza"


@pytest.mark.asyncio
async def test_create_cannot_start_completed(make_event):
    with pytest.raises(InvalidTransition):
        await make_event(status=EventStatus.COMPLETED)


@pytest.mark.asyncio
async def test_publish_then_complete(manager, make_event):
    event = await make_event(status=EventStatus.DRAFT)
    assert (await manager.publish(event.id)).status == EventStatus.PUBLISHED
    assert (await manager.complete_event(event.id)).status == EventStatus.COMPLETED

    with pytest.raises(InvalidTransition):
        await manager.cancel_event(event.id)


@pytest.mark.asyncio
async def test_update_cannot_move_back_to_draft(manager, make_event):
    event = await make_event()
    with pytest.raises(InvalidTransition):
        await manager.update(event.id, status=EventStatus.DRAFT)


@pytest.mark.asyncio
async def test_update_fields_and_status(manager, make_event):
    event = await make_event(status=EventStatus.DRAFT)
    updated = await manager.update(
        event.id, name="Night ride", status=EventStatus.PUBLISHED
    )
    assert updated.name == "Night ride"
    assert updated.status == EventStatus.PUBLISHED


@pytest.mark.asyncio
async def test_unknown_event(manager):
    with pytest.raises(EventNotFound):
        await manager.get(9999)
    with pytest.raises(EventNotFound):
        await manager.publish(9999)


@pytest.mark.asyncio
async def test_delete_only_draft_or_cancelled(manager, make_event):
    published = await make_event()
    with pytest.raises(InvalidTransition):
        await manager.delete(published.id)

    draft = await make_event(status=EventStatus.DRAFT)
    await manager.delete(draft.id)
    with pytest.raises(EventNotFound):
        await manager.get(draft.id)


@pytest.mark.asyncio
async def test_effective_status_after_the_date(manager, make_event, clock):
    event = await make_event(days_ahead=1)
    assert manager.effective_status(event) == EventStatus.PUBLISHED
    clock.advance(days=2)
    assert manager.effective_status(event) == EventStatus.COMPLETED
    assert event.status == EventStatus.PUBLISHED


@pytest.mark.asyncio
async def test_upcoming_lists_published_future_events(manager, make_event):
    soon = await make_event(days_ahead=1)
    later = await make_event(days_ahead=10)
    await make_event(days_ahead=-1)
    await make_event(status=EventStatus.DRAFT)

    assert [e.id for e in await manager.list_upcoming()] == [soon.id, later.id]


# ── Registration ──────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_register_takes_a_seat(manager, make_event, make_user):
    event = await make_event(max_participants=10)
    user = await make_user()

    registered = await manager.register(event.id, user.id)

    assert registered.current_participants == 1
    participants = await manager.list_participants(event.id)
    assert [p.user_id for p in participants] == [user.id]
    assert [e.id for e in await manager.list_for_user(user.id)] == [event.id]


@pytest.mark.asyncio
async def test_full_event_rejects(manager, make_event, make_user):
    event = await make_event(max_participants=2)
    for _ in range(2):
        await manager.register(event.id, (await make_user()).id)

    late = await make_user()
    with pytest.raises(EventFull):
        await manager.register(event.id, late.id)

    fresh = await manager.events.reload(event.id)
    assert fresh.current_participants == 2
    assert await manager.events.count_participants(event.id) == 2


@pytest.mark.asyncio
async def test_unlimited_event_never_fills(manager, make_event, make_user):
    event = await make_event(max_participants=None)
    for _ in range(5):
        await manager.register(event.id, (await make_user()).id)
    assert (await manager.events.reload(event.id)).current_participants == 5


@pytest.mark.asyncio
async def test_duplicate_registration_rejected(manager, make_event, make_user):
    event = await make_event(max_participants=10)
    user = await make_user()
    await manager.register(event.id, user.id)

    with pytest.raises(AlreadyRegistered):
        await manager.register(event.id, user.id)
    assert (await manager.events.reload(event.id)).current_participants == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [EventStatus.DRAFT, EventStatus.CANCELLED])
async def test_register_requires_published(manager, make_event, make_user, status):
    event = await make_event(status=EventStatus.DRAFT)
    if status == EventStatus.CANCELLED:
        await manager.cancel_event(event.id)
    user = await make_user()

    with pytest.raises(EventNotPublished):
        await manager.register(event.id, user.id)


@pytest.mark.asyncio
async def test_register_for_past_event_rejected(manager, make_event, make_user):
    event = await make_event(days_ahead=-1)
    user = await make_user()
    with pytest.raises(EventInPast):
        await manager.register(event.id, user.id)


@pytest.mark.asyncio
async def test_register_unknown_user(manager, make_event):
    event = await make_event()
    with pytest.raises(UserNotFound):
        await manager.register(event.id, 9999)


@pytest.mark.asyncio
async def test_cancel_registration_frees_the_seat(manager, make_event, make_user):
    event = await make_event(max_participants=1)
    first = await make_user()
    second = await make_user()
    await manager.register(event.id, first.id)

    after = await manager.cancel_registration(event.id, first.id)
    assert after.current_participants == 0

    await manager.register(event.id, second.id)
    with pytest.raises(NotRegistered):
        await manager.cancel_registration(event.id, first.id)


# ── Capacity edits ────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_capacity_cannot_drop_below_participants(manager, make_event, make_user):
    event = await make_event(max_participants=10)
    for _ in range(3):
        await manager.register(event.id, (await make_user()).id)

    with pytest.raises(CapacityBelowParticipants):
        await manager.update(event.id, max_participants=2)

    assert (await manager.update(event.id, max_participants=3)).max_participants == 3
    assert (await manager.update(event.id, max_participants=None)).max_participants is None


# ── Attendance ────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_mark_attendance_after_the_event(manager, make_event, make_user, clock):
    event = await make_event(days_ahead=1)
    user = await make_user()
    await manager.register(event.id, user.id)

    with pytest.raises(EventNotStarted):
        await manager.mark_attendance(event.id, user.id)

    clock.advance(days=2)
    participant = await manager.mark_attendance(event.id, user.id)
    assert participant.attended is True


@pytest.mark.asyncio
async def test_mark_attendance_requires_registration(manager, make_event, make_user, clock):
    event = await make_event(days_ahead=1)
    user = await make_user()
    clock.advance(days=2)
    with pytest.raises(NotRegistered):
        await manager.mark_attendance(event.id, user.id)
