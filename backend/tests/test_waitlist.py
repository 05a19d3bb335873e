"""
Tests for the waitlist queue: dense positions, compaction and withdrawal.
"""

from datetime import timedelta

import pytest
import pytest_asyncio

from studio_booking.core.exceptions import AlreadyQueued, NotFound
from studio_booking.services import booking_service, waitlist_service

from conftest import make_class, make_user


async def _positions(db, class_id):
    entries = await waitlist_service.list_for_class(db, class_id)
    return [(entry.user_id, entry.position) for entry in entries]


@pytest_asyncio.fixture
async def queued_users(db_session, test_class):
    users = [await make_user(db_session, f"{name}@example.com") for name in ("ana", "ben", "cleo")]
    for user in users:
        await waitlist_service.enqueue(db_session, test_class.id, user.id)
    await db_session.commit()
    return users


@pytest.mark.asyncio
async def test_enqueue_assigns_dense_positions(db_session, test_class, queued_users):
    a, b, c = queued_users
    assert await _positions(db_session, test_class.id) == [(a.id, 1), (b.id, 2), (c.id, 3)]
    assert await waitlist_service.queue_length(db_session, test_class.id) == 3


@pytest.mark.asyncio
async def test_enqueue_duplicate_rejected(db_session, test_class, queued_users):
    with pytest.raises(AlreadyQueued) as exc_info:
        await waitlist_service.enqueue(db_session, test_class.id, queued_users[1].id)
    assert exc_info.value.details["position"] == 2


@pytest.mark.asyncio
async def test_leave_waitlist_compacts_positions(db_session, test_class, queued_users):
    """[A, B, C] and B leaves -> [A, C] at positions [1, 2]."""
    a, b, c = queued_users
    class_id = test_class.id

    await booking_service.leave_waitlist(db_session, b.id, class_id)

    assert await _positions(db_session, class_id) == [(a.id, 1), (c.id, 2)]


@pytest.mark.asyncio
async def test_leave_waitlist_twice_is_not_found(db_session, test_class, queued_users):
    a, b, c = queued_users
    class_id, a_id, b_id, c_id = test_class.id, a.id, b.id, c.id

    await booking_service.leave_waitlist(db_session, b_id, class_id)
    with pytest.raises(NotFound):
        await booking_service.leave_waitlist(db_session, b_id, class_id)

    assert await _positions(db_session, class_id) == [(a_id, 1), (c_id, 2)]


@pytest.mark.asyncio
async def test_dequeue_front_shifts_queue(db_session, test_class, queued_users):
    a, b, c = queued_users

    head = await waitlist_service.dequeue_front(db_session, test_class.id)

    assert head.user_id == a.id
    assert await _positions(db_session, test_class.id) == [(b.id, 1), (c.id, 2)]


@pytest.mark.asyncio
async def test_dequeue_front_empty_queue(db_session, test_class):
    assert await waitlist_service.dequeue_front(db_session, test_class.id) is None


@pytest.mark.asyncio
async def test_requeue_front_restores_head(db_session, test_class, queued_users):
    a, b, c = queued_users
    await waitlist_service.dequeue_front(db_session, test_class.id)

    await waitlist_service.requeue_front(db_session, test_class.id, a.id)

    assert await _positions(db_session, test_class.id) == [(a.id, 1), (b.id, 2), (c.id, 3)]


@pytest.mark.asyncio
async def test_list_for_user_hides_past_and_cancelled_classes(db_session, test_user):
    upcoming = await make_class(db_session, starts_in=timedelta(days=2), name="Upcoming")
    later = await make_class(db_session, starts_in=timedelta(days=5), name="Later")
    past = await make_class(db_session, starts_in=timedelta(hours=-1), name="Past")
    cancelled = await make_class(db_session, status="cancelled", name="Cancelled")
    for class_ in (later, upcoming, past, cancelled):
        await waitlist_service.enqueue(db_session, class_.id, test_user.id)
    await db_session.commit()

    entries = await booking_service.list_waitlist(db_session, test_user.id)

    assert [entry.class_id for entry in entries] == [upcoming.id, later.id]
