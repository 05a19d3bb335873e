"""
Tests for booking and waitlist endpoints.
"""

import pytest
from httpx import AsyncClient

from studio_booking.services.interfaces.notifier import NotificationKind

from conftest import headers_for, make_class, make_subscription, make_user


@pytest.mark.asyncio
async def test_book_class(client: AsyncClient, auth_headers, test_subscription, test_class):
    """Successful booking confirms a seat and debits one credit."""
    class_id = test_class.id
    response = await client.post(
        "/api/v1/bookings/",
        json={"class_id": class_id},
        headers=auth_headers,
    )
    assert response.status_code == 201
    data = response.json()
    assert data["outcome"] == "confirmed"
    assert data["booking"]["class_id"] == class_id
    assert data["booking"]["status"] == "confirmed"
    assert data["remaining_credits"] == 9
    assert data["waitlist_entry"] is None

    class_response = await client.get(f"/api/v1/classes/{class_id}")
    assert class_response.json()["available_seats"] == 9


@pytest.mark.asyncio
async def test_book_class_unauthenticated(client: AsyncClient, test_class):
    response = await client.post("/api/v1/bookings/", json={"class_id": test_class.id})
    assert response.status_code == 401
    assert response.json()["error"]["code"] == "NotAuthenticated"


@pytest.mark.asyncio
async def test_book_class_with_invalid_token(client: AsyncClient, test_class):
    response = await client.post(
        "/api/v1/bookings/",
        json={"class_id": test_class.id},
        headers={"Authorization": "Bearer not-a-jwt"},
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_inactive_user_rejected(client: AsyncClient, db_session, test_class):
    user = await make_user(db_session, "gone@example.com", is_active=False)
    response = await client.get("/api/v1/bookings/", headers=headers_for(user))
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_full_class_joins_waitlist(
    client: AsyncClient, db_session, auth_headers, test_subscription, single_seat_class, notifier
):
    class_id = single_seat_class.id
    holder = await make_user(db_session, "holder@example.com")
    await make_subscription(db_session, holder)
    first = await client.post(
        "/api/v1/bookings/", json={"class_id": class_id}, headers=headers_for(holder)
    )
    assert first.json()["outcome"] == "confirmed"

    response = await client.post(
        "/api/v1/bookings/", json={"class_id": class_id}, headers=auth_headers
    )
    assert response.status_code == 201
    data = response.json()
    assert data["outcome"] == "waitlisted"
    assert data["waitlist_entry"]["position"] == 1
    assert data["remaining_credits"] == 10

    waitlist = await client.get("/api/v1/waitlist/", headers=auth_headers)
    assert [entry["class_id"] for entry in waitlist.json()] == [class_id]
    assert notifier.sent[-1][1] == NotificationKind.WAITLISTED
    assert notifier.sent[-1][2]["position"] == 1


@pytest.mark.asyncio
async def test_duplicate_booking(client: AsyncClient, auth_headers, test_subscription, test_class):
    """Same user booking the same class twice returns 409."""
    class_id = test_class.id
    response1 = await client.post("/api/v1/bookings/", json={"class_id": class_id}, headers=auth_headers)
    assert response1.status_code == 201

    response2 = await client.post("/api/v1/bookings/", json={"class_id": class_id}, headers=auth_headers)
    assert response2.status_code == 409
    assert response2.json()["error"]["code"] == "AlreadyBooked"


@pytest.mark.asyncio
async def test_incompatible_subscription_returns_422(client: AsyncClient, db_session, test_user, auth_headers):
    await make_subscription(db_session, test_user, equipment_access="mat")
    reformer = await make_class(db_session, equipment_type="reformer", name="Reformer")

    response = await client.post(
        "/api/v1/bookings/", json={"class_id": reformer.id}, headers=auth_headers
    )

    assert response.status_code == 422
    error = response.json()["error"]
    assert error["code"] == "IncompatibleSubscription"
    assert error["details"]["reason"] == "equipment_not_included"


@pytest.mark.asyncio
async def test_unknown_class_returns_404(client: AsyncClient, auth_headers, test_subscription):
    response = await client.post("/api/v1/bookings/", json={"class_id": 4242}, headers=auth_headers)
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "ClassNotFound"


@pytest.mark.asyncio
async def test_cancel_booking_promotes_waitlist(
    client: AsyncClient, db_session, auth_headers, test_subscription, single_seat_class
):
    """Cancellation refunds the credit and promotes the head of the waitlist."""
    class_id = single_seat_class.id
    waiting = await make_user(db_session, "waiting@example.com")
    await make_subscription(db_session, waiting)
    waiting_id, waiting_headers = waiting.id, headers_for(waiting)

    book_response = await client.post(
        "/api/v1/bookings/", json={"class_id": class_id}, headers=auth_headers
    )
    booking_id = book_response.json()["booking"]["id"]
    await client.post("/api/v1/bookings/", json={"class_id": class_id}, headers=waiting_headers)

    cancel_response = await client.delete(f"/api/v1/bookings/{booking_id}", headers=auth_headers)
    assert cancel_response.status_code == 200
    data = cancel_response.json()
    assert data["status"] == "cancelled"
    assert data["refunded_balance"] == 10
    assert data["promoted_user_id"] == waiting_id

    promoted = await client.get("/api/v1/bookings/", headers=waiting_headers)
    assert [b["status"] for b in promoted.json()] == ["confirmed"]
    assert (await client.get("/api/v1/waitlist/", headers=waiting_headers)).json() == []


@pytest.mark.asyncio
async def test_cancel_already_cancelled(client: AsyncClient, auth_headers, test_subscription, test_class):
    """Double-cancelling returns 409 InvalidTransition."""
    book_response = await client.post(
        "/api/v1/bookings/", json={"class_id": test_class.id}, headers=auth_headers
    )
    booking_id = book_response.json()["booking"]["id"]

    await client.delete(f"/api/v1/bookings/{booking_id}", headers=auth_headers)

    response = await client.delete(f"/api/v1/bookings/{booking_id}", headers=auth_headers)
    assert response.status_code == 409
    assert response.json()["error"]["code"] == "InvalidTransition"


@pytest.mark.asyncio
async def test_cancel_unknown_booking(client: AsyncClient, auth_headers):
    response = await client.delete("/api/v1/bookings/999", headers=auth_headers)
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "NotFound"


@pytest.mark.asyncio
async def test_list_bookings_by_status(client: AsyncClient, auth_headers, test_subscription, test_class):
    book_response = await client.post(
        "/api/v1/bookings/", json={"class_id": test_class.id}, headers=auth_headers
    )
    booking_id = book_response.json()["booking"]["id"]

    confirmed = await client.get("/api/v1/bookings/?status=confirmed", headers=auth_headers)
    assert [b["id"] for b in confirmed.json()] == [booking_id]

    cancelled = await client.get("/api/v1/bookings/?status=cancelled", headers=auth_headers)
    assert cancelled.json() == []

    invalid = await client.get("/api/v1/bookings/?status=lost", headers=auth_headers)
    assert invalid.status_code == 422


@pytest.mark.asyncio
async def test_check_in_requires_instructor(
    client: AsyncClient, auth_headers, instructor_headers, test_subscription, test_class
):
    book_response = await client.post(
        "/api/v1/bookings/", json={"class_id": test_class.id}, headers=auth_headers
    )
    booking_id = book_response.json()["booking"]["id"]

    forbidden = await client.post(f"/api/v1/bookings/{booking_id}/attend", headers=auth_headers)
    assert forbidden.status_code == 403
    assert forbidden.json()["error"]["code"] == "Forbidden"

    response = await client.post(f"/api/v1/bookings/{booking_id}/attend", headers=instructor_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "attended"
    assert response.json()["checked_in_at"] is not None

    again = await client.post(f"/api/v1/bookings/{booking_id}/no-show", headers=instructor_headers)
    assert again.status_code == 409


@pytest.mark.asyncio
async def test_staff_books_on_behalf_with_override(
    client: AsyncClient, db_session, test_user, staff_headers, auth_headers
):
    await make_subscription(db_session, test_user, category="personal")
    group_class = await make_class(db_session, name="Group Mat")
    class_id, user_id = group_class.id, test_user.id

    denied = await client.post(
        "/api/v1/bookings/",
        json={"class_id": class_id, "user_id": user_id, "override_restrictions": True},
        headers=auth_headers,
    )
    assert denied.status_code == 403

    response = await client.post(
        "/api/v1/bookings/",
        json={"class_id": class_id, "user_id": user_id, "override_restrictions": True},
        headers=staff_headers,
    )
    assert response.status_code == 201
    assert response.json()["booking"]["user_id"] == user_id


@pytest.mark.asyncio
async def test_leave_waitlist_twice(
    client: AsyncClient, db_session, auth_headers, test_subscription, single_seat_class
):
    class_id = single_seat_class.id
    holder = await make_user(db_session, "holder@example.com")
    await make_subscription(db_session, holder)
    await client.post("/api/v1/bookings/", json={"class_id": class_id}, headers=headers_for(holder))
    await client.post("/api/v1/bookings/", json={"class_id": class_id}, headers=auth_headers)

    first = await client.delete(f"/api/v1/waitlist/{class_id}", headers=auth_headers)
    assert first.status_code == 204

    second = await client.delete(f"/api/v1/waitlist/{class_id}", headers=auth_headers)
    assert second.status_code == 404
    assert second.json()["error"]["code"] == "NotFound"
