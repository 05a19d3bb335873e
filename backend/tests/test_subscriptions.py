"""
Tests for subscription endpoints.
"""

from datetime import date, timedelta

import pytest
from httpx import AsyncClient


def _subscription_payload(user_id: int, **overrides) -> dict:
    today = date.today()
    payload = {
        "user_id": user_id,
        "category": "group",
        "equipment_access": "mat",
        "credits": 8,
        "start_date": today.isoformat(),
        "end_date": (today + timedelta(days=30)).isoformat(),
    }
    payload.update(overrides)
    return payload


@pytest.mark.asyncio
async def test_staff_issues_subscription(client: AsyncClient, staff_headers, test_user, auth_headers):
    response = await client.post(
        "/api/v1/subscriptions/", json=_subscription_payload(test_user.id), headers=staff_headers
    )
    assert response.status_code == 201
    data = response.json()
    assert data["remaining_credits"] == 8
    assert data["status"] == "active"

    mine = await client.get("/api/v1/subscriptions/me", headers=auth_headers)
    assert [s["id"] for s in mine.json()] == [data["id"]]


@pytest.mark.asyncio
async def test_new_subscription_replaces_active_one(client: AsyncClient, staff_headers, test_user, auth_headers):
    user_id = test_user.id
    first = await client.post(
        "/api/v1/subscriptions/", json=_subscription_payload(user_id), headers=staff_headers
    )
    second = await client.post(
        "/api/v1/subscriptions/",
        json=_subscription_payload(user_id, credits=20, equipment_access="both"),
        headers=staff_headers,
    )
    assert second.status_code == 201

    mine = (await client.get("/api/v1/subscriptions/me", headers=auth_headers)).json()
    statuses = {s["id"]: s["status"] for s in mine}
    assert statuses == {first.json()["id"]: "cancelled", second.json()["id"]: "active"}


@pytest.mark.asyncio
async def test_client_cannot_issue_subscription(client: AsyncClient, auth_headers, test_user):
    response = await client.post(
        "/api/v1/subscriptions/", json=_subscription_payload(test_user.id), headers=auth_headers
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_subscription_for_unknown_user(client: AsyncClient, staff_headers):
    response = await client.post(
        "/api/v1/subscriptions/", json=_subscription_payload(12345), headers=staff_headers
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_subscription_dates_validated(client: AsyncClient, staff_headers, test_user):
    today = date.today()
    response = await client.post(
        "/api/v1/subscriptions/",
        json=_subscription_payload(
            test_user.id,
            start_date=today.isoformat(),
            end_date=(today - timedelta(days=1)).isoformat(),
        ),
        headers=staff_headers,
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_staff_adjusts_credits(client: AsyncClient, staff_headers, test_subscription):
    subscription_id = test_subscription.id
    response = await client.post(
        f"/api/v1/subscriptions/{subscription_id}/credits",
        json={"delta": 3, "reason": "Goodwill top-up"},
        headers=staff_headers,
    )
    assert response.status_code == 200
    assert response.json()["remaining_credits"] == 13

    response = await client.post(
        f"/api/v1/subscriptions/{subscription_id}/credits",
        json={"delta": -20},
        headers=staff_headers,
    )
    assert response.status_code == 422
    assert response.json()["error"]["code"] == "InsufficientCredit"

    response = await client.post(
        f"/api/v1/subscriptions/{subscription_id}/credits",
        json={"delta": -13},
        headers=staff_headers,
    )
    assert response.json()["remaining_credits"] == 0


@pytest.mark.asyncio
async def test_credit_adjustment_validation(client: AsyncClient, staff_headers, auth_headers, test_subscription):
    url = f"/api/v1/subscriptions/{test_subscription.id}/credits"

    assert (await client.post(url, json={"delta": 0}, headers=staff_headers)).status_code == 422
    assert (await client.post(url, json={"delta": 101}, headers=staff_headers)).status_code == 422
    assert (await client.post(url, json={"delta": 1}, headers=auth_headers)).status_code == 403
