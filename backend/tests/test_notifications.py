"""
Tests for notifier implementations and factory selection.
"""

import json

import httpx
import pytest

from studio_booking.core.config import get_settings
from studio_booking.services import notifier_factory
from studio_booking.services.interfaces import LogNotifier, NotificationKind
from studio_booking.services.webhook_notifier import WebhookNotifier


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_webhook_posts_notification_body():
    received = []

    def handler(request: httpx.Request) -> httpx.Response:
        received.append(request)
        return httpx.Response(202)

    notifier = WebhookNotifier("https://push.example.com/hooks", client=_client(handler))
    await notifier.notify(7, NotificationKind.PROMOTED, {"class_id": 3, "booking_id": 11})
    await notifier.drain()

    assert len(received) == 1
    body = json.loads(received[0].content)
    assert body["kind"] == "promoted"
    assert body["user_id"] == 7
    assert body["booking_id"] == 11
    assert "timestamp" in body
    await notifier.aclose()


@pytest.mark.asyncio
async def test_webhook_swallows_server_errors():
    notifier = WebhookNotifier(
        "https://push.example.com/hooks",
        client=_client(lambda request: httpx.Response(500)),
    )

    await notifier.notify(1, NotificationKind.CONFIRMED, {"class_id": 1})
    await notifier.drain()
    await notifier.aclose()


@pytest.mark.asyncio
async def test_webhook_swallows_transport_errors():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    notifier = WebhookNotifier("https://push.example.com/hooks", client=_client(handler))

    await notifier.notify(1, NotificationKind.CANCELLED, {"class_id": 1})
    await notifier.drain()
    await notifier.aclose()


@pytest.mark.asyncio
async def test_log_notifier_never_raises():
    await LogNotifier().notify(1, NotificationKind.WAITLISTED, {"class_id": 2, "position": 4})


def test_factory_falls_back_to_log_without_url(monkeypatch):
    settings = get_settings()
    monkeypatch.setattr(settings, "NOTIFIER_BACKEND", "webhook")
    monkeypatch.setattr(settings, "NOTIFICATION_WEBHOOK_URL", None)

    assert isinstance(notifier_factory.build_notifier(), LogNotifier)


def test_factory_builds_webhook(monkeypatch):
    settings = get_settings()
    monkeypatch.setattr(settings, "NOTIFIER_BACKEND", "webhook")
    monkeypatch.setattr(settings, "NOTIFICATION_WEBHOOK_URL", "https://push.example.com/hooks")

    assert isinstance(notifier_factory.build_notifier(), WebhookNotifier)
