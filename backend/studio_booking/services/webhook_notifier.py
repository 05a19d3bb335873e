"""
Webhook notifier delivering booking notifications to the push provider.
Implements Notifier using httpx.

Best-effort delivery:
  notify() schedules the POST as a background task and returns immediately.
  Failures (timeouts, connection errors, non-2xx) are logged and counted,
  never raised. Booking state is authoritative; a lost notification is an
  acceptable degradation, a rolled back booking is not.
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, Optional

import httpx

from studio_booking.core.logging import get_logger
from studio_booking.core.metrics import record_notification
from studio_booking.services.interfaces.notifier import NotificationKind, Notifier

logger = get_logger(__name__)


class WebhookNotifier(Notifier):
    """
    POST {user_id, kind, class_id, timestamp, ...} to a configured URL.

    Use when:
    - A push-delivery provider (or a relay in front of it) accepts webhooks
    - Delivery latency must not add to booking latency
    """

    def __init__(
        self,
        url: str,
        timeout: float = 5.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.url = url
        self.client = client or httpx.AsyncClient(timeout=timeout)
        self._in_flight: set[asyncio.Task] = set()

    async def notify(self, user_id: int, kind: NotificationKind, payload: dict[str, Any]) -> None:
        body = {
            "user_id": user_id,
            "kind": kind.value,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            **payload,
        }
        task = asyncio.create_task(self._deliver(kind, body))
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)

    async def _deliver(self, kind: NotificationKind, body: dict[str, Any]) -> None:
        try:
            response = await self.client.post(self.url, json=body)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            record_notification(kind.value, sent=False)
            logger.warning(
                "notification_delivery_failed",
                user_id=body["user_id"],
                kind=kind.value,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return

        record_notification(kind.value, sent=True)
        logger.debug("notification_delivered", user_id=body["user_id"], kind=kind.value)

    async def drain(self) -> None:
        """Wait for every scheduled delivery to finish."""
        if self._in_flight:
            await asyncio.gather(*self._in_flight, return_exceptions=True)

    async def aclose(self) -> None:
        await self.drain()
        await self.client.aclose()
