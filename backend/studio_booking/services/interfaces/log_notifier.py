"""
Log-only notifier - no delivery.
Default for development and for deployments where a separate worker
tails the log stream into the push provider.
"""

from typing import Any

from studio_booking.core.logging import get_logger
from studio_booking.core.metrics import record_notification
from studio_booking.services.interfaces.notifier import NotificationKind, Notifier

logger = get_logger(__name__)


class LogNotifier(Notifier):
    """Record the notification as a structured log event."""

    async def notify(self, user_id: int, kind: NotificationKind, payload: dict[str, Any]) -> None:
        logger.info("notification", user_id=user_id, kind=kind.value, payload=payload)
        record_notification(kind.value, sent=True)
