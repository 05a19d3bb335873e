"""
Notifier factory.
Configures which notification backend the booking core dispatches to.
"""

from typing import Optional

from studio_booking.core.config import get_settings
from studio_booking.core.logging import get_logger
from studio_booking.services.interfaces.log_notifier import LogNotifier
from studio_booking.services.interfaces.notifier import Notifier
from studio_booking.services.webhook_notifier import WebhookNotifier

logger = get_logger(__name__)


def build_notifier() -> Notifier:
    """
    Build the configured notifier.

    NOTIFIER_BACKEND selects:
    - log: LogNotifier (development default)
    - webhook: WebhookNotifier posting to NOTIFICATION_WEBHOOK_URL
    """
    settings = get_settings()
    backend = settings.NOTIFIER_BACKEND.lower()

    if backend == "webhook":
        if not settings.NOTIFICATION_WEBHOOK_URL:
            logger.warning("notifier_webhook_url_missing", fallback="log")
            return LogNotifier()
        return WebhookNotifier(
            settings.NOTIFICATION_WEBHOOK_URL,
            timeout=settings.NOTIFICATION_TIMEOUT_SECONDS,
        )
    return LogNotifier()


# Singleton instance
_notifier: Optional[Notifier] = None


def get_notifier() -> Notifier:
    """Get notifier singleton. Used as a FastAPI dependency."""
    global _notifier
    if _notifier is None:
        _notifier = build_notifier()
    return _notifier


async def close_notifier() -> None:
    global _notifier
    if _notifier is not None:
        await _notifier.aclose()
        _notifier = None
