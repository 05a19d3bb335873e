"""
Notification dispatcher interface.
The booking core depends on this port only; delivery is an external concern.
"""

import enum
from abc import ABC, abstractmethod
from typing import Any


class NotificationKind(str, enum.Enum):
    CONFIRMED = "confirmed"
    WAITLISTED = "waitlisted"
    PROMOTED = "promoted"
    CANCELLED = "cancelled"


class Notifier(ABC):
    """
    Interface for user notification delivery.

    Implementations:
    - LogNotifier: writes the notification to the structured log
    - WebhookNotifier: POSTs it to the push-delivery provider
    """

    @abstractmethod
    async def notify(self, user_id: int, kind: NotificationKind, payload: dict[str, Any]) -> None:
        """
        Hand a notification over for delivery, fire-and-forget.

        Args:
            user_id: Recipient
            kind: confirmed, waitlisted, promoted or cancelled
            payload: At least class_id and an ISO timestamp

        Must not block on delivery; delivery failures are the
        implementation's to log and never affect booking state.
        """
        pass

    async def aclose(self) -> None:
        """Flush in-flight deliveries and release resources."""
        pass
