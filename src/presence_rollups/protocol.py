"""Protocol for the host side of notification delivery.

A ``NotificationSink`` is whatever turns rollup notifications into
messages: posting a fresh message on ``new`` and editing the message it
posted last on ``update``. presence-rollups never renders or sends
anything itself.
"""

from __future__ import annotations

from typing import Protocol

from presence_rollups.models import Notification


class NotificationSink(Protocol):
    """Async callbacks receiving rollup notifications for a hub."""

    async def on_new(self, hub_id: str, notification: Notification) -> None:
        """A new notification was produced.

        Args:
            hub_id: Hub the notification belongs to.
            notification: The new notification.
        """
        ...

    async def on_update(self, hub_id: str, notification: Notification) -> None:
        """The hub's latest notification was amended.

        ``notification.index`` identifies which earlier ``on_new`` payload
        this replaces; its ``users`` is the complete, current user set.

        Args:
            hub_id: Hub the notification belongs to.
            notification: The amended notification.
        """
        ...
