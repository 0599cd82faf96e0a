"""Core data models for presence-rollups."""

from __future__ import annotations

from collections.abc import Callable, Hashable
from dataclasses import dataclass
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

NotificationKind = Literal["arrive", "depart"]
EventType = Literal["new", "update"]


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------


class Identity(BaseModel):
    """A participant as announced in a notification.

    ``id`` is unique per session. ``name`` is what links a departure to a
    later arrival, so two different people sharing a display name are
    treated as the same participant for rejoin suppression.
    """

    model_config = ConfigDict(frozen=True)

    id: Hashable
    name: str


class Notification(BaseModel):
    """A rolled-up announcement of one or more same-kind presence changes.

    Only the most recent notification in a log is ever mutated; once a newer
    entry exists this one is closed for good.
    """

    index: int = Field(..., ge=0, description="Position in the notification log")
    kind: NotificationKind
    users: list[Identity] = Field(default_factory=list)
    timestamp: float = Field(..., description="Time of the last event in the burst (ms)")

    @property
    def names(self) -> list[str]:
        return [user.name for user in self.users]


class NotificationEvent(BaseModel):
    """Envelope for a notification passing through a subscriber queue."""

    type: EventType
    hub_id: str
    notification: Notification


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------

NotificationHandler = Callable[[Notification], None]
"""(notification) → None"""


@dataclass
class Handlers:
    """Callbacks the host provides to receive rollup events.

    Both handlers are optional. If a handler is not set, the corresponding
    event is silently ignored. Handlers run synchronously inside the
    ``arrive`` call or the expiring hold that produced the event.
    """

    on_new: NotificationHandler | None = None
    """A new notification was appended; post a fresh message."""

    on_update: NotificationHandler | None = None
    """The latest notification changed; edit the previously posted message."""
