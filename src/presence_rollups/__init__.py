"""presence-rollups: Roll hub arrivals and departures into a short stream of notifications."""

from presence_rollups.config import RollupOptions
from presence_rollups.models import Handlers, Identity, Notification, NotificationEvent
from presence_rollups.protocol import NotificationSink
from presence_rollups.registry import RollupRegistry
from presence_rollups.rollups import PresenceRollups, RollupInvariantError
from presence_rollups.subscriber import NotificationSubscriber

__all__ = [
    # Engine
    "PresenceRollups",
    "RollupInvariantError",
    "RollupOptions",
    # Models
    "Handlers",
    "Identity",
    "Notification",
    "NotificationEvent",
    # Delivery
    "NotificationSink",
    "NotificationSubscriber",
    "RollupRegistry",
]
