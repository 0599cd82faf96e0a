"""Subscriber that routes rollup events from async queues to a sink.

This is the glue between the synchronous rollup engine and an
asynchronous delivery layer (a chat bot, a webhook poster, etc.).
Engine handlers push ``NotificationEvent``s onto a per-hub
``asyncio.Queue``; a background task per hub consumes them and awaits
the sink, so slow deliveries never block ``arrive``/``depart``.

Typical usage::

    from presence_rollups import NotificationSubscriber, RollupRegistry

    subscriber = NotificationSubscriber(sink)
    registry = RollupRegistry(
        handlers_factory=subscriber.handlers_for,
        on_remove=subscriber.release,
    )

    registry.get_or_create("hub-1").arrive("c1", "Alice", now_ms)
    registry.remove("hub-1")  # also stops the hub's consumer

Events for a hub are delivered in the order the engine produced them.
Notifications are passed by reference, so an ``update`` queued right
behind its ``new`` is already visible when the ``new`` is delivered.
"""

from __future__ import annotations

import asyncio
import logging

from presence_rollups.models import EventType, Handlers, Notification, NotificationEvent
from presence_rollups.protocol import NotificationSink

logger = logging.getLogger("presence_rollups.subscriber")


class NotificationSubscriber:
    """Routes rollup events from per-hub queues to a sink.

    Args:
        sink: The sink to deliver notifications to.
    """

    def __init__(self, sink: NotificationSink) -> None:
        self._sink = sink
        self._tasks: dict[str, asyncio.Task] = {}
        self._queues: dict[str, asyncio.Queue] = {}

    def subscribe(self, hub_id: str, queue: asyncio.Queue | None = None) -> asyncio.Queue:
        """Start consuming events for a hub.

        Args:
            hub_id: The hub to subscribe.
            queue: Optional pre-existing queue. If None, a new one is created.

        Returns:
            The queue that events should be pushed to.
        """
        if hub_id in self._tasks:
            return self._queues[hub_id]

        if queue is None:
            queue = asyncio.Queue()
        self._queues[hub_id] = queue

        task = asyncio.create_task(self._consume(hub_id, queue))
        self._tasks[hub_id] = task
        logger.info("Subscriber started for hub %s", hub_id)
        return queue

    def handlers_for(self, hub_id: str) -> Handlers:
        """Build engine handlers that enqueue events for ``hub_id``."""
        queue = self.subscribe(hub_id)

        def enqueue(event_type: EventType):
            def handler(notification: Notification) -> None:
                queue.put_nowait(
                    NotificationEvent(type=event_type, hub_id=hub_id, notification=notification)
                )

            return handler

        return Handlers(on_new=enqueue("new"), on_update=enqueue("update"))

    def release(self, hub_id: str) -> None:
        """Cancel a hub's consumer and drop its queue.

        Synchronous, so it can be passed as ``RollupRegistry(on_remove=...)``.
        """
        task = self._tasks.pop(hub_id, None)
        self._queues.pop(hub_id, None)
        if task:
            task.cancel()
            logger.info("Subscriber stopped for hub %s", hub_id)

    async def unsubscribe(self, hub_id: str) -> None:
        """Stop consuming events for a hub."""
        self.release(hub_id)

    async def unsubscribe_all(self) -> None:
        """Stop all subscribers."""
        for hub_id in list(self._tasks):
            await self.unsubscribe(hub_id)

    async def _consume(self, hub_id: str, queue: asyncio.Queue) -> None:
        """Background task: read events from queue, dispatch to sink."""
        try:
            while True:
                event = await queue.get()
                try:
                    await self._dispatch(event)
                except Exception:
                    logger.exception(
                        "Failed to deliver notification (hub=%s, type=%s)",
                        hub_id,
                        event.type,
                    )
        except asyncio.CancelledError:
            pass

    async def _dispatch(self, event: NotificationEvent) -> None:
        """Dispatch a single event to the sink."""
        if event.type == "new":
            await self._sink.on_new(event.hub_id, event.notification)
        elif event.type == "update":
            await self._sink.on_update(event.hub_id, event.notification)
