"""Tests for NotificationSubscriber."""

import asyncio

import pytest

from presence_rollups.config import RollupOptions
from presence_rollups.models import Identity, Notification, NotificationEvent
from presence_rollups.registry import RollupRegistry
from presence_rollups.subscriber import NotificationSubscriber


class RecordingSink:
    """Sink that records all calls for testing."""

    def __init__(self):
        self.calls: list[tuple[str, str, int, list[str]]] = []

    async def on_new(self, hub_id, notification):
        self.calls.append(("new", hub_id, notification.index, list(notification.names)))

    async def on_update(self, hub_id, notification):
        self.calls.append(("update", hub_id, notification.index, list(notification.names)))


class FlakySink(RecordingSink):
    """Sink whose first delivery fails."""

    def __init__(self):
        super().__init__()
        self.failed = False

    async def on_new(self, hub_id, notification):
        if not self.failed:
            self.failed = True
            raise RuntimeError("chat platform unavailable")
        await super().on_new(hub_id, notification)


def _notification(index, *names):
    return Notification(
        index=index,
        kind="arrive",
        users=[Identity(id=i, name=n) for i, n in enumerate(names)],
        timestamp=0,
    )


@pytest.mark.asyncio
async def test_queue_events_dispatched_in_order():
    sink = RecordingSink()
    sub = NotificationSubscriber(sink)
    queue = sub.subscribe("h1")

    queue.put_nowait(NotificationEvent(type="new", hub_id="h1", notification=_notification(0, "A")))
    queue.put_nowait(
        NotificationEvent(type="update", hub_id="h1", notification=_notification(0, "A", "B"))
    )

    await asyncio.sleep(0.05)
    await sub.unsubscribe("h1")

    assert sink.calls == [
        ("new", "h1", 0, ["A"]),
        ("update", "h1", 0, ["A", "B"]),
    ]


@pytest.mark.asyncio
async def test_subscribe_is_idempotent():
    sub = NotificationSubscriber(RecordingSink())
    queue = sub.subscribe("h1")
    assert sub.subscribe("h1") is queue
    assert len(sub._tasks) == 1
    await sub.unsubscribe_all()


@pytest.mark.asyncio
async def test_engine_to_sink_through_registry():
    sink = RecordingSink()
    sub = NotificationSubscriber(sink)
    registry = RollupRegistry(
        options=RollupOptions(depart_rejoin_patience_ms=20),
        handlers_factory=sub.handlers_for,
    )

    engine = registry.get_or_create("h1")
    engine.arrive(1, "A", 0)
    await asyncio.sleep(0.02)
    engine.arrive(2, "B", 1000)
    await asyncio.sleep(0.02)
    engine.depart(1, "A", 2000)
    await asyncio.sleep(0.1)

    await sub.unsubscribe_all()

    assert sink.calls == [
        ("new", "h1", 0, ["A"]),
        ("update", "h1", 0, ["A", "B"]),
        ("new", "h1", 1, ["A"]),
    ]


@pytest.mark.asyncio
async def test_suppressed_rejoin_delivers_nothing():
    sink = RecordingSink()
    sub = NotificationSubscriber(sink)
    registry = RollupRegistry(
        options=RollupOptions(depart_rejoin_patience_ms=20),
        handlers_factory=sub.handlers_for,
    )

    engine = registry.get_or_create("h1")
    engine.depart(1, "A", 0)
    engine.arrive(2, "A", 5000)
    await asyncio.sleep(0.1)
    await sub.unsubscribe_all()

    assert sink.calls == []


@pytest.mark.asyncio
async def test_failed_delivery_does_not_stop_consumer():
    sink = FlakySink()
    sub = NotificationSubscriber(sink)
    engine = RollupRegistry(handlers_factory=sub.handlers_for).get_or_create("h1")

    engine.arrive(1, "A", 0)
    engine.arrive(2, "B", 120000)
    await asyncio.sleep(0.05)
    await sub.unsubscribe_all()

    assert sink.failed
    assert sink.calls == [("new", "h1", 1, ["B"])]


@pytest.mark.asyncio
async def test_registry_remove_stops_consumer():
    sub = NotificationSubscriber(RecordingSink())
    registry = RollupRegistry(handlers_factory=sub.handlers_for, on_remove=sub.release)

    registry.get_or_create("h1")
    task = sub._tasks["h1"]
    registry.remove("h1")
    await asyncio.sleep(0.01)

    assert sub._tasks == {}
    assert sub._queues == {}
    assert task.done()


@pytest.mark.asyncio
async def test_unsubscribe_all():
    sub = NotificationSubscriber(RecordingSink())
    sub.subscribe("h1")
    sub.subscribe("h2")

    assert len(sub._tasks) == 2
    await sub.unsubscribe_all()
    assert len(sub._tasks) == 0
