"""Tests for the live dashboard feed."""

import asyncio

import pytest

from conduit.events.bus import QueueEventBus
from conduit.events.dashboard_feed import DashboardFeed, Observer
from conduit.models.enums import QueueEventType
from conduit.models.job import QueueEvent
from conduit.workers.manager import QueueManager


@pytest.fixture
def bus():
    return QueueEventBus()


@pytest.fixture
async def feed(bus):
    manager = QueueManager(bus)
    _feed = DashboardFeed(manager, bus, interval=0.02, buffer_size=5)
    yield _feed
    await _feed.close()


@pytest.mark.asyncio
async def test_connect_sends_initial_metrics_snapshot(feed):
    observer = await feed.connect()
    message = await observer.next_message(timeout=1)

    assert message["type"] == "metrics"
    queues = {m["queue"] for m in message["data"]}
    assert {"email", "billing", "datasync", "analytics", "cleanup", "datalayer-events"} == queues


@pytest.mark.asyncio
async def test_first_connect_starts_and_last_disconnect_stops(feed, bus):
    assert not feed.running
    first = await feed.connect()
    second = await feed.connect()
    assert feed.running
    assert bus.subscriber_count == 1

    await feed.disconnect(first)
    assert feed.running
    await feed.disconnect(second)
    assert not feed.running
    assert bus.subscriber_count == 0
    assert feed.observer_count == 0


@pytest.mark.asyncio
async def test_queue_events_are_forwarded(feed, bus):
    observer = await feed.connect()
    await observer.next_message(timeout=1)  # initial snapshot

    bus.publish(QueueEvent(type=QueueEventType.JOB_FAILED, queue="email", job_id="job_1", message="failed"))
    message = await observer.next_message(timeout=1)

    assert message["type"] == "queue_event"
    assert message["data"]["type"] == "job.failed"
    assert message["data"]["job_id"] == "job_1"


@pytest.mark.asyncio
async def test_periodic_metrics_arrive(feed):
    observer = await feed.connect()
    await observer.next_message(timeout=1)
    await asyncio.sleep(0.05)
    message = await observer.next_message(timeout=1)
    assert message["type"] == "metrics"


def test_slow_observer_drops_oldest_messages():
    observer = Observer(maxsize=2)
    for n in range(4):
        observer.push({"n": n})

    assert observer.dropped == 2
    assert observer.messages.get_nowait() == {"n": 2}
    assert observer.messages.get_nowait() == {"n": 3}


@pytest.mark.asyncio
async def test_disconnect_of_unknown_observer_is_harmless(feed):
    await feed.disconnect(Observer())
    assert not feed.running


def _poller_tasks() -> list[asyncio.Task]:
    return [t for t in asyncio.all_tasks() if t.get_name() == "dashboard-feed" and not t.done()]


@pytest.mark.asyncio
async def test_concurrent_connects_and_disconnects_share_one_poller(feed, bus):
    observers = await asyncio.gather(*(feed.connect() for _ in range(20)))

    assert feed.running
    assert feed.observer_count == 20
    assert bus.subscriber_count == 1
    assert len(_poller_tasks()) == 1

    await asyncio.gather(*(feed.disconnect(o) for o in observers[:10]))
    assert feed.running
    assert len(_poller_tasks()) == 1

    # Reconnects racing the final disconnects must not leave a second poller behind
    late = await asyncio.gather(
        *(feed.disconnect(o) for o in observers[10:]),
        *(feed.connect() for _ in range(5)),
    )
    reconnected = [o for o in late if isinstance(o, Observer)]
    assert len(reconnected) == 5
    assert feed.running
    assert bus.subscriber_count == 1
    assert len(_poller_tasks()) == 1

    await asyncio.gather(*(feed.disconnect(o) for o in reconnected))
    await asyncio.sleep(0)
    assert not feed.running
    assert feed.observer_count == 0
    assert bus.subscriber_count == 0
    assert _poller_tasks() == []
