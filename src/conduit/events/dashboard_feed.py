"""Live queue dashboard feed.

The first observer to connect starts a polling loop that pushes a metrics
snapshot every ``interval`` seconds and subscribes to the event bus; the last
observer to disconnect stops both. Each observer reads from its own bounded
queue and loses its oldest message when it falls behind.
"""

import asyncio
import logging
from typing import Any

from conduit.events.bus import QueueEventBus, Subscription
from conduit.models.job import QueueEvent

logger = logging.getLogger(__name__)

DEFAULT_BUFFER = 100


class Observer:
    def __init__(self, maxsize: int = DEFAULT_BUFFER):
        self.messages: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=maxsize)
        self.dropped = 0

    def push(self, message: dict[str, Any]) -> None:
        if self.messages.full():
            self.messages.get_nowait()
            self.dropped += 1
        self.messages.put_nowait(message)

    async def next_message(self, timeout: float | None = None) -> dict[str, Any]:
        return await asyncio.wait_for(self.messages.get(), timeout)


class DashboardFeed:
    def __init__(self, manager, bus: QueueEventBus, interval: float = 5.0, buffer_size: int = DEFAULT_BUFFER):
        self._manager = manager
        self._bus = bus
        self._interval = interval
        self._buffer_size = buffer_size
        self._observers: set[Observer] = set()
        self._lock = asyncio.Lock()
        self._poller: asyncio.Task | None = None
        self._subscription: Subscription | None = None

    @property
    def observer_count(self) -> int:
        return len(self._observers)

    @property
    def running(self) -> bool:
        return self._poller is not None

    def _metrics_message(self) -> dict[str, Any]:
        return {
            "type": "metrics",
            "data": [m.model_dump() for m in self._manager.get_metrics()],
        }

    def _broadcast(self, message: dict[str, Any]) -> None:
        for observer in list(self._observers):
            observer.push(message)

    def _on_event(self, event: QueueEvent) -> None:
        self._broadcast({"type": "queue_event", "data": event.model_dump(mode="json")})

    async def _poll(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            self._broadcast(self._metrics_message())

    async def connect(self) -> Observer:
        observer = Observer(self._buffer_size)
        async with self._lock:
            self._observers.add(observer)
            if self._poller is None:
                self._subscription = self._bus.subscribe(self._on_event)
                self._poller = asyncio.create_task(self._poll(), name="dashboard-feed")
                logger.info("Dashboard feed started (interval=%.1fs)", self._interval)
        # Initial snapshot so a new observer does not wait a full interval
        observer.push(self._metrics_message())
        return observer

    async def disconnect(self, observer: Observer) -> None:
        async with self._lock:
            self._observers.discard(observer)
            if self._observers or self._poller is None:
                return
            poller, self._poller = self._poller, None
            if self._subscription is not None:
                self._subscription.unsubscribe()
                self._subscription = None
        poller.cancel()
        await asyncio.gather(poller, return_exceptions=True)
        logger.info("Dashboard feed stopped")

    async def close(self) -> None:
        async with self._lock:
            self._observers.clear()
            poller, self._poller = self._poller, None
            if self._subscription is not None:
                self._subscription.unsubscribe()
                self._subscription = None
        if poller is not None:
            poller.cancel()
            await asyncio.gather(poller, return_exceptions=True)
