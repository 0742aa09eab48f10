"""In-process multicast of queue lifecycle events.

Delivery is best effort and at most once: there is no replay buffer, and a
subscriber that raises is logged and skipped without affecting the others.
"""

import logging
from typing import Callable

from conduit.models.job import QueueEvent

logger = logging.getLogger(__name__)

Listener = Callable[[QueueEvent], None]


class Subscription:
    """Handle returned by ``QueueEventBus.subscribe``."""

    def __init__(self, bus: "QueueEventBus", listener: Listener):
        self._bus = bus
        self._listener = listener
        self.active = True

    def unsubscribe(self) -> None:
        if self.active:
            self._bus._remove(self._listener)
            self.active = False


class QueueEventBus:
    def __init__(self) -> None:
        self._listeners: list[Listener] = []

    @property
    def subscriber_count(self) -> int:
        return len(self._listeners)

    def subscribe(self, listener: Listener) -> Subscription:
        self._listeners.append(listener)
        return Subscription(self, listener)

    def _remove(self, listener: Listener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    def publish(self, event: QueueEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Queue event listener failed on %s", event.type)
