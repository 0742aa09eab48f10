"""Webhook event router: maps an envelope type to its handler."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from conduit.models.webhook import HandlerResult, WebhookEnvelope

logger = logging.getLogger(__name__)

Handler = Callable[[dict[str, Any]], Awaitable[HandlerResult]]


class EventRouter:
    """Dispatches decoded envelopes by ``type``.

    Handlers receive only ``envelope.data``. Unknown types are acknowledged
    with an ``ignored`` result so new sender event types never fail a delivery.
    """

    def __init__(self, handlers: Mapping[str, Handler]) -> None:
        self._handlers = dict(handlers)

    def handles(self, event_type: str) -> bool:
        return event_type in self._handlers

    @property
    def event_types(self) -> list[str]:
        return sorted(self._handlers)

    async def route(self, envelope: WebhookEnvelope) -> HandlerResult:
        handler = self._handlers.get(envelope.type)
        if handler is None:
            logger.info("No handler for webhook event; skipping (type=%s)", envelope.type)
            return HandlerResult.ignored(envelope.type)

        logger.info("Routing webhook event %s (id=%s)", envelope.type, envelope.id or "-")
        return await handler(envelope.data)
