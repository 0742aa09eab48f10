"""Worker for data-layer event triggers."""

import logging
from typing import Any

from conduit.models.enums import QueueName
from conduit.workers.base import BaseWorker
from conduit.workers.manager import PROCESS_EVENT
from conduit.workers.queue import JobContext

logger = logging.getLogger(__name__)


class DataLayerEventWorker(BaseWorker):
    """Turns row-change triggers on ``users`` and ``subscriptions`` into analytics events."""

    queue_name = QueueName.DATALAYER_EVENTS
    job_kind = PROCESS_EVENT

    async def process(self, ctx: JobContext) -> dict:
        table = (ctx.payload.get("table") or {}).get("name")
        event = ctx.payload.get("event") or {}
        operation = (event.get("op") or "UNKNOWN").lower()
        data = event.get("data") or {}
        old, new = data.get("old") or {}, data.get("new") or {}

        if table == "users":
            await self._handle_user(operation, old, new)
        elif table == "subscriptions":
            await self._handle_subscription(operation, old, new)
        else:
            logger.warning("No handler for data-layer table %r (event %s)", table, ctx.payload.get("eventId"))
            return {"handled": False, "table": table}
        return {"handled": True, "table": table, "operation": operation}

    async def _handle_user(self, operation: str, old: dict[str, Any], new: dict[str, Any]) -> None:
        row = new or old
        await self.deps.analytics.insert(
            event_type=f"user.{operation}",
            user_id=row.get("id"),
            metadata={"source": "datalayer"},
        )

    async def _handle_subscription(self, operation: str, old: dict[str, Any], new: dict[str, Any]) -> None:
        row = new or old
        if operation == "update" and old.get("status") == new.get("status"):
            return
        await self.deps.analytics.insert(
            event_type=f"subscription.{operation}",
            user_id=row.get("user_id"),
            metadata={"from": old.get("status"), "to": new.get("status"), "source": "datalayer"},
        )
