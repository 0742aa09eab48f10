"""Worker for the datasync queue: pushes processor objects into the data layer."""

import logging
from typing import Any

from conduit.models.enums import QueueName
from conduit.workers.base import BaseWorker
from conduit.workers.manager import SYNC_DATA
from conduit.workers.queue import JobContext

logger = logging.getLogger(__name__)


class SyncDataWorker(BaseWorker):
    queue_name = QueueName.DATASYNC
    job_kind = SYNC_DATA

    async def process(self, ctx: JobContext) -> dict:
        operation = ctx.payload.get("operation")
        data: dict[str, Any] = ctx.payload.get("data") or {}

        if operation == "sync_subscription":
            await self.deps.subscriptions.upsert(
                data["id"],
                status=data["status"],
                user_id=data.get("userId"),
                billing_customer_id=data.get("customerId"),
                price_id=data.get("priceId"),
            )
        elif operation == "sync_payment":
            await self.deps.payments.create(
                user_id=data["userId"],
                payment_intent_id=data["id"],
                amount=int(data["amount"]),
                currency=data.get("currency", "usd"),
                status=data["status"],
            )
        else:
            logger.warning("Unknown sync operation %r in job %s; skipped", operation, ctx.job_id)
            return {"synced": False, "operation": operation}

        logger.info("Synced %s for %s", operation, data.get("id"))
        return {"synced": True, "operation": operation}
