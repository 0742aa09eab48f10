"""Worker for the cleanup queue: prunes old records from allow-listed tables."""

import logging
from datetime import datetime

from conduit.errors.exceptions import MalformedPayload
from conduit.models.enums import QueueName
from conduit.workers.base import BaseWorker
from conduit.workers.manager import CLEANUP_OLD_DATA
from conduit.workers.queue import JobContext

logger = logging.getLogger(__name__)

CLEANABLE_TABLES = ("analytics_events",)
DEFAULT_BATCH_SIZE = 1000


class CleanupOldDataWorker(BaseWorker):
    queue_name = QueueName.CLEANUP
    job_kind = CLEANUP_OLD_DATA

    async def process(self, ctx: JobContext) -> dict:
        table = ctx.payload.get("table")
        if table not in CLEANABLE_TABLES:
            raise MalformedPayload(f"Table {table!r} is not cleanable", details={"allowed": list(CLEANABLE_TABLES)})
        try:
            cutoff = datetime.fromisoformat(ctx.payload["olderThan"])
        except (KeyError, TypeError, ValueError) as exc:
            raise MalformedPayload(f"cleanup job {ctx.job_id} has an invalid olderThan") from exc
        batch_size = ctx.payload.get("batchSize", DEFAULT_BATCH_SIZE)
        if not isinstance(batch_size, int) or isinstance(batch_size, bool) or batch_size < 1:
            raise MalformedPayload(f"cleanup job {ctx.job_id} has an invalid batchSize {batch_size!r}")

        await ctx.progress(0)
        deleted = await self.deps.analytics.delete_older_than(cutoff, limit=batch_size)
        await ctx.progress(100)
        logger.info(
            "Cleanup removed %d rows (batch of %d) from %s older than %s",
            deleted, batch_size, table, cutoff.isoformat(),
        )
        return {"table": table, "deletedCount": deleted}

