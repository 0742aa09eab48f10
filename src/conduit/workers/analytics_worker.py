"""Workers for the analytics queue."""

import logging
from collections import Counter
from datetime import datetime, timezone

from conduit.errors.exceptions import MalformedPayload
from conduit.models.enums import QueueName
from conduit.workers.base import BaseWorker
from conduit.workers.manager import GENERATE_REPORT, TRACK_EVENT
from conduit.workers.queue import JobContext

logger = logging.getLogger(__name__)


class TrackEventWorker(BaseWorker):
    queue_name = QueueName.ANALYTICS
    job_kind = TRACK_EVENT

    async def process(self, ctx: JobContext) -> dict:
        event_type = ctx.payload.get("event")
        if not event_type:
            raise MalformedPayload(f"track-event job {ctx.job_id} has no event name")
        await ctx.progress(25)
        await ctx.progress(50)
        event = await self.deps.analytics.insert(
            event_type=event_type,
            user_id=ctx.payload.get("userId"),
            metadata=ctx.payload.get("metadata") or {},
        )
        await ctx.progress(100)
        logger.info("Tracked analytics event %s for user %s", event_type, event.user_id)
        return {"eventId": event.id}


class GenerateReportWorker(BaseWorker):
    """Count analytics events per type within a date range."""

    queue_name = QueueName.ANALYTICS
    job_kind = GENERATE_REPORT

    async def process(self, ctx: JobContext) -> dict:
        try:
            start = datetime.fromisoformat(ctx.payload["start"])
            end = datetime.fromisoformat(ctx.payload["end"])
        except (KeyError, TypeError, ValueError) as exc:
            raise MalformedPayload(f"generate-report job {ctx.job_id} has an invalid date range") from exc

        await ctx.progress(10)
        events = await self.deps.analytics.list_between(start, end)
        await ctx.progress(70)

        by_type = Counter(event.event_type for event in events)
        users = {event.user_id for event in events if event.user_id}
        report = {
            "type": ctx.payload.get("reportType", "summary"),
            "start": start.isoformat(),
            "end": end.isoformat(),
            "totalEvents": len(events),
            "uniqueUsers": len(users),
            "byEventType": dict(by_type),
            "generatedAt": datetime.now(timezone.utc).isoformat(),
        }
        await ctx.progress(100)
        logger.info("Generated %s report over %d events", report["type"], len(events))
        return report
