"""Workers for the email queue."""

import logging
from datetime import datetime

from conduit.errors.exceptions import MalformedPayload
from conduit.models.enums import QueueName
from conduit.workers.base import BaseWorker
from conduit.workers.manager import SUBSCRIPTION_EXPIRY, WELCOME_EMAIL
from conduit.workers.queue import JobContext

logger = logging.getLogger(__name__)


def _recipient(ctx: JobContext) -> tuple[str, str]:
    email = ctx.payload.get("email")
    if not email:
        raise MalformedPayload(f"{ctx.kind} job {ctx.job_id} has no recipient")
    return email, ctx.payload.get("name") or email.split("@", 1)[0]


class WelcomeEmailWorker(BaseWorker):
    queue_name = QueueName.EMAIL
    job_kind = WELCOME_EMAIL

    async def process(self, ctx: JobContext) -> dict:
        email, name = _recipient(ctx)
        await ctx.progress(25)
        await self.deps.email.send_welcome_email(email, name)
        await ctx.progress(100)
        logger.info("Welcome email sent for user %s", ctx.payload.get("userId"))
        return {"sent": True, "to": email}


class SubscriptionExpiryWorker(BaseWorker):
    queue_name = QueueName.EMAIL
    job_kind = SUBSCRIPTION_EXPIRY

    async def process(self, ctx: JobContext) -> dict:
        email, name = _recipient(ctx)
        raw_date = ctx.payload.get("expiryDate")
        expiry_date = datetime.fromisoformat(raw_date) if raw_date else None
        await ctx.progress(25)
        await self.deps.email.send_subscription_expiry_email(email, name, expiry_date)
        await ctx.progress(100)
        return {"sent": True, "to": email}
