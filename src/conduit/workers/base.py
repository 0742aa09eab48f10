"""Base worker interface for queued job processing."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from conduit.models.enums import QueueName
from conduit.workers.queue import JobContext

if TYPE_CHECKING:
    from conduit.billing.base import BillingClient
    from conduit.notifications.email import EmailSender
    from conduit.repositories.base import (
        AnalyticsRepository,
        PaymentRepository,
        SubscriptionRepository,
        UserRepository,
    )

logger = logging.getLogger(__name__)


@dataclass
class WorkerDependencies:
    """Capabilities handed to every worker at construction time."""

    users: "UserRepository"
    subscriptions: "SubscriptionRepository"
    payments: "PaymentRepository"
    analytics: "AnalyticsRepository"
    billing: "BillingClient"
    email: "EmailSender"


class BaseWorker(ABC):
    """Abstract base class for job processors.

    Subclasses declare the queue and job kind they serve. Raising from
    ``process`` counts as a failed attempt; the queue applies the job's
    retry policy.
    """

    queue_name: QueueName
    job_kind: str

    def __init__(self, deps: WorkerDependencies):
        self.deps = deps

    @abstractmethod
    async def process(self, ctx: JobContext) -> Any:
        """Run one attempt of the job and return its result."""
        ...

    async def __call__(self, ctx: JobContext) -> Any:
        logger.info("Processing %s job %s (attempt %d)", self.job_kind, ctx.job_id, ctx.attempts_made)
        return await self.process(ctx)
