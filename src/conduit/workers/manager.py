"""Named queues, their retry policies and the producer helpers."""

import logging
from datetime import datetime, timedelta
from typing import Any

from conduit.errors.exceptions import NotFoundError
from conduit.models.enums import JobState, QueueName
from conduit.models.job import Backoff, JobOptions, JobStatusModel, QueueMetrics
from conduit.workers.base import BaseWorker
from conduit.workers.queue import DEFAULT_RETAIN_COMPLETED, DEFAULT_RETAIN_FAILED, JobQueue

logger = logging.getLogger(__name__)

WELCOME_EMAIL = "welcome-email"
SUBSCRIPTION_EXPIRY = "subscription-expiry"
RETRY_PAYMENT = "retry-payment"
SYNC_DATA = "sync-data"
TRACK_EVENT = "track-event"
GENERATE_REPORT = "generate-report"
CLEANUP_OLD_DATA = "cleanup-old-data"
PROCESS_EVENT = "process-event"


def _exp(delay_ms: int) -> Backoff:
    return Backoff(delay_ms=delay_ms)


WELCOME_EMAIL_POLICY = JobOptions(attempts=3, backoff=_exp(1000))
SUBSCRIPTION_EXPIRY_POLICY = JobOptions(
    attempts=3, backoff=_exp(1000), delay_ms=int(timedelta(hours=24).total_seconds() * 1000)
)
PAYMENT_RETRY_POLICY = JobOptions(attempts=5, backoff=_exp(60_000))
DATA_SYNC_POLICY = JobOptions(attempts=3, backoff=_exp(1000))
TRACK_EVENT_POLICY = JobOptions(attempts=2, backoff=_exp(1000))
REPORT_POLICY = JobOptions(attempts=3, backoff=_exp(5000), timeout_ms=5 * 60 * 1000)
CLEANUP_POLICY = JobOptions(attempts=5, backoff=_exp(10_000), timeout_ms=10 * 60 * 1000)
DATALAYER_EVENT_POLICY = JobOptions(attempts=3, backoff=_exp(1000))


def _with_id(policy: JobOptions, job_id: str | None) -> JobOptions:
    return policy.model_copy(update={"job_id": job_id}) if job_id else policy


class QueueManager:
    """Owns one ``JobQueue`` per ``QueueName``."""

    def __init__(self, event_bus=None, concurrency: int = 2, retain_completed: int = DEFAULT_RETAIN_COMPLETED,
                 retain_failed: int = DEFAULT_RETAIN_FAILED):
        self.event_bus = event_bus
        self._queues = {
            name.value: JobQueue(
                name.value, event_bus, concurrency, retain_completed=retain_completed, retain_failed=retain_failed
            )
            for name in QueueName
        }

    @property
    def queues(self) -> dict[str, JobQueue]:
        return dict(self._queues)

    def queue(self, name: str) -> JobQueue:
        try:
            return self._queues[name]
        except KeyError:
            raise NotFoundError("Queue", name) from None

    def register(self, worker: BaseWorker) -> None:
        self.queue(worker.queue_name).register_processor(worker.job_kind, worker)

    async def start(self) -> None:
        for queue in self._queues.values():
            await queue.start()

    async def stop(self) -> None:
        for queue in self._queues.values():
            await queue.stop()

    # ------------------------------------------------------------------
    # Metrics and inspection
    # ------------------------------------------------------------------

    def get_metrics(self) -> list[QueueMetrics]:
        return [queue.counts() for queue in self._queues.values()]

    def list_jobs(self, state: JobState) -> list[JobStatusModel]:
        jobs: list[JobStatusModel] = []
        for queue in self._queues.values():
            jobs.extend(queue.list_jobs(state))
        return jobs

    # ------------------------------------------------------------------
    # Producers
    # ------------------------------------------------------------------

    async def add_welcome_email(self, user_id: str, email: str, name: str) -> str:
        return await self.queue(QueueName.EMAIL).enqueue(
            WELCOME_EMAIL,
            {"userId": user_id, "email": email, "name": name},
            _with_id(WELCOME_EMAIL_POLICY, f"{WELCOME_EMAIL}:{user_id}"),
        )

    async def add_subscription_expiry_notification(
        self, email: str, name: str, expiry_date: datetime | None = None
    ) -> str:
        return await self.queue(QueueName.EMAIL).enqueue(
            SUBSCRIPTION_EXPIRY,
            {"email": email, "name": name, "expiryDate": expiry_date.isoformat() if expiry_date else None},
            SUBSCRIPTION_EXPIRY_POLICY,
        )

    async def add_payment_retry(self, payment_intent_id: str, customer_id: str) -> str:
        return await self.queue(QueueName.BILLING).enqueue(
            RETRY_PAYMENT,
            {"paymentIntentId": payment_intent_id, "customerId": customer_id},
            _with_id(PAYMENT_RETRY_POLICY, f"{RETRY_PAYMENT}:{payment_intent_id}"),
        )

    async def add_data_sync(self, operation: str, data: dict[str, Any]) -> str:
        return await self.queue(QueueName.DATASYNC).enqueue(
            SYNC_DATA, {"operation": operation, "data": data}, DATA_SYNC_POLICY
        )

    async def track_analytics_event(
        self, event: str, user_id: str | None = None, metadata: dict[str, Any] | None = None
    ) -> str:
        return await self.queue(QueueName.ANALYTICS).enqueue(
            TRACK_EVENT, {"userId": user_id, "event": event, "metadata": metadata or {}}, TRACK_EVENT_POLICY
        )

    async def generate_analytics_report(self, report_type: str, start: datetime, end: datetime) -> str:
        return await self.queue(QueueName.ANALYTICS).enqueue(
            GENERATE_REPORT,
            {"reportType": report_type, "start": start.isoformat(), "end": end.isoformat()},
            REPORT_POLICY,
        )

    async def schedule_data_cleanup(self, table: str, older_than: datetime, batch_size: int = 1000) -> str:
        return await self.queue(QueueName.CLEANUP).enqueue(
            CLEANUP_OLD_DATA,
            {"table": table, "olderThan": older_than.isoformat(), "batchSize": batch_size},
            CLEANUP_POLICY,
        )

    async def add_datalayer_event(self, payload: dict[str, Any], event_id: str | None = None,
                                  delivery_id: str | None = None) -> str:
        job_payload = {
            "eventId": event_id,
            "deliveryId": delivery_id,
            "table": payload.get("table") or {},
            "event": payload.get("event") or {},
            "trigger": payload.get("trigger") or {},
        }
        return await self.queue(QueueName.DATALAYER_EVENTS).enqueue(
            PROCESS_EVENT,
            job_payload,
            _with_id(DATALAYER_EVENT_POLICY, f"{PROCESS_EVENT}:{event_id}" if event_id else None),
        )
