"""String enums for Conduit domain values."""

from enum import StrEnum


class SubscriptionStatus(StrEnum):
    INCOMPLETE = "incomplete"
    INCOMPLETE_EXPIRED = "incomplete_expired"
    TRIALING = "trialing"
    ACTIVE = "active"
    PAST_DUE = "past_due"
    CANCELED = "canceled"
    UNPAID = "unpaid"
    PAUSED = "paused"


class PaymentStatus(StrEnum):
    REQUIRES_PAYMENT_METHOD = "requires_payment_method"
    REQUIRES_CONFIRMATION = "requires_confirmation"
    REQUIRES_ACTION = "requires_action"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELED = "canceled"


class Currency(StrEnum):
    USD = "usd"
    EUR = "eur"
    GBP = "gbp"


class JobState(StrEnum):
    WAITING = "waiting"
    DELAYED = "delayed"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"


class BackoffType(StrEnum):
    FIXED = "fixed"
    EXPONENTIAL = "exponential"


class QueueName(StrEnum):
    EMAIL = "email"
    BILLING = "billing"
    DATASYNC = "datasync"
    ANALYTICS = "analytics"
    CLEANUP = "cleanup"
    DATALAYER_EVENTS = "datalayer-events"


class QueueEventType(StrEnum):
    JOB_COMPLETED = "job.completed"
    JOB_FAILED = "job.failed"
    JOB_STUCK = "job.stuck"
    JOB_PROGRESS = "job.progress"
    QUEUE_PAUSED = "queue.paused"
    QUEUE_RESUMED = "queue.resumed"
    ERROR = "error"


class HandlerStatus(StrEnum):
    SUCCESS = "success"
    IGNORED = "ignored"
