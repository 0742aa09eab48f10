"""Pydantic models for jobs, queue metrics and queue events."""

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from conduit.models.enums import BackoffType, JobState, QueueEventType


class Backoff(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: BackoffType = BackoffType.EXPONENTIAL
    delay_ms: int = Field(1000, ge=0)


class JobOptions(BaseModel):
    """Retry and scheduling policy attached to a job at enqueue time."""

    model_config = ConfigDict(frozen=True)

    attempts: int = Field(1, ge=1)
    backoff: Backoff = Field(default_factory=Backoff)
    delay_ms: int = Field(0, ge=0)
    timeout_ms: int | None = Field(None, gt=0)
    job_id: str | None = None


class JobError(BaseModel):
    attempt: int
    message: str
    retry_delay_ms: int | None = None
    timestamp: datetime


class JobStatusModel(BaseModel):
    job_id: str
    queue: str
    kind: str
    state: JobState
    attempts_made: int
    attempts_allowed: int
    progress: float
    payload: dict[str, Any]
    result: Any = None
    errors: list[JobError] = Field(default_factory=list)
    transitions: list[JobState] = Field(default_factory=list)
    created_at: datetime
    finished_at: datetime | None = None


class QueueMetrics(BaseModel):
    queue: str
    waiting: int = 0
    active: int = 0
    completed: int = 0
    failed: int = 0


class QueueEvent(BaseModel):
    """Transient lifecycle notification broadcast to dashboard observers."""

    model_config = ConfigDict(frozen=True)

    type: QueueEventType
    queue: str
    job_id: str | None = None
    message: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    data: dict[str, Any] | None = None
