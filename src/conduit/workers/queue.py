"""In-process job queue with retry, backoff, delay and timeout.

Each ``JobQueue`` owns a pool of worker tasks pulling job ids from a ready
queue and one scheduler task that promotes delayed jobs when they become due.
Per-job state machine::

    waiting -> active -> completed
                      -> delayed -> waiting      (attempts remain)
                      -> failed                  (attempts exhausted)

Jobs live in memory only. Finished jobs are kept for inspection up to a
per-state retention count, oldest evicted first. Processors see their own job
through a ``JobContext`` and nothing else.
"""

import asyncio
import heapq
import itertools
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

import structlog

from conduit.errors.exceptions import JobTimeoutError, NotFoundError, ValidationError
from conduit.models.enums import BackoffType, JobState, QueueEventType
from conduit.models.job import Backoff, JobError, JobOptions, JobStatusModel, QueueEvent, QueueMetrics
from conduit.services.id_generator import JOB_PREFIX, generate_id

logger = logging.getLogger(__name__)

Processor = Callable[["JobContext"], Awaitable[Any]]

_TERMINAL = (JobState.COMPLETED, JobState.FAILED)

DEFAULT_RETAIN_COMPLETED = 100
DEFAULT_RETAIN_FAILED = 500


def compute_backoff(backoff: Backoff, attempts_made: int) -> int:
    """Delay in ms before the next attempt, given how many attempts have run."""
    if backoff.type == BackoffType.FIXED:
        return backoff.delay_ms
    return backoff.delay_ms * 2 ** max(attempts_made - 1, 0)


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class _Job:
    id: str
    queue: str
    kind: str
    payload: dict[str, Any]
    options: JobOptions
    state: JobState = JobState.WAITING
    attempts_made: int = 0
    progress: float = 0.0
    result: Any = None
    errors: list[JobError] = field(default_factory=list)
    transitions: list[JobState] = field(default_factory=list)
    created_at: datetime = field(default_factory=_now)
    finished_at: datetime | None = None
    done: asyncio.Event = field(default_factory=asyncio.Event)

    def to_model(self) -> JobStatusModel:
        return JobStatusModel(
            job_id=self.id,
            queue=self.queue,
            kind=self.kind,
            state=self.state,
            attempts_made=self.attempts_made,
            attempts_allowed=self.options.attempts,
            progress=self.progress,
            payload=self.payload,
            result=self.result,
            errors=list(self.errors),
            transitions=list(self.transitions),
            created_at=self.created_at,
            finished_at=self.finished_at,
        )


class JobContext:
    """The processor's view of the job it is running."""

    def __init__(self, queue: "JobQueue", job: _Job):
        self._queue = queue
        self._job = job

    @property
    def job_id(self) -> str:
        return self._job.id

    @property
    def kind(self) -> str:
        return self._job.kind

    @property
    def payload(self) -> dict[str, Any]:
        return self._job.payload

    @property
    def attempts_made(self) -> int:
        return self._job.attempts_made

    async def progress(self, pct: float) -> None:
        """Report progress (clamped to 0..100). Informational only."""
        self._job.progress = max(0.0, min(100.0, float(pct)))
        self._queue._publish(
            QueueEventType.JOB_PROGRESS,
            f"Job {self._job.id} progress {self._job.progress:.0f}%",
            job_id=self._job.id,
            data={"progress": self._job.progress},
        )


class JobQueue:
    def __init__(
        self,
        name: str,
        event_bus=None,
        concurrency: int = 1,
        clock: Callable[[], float] = time.monotonic,
        retain_completed: int = DEFAULT_RETAIN_COMPLETED,
        retain_failed: int = DEFAULT_RETAIN_FAILED,
    ):
        self.name = name
        self._bus = event_bus
        self._concurrency = max(1, concurrency)
        self._clock = clock
        self._jobs: dict[str, _Job] = {}
        self._retention = {JobState.COMPLETED: max(0, retain_completed), JobState.FAILED: max(0, retain_failed)}
        # Finished job ids per terminal state, oldest first
        self._finished: dict[JobState, dict[str, None]] = {state: {} for state in _TERMINAL}
        self._processors: dict[str, Processor] = {}
        self._ready: asyncio.Queue[str] = asyncio.Queue()
        self._delayed: list[tuple[float, int, str]] = []
        self._seq = itertools.count()
        self._wakeup = asyncio.Event()
        self._running = asyncio.Event()
        self._running.set()
        self._tasks: list[asyncio.Task] = []

    # ------------------------------------------------------------------
    # Producer side
    # ------------------------------------------------------------------

    def register_processor(self, kind: str, processor: Processor) -> None:
        self._processors[kind] = processor

    async def enqueue(self, kind: str, payload: dict[str, Any] | None = None, options: JobOptions | None = None) -> str:
        """Add a job and return its id.

        A caller-supplied ``options.job_id`` naming a job that is still
        pending or running returns that id without creating a second job.
        A finished job with the same id is replaced.
        """
        options = options or JobOptions()
        if options.job_id:
            existing = self._jobs.get(options.job_id)
            if existing is not None and existing.state not in _TERMINAL:
                logger.info("Duplicate job %s on %s suppressed", options.job_id, self.name)
                return options.job_id
            if existing is not None:
                self._forget(existing.id)

        job = _Job(
            id=options.job_id or generate_id(JOB_PREFIX),
            queue=self.name,
            kind=kind,
            payload=payload or {},
            options=options,
        )
        self._jobs[job.id] = job
        if options.delay_ms > 0:
            self._set_state(job, JobState.DELAYED)
            self._schedule(job, options.delay_ms)
        else:
            self._set_state(job, JobState.WAITING)
            self._ready.put_nowait(job.id)
        logger.debug("Enqueued %s job %s on %s", kind, job.id, self.name)
        return job.id

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def started(self) -> bool:
        return bool(self._tasks)

    @property
    def paused(self) -> bool:
        return not self._running.is_set()

    async def start(self) -> None:
        if self._tasks:
            return
        self._tasks = [
            asyncio.create_task(self._worker_loop(i), name=f"{self.name}-worker-{i}")
            for i in range(self._concurrency)
        ]
        self._tasks.append(asyncio.create_task(self._scheduler_loop(), name=f"{self.name}-scheduler"))
        logger.info("Queue %s started (concurrency=%d)", self.name, self._concurrency)

    async def stop(self) -> None:
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        if tasks:
            logger.info("Queue %s stopped", self.name)

    async def pause(self) -> None:
        self._running.clear()
        self._publish(QueueEventType.QUEUE_PAUSED, f"Queue {self.name} paused")

    async def resume(self) -> None:
        self._running.set()
        self._publish(QueueEventType.QUEUE_RESUMED, f"Queue {self.name} resumed")

    # ------------------------------------------------------------------
    # Inspection and admin
    # ------------------------------------------------------------------

    def get_job(self, job_id: str) -> JobStatusModel | None:
        job = self._jobs.get(job_id)
        return job.to_model() if job else None

    def list_jobs(self, state: JobState) -> list[JobStatusModel]:
        return [job.to_model() for job in self._jobs.values() if job.state == state]

    def counts(self) -> QueueMetrics:
        metrics = QueueMetrics(queue=self.name)
        for job in self._jobs.values():
            if job.state in (JobState.WAITING, JobState.DELAYED):
                metrics.waiting += 1
            elif job.state == JobState.ACTIVE:
                metrics.active += 1
            elif job.state == JobState.COMPLETED:
                metrics.completed += 1
            elif job.state == JobState.FAILED:
                metrics.failed += 1
        return metrics

    async def retry_job(self, job_id: str) -> JobStatusModel:
        """Re-queue a failed job with a fresh attempt budget."""
        job = self._jobs.get(job_id)
        if job is None:
            raise NotFoundError("Job", job_id)
        if job.state != JobState.FAILED:
            raise ValidationError(
                f"Job {job_id} is {job.state}, only failed jobs can be retried", code="JOB_NOT_FAILED"
            )
        self._finished[JobState.FAILED].pop(job_id, None)
        job.attempts_made = 0
        job.progress = 0.0
        job.finished_at = None
        job.done = asyncio.Event()
        self._set_state(job, JobState.WAITING)
        self._ready.put_nowait(job.id)
        logger.info("Job %s on %s manually re-queued", job_id, self.name)
        return job.to_model()

    def clean(self, state: JobState) -> int:
        """Forget terminal jobs in ``state``; returns how many were dropped."""
        if state not in _TERMINAL:
            raise ValidationError(f"Only terminal jobs can be cleaned, got {state}", code="INVALID_STATE")
        doomed = [job_id for job_id, job in self._jobs.items() if job.state == state]
        for job_id in doomed:
            self._forget(job_id)
        return len(doomed)

    async def wait_until_finished(self, job_id: str, timeout: float | None = None) -> JobStatusModel:
        job = self._jobs.get(job_id)
        if job is None:
            raise NotFoundError("Job", job_id)
        await asyncio.wait_for(job.done.wait(), timeout)
        return job.to_model()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _set_state(self, job: _Job, state: JobState) -> None:
        job.state = state
        job.transitions.append(state)

    def _schedule(self, job: _Job, delay_ms: int) -> None:
        heapq.heappush(self._delayed, (self._clock() + delay_ms / 1000, next(self._seq), job.id))
        self._wakeup.set()

    def _publish(self, event_type: QueueEventType, message: str, job_id: str | None = None, data=None) -> None:
        if self._bus is None:
            return
        self._bus.publish(QueueEvent(type=event_type, queue=self.name, job_id=job_id, message=message, data=data))

    def _finish(self, job: _Job, state: JobState) -> None:
        self._set_state(job, state)
        job.finished_at = _now()
        job.done.set()
        finished = self._finished[state]
        finished[job.id] = None
        while len(finished) > self._retention[state]:
            self._forget(next(iter(finished)))

    def _forget(self, job_id: str) -> None:
        self._jobs.pop(job_id, None)
        for finished in self._finished.values():
            finished.pop(job_id, None)

    async def _worker_loop(self, index: int) -> None:
        while True:
            job_id = await self._ready.get()
            await self._running.wait()
            job = self._jobs.get(job_id)
            if job is None or job.state != JobState.WAITING:
                continue
            with structlog.contextvars.bound_contextvars(queue=self.name, job_id=job.id):
                await self._run(job)

    async def _scheduler_loop(self) -> None:
        while True:
            self._wakeup.clear()
            now = self._clock()
            while self._delayed and self._delayed[0][0] <= now:
                _, _, job_id = heapq.heappop(self._delayed)
                job = self._jobs.get(job_id)
                if job is not None and job.state == JobState.DELAYED:
                    self._set_state(job, JobState.WAITING)
                    self._ready.put_nowait(job.id)
            timeout = self._delayed[0][0] - now if self._delayed else None
            try:
                await asyncio.wait_for(self._wakeup.wait(), timeout)
            except asyncio.TimeoutError:
                pass

    async def _run(self, job: _Job) -> None:
        job.attempts_made += 1
        self._set_state(job, JobState.ACTIVE)

        processor = self._processors.get(job.kind)
        if processor is None:
            message = f"No processor registered for {job.kind} on {self.name}"
            logger.error(message)
            job.errors.append(JobError(attempt=job.attempts_made, message=message, timestamp=_now()))
            self._finish(job, JobState.FAILED)
            self._publish(QueueEventType.ERROR, message, job_id=job.id)
            self._publish(QueueEventType.JOB_FAILED, message, job_id=job.id)
            return

        timeout_ms = job.options.timeout_ms
        deadline = asyncio.timeout(timeout_ms / 1000 if timeout_ms else None)
        try:
            async with deadline:
                result = await processor(JobContext(self, job))
        except ValidationError as exc:
            # Bad payloads fail the same way on every attempt
            self._fail_permanently(job, exc)
        except Exception as exc:
            if deadline.expired():
                self._publish(
                    QueueEventType.JOB_STUCK,
                    f"Job {job.id} exceeded {timeout_ms}ms",
                    job_id=job.id,
                    data={"timeout_ms": timeout_ms},
                )
                exc = JobTimeoutError(job.id, timeout_ms)
            self._fail_attempt(job, exc)
        else:
            job.result = result
            self._finish(job, JobState.COMPLETED)
            logger.info("Job %s (%s) completed on attempt %d", job.id, job.kind, job.attempts_made)
            self._publish(QueueEventType.JOB_COMPLETED, f"Job {job.id} completed", job_id=job.id)

    def _fail_attempt(self, job: _Job, exc: Exception) -> None:
        if job.attempts_made < job.options.attempts:
            delay = compute_backoff(job.options.backoff, job.attempts_made)
            job.errors.append(
                JobError(attempt=job.attempts_made, message=str(exc), retry_delay_ms=delay, timestamp=_now())
            )
            logger.warning(
                "Job %s (%s) attempt %d/%d failed, retrying in %dms: %s",
                job.id, job.kind, job.attempts_made, job.options.attempts, delay, exc,
            )
            self._set_state(job, JobState.DELAYED)
            self._schedule(job, delay)
            return

        job.errors.append(JobError(attempt=job.attempts_made, message=str(exc), timestamp=_now()))
        self._finish(job, JobState.FAILED)
        logger.error("Job %s (%s) failed after %d attempts: %s", job.id, job.kind, job.attempts_made, exc)
        self._publish(
            QueueEventType.JOB_FAILED,
            f"Job {job.id} failed: {exc}",
            job_id=job.id,
            data={"attempts_made": job.attempts_made},
        )

    def _fail_permanently(self, job: _Job, exc: ValidationError) -> None:
        job.errors.append(JobError(attempt=job.attempts_made, message=str(exc), timestamp=_now()))
        self._finish(job, JobState.FAILED)
        logger.error("Job %s (%s) rejected, not retrying: %s", job.id, job.kind, exc)
        self._publish(
            QueueEventType.JOB_FAILED,
            f"Job {job.id} failed: {exc}",
            job_id=job.id,
            data={"attempts_made": job.attempts_made},
        )
