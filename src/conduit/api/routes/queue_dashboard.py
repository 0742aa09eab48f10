"""Queue monitoring: metrics, job inspection, admin actions and a live SSE feed."""

import asyncio
import json
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, Request
from fastapi.responses import StreamingResponse

from conduit.dependencies import AppContainer, CurrentUser
from conduit.errors.exceptions import NotFoundError
from conduit.events.dashboard_feed import DashboardFeed
from conduit.models.enums import JobState
from conduit.models.job import JobStatusModel, QueueMetrics

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/queue-dashboard", tags=["Queue Dashboard"])

_KEEPALIVE_SECONDS = 15.0


@router.get("/metrics", response_model=list[QueueMetrics])
async def get_metrics(user: CurrentUser, container: AppContainer):
    return container.queues.get_metrics()


@router.get("/jobs/failed", response_model=list[JobStatusModel])
async def list_failed_jobs(user: CurrentUser, container: AppContainer):
    return container.queues.list_jobs(JobState.FAILED)


@router.get("/jobs/active", response_model=list[JobStatusModel])
async def list_active_jobs(user: CurrentUser, container: AppContainer):
    return container.queues.list_jobs(JobState.ACTIVE)


@router.get("/jobs/{queue_name}/{job_id}", response_model=JobStatusModel)
async def get_job(queue_name: str, job_id: str, user: CurrentUser, container: AppContainer):
    job = container.queues.queue(queue_name).get_job(job_id)
    if job is None:
        raise NotFoundError("Job", job_id)
    return job


@router.post("/jobs/{queue_name}/{job_id}/retry", response_model=JobStatusModel)
async def retry_job(queue_name: str, job_id: str, user: CurrentUser, container: AppContainer):
    logger.info("Manual retry of %s/%s by %s", queue_name, job_id, user.get("sub"))
    return await container.queues.queue(queue_name).retry_job(job_id)


@router.post("/queues/{queue_name}/pause")
async def pause_queue(queue_name: str, user: CurrentUser, container: AppContainer):
    await container.queues.queue(queue_name).pause()
    return {"queue": queue_name, "paused": True}


@router.post("/queues/{queue_name}/resume")
async def resume_queue(queue_name: str, user: CurrentUser, container: AppContainer):
    await container.queues.queue(queue_name).resume()
    return {"queue": queue_name, "paused": False}


async def _event_generator(request: Request, feed: DashboardFeed) -> AsyncGenerator[str, None]:
    """Yield SSE-formatted dashboard messages until the client goes away."""
    observer = await feed.connect()
    logger.info("Dashboard observer connected (observers=%d)", feed.observer_count)
    try:
        yield f"data: {json.dumps({'type': 'connected'})}\n\n"
        while True:
            if await request.is_disconnected():
                break
            try:
                message = await observer.next_message(timeout=_KEEPALIVE_SECONDS)
            except asyncio.TimeoutError:
                yield ": keepalive\n\n"
                continue
            yield f"data: {json.dumps(message, default=str)}\n\n"
    except asyncio.CancelledError:
        pass
    finally:
        await feed.disconnect(observer)
        logger.info("Dashboard observer disconnected (observers=%d)", feed.observer_count)


@router.get("/stream")
async def stream_dashboard(request: Request, user: CurrentUser, container: AppContainer):
    """Stream metrics snapshots and queue events via SSE."""
    return StreamingResponse(
        _event_generator(request, container.dashboard),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",  # Disable nginx buffering
            "Connection": "keep-alive",
        },
    )
