"""Health check endpoints."""

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from conduit.config import APP_VERSION
from conduit.errors.exceptions import DependencyError

router = APIRouter()


@router.get("/health")
async def health_check():
    """Return service health status."""
    return {"status": "healthy", "service": "conduit", "version": APP_VERSION}


@router.get("/health/live")
async def liveness():
    """Liveness probe: 200 whenever the process is serving."""
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness(request: Request):
    """Readiness probe: checks the data layer, the key/value store and the queues."""
    container = getattr(request.app.state, "container", None)
    if container is None:
        return JSONResponse(status_code=503, content={"status": "not_ready", "checks": {"container": "missing"}})

    checks: dict[str, str] = {}
    overall_ok = True

    try:
        if container.engine is not None:
            async with container.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        elif container.graphql is not None:
            await container.graphql.ping()
        checks["datalayer"] = "ok"
    except (DependencyError, SQLAlchemyError, OSError) as exc:
        checks["datalayer"] = f"error: {exc}"
        overall_ok = False

    if await container.kv.ping():
        checks["kv"] = "ok"
    else:
        checks["kv"] = "error: ping failed"
        overall_ok = False

    started = all(queue.started for queue in container.queues.queues.values())
    checks["queues"] = "ok" if started else "stopped"
    overall_ok = overall_ok and started

    return JSONResponse(
        status_code=200 if overall_ok else 503,
        content={"status": "ready" if overall_ok else "not_ready", "checks": checks},
    )
