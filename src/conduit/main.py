"""FastAPI application factory and lifespan management."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from conduit.config import APP_VERSION, settings
from conduit.logging_config import configure_logging

# Configure logging at import time
configure_logging(log_level=settings.log_level, json_output=not settings.local_mode)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the container (unless one was injected), start queues, tear down on exit."""
    container = getattr(app.state, "container", None)
    if container is None:
        from conduit.container import build_container

        container = build_container(settings)
        app.state.container = container

    await container.start()
    logger.info("Conduit API started (mode=%s)", "local" if container.settings.local_mode else "remote")
    yield

    await container.shutdown()
    logger.info("Conduit API shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Conduit API",
        version=APP_VERSION,
        description="Webhook integration backend for identity, payments and the data layer.",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Add middleware (order matters: last added = first executed)
    from conduit.api.middleware.auth import AuthMiddleware
    from conduit.api.middleware.trace_id import TraceIdMiddleware
    app.add_middleware(AuthMiddleware)
    app.add_middleware(TraceIdMiddleware)

    from conduit.errors.handlers import register_exception_handlers
    register_exception_handlers(app)

    from conduit.api.router import api_router
    app.include_router(api_router)

    return app


app = create_app()
