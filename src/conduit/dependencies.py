"""FastAPI dependency injection providers."""

from typing import Annotated

from fastapi import Depends, Request

from conduit.container import Container
from conduit.errors.exceptions import AuthenticationError


def get_container(request: Request) -> Container:
    """Return the composition root built at startup."""
    return request.app.state.container


def get_trace_id(request: Request) -> str:
    """Extract trace_id from request state (set by middleware)."""
    return getattr(request.state, "trace_id", "unknown")


async def get_current_user(request: Request) -> dict:
    """Return the authenticated user dict or raise 401."""
    user = getattr(request.state, "user", {})
    if "_auth_error" in user:
        raise AuthenticationError(user["_auth_error"])
    if not user or user.get("sub") in ("anonymous", ""):
        raise AuthenticationError("Authentication required")
    return user


async def get_current_user_id(user: dict = Depends(get_current_user)) -> str:
    return user["sub"]


# Type aliases for dependency injection
AppContainer = Annotated[Container, Depends(get_container)]
TraceId = Annotated[str, Depends(get_trace_id)]
CurrentUser = Annotated[dict, Depends(get_current_user)]
CurrentUserId = Annotated[str, Depends(get_current_user_id)]
