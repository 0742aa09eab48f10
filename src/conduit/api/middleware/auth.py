"""Bearer session-token authentication middleware."""

import logging

from jose import JWTError, jwt
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from conduit.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)

# Paths that never carry a user session
_PUBLIC_PREFIXES = ("/health", "/webhooks/", "/actions/", "/docs", "/redoc", "/openapi.json")

_ANONYMOUS = {"sub": "anonymous"}


def _decode_session_token(token: str, config: Settings) -> dict:
    """Verify a session token: RS256 with the provider's PEM key, or HS256 with a shared secret."""
    if config.identity_jwt_public_key:
        key, algorithms = config.identity_jwt_public_key, ["RS256"]
    elif config.identity_jwt_secret:
        key, algorithms = config.identity_jwt_secret, ["HS256"]
    else:
        raise ValueError("No session token key configured")

    options = {"verify_aud": False}
    try:
        return jwt.decode(
            token,
            key,
            algorithms=algorithms,
            issuer=config.identity_jwt_issuer,
            options=options,
        )
    except JWTError as exc:
        logger.debug("Session token decode failed: %s", exc)
        raise ValueError(f"Invalid token: {exc}") from exc


class AuthMiddleware(BaseHTTPMiddleware):
    """Validate the Bearer token, if any, and attach user info to request.state."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = request.url.path
        if path.startswith(_PUBLIC_PREFIXES):
            request.state.user = dict(_ANONYMOUS)
            return await call_next(request)

        container = getattr(request.app.state, "container", None)
        config = container.settings if container is not None else default_settings

        auth_header = request.headers.get("authorization", "")
        if auth_header.startswith("Bearer "):
            request.state.user = self._validate(auth_header[7:], config)
        else:
            # Routes that need a user enforce it through get_current_user
            request.state.user = dict(_ANONYMOUS)
        return await call_next(request)

    @staticmethod
    def _validate(token: str, config: Settings) -> dict:
        try:
            payload = _decode_session_token(token, config)
        except ValueError:
            return {**_ANONYMOUS, "_auth_error": "invalid_token"}
        return {
            "sub": payload.get("sub", ""),
            "email": payload.get("email", ""),
            "session_id": payload.get("sid"),
        }
