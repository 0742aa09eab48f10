"""FastAPI exception handlers producing the ErrorResponse envelope."""

import logging
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from conduit.errors.exceptions import ConduitError, DependencyError, ValidationError
from conduit.models.common import ErrorDetail, ErrorResponse

logger = logging.getLogger(__name__)


def _render(request: Request, code: str, message: str, details, status_code: int) -> JSONResponse:
    trace_id = getattr(request.state, "trace_id", "unknown")
    error_response = ErrorResponse(
        error=ErrorDetail(
            code=code,
            message=message,
            details=details,
            trace_id=trace_id,
            timestamp=datetime.now(timezone.utc),
        ),
    )
    return JSONResponse(
        status_code=status_code,
        content=error_response.model_dump(mode="json", exclude_none=True),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register all custom exception handlers on the FastAPI app."""

    @app.exception_handler(ConduitError)
    async def conduit_error_handler(request: Request, exc: ConduitError):
        if isinstance(exc, DependencyError):
            logger.error(
                "dependency_failure",
                extra={"path": request.url.path, "code": exc.code, "reason": exc.message},
            )
        elif isinstance(exc, ValidationError):
            logger.warning(
                "request_rejected",
                extra={"path": request.url.path, "code": exc.code, "details": exc.details},
            )
        return _render(request, exc.code, exc.message, exc.details, exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return _render(request, "VALIDATION_ERROR", "Request validation failed", exc.errors(), 400)
