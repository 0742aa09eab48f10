"""Structured logging: structlog rendering over stdlib loggers.

Modules keep using ``logging.getLogger(__name__)``; their records pass through
the structlog chain below, which merges request context (trace id, webhook
event id, job id), lifts ``extra=`` fields into the event and masks anything
that looks like a credential before rendering.
"""

import logging
import sys

import structlog

from conduit.config import APP_VERSION

# Libraries whose INFO chatter drowns out webhook and job logs
_NOISY_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "httpx", "httpcore", "stripe")

# Substrings of event keys whose values are never written out
_SENSITIVE_KEY_PARTS = ("secret", "signature", "password", "token", "api_key", "authorization")

_MASK = "***"


def _mask_sensitive(logger, method_name: str, event_dict: dict) -> dict:
    for key in list(event_dict):
        if key != "event" and any(part in key.lower() for part in _SENSITIVE_KEY_PARTS):
            event_dict[key] = _MASK
    return event_dict


def _add_service(logger, method_name: str, event_dict: dict) -> dict:
    event_dict.setdefault("service", "conduit")
    event_dict.setdefault("version", APP_VERSION)
    return event_dict


def _shared_processors() -> list:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.ExtraAdder(),
        _mask_sensitive,
        _add_service,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]


def configure_logging(log_level: str = "info", json_output: bool = False) -> None:
    """Route stdlib and structlog output through one formatter on stdout.

    Args:
        log_level: debug/info/warning/error; unknown values fall back to info.
        json_output: JSON lines for remote deployments, colored console for local mode.
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    shared = _shared_processors()
    renderer = structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
            foreign_pre_chain=shared,
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def bind_request_context(trace_id: str, user_id: str | None = None, event_id: str | None = None) -> None:
    """Bind per-request fields; every log line in this context carries them."""
    fields = {"trace_id": trace_id}
    if user_id:
        fields["user_id"] = user_id
    if event_id:
        fields["webhook_event_id"] = event_id
    structlog.contextvars.bind_contextvars(**fields)


def clear_request_context() -> None:
    structlog.contextvars.clear_contextvars()
