"""Inbound identity-provider webhooks."""

import json
import logging

import structlog
from fastapi import APIRouter, Request
from pydantic import ValidationError as PydanticValidationError

from conduit.dependencies import AppContainer
from conduit.errors.exceptions import MalformedPayload
from conduit.models.webhook import WebhookEnvelope
from conduit.webhooks.signature import extract_signature_context

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])


@router.post("/identity")
async def identity_webhook(request: Request, container: AppContainer):
    """Verify, decode and route one identity-provider delivery.

    The raw body is verified before it is parsed.
    """
    body = await request.body()
    context = extract_signature_context(request.headers, body, container.settings.identity_webhook_secret)
    container.verifier.verify(context)

    try:
        decoded = json.loads(body)
        envelope = WebhookEnvelope(
            id=context.id,
            timestamp=int(context.timestamp),
            type=decoded.get("type", ""),
            data=decoded.get("data") or {},
        )
    except (ValueError, AttributeError, PydanticValidationError) as exc:
        raise MalformedPayload(f"Identity webhook body could not be decoded: {exc}") from exc

    structlog.contextvars.bind_contextvars(webhook_event_id=envelope.id)
    result = await container.identity_router.route(envelope)
    return {"received": True, "result": result.model_dump(mode="json")}
