"""Inbound payment-processor webhooks."""

import logging

import structlog
from fastapi import APIRouter, Request

from conduit.dependencies import AppContainer
from conduit.errors.exceptions import MalformedPayload, MissingSignatureHeaders
from conduit.models.webhook import WebhookEnvelope

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])

_SIGNATURE_HEADERS = ("payment-signature", "stripe-signature")


@router.post("/payments")
async def payment_webhook(request: Request, container: AppContainer):
    body = await request.body()
    signature = next((request.headers[h] for h in _SIGNATURE_HEADERS if request.headers.get(h)), None)
    if signature is None:
        raise MissingSignatureHeaders([_SIGNATURE_HEADERS[0]])

    event = container.billing.construct_event(body, signature)
    try:
        envelope = WebhookEnvelope(
            id=event.get("id", ""),
            timestamp=int(event.get("created") or 0),
            type=event["type"],
            data=(event.get("data") or {}).get("object") or {},
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise MalformedPayload(f"Payment event could not be decoded: {exc}") from exc

    structlog.contextvars.bind_contextvars(webhook_event_id=envelope.id)
    result = await container.payment_router.route(envelope)
    return {"received": True, "result": result.model_dump(mode="json")}
