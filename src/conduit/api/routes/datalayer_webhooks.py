"""Event triggers from the GraphQL data layer."""

import hmac
import json

from fastapi import APIRouter, Request

from conduit.dependencies import AppContainer
from conduit.errors.exceptions import InvalidSignature, MalformedPayload

router = APIRouter(prefix="/webhooks/datalayer", tags=["Webhooks"])


@router.post("/events")
async def datalayer_event(request: Request, container: AppContainer):
    """Queue a row-change trigger for background processing."""
    expected = container.settings.datalayer_webhook_secret
    if expected:
        provided = request.headers.get("x-webhook-secret", "")
        if not hmac.compare_digest(provided.encode(), expected.encode()):
            raise InvalidSignature("Data-layer webhook secret mismatch")
    elif not container.settings.local_mode:
        raise InvalidSignature("Data-layer webhook secret is not configured")

    try:
        payload = json.loads(await request.body())
    except ValueError as exc:
        raise MalformedPayload("Data-layer event body is not JSON") from exc
    if not isinstance(payload, dict):
        raise MalformedPayload("Data-layer event body must be an object")

    job_id = await container.queues.add_datalayer_event(
        payload,
        event_id=request.headers.get("x-hasura-event-id") or (payload.get("id") or None),
        delivery_id=request.headers.get("x-hasura-delivery-id"),
    )
    return {"success": True, "jobId": job_id}
