"""Tests for the Postmark email sender."""

import json

import httpx
import pytest

from conduit.errors.exceptions import ConfigurationError, EmailDeliveryError
from conduit.notifications.email import POSTMARK_API_URL, PostmarkEmailSender


def _sender(handler) -> PostmarkEmailSender:
    return PostmarkEmailSender(
        "pm-token", "noreply@example.com", message_stream="outbound", transport=httpx.MockTransport(handler)
    )


def test_sender_requires_credentials():
    with pytest.raises(ConfigurationError):
        PostmarkEmailSender("", "")


@pytest.mark.asyncio
async def test_welcome_email_payload():
    sent = []

    def handler(request: httpx.Request) -> httpx.Response:
        sent.append(request)
        return httpx.Response(200, json={"ErrorCode": 0, "MessageID": "msg-1"})

    sender = _sender(handler)
    await sender.send_welcome_email("ada@example.com", "Ada")
    await sender.aclose()

    request = sent[0]
    body = json.loads(request.content)
    assert str(request.url) == POSTMARK_API_URL
    assert request.headers["X-Postmark-Server-Token"] == "pm-token"
    assert body["To"] == "ada@example.com"
    assert body["From"] == "noreply@example.com"
    assert body["MessageStream"] == "outbound"
    assert "Hi Ada" in body["TextBody"]


@pytest.mark.asyncio
async def test_rejected_email_raises():
    sender = _sender(lambda request: httpx.Response(422, json={"ErrorCode": 300, "Message": "Invalid email"}))
    with pytest.raises(EmailDeliveryError, match="422"):
        await sender.send_subscription_expiry_email("bad", "Ada")


@pytest.mark.asyncio
async def test_transport_failure_raises():
    def handler(request):
        raise httpx.ConnectError("connection refused")

    sender = _sender(handler)
    with pytest.raises(EmailDeliveryError):
        await sender.send_welcome_email("ada@example.com", "Ada")
