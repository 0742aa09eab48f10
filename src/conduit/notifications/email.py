"""Outbound transactional email through the Postmark HTTP API."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Protocol

import httpx

from conduit.errors.exceptions import ConfigurationError, EmailDeliveryError

logger = logging.getLogger(__name__)

POSTMARK_API_URL = "https://api.postmarkapp.com/email"


class EmailSender(Protocol):
    async def send_welcome_email(self, to: str, name: str) -> None: ...

    async def send_subscription_expiry_email(self, to: str, name: str, expiry_date: datetime | None = None) -> None: ...


class PostmarkEmailSender:
    """Sends templated messages via Postmark.

    A non-2xx response or transport failure raises ``EmailDeliveryError`` so
    the email queue can retry the job.
    """

    def __init__(
        self,
        api_key: str,
        from_address: str,
        message_stream: str = "outbound",
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        missing = [n for n, v in (("postmark_api_key", api_key), ("email_from_address", from_address)) if not v]
        if missing:
            raise ConfigurationError(missing)
        self._from = from_address
        self._stream = message_stream
        self._client = httpx.AsyncClient(
            timeout=10.0,
            transport=transport,
            headers={
                "Accept": "application/json",
                "X-Postmark-Server-Token": api_key,
            },
        )

    async def _send(self, to: str, subject: str, html: str, text: str) -> None:
        payload = {
            "From": self._from,
            "To": to,
            "Subject": subject,
            "HtmlBody": html,
            "TextBody": text,
            "MessageStream": self._stream,
        }
        try:
            response = await self._client.post(POSTMARK_API_URL, json=payload)
        except httpx.HTTPError as exc:
            logger.error("Email to %s failed: %s", to, exc)
            raise EmailDeliveryError(str(exc)) from exc

        if response.status_code >= 400:
            logger.error("Email to %s rejected with %s", to, response.status_code)
            raise EmailDeliveryError(
                f"provider returned {response.status_code}",
                details={"body": response.text[:500]},
            )
        logger.info("Email '%s' sent to %s", subject, to)

    async def send_welcome_email(self, to: str, name: str) -> None:
        html = (
            "<div style=\"font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;\">"
            "<h1>Welcome aboard!</h1>"
            f"<p>Hi {name},</p>"
            "<p>We're excited to have you with us. Your account is ready to use.</p>"
            "<p>If you have any questions, reply to this email and our team will help.</p>"
            "</div>"
        )
        text = (
            f"Welcome aboard!\n\nHi {name},\n\n"
            "We're excited to have you with us. Your account is ready to use.\n\n"
            "If you have any questions, reply to this email and our team will help.\n"
        )
        await self._send(to, "Welcome aboard!", html, text)

    async def send_subscription_expiry_email(self, to: str, name: str, expiry_date: datetime | None = None) -> None:
        when = f"on {expiry_date:%Y-%m-%d}" if expiry_date else "soon"
        html = (
            "<div style=\"font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;\">"
            "<h1>Your subscription is expiring</h1>"
            f"<p>Hi {name},</p>"
            f"<p>Your subscription expires {when}. Renew to keep uninterrupted access.</p>"
            "</div>"
        )
        text = f"Hi {name},\n\nYour subscription expires {when}. Renew to keep uninterrupted access.\n"
        await self._send(to, "Your subscription is expiring", html, text)

    async def aclose(self) -> None:
        await self._client.aclose()
