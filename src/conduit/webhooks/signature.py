"""Webhook signature verification for identity-provider deliveries.

Security contract:
- The signed content is ``{id}.{timestamp}.{raw body}``; the raw request bytes
  are used exactly as received, never a re-serialized JSON form
- The signature header may carry several space-separated candidates; the last
  one is authoritative
- Comparison is constant-time (hmac.compare_digest)
- Deliveries outside the freshness window are rejected
- Missing secret -> verification always fails (fail-closed)
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import logging
import time
from collections.abc import Callable, Mapping

from conduit.errors.exceptions import InvalidSignature, MissingSignatureHeaders
from conduit.models.webhook import SignatureContext

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE_SECONDS = 300

# Canonical header -> accepted aliases, first match wins
_HEADER_ALIASES = {
    "event-id": ("event-id", "svix-id", "webhook-id"),
    "event-timestamp": ("event-timestamp", "svix-timestamp", "webhook-timestamp"),
    "event-signature": ("event-signature", "svix-signature", "webhook-signature"),
}

_SECRET_PREFIX = "whsec_"


def _secret_bytes(secret: str) -> bytes:
    if secret.startswith(_SECRET_PREFIX):
        try:
            return base64.b64decode(secret[len(_SECRET_PREFIX):])
        except (binascii.Error, ValueError) as exc:
            raise InvalidSignature("Webhook secret is not valid base64") from exc
    return secret.encode("utf-8")


def compute_signature(secret: str, event_id: str, timestamp: str | int, body: bytes) -> bytes:
    """Return the raw HMAC-SHA256 digest over ``{id}.{timestamp}.{body}``."""
    signed_payload = f"{event_id}.{timestamp}.".encode("utf-8") + body
    return hmac.new(_secret_bytes(secret), signed_payload, hashlib.sha256).digest()


def sign(secret: str, event_id: str, timestamp: str | int, body: bytes) -> str:
    """Build a signature header value the verifier accepts (hex form)."""
    return compute_signature(secret, event_id, timestamp, body).hex()


def _matches(candidate: str, digest: bytes) -> bool:
    # "v1,<base64>" carries a version prefix; a bare value is a hex digest
    if "," in candidate:
        _, _, value = candidate.partition(",")
        expected = base64.b64encode(digest).decode("ascii")
    else:
        value = candidate
        expected = digest.hex()
    return hmac.compare_digest(expected.encode("ascii"), value.encode("utf-8"))


class SignatureVerifier:
    """Validates authenticity and freshness of a signed webhook delivery."""

    def __init__(
        self,
        tolerance_seconds: int = DEFAULT_TOLERANCE_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._tolerance = tolerance_seconds
        self._clock = clock

    def verify(self, context: SignatureContext) -> None:
        """Raise InvalidSignature unless the delivery is authentic and fresh."""
        secret = context.secret
        if not secret:
            logger.warning("Identity webhook secret not set, rejecting webhook")
            raise InvalidSignature("Webhook secret is not configured")

        try:
            timestamp = int(context.timestamp)
        except (TypeError, ValueError):
            raise InvalidSignature("Invalid webhook timestamp")

        if abs(self._clock() - timestamp) > self._tolerance:
            logger.warning("Webhook timestamp outside tolerance: %s", timestamp)
            raise InvalidSignature("Webhook timestamp outside tolerance")

        candidates = context.signature_header.split()
        if not candidates:
            raise InvalidSignature("Empty webhook signature")

        digest = compute_signature(secret, context.id, context.timestamp, context.raw_body)
        if not _matches(candidates[-1], digest):
            raise InvalidSignature()


def extract_signature_context(headers: Mapping[str, str], body: bytes, secret: str) -> SignatureContext:
    """Read the verification headers, raising MissingSignatureHeaders if any is absent."""
    values: dict[str, str] = {}
    missing: list[str] = []
    for canonical, aliases in _HEADER_ALIASES.items():
        value = next((headers.get(alias) for alias in aliases if headers.get(alias)), None)
        if value is None:
            missing.append(canonical)
        else:
            values[canonical] = value

    if missing:
        raise MissingSignatureHeaders(missing)

    return SignatureContext(
        id=values["event-id"],
        timestamp=values["event-timestamp"],
        signature_header=values["event-signature"],
        raw_body=body,
        secret=secret,
    )
