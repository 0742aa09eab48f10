"""Tests for webhook signature verification."""

import base64
import hashlib
import hmac

import pytest

from conduit.errors.exceptions import InvalidSignature, MissingSignatureHeaders
from conduit.models.webhook import SignatureContext
from conduit.webhooks.signature import (
    SignatureVerifier,
    compute_signature,
    extract_signature_context,
    sign,
)

SECRET = "s3cret"
NOW = 1_700_000_000
BODY = b'{"type":"user.created","data":{"id":"user_1"}}'


def _context(signature: str, timestamp=NOW, body=BODY, event_id="msg_1", secret=SECRET) -> SignatureContext:
    return SignatureContext(
        id=event_id, timestamp=str(timestamp), signature_header=signature, raw_body=body, secret=secret
    )


@pytest.fixture
def verifier():
    return SignatureVerifier(tolerance_seconds=300, clock=lambda: NOW)


def test_signature_is_hmac_over_id_timestamp_body():
    expected = hmac.new(SECRET.encode(), b"msg_1.1700000000." + BODY, hashlib.sha256).hexdigest()
    assert sign(SECRET, "msg_1", NOW, BODY) == expected


def test_valid_hex_signature_passes(verifier):
    verifier.verify(_context(sign(SECRET, "msg_1", NOW, BODY)))


def test_versioned_base64_signature_passes(verifier):
    digest = compute_signature(SECRET, "msg_1", NOW, BODY)
    header = "v1," + base64.b64encode(digest).decode()
    verifier.verify(_context(header))


def test_prefixed_base64_secret():
    raw = b"binary-key-material"
    secret = "whsec_" + base64.b64encode(raw).decode()
    verifier = SignatureVerifier(clock=lambda: NOW)
    header = hmac.new(raw, b"msg_1.1700000000." + BODY, hashlib.sha256).hexdigest()
    verifier.verify(_context(header, secret=secret))


def test_last_candidate_is_authoritative(verifier):
    good = sign(SECRET, "msg_1", NOW, BODY)
    verifier.verify(_context(f"deadbeef {good}"))
    with pytest.raises(InvalidSignature):
        verifier.verify(_context(f"{good} deadbeef"))


def test_tampered_body_fails(verifier):
    header = sign(SECRET, "msg_1", NOW, BODY)
    with pytest.raises(InvalidSignature):
        verifier.verify(_context(header, body=BODY.replace(b"user_1", b"user_2")))


def test_reserialized_body_fails(verifier):
    """Whitespace differences matter: the raw bytes are what was signed."""
    header = sign(SECRET, "msg_1", NOW, BODY)
    with pytest.raises(InvalidSignature):
        verifier.verify(_context(header, body=BODY.replace(b":", b": ")))


def test_wrong_secret_fails(verifier):
    header = sign("other-secret", "msg_1", NOW, BODY)
    with pytest.raises(InvalidSignature):
        verifier.verify(_context(header))


def test_stale_timestamp_fails(verifier):
    old = NOW - 301
    header = sign(SECRET, "msg_1", old, BODY)
    with pytest.raises(InvalidSignature, match="tolerance"):
        verifier.verify(_context(header, timestamp=old))


def test_future_timestamp_outside_window_fails(verifier):
    future = NOW + 301
    header = sign(SECRET, "msg_1", future, BODY)
    with pytest.raises(InvalidSignature):
        verifier.verify(_context(header, timestamp=future))


def test_timestamp_at_window_edge_passes(verifier):
    edge = NOW - 300
    verifier.verify(_context(sign(SECRET, "msg_1", edge, BODY), timestamp=edge))


def test_non_numeric_timestamp_fails(verifier):
    with pytest.raises(InvalidSignature):
        verifier.verify(_context("abc", timestamp="yesterday"))


def test_missing_secret_fails_closed(verifier):
    header = sign(SECRET, "msg_1", NOW, BODY)
    with pytest.raises(InvalidSignature, match="not configured"):
        verifier.verify(_context(header, secret=""))


def test_empty_signature_header_fails(verifier):
    with pytest.raises(InvalidSignature):
        verifier.verify(_context("   "))


def test_extract_context_accepts_aliases():
    headers = {"webhook-id": "msg_9", "svix-timestamp": "123", "event-signature": "abc"}
    ctx = extract_signature_context(headers, BODY, SECRET)
    assert ctx.id == "msg_9"
    assert ctx.timestamp == "123"
    assert ctx.signature_header == "abc"
    assert ctx.raw_body == BODY


def test_extract_context_reports_every_missing_header():
    with pytest.raises(MissingSignatureHeaders) as exc_info:
        extract_signature_context({"svix-id": "msg_1"}, BODY, SECRET)
    assert exc_info.value.details == {"missing": ["event-timestamp", "event-signature"]}
    assert exc_info.value.status_code == 400
