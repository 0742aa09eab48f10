"""Tests for one-time code storage."""

import pytest

from conduit.kv.store import MemoryKeyValueStore
from conduit.services.otp import OtpService


class ManualClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def otp(clock):
    return OtpService(MemoryKeyValueStore(clock=clock), ttl_seconds=300)


@pytest.mark.asyncio
async def test_store_and_verify_consumes_code(otp):
    await otp.store_otp("idn_1", "123456")
    assert await otp.verify_otp("idn_1", "123456") is True
    assert await otp.verify_otp("idn_1", "123456") is False


@pytest.mark.asyncio
async def test_wrong_code_keeps_stored_code(otp):
    await otp.store_otp("idn_1", "123456")
    assert await otp.verify_otp("idn_1", "654321") is False
    assert await otp.verify_otp("idn_1", "123456") is True


@pytest.mark.asyncio
async def test_code_expires_after_ttl(otp, clock):
    await otp.store_otp("idn_1", "123456")
    clock.now = 299
    assert await otp.verify_otp("idn_1", "000000") is False
    clock.now = 300
    assert await otp.verify_otp("idn_1", "123456") is False


@pytest.mark.asyncio
async def test_restore_replaces_code_and_resets_ttl(otp, clock):
    await otp.store_otp("idn_1", "111111")
    clock.now = 200
    await otp.store_otp("idn_1", "222222")
    clock.now = 450
    assert await otp.verify_otp("idn_1", "111111") is False
    assert await otp.verify_otp("idn_1", "222222") is True


@pytest.mark.asyncio
async def test_unknown_email_id_does_not_verify(otp):
    assert await otp.verify_otp("idn_missing", "123456") is False


def test_extract_code_prefers_explicit_field():
    assert OtpService.extract_code({"otp_code": "987654", "subject": "Your code is 111111"}) == "987654"


def test_extract_code_from_subject_then_body():
    assert OtpService.extract_code({"subject": "Your code is 482913"}) == "482913"
    assert OtpService.extract_code({"subject": "Sign in", "body": "Use 105377 to sign in"}) == "105377"


def test_extract_code_ignores_longer_digit_runs():
    assert OtpService.extract_code({"subject": "Order 12345678"}) is None
    assert OtpService.extract_code({}) is None
