"""One-time codes delivered by the identity provider's email events."""

import hmac
import re
from typing import Any

from conduit.kv.store import KeyValueStore

OTP_PREFIX = "otp:"

_CODE_PATTERN = re.compile(r"(?<!\d)(\d{6})(?!\d)")


class OtpService:
    def __init__(self, store: KeyValueStore, ttl_seconds: int = 300, prefix: str = OTP_PREFIX):
        self._store = store
        self._ttl = ttl_seconds
        self._prefix = prefix

    def _key(self, email_id: str) -> str:
        return f"{self._prefix}{email_id}"

    async def store_otp(self, email_id: str, code: str) -> None:
        """Store ``code`` for ``email_id``, replacing any earlier code and resetting the TTL."""
        await self._store.set(self._key(email_id), code, self._ttl)

    async def verify_otp(self, email_id: str, code: str) -> bool:
        """Check ``code``; a match consumes it so it cannot be replayed."""
        key = self._key(email_id)
        stored = await self._store.get(key)
        if stored is None or not hmac.compare_digest(stored.encode(), code.encode()):
            return False
        await self._store.delete(key)
        return True

    @staticmethod
    def extract_code(data: dict[str, Any]) -> str | None:
        """Pull the code out of an ``email.created`` payload.

        Prefers the explicit ``otp_code`` field; otherwise takes the first
        standalone six-digit run in the subject, then the body.
        """
        explicit = data.get("otp_code")
        if explicit:
            return str(explicit)
        for field in ("subject", "body"):
            text = data.get(field)
            if isinstance(text, str):
                match = _CODE_PATTERN.search(text)
                if match:
                    return match.group(1)
        return None
