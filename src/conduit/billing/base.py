"""Payment-processor contract consumed by the services and workers."""

from datetime import datetime
from typing import Any, Protocol

from conduit.models.billing import BillingCustomer


class BillingClient(Protocol):
    async def find_or_create_customer(self, user_id: str, email: str) -> BillingCustomer: ...

    async def delete_customer(self, customer_id: str) -> None: ...

    async def retrieve_customer(self, customer_id: str) -> dict[str, Any]: ...

    async def create_subscription(self, customer_id: str, price_id: str) -> dict[str, Any]: ...

    async def update_subscription(
        self, subscription_id: str, *, price_id: str | None = None, cancel_at_period_end: bool | None = None
    ) -> dict[str, Any]: ...

    async def pause_subscription(self, subscription_id: str, resume_at: datetime | None = None) -> dict[str, Any]: ...

    async def resume_subscription(self, subscription_id: str) -> dict[str, Any]: ...

    async def cancel_subscription(self, subscription_id: str) -> dict[str, Any]: ...

    async def create_payment_intent(
        self, amount: int, currency: str, customer_id: str | None = None, metadata: dict[str, str] | None = None
    ) -> dict[str, Any]: ...

    async def retrieve_payment_intent(self, payment_intent_id: str) -> dict[str, Any]: ...

    async def confirm_payment_intent(self, payment_intent_id: str, **options: Any) -> dict[str, Any]: ...

    async def create_checkout_session(
        self,
        *,
        user_id: str,
        amount: int,
        currency: str,
        success_url: str,
        cancel_url: str,
        customer_id: str | None = None,
    ) -> dict[str, Any]: ...

    async def refund(self, payment_intent_id: str, amount: int | None = None, reason: str | None = None) -> dict[str, Any]: ...

    def construct_event(self, payload: bytes, signature_header: str) -> dict[str, Any]:
        """Verify a webhook delivery and return the decoded event."""
        ...
