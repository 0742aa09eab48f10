"""Repository contracts shared by the GraphQL and SQLAlchemy data layers.

Services depend only on these protocols. In remote mode they are backed by
the GraphQL data layer; in local mode by SQLAlchemy over aiosqlite. Every
write is an upsert or a conditional update so that redelivered events
converge on the same stored state.
"""

from datetime import datetime
from typing import Any, Protocol

from conduit.models.billing import AnalyticsEvent, Payment, Subscription
from conduit.models.user import User


class UserRepository(Protocol):
    async def upsert(
        self,
        user_id: str,
        email: str,
        *,
        email_verified: bool | None = None,
        avatar_url: str | None = None,
        billing_customer_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> User:
        """Insert or update by id. Fields passed as None leave the stored value untouched."""
        ...

    async def get(self, user_id: str) -> User | None: ...

    async def get_by_email(self, email: str) -> User | None: ...

    async def get_by_billing_customer_id(self, customer_id: str) -> User | None: ...

    async def delete(self, user_id: str) -> bool: ...


class SubscriptionRepository(Protocol):
    async def upsert(
        self,
        billing_subscription_id: str,
        *,
        status: str,
        user_id: str | None = None,
        billing_customer_id: str | None = None,
        price_id: str | None = None,
        current_period_end: datetime | None = None,
        cancel_at: datetime | None = None,
    ) -> Subscription:
        """Insert or update keyed on the processor's subscription id."""
        ...

    async def update_status(self, billing_subscription_id: str, status: str) -> int:
        """Return the number of rows updated (0 when the subscription is unknown)."""
        ...

    async def get_by_billing_id(self, billing_subscription_id: str) -> Subscription | None: ...

    async def list_for_user(self, user_id: str) -> list[Subscription]: ...


class PaymentRepository(Protocol):
    async def create(
        self,
        *,
        user_id: str,
        payment_intent_id: str,
        amount: int,
        currency: str,
        status: str,
    ) -> Payment:
        """Record a payment. A repeated payment_intent_id updates the existing record."""
        ...

    async def update_status(self, payment_intent_id: str, status: str) -> int: ...

    async def list_for_user(self, user_id: str) -> list[Payment]: ...


class AnalyticsRepository(Protocol):
    async def insert(
        self, *, event_type: str, user_id: str | None = None, metadata: dict[str, Any] | None = None
    ) -> AnalyticsEvent: ...

    async def list_between(self, start: datetime, end: datetime) -> list[AnalyticsEvent]: ...

    async def delete_older_than(self, cutoff: datetime, limit: int | None = None) -> int: ...
