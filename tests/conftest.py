"""Shared test fixtures."""

import json
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient
from jose import jwt

from conduit.config import Settings
from conduit.container import assemble
from conduit.db.engine import create_db_engine, create_session_factory, create_tables
from conduit.errors.exceptions import BillingError, EmailDeliveryError, InvalidSignature, MalformedPayload
from conduit.kv.store import MemoryKeyValueStore
from conduit.models.billing import BillingCustomer
from conduit.repositories.sql import (
    SqlAnalyticsRepository,
    SqlPaymentRepository,
    SqlSubscriptionRepository,
    SqlUserRepository,
)
from conduit.webhooks.signature import sign

NOW = 1_700_000_000
IDENTITY_SECRET = "test-identity-secret"
PAYMENT_SIGNATURE = "valid-test-signature"
JWT_SECRET = "test-session-secret"


class FakeBilling:
    """In-memory payment processor that records every call."""

    def __init__(self):
        self.customers: dict[str, dict[str, Any]] = {}
        self.created_customers: list[str] = []
        self.deleted_customers: list[str] = []
        self.subscriptions: dict[str, dict[str, Any]] = {}
        self.intents: dict[str, dict[str, Any]] = {}
        self.refunds: list[dict[str, Any]] = []
        self.confirmed: list[tuple[str, dict[str, Any]]] = []
        self.fail_create_customer = False
        self._seq = 0

    def _next(self, prefix: str) -> str:
        self._seq += 1
        return f"{prefix}_{self._seq}"

    async def find_or_create_customer(self, user_id, email):
        for customer_id, customer in self.customers.items():
            if customer["email"] == email:
                return BillingCustomer(id=customer_id, created=False)
        if self.fail_create_customer:
            raise BillingError("processor unavailable")
        customer_id = self._next("cus")
        self.customers[customer_id] = {"id": customer_id, "email": email, "metadata": {"userId": user_id}}
        self.created_customers.append(customer_id)
        return BillingCustomer(id=customer_id, created=True)

    async def delete_customer(self, customer_id):
        self.customers.pop(customer_id, None)
        self.deleted_customers.append(customer_id)

    async def retrieve_customer(self, customer_id):
        return self.customers.get(customer_id) or {"id": customer_id, "deleted": True}

    async def create_subscription(self, customer_id, price_id):
        sub_id = self._next("sub_billing")
        self.subscriptions[sub_id] = {
            "id": sub_id,
            "customer": customer_id,
            "status": "active",
            "price": price_id,
            "current_period_end": NOW + 30 * 86400,
        }
        return dict(self.subscriptions[sub_id])

    async def update_subscription(self, subscription_id, *, price_id=None, cancel_at_period_end=None):
        sub = self.subscriptions.setdefault(
            subscription_id, {"id": subscription_id, "status": "active", "current_period_end": NOW + 86400}
        )
        if price_id:
            sub["price"] = price_id
        if cancel_at_period_end is not None:
            sub["cancel_at_period_end"] = cancel_at_period_end
        return dict(sub)

    async def pause_subscription(self, subscription_id, resume_at=None):
        return {"id": subscription_id, "pause_collection": {"behavior": "void"}}

    async def resume_subscription(self, subscription_id):
        return {"id": subscription_id, "pause_collection": None}

    async def cancel_subscription(self, subscription_id):
        return {"id": subscription_id, "status": "canceled"}

    async def create_payment_intent(self, amount, currency, customer_id=None, metadata=None):
        intent_id = self._next("pi")
        self.intents[intent_id] = {
            "id": intent_id,
            "amount": amount,
            "currency": currency,
            "customer": customer_id,
            "status": "requires_payment_method",
            "client_secret": f"{intent_id}_secret",
        }
        return dict(self.intents[intent_id])

    async def retrieve_payment_intent(self, payment_intent_id):
        return dict(self.intents[payment_intent_id])

    async def confirm_payment_intent(self, payment_intent_id, **options):
        self.confirmed.append((payment_intent_id, options))
        self.intents[payment_intent_id]["status"] = "succeeded"
        return dict(self.intents[payment_intent_id])

    async def create_checkout_session(self, *, user_id, amount, currency, success_url, cancel_url, customer_id=None):
        return {"id": self._next("cs"), "url": "https://checkout.test/session", "customer": customer_id}

    async def refund(self, payment_intent_id, amount=None, reason=None):
        refund = {"id": self._next("re"), "payment_intent": payment_intent_id, "amount": amount, "status": "succeeded"}
        self.refunds.append(refund)
        return refund

    def construct_event(self, payload, signature_header):
        if signature_header != PAYMENT_SIGNATURE:
            raise InvalidSignature("No signatures found matching the expected signature")
        try:
            return json.loads(payload)
        except ValueError as exc:
            raise MalformedPayload(str(exc)) from exc


class FakeEmail:
    def __init__(self):
        self.sent: list[tuple[str, str, Any]] = []
        self.failures_remaining = 0

    async def send_welcome_email(self, to, name):
        if self.failures_remaining:
            self.failures_remaining -= 1
            raise EmailDeliveryError("provider returned 503")
        self.sent.append(("welcome", to, name))

    async def send_subscription_expiry_email(self, to, name, expiry_date=None):
        self.sent.append(("expiry", to, expiry_date))


def identity_headers(body: bytes, event_id: str = "msg_1", timestamp: int = NOW, secret: str = IDENTITY_SECRET):
    return {
        "content-type": "application/json",
        "svix-id": event_id,
        "svix-timestamp": str(timestamp),
        "svix-signature": sign(secret, event_id, timestamp, body),
    }


def identity_user(user_id: str = "user_abc", email: str = "ada@example.com", **extra) -> dict[str, Any]:
    data = {
        "id": user_id,
        "primary_email_address_id": "idn_1",
        "email_addresses": [
            {"id": "idn_1", "email_address": email, "verification": {"status": "verified"}},
        ],
        "first_name": "Ada",
        "image_url": "https://img.test/ada.png",
        "public_metadata": {"plan": "pro"},
    }
    data.update(extra)
    return data


def session_token(user_id: str, email: str = "ada@example.com") -> str:
    return jwt.encode({"sub": user_id, "email": email, "sid": "sess_1"}, JWT_SECRET, algorithm="HS256")


@pytest.fixture
def test_settings():
    return Settings(
        identity_webhook_secret=IDENTITY_SECRET,
        identity_jwt_secret=JWT_SECRET,
        payment_secret_key="sk_test_123",
        payment_webhook_secret="whsec_test",
        postmark_api_key="pm-test",
        email_from_address="noreply@example.com",
        local_mode=True,
        queue_concurrency=1,
        dashboard_interval_seconds=0.05,
    )


@pytest.fixture
async def db_engine():
    """Create an in-memory SQLite async engine for testing."""
    engine = create_db_engine("sqlite+aiosqlite:///")
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return create_session_factory(db_engine)


@pytest.fixture
def users(session_factory):
    return SqlUserRepository(session_factory)


@pytest.fixture
def subscriptions(session_factory):
    return SqlSubscriptionRepository(session_factory)


@pytest.fixture
def payments(session_factory):
    return SqlPaymentRepository(session_factory)


@pytest.fixture
def analytics(session_factory):
    return SqlAnalyticsRepository(session_factory)


@pytest.fixture
def billing():
    return FakeBilling()


@pytest.fixture
def email():
    return FakeEmail()


@pytest.fixture
async def container(test_settings, users, subscriptions, payments, analytics, billing, email, db_engine):
    """Fully wired container over in-memory SQLite and fake collaborators."""
    _container = assemble(
        test_settings,
        users=users,
        subscriptions=subscriptions,
        payments=payments,
        analytics=analytics,
        billing=billing,
        email=email,
        kv=MemoryKeyValueStore(),
        engine=db_engine,
        clock=lambda: NOW,
    )
    yield _container
    await _container.dashboard.close()
    await _container.queues.stop()


@pytest.fixture
def app(container):
    """Create a test application instance with an injected container."""
    from conduit.main import create_app

    _app = create_app()
    _app.state.container = container
    return _app


@pytest.fixture
async def client(app):
    """Async HTTP test client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {session_token('user_abc')}"}
