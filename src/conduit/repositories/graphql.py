"""GraphQL data-layer repositories used in remote mode.

Each write goes through ``insert_<table>_one`` with an ``on_conflict`` clause
whose ``update_columns`` list is built from the fields the caller supplied,
so a redelivered event never clears a column it did not mention.
"""

from datetime import datetime
from typing import Any

from conduit.datalayer.client import GraphQLClient
from conduit.errors.exceptions import QueryError
from conduit.models.billing import AnalyticsEvent, Payment, Subscription
from conduit.models.user import User
from conduit.services.id_generator import (
    ANALYTICS_EVENT_PREFIX,
    PAYMENT_PREFIX,
    SUBSCRIPTION_PREFIX,
    generate_id,
)

USER_FIELDS = "id email email_verified avatar_url billing_customer_id metadata created_at updated_at"
SUBSCRIPTION_FIELDS = (
    "id user_id billing_customer_id billing_subscription_id price_id status "
    "current_period_end cancel_at created_at updated_at"
)
PAYMENT_FIELDS = "id user_id payment_intent_id amount currency status created_at updated_at"
ANALYTICS_FIELDS = "id user_id event_type metadata created_at"

UPSERT_USER = f"""
mutation UpsertUser($object: users_insert_input!, $update_columns: [users_update_column!]!) {{
  insert_users_one(
    object: $object,
    on_conflict: {{constraint: users_pkey, update_columns: $update_columns}}
  ) {{ {USER_FIELDS} }}
}}
"""

GET_USER = f"""
query GetUser($id: String!) {{
  users_by_pk(id: $id) {{ {USER_FIELDS} }}
}}
"""

FIND_USERS = f"""
query FindUsers($where: users_bool_exp!) {{
  users(where: $where, limit: 1) {{ {USER_FIELDS} }}
}}
"""

DELETE_USER = """
mutation DeleteUser($id: String!) {
  delete_users(where: {id: {_eq: $id}}) { affected_rows }
}
"""

UPSERT_SUBSCRIPTION = f"""
mutation UpsertSubscription(
  $object: subscriptions_insert_input!,
  $update_columns: [subscriptions_update_column!]!
) {{
  insert_subscriptions_one(
    object: $object,
    on_conflict: {{constraint: subscriptions_billing_subscription_id_key, update_columns: $update_columns}}
  ) {{ {SUBSCRIPTION_FIELDS} }}
}}
"""

UPDATE_SUBSCRIPTION_STATUS = """
mutation UpdateSubscriptionStatus($billingId: String!, $status: String!) {
  update_subscriptions(
    where: {billing_subscription_id: {_eq: $billingId}},
    _set: {status: $status}
  ) { affected_rows }
}
"""

LIST_SUBSCRIPTIONS = f"""
query ListSubscriptions($where: subscriptions_bool_exp!) {{
  subscriptions(where: $where, order_by: {{created_at: desc}}) {{ {SUBSCRIPTION_FIELDS} }}
}}
"""

UPSERT_PAYMENT = f"""
mutation UpsertPayment($object: payments_insert_input!) {{
  insert_payments_one(
    object: $object,
    on_conflict: {{
      constraint: payments_payment_intent_id_key,
      update_columns: [amount, currency, status]
    }}
  ) {{ {PAYMENT_FIELDS} }}
}}
"""

UPDATE_PAYMENT_STATUS = """
mutation UpdatePaymentStatus($paymentIntentId: String!, $status: String!) {
  update_payments(
    where: {payment_intent_id: {_eq: $paymentIntentId}},
    _set: {status: $status}
  ) { affected_rows }
}
"""

LIST_PAYMENTS = f"""
query ListPayments($userId: String!) {{
  payments(where: {{user_id: {{_eq: $userId}}}}, order_by: {{created_at: desc}}) {{ {PAYMENT_FIELDS} }}
}}
"""

INSERT_ANALYTICS_EVENT = f"""
mutation TrackEvent($object: analytics_events_insert_input!) {{
  insert_analytics_events_one(object: $object) {{ {ANALYTICS_FIELDS} }}
}}
"""

LIST_ANALYTICS_EVENTS = f"""
query ListAnalyticsEvents($start: timestamptz!, $end: timestamptz!) {{
  analytics_events(
    where: {{created_at: {{_gte: $start, _lte: $end}}}},
    order_by: {{created_at: asc}}
  ) {{ {ANALYTICS_FIELDS} }}
}}
"""

DELETE_ANALYTICS_EVENTS = """
mutation DeleteOldAnalyticsEvents($cutoff: timestamptz!) {
  delete_analytics_events(where: {created_at: {_lt: $cutoff}}) { affected_rows }
}
"""

OLD_ANALYTICS_EVENT_IDS = """
query OldAnalyticsEventIds($cutoff: timestamptz!, $limit: Int!) {
  analytics_events(where: {created_at: {_lt: $cutoff}}, order_by: {created_at: asc}, limit: $limit) { id }
}
"""

DELETE_ANALYTICS_EVENTS_BY_ID = """
mutation DeleteAnalyticsEventsById($ids: [String!]!) {
  delete_analytics_events(where: {id: {_in: $ids}}) { affected_rows }
}
"""


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _one(data: dict[str, Any], field: str) -> dict[str, Any]:
    row = data.get(field)
    if row is None:
        raise QueryError(f"{field} returned no row")
    return row


def _affected(data: dict[str, Any], field: str) -> int:
    return int((data.get(field) or {}).get("affected_rows", 0))


class GraphQLRepository:
    def __init__(self, client: GraphQLClient):
        self._client = client


class GraphQLUserRepository(GraphQLRepository):
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
        optional = {
            k: v
            for k, v in {
                "email_verified": email_verified,
                "avatar_url": avatar_url,
                "billing_customer_id": billing_customer_id,
                "metadata": metadata,
            }.items()
            if v is not None
        }
        data = await self._client.execute_query(
            UPSERT_USER,
            {
                "object": {"id": user_id, "email": email, **optional},
                "update_columns": ["email", *optional],
            },
        )
        return User.model_validate(_one(data, "insert_users_one"))

    async def get(self, user_id: str) -> User | None:
        data = await self._client.execute_query(GET_USER, {"id": user_id})
        row = data.get("users_by_pk")
        return User.model_validate(row) if row else None

    async def _find_one(self, where: dict[str, Any]) -> User | None:
        data = await self._client.execute_query(FIND_USERS, {"where": where})
        rows = data.get("users") or []
        return User.model_validate(rows[0]) if rows else None

    async def get_by_email(self, email: str) -> User | None:
        return await self._find_one({"email": {"_eq": email}})

    async def get_by_billing_customer_id(self, customer_id: str) -> User | None:
        return await self._find_one({"billing_customer_id": {"_eq": customer_id}})

    async def delete(self, user_id: str) -> bool:
        data = await self._client.execute_query(DELETE_USER, {"id": user_id})
        return _affected(data, "delete_users") > 0


class GraphQLSubscriptionRepository(GraphQLRepository):
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
        fields = {
            k: v
            for k, v in {
                "status": status,
                "user_id": user_id,
                "billing_customer_id": billing_customer_id,
                "price_id": price_id,
                "current_period_end": _iso(current_period_end),
                "cancel_at": _iso(cancel_at),
            }.items()
            if v is not None
        }
        data = await self._client.execute_query(
            UPSERT_SUBSCRIPTION,
            {
                "object": {
                    "id": generate_id(SUBSCRIPTION_PREFIX),
                    "billing_subscription_id": billing_subscription_id,
                    **fields,
                },
                "update_columns": list(fields),
            },
        )
        return Subscription.model_validate(_one(data, "insert_subscriptions_one"))

    async def update_status(self, billing_subscription_id: str, status: str) -> int:
        data = await self._client.execute_query(
            UPDATE_SUBSCRIPTION_STATUS, {"billingId": billing_subscription_id, "status": status}
        )
        return _affected(data, "update_subscriptions")

    async def get_by_billing_id(self, billing_subscription_id: str) -> Subscription | None:
        data = await self._client.execute_query(
            LIST_SUBSCRIPTIONS, {"where": {"billing_subscription_id": {"_eq": billing_subscription_id}}}
        )
        rows = data.get("subscriptions") or []
        return Subscription.model_validate(rows[0]) if rows else None

    async def list_for_user(self, user_id: str) -> list[Subscription]:
        data = await self._client.execute_query(
            LIST_SUBSCRIPTIONS, {"where": {"user_id": {"_eq": user_id}}}
        )
        return [Subscription.model_validate(r) for r in data.get("subscriptions") or []]


class GraphQLPaymentRepository(GraphQLRepository):
    async def create(
        self,
        *,
        user_id: str,
        payment_intent_id: str,
        amount: int,
        currency: str,
        status: str,
    ) -> Payment:
        data = await self._client.execute_query(
            UPSERT_PAYMENT,
            {
                "object": {
                    "id": generate_id(PAYMENT_PREFIX),
                    "user_id": user_id,
                    "payment_intent_id": payment_intent_id,
                    "amount": amount,
                    "currency": currency,
                    "status": status,
                }
            },
        )
        return Payment.model_validate(_one(data, "insert_payments_one"))

    async def update_status(self, payment_intent_id: str, status: str) -> int:
        data = await self._client.execute_query(
            UPDATE_PAYMENT_STATUS, {"paymentIntentId": payment_intent_id, "status": status}
        )
        return _affected(data, "update_payments")

    async def list_for_user(self, user_id: str) -> list[Payment]:
        data = await self._client.execute_query(LIST_PAYMENTS, {"userId": user_id})
        return [Payment.model_validate(r) for r in data.get("payments") or []]


class GraphQLAnalyticsRepository(GraphQLRepository):
    async def insert(
        self, *, event_type: str, user_id: str | None = None, metadata: dict[str, Any] | None = None
    ) -> AnalyticsEvent:
        data = await self._client.execute_query(
            INSERT_ANALYTICS_EVENT,
            {
                "object": {
                    "id": generate_id(ANALYTICS_EVENT_PREFIX),
                    "user_id": user_id,
                    "event_type": event_type,
                    "metadata": metadata or {},
                }
            },
        )
        return AnalyticsEvent.model_validate(_one(data, "insert_analytics_events_one"))

    async def list_between(self, start: datetime, end: datetime) -> list[AnalyticsEvent]:
        data = await self._client.execute_query(
            LIST_ANALYTICS_EVENTS, {"start": start.isoformat(), "end": end.isoformat()}
        )
        return [AnalyticsEvent.model_validate(r) for r in data.get("analytics_events") or []]

    async def delete_older_than(self, cutoff: datetime, limit: int | None = None) -> int:
        if limit is None:
            data = await self._client.execute_query(DELETE_ANALYTICS_EVENTS, {"cutoff": cutoff.isoformat()})
            return _affected(data, "delete_analytics_events")

        data = await self._client.execute_query(
            OLD_ANALYTICS_EVENT_IDS, {"cutoff": cutoff.isoformat(), "limit": limit}
        )
        ids = [row["id"] for row in data.get("analytics_events") or []]
        if not ids:
            return 0
        data = await self._client.execute_query(DELETE_ANALYTICS_EVENTS_BY_ID, {"ids": ids})
        return _affected(data, "delete_analytics_events")

