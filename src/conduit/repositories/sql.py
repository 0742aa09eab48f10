"""SQLAlchemy-backed repositories used in local mode."""

from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator

from sqlalchemy import delete, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from conduit.db.base import utcnow
from conduit.db.models import AnalyticsEventRow, PaymentRow, SubscriptionRow, UserRow
from conduit.errors.exceptions import QueryError
from conduit.models.billing import AnalyticsEvent, Payment, Subscription
from conduit.models.user import User
from conduit.services.id_generator import (
    ANALYTICS_EVENT_PREFIX,
    PAYMENT_PREFIX,
    SUBSCRIPTION_PREFIX,
    generate_id,
)


def _present(**fields: Any) -> dict[str, Any]:
    return {k: v for k, v in fields.items() if v is not None}


class SqlRepository:
    """Base class: one short-lived session per operation, committed on success."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except SQLAlchemyError as exc:
                await session.rollback()
                raise QueryError(str(exc)) from exc

    @staticmethod
    def _insert(session: AsyncSession, model):
        """Dialect insert against the table so values are keyed by column name."""
        table = model.__table__
        if session.get_bind().dialect.name == "postgresql":
            return postgresql.insert(table)
        return sqlite.insert(table)


def _user_from_row(row: UserRow) -> User:
    return User(
        id=row.id,
        email=row.email,
        email_verified=row.email_verified,
        avatar_url=row.avatar_url,
        billing_customer_id=row.billing_customer_id,
        metadata=row.user_metadata,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class SqlUserRepository(SqlRepository):
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
        # Keyed by column name; "metadata" is mapped as user_metadata on the row
        optional = _present(
            email_verified=email_verified,
            avatar_url=avatar_url,
            billing_customer_id=billing_customer_id,
            metadata=metadata,
        )
        now = utcnow()
        async with self._session() as session:
            stmt = self._insert(session, UserRow).values(
                id=user_id,
                email=email,
                email_verified=bool(email_verified),
                avatar_url=avatar_url,
                billing_customer_id=billing_customer_id,
                metadata=metadata,
                created_at=now,
                updated_at=now,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=["id"],
                set_={"email": email, "updated_at": now, **optional},
            )
            await session.execute(stmt)
            row = await session.get(UserRow, user_id, populate_existing=True)
            return _user_from_row(row)

    async def get(self, user_id: str) -> User | None:
        async with self._session() as session:
            row = await session.get(UserRow, user_id)
            return _user_from_row(row) if row else None

    async def get_by_email(self, email: str) -> User | None:
        async with self._session() as session:
            result = await session.execute(select(UserRow).where(UserRow.email == email))
            row = result.scalar_one_or_none()
            return _user_from_row(row) if row else None

    async def get_by_billing_customer_id(self, customer_id: str) -> User | None:
        async with self._session() as session:
            result = await session.execute(
                select(UserRow).where(UserRow.billing_customer_id == customer_id)
            )
            row = result.scalars().first()
            return _user_from_row(row) if row else None

    async def delete(self, user_id: str) -> bool:
        async with self._session() as session:
            result = await session.execute(delete(UserRow).where(UserRow.id == user_id))
            return result.rowcount > 0


class SqlSubscriptionRepository(SqlRepository):
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
        now = utcnow()
        values = dict(
            status=status,
            user_id=user_id,
            billing_customer_id=billing_customer_id,
            price_id=price_id,
            current_period_end=current_period_end,
            cancel_at=cancel_at,
        )
        async with self._session() as session:
            stmt = self._insert(session, SubscriptionRow).values(
                id=generate_id(SUBSCRIPTION_PREFIX),
                billing_subscription_id=billing_subscription_id,
                created_at=now,
                updated_at=now,
                **values,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=["billing_subscription_id"],
                set_={**_present(**values), "updated_at": now},
            )
            await session.execute(stmt)
            result = await session.execute(
                select(SubscriptionRow)
                .where(SubscriptionRow.billing_subscription_id == billing_subscription_id)
                .execution_options(populate_existing=True)
            )
            return Subscription.model_validate(result.scalar_one())

    async def update_status(self, billing_subscription_id: str, status: str) -> int:
        async with self._session() as session:
            result = await session.execute(
                update(SubscriptionRow)
                .where(SubscriptionRow.billing_subscription_id == billing_subscription_id)
                .values(status=status, updated_at=utcnow())
            )
            return result.rowcount

    async def get_by_billing_id(self, billing_subscription_id: str) -> Subscription | None:
        async with self._session() as session:
            result = await session.execute(
                select(SubscriptionRow).where(
                    SubscriptionRow.billing_subscription_id == billing_subscription_id
                )
            )
            row = result.scalar_one_or_none()
            return Subscription.model_validate(row) if row else None

    async def list_for_user(self, user_id: str) -> list[Subscription]:
        async with self._session() as session:
            result = await session.execute(
                select(SubscriptionRow)
                .where(SubscriptionRow.user_id == user_id)
                .order_by(SubscriptionRow.created_at.desc())
            )
            return [Subscription.model_validate(r) for r in result.scalars().all()]


class SqlPaymentRepository(SqlRepository):
    async def create(
        self,
        *,
        user_id: str,
        payment_intent_id: str,
        amount: int,
        currency: str,
        status: str,
    ) -> Payment:
        now = utcnow()
        async with self._session() as session:
            stmt = self._insert(session, PaymentRow).values(
                id=generate_id(PAYMENT_PREFIX),
                user_id=user_id,
                payment_intent_id=payment_intent_id,
                amount=amount,
                currency=currency,
                status=status,
                created_at=now,
                updated_at=now,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=["payment_intent_id"],
                set_={"amount": amount, "currency": currency, "status": status, "updated_at": now},
            )
            await session.execute(stmt)
            result = await session.execute(
                select(PaymentRow)
                .where(PaymentRow.payment_intent_id == payment_intent_id)
                .execution_options(populate_existing=True)
            )
            return Payment.model_validate(result.scalar_one())

    async def update_status(self, payment_intent_id: str, status: str) -> int:
        async with self._session() as session:
            result = await session.execute(
                update(PaymentRow)
                .where(PaymentRow.payment_intent_id == payment_intent_id)
                .values(status=status, updated_at=utcnow())
            )
            return result.rowcount

    async def list_for_user(self, user_id: str) -> list[Payment]:
        async with self._session() as session:
            result = await session.execute(
                select(PaymentRow)
                .where(PaymentRow.user_id == user_id)
                .order_by(PaymentRow.created_at.desc())
            )
            return [Payment.model_validate(r) for r in result.scalars().all()]


def _event_from_row(row: AnalyticsEventRow) -> AnalyticsEvent:
    return AnalyticsEvent(
        id=row.id,
        user_id=row.user_id,
        event_type=row.event_type,
        metadata=row.event_metadata or {},
        created_at=row.created_at,
    )


class SqlAnalyticsRepository(SqlRepository):
    async def insert(
        self, *, event_type: str, user_id: str | None = None, metadata: dict[str, Any] | None = None
    ) -> AnalyticsEvent:
        async with self._session() as session:
            row = AnalyticsEventRow(
                id=generate_id(ANALYTICS_EVENT_PREFIX),
                user_id=user_id,
                event_type=event_type,
                event_metadata=metadata or {},
            )
            session.add(row)
            await session.flush()
            return _event_from_row(row)

    async def list_between(self, start: datetime, end: datetime) -> list[AnalyticsEvent]:
        async with self._session() as session:
            result = await session.execute(
                select(AnalyticsEventRow)
                .where(AnalyticsEventRow.created_at >= start, AnalyticsEventRow.created_at <= end)
                .order_by(AnalyticsEventRow.created_at)
            )
            return [_event_from_row(r) for r in result.scalars().all()]

    async def delete_older_than(self, cutoff: datetime, limit: int | None = None) -> int:
        condition = AnalyticsEventRow.created_at < cutoff
        if limit is not None:
            oldest = (
                select(AnalyticsEventRow.id)
                .where(condition)
                .order_by(AnalyticsEventRow.created_at)
                .limit(limit)
            )
            condition = AnalyticsEventRow.id.in_(oldest)
        async with self._session() as session:
            result = await session.execute(
                delete(AnalyticsEventRow).where(condition).execution_options(synchronize_session=False)
            )
            return result.rowcount

