"""Composition root: builds every component once and wires capabilities in.

Remote mode talks to the GraphQL data layer and Redis. Local mode swaps in
the SQLAlchemy repositories over SQLite and the in-process key/value store.
Nothing else in the package reaches for globals; routes get the container
from ``app.state``.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Callable

from sqlalchemy.ext.asyncio import AsyncEngine

from conduit.billing.base import BillingClient
from conduit.billing.stripe_client import StripeBillingClient
from conduit.config import Settings
from conduit.datalayer.client import GraphQLClient
from conduit.db.engine import create_db_engine, create_session_factory, create_tables
from conduit.events.bus import QueueEventBus
from conduit.events.dashboard_feed import DashboardFeed
from conduit.kv.store import KeyValueStore, MemoryKeyValueStore, RedisKeyValueStore
from conduit.notifications.email import EmailSender, PostmarkEmailSender
from conduit.repositories.base import (
    AnalyticsRepository,
    PaymentRepository,
    SubscriptionRepository,
    UserRepository,
)
from conduit.repositories.graphql import (
    GraphQLAnalyticsRepository,
    GraphQLPaymentRepository,
    GraphQLSubscriptionRepository,
    GraphQLUserRepository,
)
from conduit.repositories.sql import (
    SqlAnalyticsRepository,
    SqlPaymentRepository,
    SqlSubscriptionRepository,
    SqlUserRepository,
)
from conduit.services.otp import OtpService
from conduit.services.payments import PaymentsService, SubscriptionsService
from conduit.services.provisioning import UserProvisioningSaga
from conduit.services.reconciler import SubscriptionReconciler
from conduit.webhooks.identity import IdentityEventHandlers, build_identity_router
from conduit.webhooks.payments import build_payment_router
from conduit.webhooks.router import EventRouter
from conduit.webhooks.signature import SignatureVerifier
from conduit.workers.base import WorkerDependencies
from conduit.workers.manager import QueueManager
from conduit.workers.registry import build_workers

logger = logging.getLogger(__name__)


@dataclass
class Container:
    settings: Settings
    users: UserRepository
    subscriptions: SubscriptionRepository
    payments: PaymentRepository
    analytics: AnalyticsRepository
    billing: BillingClient
    email: EmailSender
    kv: KeyValueStore
    bus: QueueEventBus
    queues: QueueManager
    dashboard: DashboardFeed
    verifier: SignatureVerifier
    otp: OtpService
    saga: UserProvisioningSaga
    reconciler: SubscriptionReconciler
    payments_service: PaymentsService
    subscriptions_service: SubscriptionsService
    identity_router: EventRouter
    payment_router: EventRouter
    engine: AsyncEngine | None = None
    graphql: GraphQLClient | None = None
    _closers: list = field(default_factory=list)

    async def start(self) -> None:
        if self.engine is not None:
            await create_tables(self.engine)
            logger.info("SQLite tables created (local mode)")
        await self.queues.start()

    async def shutdown(self) -> None:
        await self.dashboard.close()
        await self.queues.stop()
        for close in self._closers:
            await close()
        if self.engine is not None:
            await self.engine.dispose()


def assemble(
    settings: Settings,
    *,
    users: UserRepository,
    subscriptions: SubscriptionRepository,
    payments: PaymentRepository,
    analytics: AnalyticsRepository,
    billing: BillingClient,
    email: EmailSender,
    kv: KeyValueStore,
    engine: AsyncEngine | None = None,
    graphql: GraphQLClient | None = None,
    clock: Callable[[], float] = time.time,
) -> Container:
    """Wire services, queues and routers around the given capabilities."""
    bus = QueueEventBus()
    queues = QueueManager(
        bus,
        concurrency=settings.queue_concurrency,
        retain_completed=settings.queue_retain_completed,
        retain_failed=settings.queue_retain_failed,
    )
    deps = WorkerDependencies(
        users=users,
        subscriptions=subscriptions,
        payments=payments,
        analytics=analytics,
        billing=billing,
        email=email,
    )
    for worker in build_workers(deps):
        queues.register(worker)

    otp = OtpService(kv, ttl_seconds=settings.otp_ttl_seconds)
    saga = UserProvisioningSaga(users, billing)
    reconciler = SubscriptionReconciler(subscriptions, payments, users, queues)

    return Container(
        settings=settings,
        users=users,
        subscriptions=subscriptions,
        payments=payments,
        analytics=analytics,
        billing=billing,
        email=email,
        kv=kv,
        bus=bus,
        queues=queues,
        dashboard=DashboardFeed(queues, bus, interval=settings.dashboard_interval_seconds),
        verifier=SignatureVerifier(tolerance_seconds=settings.webhook_tolerance_seconds, clock=clock),
        otp=otp,
        saga=saga,
        reconciler=reconciler,
        payments_service=PaymentsService(payments, users, billing),
        subscriptions_service=SubscriptionsService(subscriptions, users, billing, queues),
        identity_router=build_identity_router(IdentityEventHandlers(saga, otp, queues)),
        payment_router=build_payment_router(reconciler),
        engine=engine,
        graphql=graphql,
    )


def build_container(settings: Settings) -> Container:
    """Build the production container for the mode selected in ``settings``."""
    settings.validate_for_startup()

    billing = StripeBillingClient(
        settings.payment_secret_key,
        settings.payment_webhook_secret,
        tolerance_seconds=settings.webhook_tolerance_seconds,
    )
    email = PostmarkEmailSender(
        settings.postmark_api_key,
        settings.email_from_address,
        message_stream=settings.email_message_stream,
    )

    if settings.local_mode:
        engine = create_db_engine(settings.database_url)
        factory = create_session_factory(engine)
        kv = MemoryKeyValueStore()
        container = assemble(
            settings,
            users=SqlUserRepository(factory),
            subscriptions=SqlSubscriptionRepository(factory),
            payments=SqlPaymentRepository(factory),
            analytics=SqlAnalyticsRepository(factory),
            billing=billing,
            email=email,
            kv=kv,
            engine=engine,
        )
    else:
        client = GraphQLClient(
            settings.datalayer_endpoint,
            settings.datalayer_admin_secret,
            timeout=settings.datalayer_timeout_seconds,
        )
        kv = RedisKeyValueStore.from_url(settings.redis_url)
        container = assemble(
            settings,
            users=GraphQLUserRepository(client),
            subscriptions=GraphQLSubscriptionRepository(client),
            payments=GraphQLPaymentRepository(client),
            analytics=GraphQLAnalyticsRepository(client),
            billing=billing,
            email=email,
            kv=kv,
            graphql=client,
        )
        container._closers.extend([client.aclose, kv.aclose])

    container._closers.append(email.aclose)
    logger.info("Container built (mode=%s)", "local" if settings.local_mode else "remote")
    return container
