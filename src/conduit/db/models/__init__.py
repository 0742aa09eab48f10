"""SQLAlchemy ORM models - import all to register with Base.metadata."""

from conduit.db.models.user import UserRow
from conduit.db.models.billing import PaymentRow, SubscriptionRow
from conduit.db.models.analytics import AnalyticsEventRow

__all__ = [
    "UserRow",
    "SubscriptionRow",
    "PaymentRow",
    "AnalyticsEventRow",
]
