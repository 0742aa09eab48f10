"""Analytics event table."""

from sqlalchemy import JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from conduit.db.base import Base, TimestampMixin


class AnalyticsEventRow(Base, TimestampMixin):
    __tablename__ = "analytics_events"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    user_id: Mapped[str | None] = mapped_column(String(128), nullable=True, index=True)
    event_type: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    event_metadata: Mapped[dict] = mapped_column("metadata", JSON, nullable=False, default=dict)
