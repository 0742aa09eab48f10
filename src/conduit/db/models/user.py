"""User table."""

from sqlalchemy import JSON, Boolean, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from conduit.db.base import Base, TimestampMixin


class UserRow(Base, TimestampMixin):
    __tablename__ = "users"

    # Identity-provider user id, opaque
    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False, index=True)
    email_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    avatar_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    billing_customer_id: Mapped[str | None] = mapped_column(String(128), nullable=True, index=True)
    # "metadata" is reserved on declarative classes
    user_metadata: Mapped[dict | None] = mapped_column("metadata", JSON, nullable=True)
