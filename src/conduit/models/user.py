"""Pydantic models for the User entity and provisioning inputs."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class User(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    email_verified: bool = False
    avatar_url: str | None = None
    billing_customer_id: str | None = None
    metadata: dict[str, Any] | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ProvisionOptions(BaseModel):
    email_verified: bool = False
    avatar_url: str | None = None
    metadata: dict[str, Any] | None = None
    create_billing_customer: bool = True


class CreateUserActionInput(BaseModel):
    """Input of the data layer's create-user custom action."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(..., min_length=1)
    email: EmailStr
    email_verified: bool = Field(False, alias="emailVerified")
    avatar_url: str | None = Field(None, alias="avatarUrl")
    metadata: dict[str, Any] | None = None
    create_billing_customer: bool = Field(True, alias="createBillingCustomer")

    def to_options(self) -> ProvisionOptions:
        return ProvisionOptions(
            email_verified=self.email_verified,
            avatar_url=self.avatar_url,
            metadata=self.metadata,
            create_billing_customer=self.create_billing_customer,
        )
