"""User provisioning saga: billing customer + user record, with compensation.

There is no transaction spanning the payment processor and the data layer.
Atomicity comes from two properties instead:

1. The customer lookup searches by email before creating, and the user write
   is an upsert keyed on the identity-provider id, so a redelivered event
   converges on one customer and one user row.
2. When the user write fails after this invocation created a new customer,
   that customer is deleted before the failure is reported. A customer that
   already existed is never deleted.
"""

import logging
from typing import Any

from conduit.billing.base import BillingClient
from conduit.errors.exceptions import DependencyError, MissingPrimaryEmail, ProvisioningError, ValidationError
from conduit.models.user import ProvisionOptions, User
from conduit.repositories.base import UserRepository

logger = logging.getLogger(__name__)


def _primary_email_entry(data: dict[str, Any]) -> dict[str, Any] | None:
    primary_id = data.get("primary_email_address_id")
    for entry in data.get("email_addresses") or []:
        if isinstance(entry, dict) and entry.get("id") == primary_id and entry.get("email_address"):
            return entry
    return None


def user_from_identity_payload(data: dict[str, Any]) -> tuple[str, str, ProvisionOptions]:
    """Map an identity-provider user object to ``(external_id, email, options)``.

    Raises:
        MissingPrimaryEmail: the primary email id matches no listed address.
        ValidationError: the payload carries no user id.
    """
    user_id = data.get("id")
    if not user_id:
        raise ValidationError("Identity payload has no user id", code="MISSING_USER_ID")

    entry = _primary_email_entry(data)
    if entry is None:
        raise MissingPrimaryEmail(user_id)

    verification = entry.get("verification") or {}
    options = ProvisionOptions(
        email_verified=verification.get("status") == "verified",
        avatar_url=data.get("image_url"),
        metadata=data.get("public_metadata"),
    )
    return user_id, entry["email_address"], options


def display_name(data: dict[str, Any], email: str) -> str:
    """Greeting name for outbound email: first name, else the email's local part."""
    return data.get("first_name") or data.get("username") or email.split("@", 1)[0]


class UserProvisioningSaga:
    def __init__(self, users: UserRepository, billing: BillingClient):
        self._users = users
        self._billing = billing

    async def provision_user(self, external_id: str, email: str, options: ProvisionOptions | None = None) -> User:
        """Create or converge the user and its billing customer.

        Raises:
            MissingPrimaryEmail: ``email`` is empty; nothing was touched.
            ProvisioningError: a dependency failed; ``compensated`` tells
                whether a newly created customer was rolled back.
        """
        options = options or ProvisionOptions()
        if not email:
            raise MissingPrimaryEmail(external_id)

        logger.info("Provisioning user %s (billing=%s)", external_id, options.create_billing_customer)

        customer = None
        if options.create_billing_customer:
            try:
                customer = await self._billing.find_or_create_customer(external_id, email)
            except DependencyError as exc:
                raise ProvisioningError(external_id, exc) from exc

        try:
            user = await self._users.upsert(
                external_id,
                email,
                email_verified=options.email_verified,
                avatar_url=options.avatar_url,
                billing_customer_id=customer.id if customer else None,
                metadata=options.metadata,
            )
        except DependencyError as exc:
            compensated = False
            if customer is not None and customer.created:
                compensated = await self._compensate(external_id, customer.id)
            raise ProvisioningError(external_id, exc, compensated=compensated) from exc

        logger.info("Provisioned user %s (customer=%s)", external_id, user.billing_customer_id)
        return user

    async def _compensate(self, external_id: str, customer_id: str) -> bool:
        try:
            await self._billing.delete_customer(customer_id)
        except DependencyError as exc:
            logger.error(
                "Compensation failed: could not delete customer %s for user %s: %s",
                customer_id,
                external_id,
                exc,
            )
            return False
        logger.warning("Rolled back customer %s after failed write for user %s", customer_id, external_id)
        return True

    async def sync_user(self, external_id: str, email: str, metadata: dict[str, Any] | None = None) -> User:
        """Metadata sync for ``user.updated``; never touches billing."""
        if not email:
            raise MissingPrimaryEmail(external_id)
        return await self._users.upsert(external_id, email, metadata=metadata)

    async def delete_user(self, external_id: str) -> int:
        deleted = await self._users.delete(external_id)
        logger.info("Deleted user %s (matched=%s)", external_id, deleted)
        return int(deleted)
