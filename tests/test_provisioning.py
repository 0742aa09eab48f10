"""Tests for the user provisioning saga and its compensation path."""

import pytest

from conftest import FakeBilling, identity_user
from conduit.errors.exceptions import MissingPrimaryEmail, ProvisioningError, QueryError, ValidationError
from conduit.models.user import ProvisionOptions
from conduit.services.provisioning import UserProvisioningSaga, display_name, user_from_identity_payload


class FailingUsers:
    """User repository whose writes always fail."""

    def __init__(self):
        self.calls = 0

    async def upsert(self, user_id, email, **fields):
        self.calls += 1
        raise QueryError("constraint violation")


def test_payload_mapping_uses_primary_email():
    data = identity_user(
        email_addresses=[
            {"id": "idn_0", "email_address": "old@example.com"},
            {"id": "idn_1", "email_address": "ada@example.com", "verification": {"status": "verified"}},
        ]
    )
    user_id, email, options = user_from_identity_payload(data)
    assert user_id == "user_abc"
    assert email == "ada@example.com"
    assert options.email_verified is True
    assert options.avatar_url == "https://img.test/ada.png"
    assert options.metadata == {"plan": "pro"}


def test_payload_without_matching_primary_email():
    data = identity_user(primary_email_address_id="idn_missing")
    with pytest.raises(MissingPrimaryEmail):
        user_from_identity_payload(data)


def test_payload_without_user_id():
    with pytest.raises(ValidationError):
        user_from_identity_payload({"email_addresses": []})


def test_display_name_falls_back_to_local_part():
    assert display_name({"first_name": "Ada"}, "ada@example.com") == "Ada"
    assert display_name({}, "grace.hopper@example.com") == "grace.hopper"


@pytest.mark.asyncio
async def test_provision_creates_customer_and_user(users, billing):
    saga = UserProvisioningSaga(users, billing)
    user = await saga.provision_user("user_abc", "ada@example.com", ProvisionOptions(email_verified=True))

    assert user.billing_customer_id == billing.created_customers[0]
    stored = await users.get("user_abc")
    assert stored.email == "ada@example.com"
    assert stored.email_verified is True


@pytest.mark.asyncio
async def test_provision_is_idempotent(users, billing):
    saga = UserProvisioningSaga(users, billing)
    first = await saga.provision_user("user_abc", "ada@example.com")
    second = await saga.provision_user("user_abc", "ada@example.com")

    assert first.billing_customer_id == second.billing_customer_id
    assert len(billing.created_customers) == 1
    assert len(billing.customers) == 1


@pytest.mark.asyncio
async def test_provision_without_billing_customer(users, billing):
    saga = UserProvisioningSaga(users, billing)
    user = await saga.provision_user(
        "user_abc", "ada@example.com", ProvisionOptions(create_billing_customer=False)
    )
    assert user.billing_customer_id is None
    assert billing.created_customers == []


@pytest.mark.asyncio
async def test_empty_email_rejected_before_any_side_effect(users, billing):
    saga = UserProvisioningSaga(users, billing)
    with pytest.raises(MissingPrimaryEmail):
        await saga.provision_user("user_abc", "")
    assert billing.created_customers == []
    assert await users.get("user_abc") is None


@pytest.mark.asyncio
async def test_failed_write_deletes_newly_created_customer():
    billing = FakeBilling()
    saga = UserProvisioningSaga(FailingUsers(), billing)

    with pytest.raises(ProvisioningError) as exc_info:
        await saga.provision_user("user_abc", "ada@example.com")

    assert exc_info.value.compensated is True
    assert billing.deleted_customers == billing.created_customers
    assert billing.customers == {}


@pytest.mark.asyncio
async def test_failed_write_keeps_preexisting_customer():
    billing = FakeBilling()
    existing = await billing.find_or_create_customer("user_abc", "ada@example.com")
    saga = UserProvisioningSaga(FailingUsers(), billing)

    with pytest.raises(ProvisioningError) as exc_info:
        await saga.provision_user("user_abc", "ada@example.com")

    assert exc_info.value.compensated is False
    assert billing.deleted_customers == []
    assert existing.id in billing.customers


@pytest.mark.asyncio
async def test_billing_failure_leaves_no_user(users):
    billing = FakeBilling()
    billing.fail_create_customer = True
    saga = UserProvisioningSaga(users, billing)

    with pytest.raises(ProvisioningError):
        await saga.provision_user("user_abc", "ada@example.com")
    assert await users.get("user_abc") is None


@pytest.mark.asyncio
async def test_sync_preserves_billing_customer(users, billing):
    saga = UserProvisioningSaga(users, billing)
    created = await saga.provision_user("user_abc", "ada@example.com")
    synced = await saga.sync_user("user_abc", "ada@new.example.com", {"plan": "team"})

    assert synced.email == "ada@new.example.com"
    assert synced.metadata == {"plan": "team"}
    assert synced.billing_customer_id == created.billing_customer_id


@pytest.mark.asyncio
async def test_delete_user_reports_matches(users, billing):
    saga = UserProvisioningSaga(users, billing)
    await saga.provision_user("user_abc", "ada@example.com")
    assert await saga.delete_user("user_abc") == 1
    assert await saga.delete_user("user_abc") == 0
