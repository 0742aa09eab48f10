"""Tests for settings validation and the startup container."""

import pytest

from conduit.config import Settings
from conduit.container import build_container
from conduit.errors.exceptions import ConfigurationError
from conduit.kv.store import MemoryKeyValueStore, RedisKeyValueStore
from conduit.repositories.graphql import GraphQLUserRepository
from conduit.repositories.sql import SqlUserRepository

BASE = dict(
    identity_webhook_secret="whsec_x",
    payment_secret_key="sk_test_x",
    payment_webhook_secret="whsec_pay",
    postmark_api_key="pm",
    email_from_address="noreply@example.com",
)


def test_remote_mode_requires_datalayer_and_redis():
    settings = Settings(**BASE, local_mode=False, datalayer_endpoint="", redis_host="")
    with pytest.raises(ConfigurationError) as exc_info:
        settings.validate_for_startup()
    assert set(exc_info.value.missing) == {"datalayer_endpoint", "datalayer_admin_secret", "redis_host"}


def test_missing_webhook_secret_is_reported_by_name():
    settings = Settings(**{**BASE, "identity_webhook_secret": ""}, local_mode=True)
    with pytest.raises(ConfigurationError) as exc_info:
        settings.validate_for_startup()
    assert exc_info.value.missing == ["identity_webhook_secret"]


def test_redis_url_includes_password():
    settings = Settings(redis_host="cache", redis_port=6380, redis_password="pw")
    assert settings.redis_url == "redis://:pw@cache:6380/0"


def test_env_prefix(monkeypatch):
    monkeypatch.setenv("CONDUIT_WEBHOOK_TOLERANCE_SECONDS", "120")
    assert Settings().webhook_tolerance_seconds == 120


@pytest.mark.asyncio
async def test_local_container_uses_sql_and_memory_store():
    container = build_container(Settings(**BASE, local_mode=True, database_url="sqlite+aiosqlite:///"))
    try:
        assert isinstance(container.users, SqlUserRepository)
        assert isinstance(container.kv, MemoryKeyValueStore)
        assert container.engine is not None
    finally:
        await container.shutdown()


@pytest.mark.asyncio
async def test_remote_container_uses_graphql_and_redis():
    settings = Settings(
        **BASE,
        local_mode=False,
        datalayer_endpoint="https://datalayer.test/v1/graphql",
        datalayer_admin_secret="admin",
        redis_host="localhost",
    )
    container = build_container(settings)
    try:
        assert isinstance(container.users, GraphQLUserRepository)
        assert isinstance(container.kv, RedisKeyValueStore)
        assert container.engine is None
    finally:
        await container.shutdown()
