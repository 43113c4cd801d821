"""
Unit tests for endpoint session storage in social.graze.openid.session

Tests run the same round trips against the in-memory store and the Redis store
(backed by fakeredis).
"""

import pytest
import redis.asyncio as redis

from social.graze.openid.config import ENDPOINT_SESSION_TTL, Settings
from social.graze.openid.consumer.endpoint import (
    OPENID_1_1_TYPE,
    OPENID_2_0_TYPE,
    EndpointSource,
    ServiceEndpoint,
)
from social.graze.openid.session import (
    MemorySessionStore,
    RedisSessionStore,
    normalize_redis_string,
)

ENDPOINT = ServiceEndpoint(
    source=EndpointSource.xrds,
    server_url="https://op.example.com/",
    type_uris=(OPENID_2_0_TYPE, OPENID_1_1_TYPE),
    claimed_id="http://user.example.com/#1",
    local_id="https://op.example.com/user",
    used_yadis=True,
)


@pytest.fixture(params=["memory", "redis"])
def store(request, fake_redis_client):
    if request.param == "memory":
        return MemorySessionStore()
    return RedisSessionStore(fake_redis_client, ttl=60)


class TestEndpointSessionStore:
    """Behaviour shared by every store."""

    @pytest.mark.asyncio
    async def test_put_get(self, store):
        await store.put("session-1", ENDPOINT)
        assert await store.get("session-1") == ENDPOINT
        assert await store.get("session-1") == ENDPOINT

    @pytest.mark.asyncio
    async def test_pop(self, store):
        await store.put("session-1", ENDPOINT)
        assert await store.pop("session-1") == ENDPOINT
        assert await store.get("session-1") is None
        assert await store.pop("session-1") is None

    @pytest.mark.asyncio
    async def test_missing(self, store):
        assert await store.get("missing") is None

    @pytest.mark.asyncio
    async def test_replace(self, store):
        """A second put replaces every field of the first."""
        await store.put("session-1", ENDPOINT)
        op_endpoint = ServiceEndpoint.from_op_endpoint_url("https://op.example.com/")
        await store.put("session-1", op_endpoint)
        assert await store.get("session-1") == op_endpoint


class TestRedisSessionStore:
    """Redis specific behaviour."""

    @pytest.mark.asyncio
    async def test_key_and_ttl(self, fake_redis_client):
        store = RedisSessionStore(fake_redis_client, ttl=60)

        await store.put("abc", ENDPOINT)

        stored = await fake_redis_client.hgetall("openid:endpoint:abc")
        assert stored[b"server_url"] == b"https://op.example.com/"
        assert stored[b"version"] == b"1"
        ttl = await fake_redis_client.ttl("openid:endpoint:abc")
        assert 0 < ttl <= 60

    @pytest.mark.asyncio
    async def test_unknown_version_is_discarded(self, fake_redis_client):
        store = RedisSessionStore(fake_redis_client)
        await fake_redis_client.hset(
            "openid:endpoint:old", mapping={"version": "0", "source": "xrds"}
        )

        assert await store.get("old") is None

    @pytest.mark.asyncio
    async def test_default_ttl(self, fake_redis_client):
        assert RedisSessionStore(fake_redis_client).ttl == ENDPOINT_SESSION_TTL

    @pytest.mark.asyncio
    async def test_from_settings(self):
        settings = Settings(
            redis_dsn="redis://cache.example.com:6379/2", endpoint_session_ttl=30
        )

        store = RedisSessionStore.from_settings(settings)

        assert isinstance(store.redis_client, redis.Redis)
        connection_kwargs = store.redis_client.connection_pool.connection_kwargs
        assert connection_kwargs["host"] == "cache.example.com"
        assert connection_kwargs["db"] == 2
        assert store.ttl == 30
        await store.redis_client.aclose()


def test_normalize_redis_string():
    assert normalize_redis_string(b"value") == "value"
    assert normalize_redis_string("value") == "value"
    assert normalize_redis_string(1) == "1"
