"""
Shared test configuration and fixtures for OpenID discovery tests.
"""

import fakeredis.aioredis
import pytest
import pytest_asyncio

from tests.test_helpers import FakeFetcher


@pytest.fixture
def fetcher():
    """Provide an empty FakeFetcher."""
    return FakeFetcher()


@pytest_asyncio.fixture
async def fake_redis_client():
    """Provide fake Redis client for unit tests."""
    client = fakeredis.aioredis.FakeRedis(decode_responses=False)
    yield client
    await client.flushall()
    await client.aclose()
