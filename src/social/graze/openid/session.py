"""
Endpoint Session Storage

The endpoint chosen when authentication begins must be available again when the
provider redirects the user back. These stores keep it between the two steps as
the flat mapping produced by ``ServiceEndpoint.to_flat_map``.

Key Components:
- EndpointSessionStore: Protocol shared by all stores
- MemorySessionStore: Process-local store for tests and single-process use
- RedisSessionStore: Redis hash per session key, expiring after a TTL
"""

import logging
from typing import Any, Dict, Optional, Protocol

import redis.asyncio as redis

from social.graze.openid.config import ENDPOINT_SESSION_TTL, Settings
from social.graze.openid.consumer.endpoint import ServiceEndpoint

logger = logging.getLogger(__name__)

ENDPOINT_KEY_PREFIX = "openid:endpoint:"


def normalize_redis_string(value: Any) -> str:
    """
    Normalize Redis value to string, handling bytes conversion.
    """
    if isinstance(value, bytes):
        return value.decode()
    return str(value)


class EndpointSessionStore(Protocol):
    async def put(self, key: str, endpoint: ServiceEndpoint) -> None: ...

    async def get(self, key: str) -> Optional[ServiceEndpoint]: ...

    async def pop(self, key: str) -> Optional[ServiceEndpoint]: ...


class MemorySessionStore:
    def __init__(self) -> None:
        self._sessions: Dict[str, Dict[str, str]] = {}

    async def put(self, key: str, endpoint: ServiceEndpoint) -> None:
        self._sessions[key] = endpoint.to_flat_map()

    async def get(self, key: str) -> Optional[ServiceEndpoint]:
        flat = self._sessions.get(key)
        if flat is None:
            return None
        return ServiceEndpoint.from_flat_map(flat)

    async def pop(self, key: str) -> Optional[ServiceEndpoint]:
        flat = self._sessions.pop(key, None)
        if flat is None:
            return None
        return ServiceEndpoint.from_flat_map(flat)


class RedisSessionStore:
    """
    Stores endpoints as Redis hashes under ``openid:endpoint:<key>``.

    Works with clients created with or without ``decode_responses``.
    """

    def __init__(
        self,
        redis_client: redis.Redis,
        ttl: int = ENDPOINT_SESSION_TTL,
        prefix: str = ENDPOINT_KEY_PREFIX,
    ):
        self.redis_client = redis_client
        self.ttl = ttl
        self.prefix = prefix

    @classmethod
    def from_settings(cls, settings: Settings) -> "RedisSessionStore":
        """Connect to ``settings.redis_dsn`` and expire after ``endpoint_session_ttl``."""
        redis_client = redis.Redis(
            connection_pool=redis.ConnectionPool.from_url(str(settings.redis_dsn))
        )
        return cls(redis_client, ttl=settings.endpoint_session_ttl)

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    async def put(self, key: str, endpoint: ServiceEndpoint) -> None:
        redis_key = self._key(key)
        async with self.redis_client.pipeline() as redis_pipe:
            redis_pipe.delete(redis_key)
            redis_pipe.hset(redis_key, mapping=endpoint.to_flat_map())
            redis_pipe.expire(redis_key, self.ttl)
            await redis_pipe.execute()

    async def get(self, key: str) -> Optional[ServiceEndpoint]:
        flat = await self.redis_client.hgetall(self._key(key))
        return self._restore(key, flat)

    async def pop(self, key: str) -> Optional[ServiceEndpoint]:
        redis_key = self._key(key)
        async with self.redis_client.pipeline() as redis_pipe:
            redis_pipe.hgetall(redis_key)
            redis_pipe.delete(redis_key)
            flat, _ = await redis_pipe.execute()
        return self._restore(key, flat)

    def _restore(self, key: str, flat: Any) -> Optional[ServiceEndpoint]:
        if not flat:
            return None
        decoded = {
            normalize_redis_string(name): normalize_redis_string(value)
            for name, value in flat.items()
        }
        try:
            return ServiceEndpoint.from_flat_map(decoded)
        except (KeyError, ValueError):
            logger.warning(f"Discarding unreadable endpoint session {key}")
            return None
