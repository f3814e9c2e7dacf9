"""Redis cache backend implementing ICacheBackend."""

from __future__ import annotations

import redis

from hubresolve.core.config import RedisConfig
from hubresolve.core.exceptions import CacheError


class RedisCacheBackend:
    """ICacheBackend backed by Redis, shared by every process listing the same hub.

    Socket timeouts come from ``RedisConfig`` so an unreachable server fails
    fast; callers see every Redis failure as ``CacheError``.
    """

    def __init__(self, config: RedisConfig | None = None, client: redis.Redis | None = None) -> None:
        self._config = config or RedisConfig()
        self._client = client or redis.Redis(
            host=self._config.host,
            port=self._config.port,
            db=self._config.db,
            decode_responses=True,
            socket_timeout=self._config.socket_timeout,
            socket_connect_timeout=self._config.socket_timeout,
        )

    @property
    def address(self) -> str:
        return f"{self._config.host}:{self._config.port}/{self._config.db}"

    def get(self, key: str) -> str | None:
        try:
            return self._client.get(key)
        except redis.RedisError as exc:
            raise CacheError(f"Redis GET failed for key={key!r} on {self.address}: {exc}") from exc

    def setex(self, key: str, ttl: int, value: str) -> None:
        try:
            self._client.setex(key, ttl, value)
        except redis.RedisError as exc:
            raise CacheError(f"Redis SETEX failed for key={key!r} on {self.address}: {exc}") from exc

    def delete(self, key: str) -> None:
        try:
            self._client.delete(key)
        except redis.RedisError as exc:
            raise CacheError(f"Redis DELETE failed for key={key!r} on {self.address}: {exc}") from exc
