"""
RedisCache: redis-py asyncio adapter for the external cache contract.

Purpose
-------
Back one or more data sources with a shared Redis instance. Keys are
already namespaced per entity by the read path, so a single client can
serve every entity type.

Behaviour
---------
- `set` with a positive ttl issues `SET key value EX ttl`.
- `set` without a ttl issues `SET key value KEEPTTL` so that refreshing an
  already-cached record keeps the expiry it was originally written with.
- Every redis-py failure is logged and re-raised as `CacheError`; the read
  path decides whether to fail open.

Configuration Keys
------------------
- Config.REDIS_URL
- Config.REDIS_SOCKET_TIMEOUT
- Config.REDIS_MAX_CONNECTIONS
"""

from __future__ import annotations

import time
from typing import Any, Awaitable, Callable, Optional

from redis.asyncio.client import Redis as AsyncRedis
from redis.exceptions import RedisError

from alchemy_datasource.core.config.config import Config
from alchemy_datasource.core.exceptions import CacheError
from alchemy_datasource.core.logging.logger import get_logger

logger = get_logger(__name__)


class RedisCache:
    """Async Redis implementation of `KeyValueCache`."""

    def __init__(self, client: AsyncRedis) -> None:
        self._client = client

    @classmethod
    def from_url(cls, url: Optional[str] = None, **client_kwargs: Any) -> "RedisCache":
        """
        Build an adapter with its own connection pool.

        Parameters
        ----------
        url:
            Redis URL; defaults to `Config.REDIS_URL`.
        client_kwargs:
            Extra keyword arguments for `redis.asyncio.Redis.from_url`.
        """
        url = url or Config.REDIS_URL
        client_kwargs.setdefault("socket_timeout", Config.REDIS_SOCKET_TIMEOUT)
        client_kwargs.setdefault("max_connections", Config.REDIS_MAX_CONNECTIONS)
        client_kwargs.setdefault("decode_responses", True)

        client = AsyncRedis.from_url(url, **client_kwargs)

        logger.info(
            "RedisCache created",
            extra={
                "url_scheme": url.split("://")[0] if "://" in url else "unknown",
                "socket_timeout_seconds": client_kwargs["socket_timeout"],
                "max_connections": client_kwargs["max_connections"],
            },
        )
        return cls(client)

    @property
    def client(self) -> AsyncRedis:
        return self._client

    async def _execute(
        self,
        operation_name: str,
        key: str,
        operation: Callable[[], Awaitable[Any]],
        **log_fields: Any,
    ) -> Any:
        start_time = time.monotonic()
        try:
            result = await operation()
        except RedisError as exc:
            latency_ms = (time.monotonic() - start_time) * 1000
            logger.error(
                f"Redis {operation_name} operation failed",
                extra={
                    "key": key,
                    "latency_ms": round(latency_ms, 2),
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                    **log_fields,
                },
            )
            raise CacheError(operation_name, key, exc) from exc

        latency_ms = (time.monotonic() - start_time) * 1000
        logger.debug(
            f"Redis {operation_name} operation",
            extra={"key": key, "latency_ms": round(latency_ms, 2), **log_fields},
        )
        return result

    async def get(self, key: str) -> Optional[str]:
        value = await self._execute("GET", key, lambda: self._client.get(key))
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        if ttl is not None and ttl > 0:
            operation = lambda: self._client.set(key, value, ex=ttl)  # noqa: E731
        elif ttl is None:
            operation = lambda: self._client.set(key, value, keepttl=True)  # noqa: E731
        else:
            operation = lambda: self._client.set(key, value)  # noqa: E731

        await self._execute("SET", key, operation, ttl_seconds=ttl)

    async def delete(self, key: str) -> None:
        await self._execute("DELETE", key, lambda: self._client.delete(key))

    async def close(self) -> None:
        """Release the underlying connection pool."""
        await self._client.aclose()
        logger.info("RedisCache closed")
