"""
Unit tests for RedisCache.

The redis client is mocked; tests verify the commands issued and the
error translation to CacheError.
"""

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from alchemy_datasource.core.cache.redis_cache import RedisCache
from alchemy_datasource.core.exceptions import CacheError


@pytest.mark.unit
@pytest.mark.asyncio
class TestRedisCache:
    async def test_set_with_ttl_uses_expiry(self, mock_redis_client):
        cache = RedisCache(mock_redis_client)

        await cache.set("users:1", "{}", ttl=60)

        mock_redis_client.set.assert_awaited_once_with("users:1", "{}", ex=60)

    async def test_set_without_ttl_keeps_ttl(self, mock_redis_client):
        cache = RedisCache(mock_redis_client)

        await cache.set("users:1", "{}")

        mock_redis_client.set.assert_awaited_once_with("users:1", "{}", keepttl=True)

    async def test_set_with_zero_ttl_has_no_expiry(self, mock_redis_client):
        cache = RedisCache(mock_redis_client)

        await cache.set("users:1", "{}", ttl=0)

        mock_redis_client.set.assert_awaited_once_with("users:1", "{}")

    async def test_get_decodes_bytes(self, mock_redis_client):
        mock_redis_client.get.return_value = b'{"id": 1}'
        cache = RedisCache(mock_redis_client)

        assert await cache.get("users:1") == '{"id": 1}'

    async def test_get_miss_returns_none(self, mock_redis_client):
        cache = RedisCache(mock_redis_client)

        assert await cache.get("users:404") is None

    async def test_delete(self, mock_redis_client):
        cache = RedisCache(mock_redis_client)

        await cache.delete("users:1")

        mock_redis_client.delete.assert_awaited_once_with("users:1")

    async def test_redis_errors_become_cache_errors(self, mock_redis_client):
        mock_redis_client.get.side_effect = RedisConnectionError("connection refused")
        cache = RedisCache(mock_redis_client)

        with pytest.raises(CacheError) as exc_info:
            await cache.get("users:1")

        assert exc_info.value.operation == "GET"
        assert exc_info.value.cache_key == "users:1"
        assert isinstance(exc_info.value.original_error, RedisConnectionError)
        assert exc_info.value.is_retryable is True

    async def test_close_releases_client(self, mock_redis_client):
        cache = RedisCache(mock_redis_client)

        await cache.close()

        mock_redis_client.aclose.assert_awaited_once()

    async def test_from_url_applies_config_defaults(self, mocker):
        from_url = mocker.patch(
            "alchemy_datasource.core.cache.redis_cache.AsyncRedis.from_url",
            return_value=mocker.MagicMock(),
        )

        cache = RedisCache.from_url("redis://cache:6379/1")

        _, kwargs = from_url.call_args
        assert from_url.call_args.args == ("redis://cache:6379/1",)
        assert kwargs["decode_responses"] is True
        assert "socket_timeout" in kwargs
        assert "max_connections" in kwargs
        assert cache.client is from_url.return_value
