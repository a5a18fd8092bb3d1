"""
Cache subsystem.

- **adapter.py**: `KeyValueCache` contract and the `InMemoryLRUCache` default
- **redis_cache.py**: `RedisCache`, the redis-py asyncio adapter
- **codec.py**: lossless record serialization for cache entries
- **metrics.py**: per-entity hit/miss/latency counters
"""

from alchemy_datasource.core.cache import codec
from alchemy_datasource.core.cache.adapter import InMemoryLRUCache, KeyValueCache
from alchemy_datasource.core.cache.metrics import CacheMetrics
from alchemy_datasource.core.cache.redis_cache import RedisCache

__all__ = [
    "KeyValueCache",
    "InMemoryLRUCache",
    "RedisCache",
    "CacheMetrics",
    "codec",
]
