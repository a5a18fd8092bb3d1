"""
Cache-Aside Read Path

Purpose
-------
Serve point lookups for one entity from the external key-value cache when
possible, fall back to the batch loader (and through it the record store)
on a miss, and keep loader memo and cache entries in step when callers
prime or invalidate records.

Responsibilities
----------------
- `find_one_by_id` / `find_many_by_ids`: cache → loader → store
- `prime_loader`: seed loader memo and (conditionally) cache with records
  fetched elsewhere, never with soft-deleted ones
- `delete_from_cache_by_id`: evict from both layers
- Count hits, misses, writes, invalidations and adapter errors

Architecture Notes
------------------
**Cache keys**: `"{namespace}:{tablename}:" + stringify_id(id)`. Entities
sharing one adapter never collide.

**TTL**: a positive integer TTL writes the entry with that expiry. Without
one (`None`, 0 or negative) `find_one_by_id` writes nothing back and
`prime_loader` only refreshes an entry that already exists, keeping its
current expiry.

**Outage policy**: with `fail_open` (default `Config.CACHE_FAIL_OPEN`)
adapter failures on `get`/`set` are logged and counted and the call goes on
without the cache. Failures on `delete` always propagate; a lost
invalidation would leave a stale entry behind.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Generic, List, Optional, Sequence, TypeVar, Union

from alchemy_datasource.core.cache import codec
from alchemy_datasource.core.cache.adapter import KeyValueCache
from alchemy_datasource.core.cache.metrics import CacheMetrics
from alchemy_datasource.core.config.config import Config
from alchemy_datasource.core.exceptions import (
    RecordNotFoundError,
    get_error_severity,
    is_transient_error,
)
from alchemy_datasource.core.logging.logger import get_logger
from alchemy_datasource.loader import ID, BatchLoader, order_records, stringify_id
from alchemy_datasource.repository import Repository

T = TypeVar("T")


@dataclass
class DataSourceOptions:
    """
    Per-instance overrides for a data source.

    Attributes:
        logger: Logger used instead of the module logger
        session_factory: `async_sessionmaker` used instead of DatabaseService's
        cache_namespace: Cache key namespace (default `Config.CACHE_NAMESPACE`)
        max_batch_size: Loader batch limit (default `Config.LOADER_MAX_BATCH_SIZE`)
        fail_open: Cache outage policy (default `Config.CACHE_FAIL_OPEN`)
    """

    logger: Optional[logging.Logger] = None
    session_factory: Optional[Any] = None
    cache_namespace: Optional[str] = None
    max_batch_size: Optional[int] = None
    fail_open: Optional[bool] = None


def _has_ttl(ttl: Any) -> bool:
    return isinstance(ttl, int) and not isinstance(ttl, bool) and ttl > 0


class CachingMethods(Generic[T]):
    """Cache-aside lookups, priming and invalidation for one entity."""

    def __init__(
        self,
        repository: Repository[T],
        cache: KeyValueCache,
        options: Optional[DataSourceOptions] = None,
    ) -> None:
        options = options or DataSourceOptions()

        self.repository = repository
        self.descriptor = repository.describe()
        self.cache = cache
        self.metrics = CacheMetrics()
        self.log = options.logger or get_logger(__name__)
        self.fail_open = Config.CACHE_FAIL_OPEN if options.fail_open is None else options.fail_open

        namespace = options.cache_namespace or Config.CACHE_NAMESPACE
        self.cache_prefix = f"{namespace}:{self.descriptor.entity}:"

        self.loader: BatchLoader[ID, T] = BatchLoader(
            self._batch_load,
            max_batch_size=options.max_batch_size,
            name=self.descriptor.entity,
            logger=self.log,
        )

    def cache_key(self, id_value: ID) -> str:
        return f"{self.cache_prefix}{stringify_id(id_value)}"

    async def _batch_load(self, ids: List[ID]) -> List[Union[T, RecordNotFoundError]]:
        records = await self.repository.get_many(ids)
        self.log.debug(
            f"Loader response for {self.descriptor.entity}",
            extra={
                "entity": self.descriptor.entity,
                "requested_count": len(ids),
                "found_count": len(records),
            },
        )
        return order_records(
            ids,
            records,
            key_attr=self.descriptor.primary_key,
            entity=self.descriptor.entity,
        )

    # =========================================================================
    # ADAPTER ACCESS
    # =========================================================================

    async def _cache_get(self, key: str) -> Optional[str]:
        start = time.perf_counter()
        try:
            return await self.cache.get(key)
        except Exception as exc:
            if not self.fail_open:
                raise
            self._record_cache_failure("get", key, exc)
            return None
        finally:
            self.metrics.record_get_time((time.perf_counter() - start) * 1000)

    async def _cache_set(self, key: str, value: str, ttl: Optional[int]) -> None:
        start = time.perf_counter()
        try:
            await self.cache.set(key, value, ttl)
        except Exception as exc:
            if not self.fail_open:
                raise
            self._record_cache_failure("set", key, exc)
            return
        finally:
            self.metrics.record_set_time((time.perf_counter() - start) * 1000)
        self.metrics.record_set()

    def _record_cache_failure(self, operation: str, key: str, exc: Exception) -> None:
        self.metrics.record_error()
        self.log.warning(
            f"Cache {operation} failed, continuing without cache",
            extra={
                "entity": self.descriptor.entity,
                "operation": operation,
                "cache_key": key,
                "error": str(exc),
                "error_type": type(exc).__name__,
                "severity": get_error_severity(exc).value,
                "retryable": is_transient_error(exc),
            },
        )

    # =========================================================================
    # READS
    # =========================================================================

    async def find_one_by_id(self, id_value: ID, ttl: Optional[int] = None) -> T:
        """
        Look up one record by primary key.

        A cache hit is decoded and returned without touching the loader. On
        a miss the loader fetches the record; with a positive `ttl` it is
        then written back to the cache.

        Raises:
            RecordNotFoundError: If no live record has this id
        """
        key = self.cache_key(id_value)
        self.log.debug(
            f"Running query for ID {id_value}",
            extra={"entity": self.descriptor.entity, "id": stringify_id(id_value)},
        )

        cached = await self._cache_get(key)
        if cached is not None:
            self.metrics.record_hit()
            return self.repository.from_fields(codec.loads(cached))

        self.metrics.record_miss()
        record = await self.loader.load(id_value)

        if _has_ttl(ttl):
            await self._cache_set(key, codec.dumps(self.repository.to_fields(record)), ttl)
        return record

    async def find_many_by_ids(
        self,
        ids: Sequence[ID],
        ttl: Optional[int] = None,
    ) -> List[Union[T, RecordNotFoundError]]:
        """
        Look up many records concurrently.

        Returns:
            One entry per id in input order; a `RecordNotFoundError` value
            stands in for each id with no live record. Other errors raise.
        """
        results = await asyncio.gather(
            *(self.find_one_by_id(id_value, ttl) for id_value in ids),
            return_exceptions=True,
        )

        ordered: List[Union[T, RecordNotFoundError]] = []
        for result in results:
            if isinstance(result, BaseException) and not isinstance(result, RecordNotFoundError):
                raise result
            ordered.append(result)
        return ordered

    # =========================================================================
    # CONSISTENCY
    # =========================================================================

    async def delete_from_cache_by_id(self, id_value: ID) -> None:
        """Evict `id_value` from the loader memo and the external cache."""
        self.loader.clear(id_value)
        await self.cache.delete(self.cache_key(id_value))
        self.metrics.record_invalidation()

    async def prime_loader(self, records: Union[T, Sequence[T]], ttl: Optional[int] = None) -> None:
        """
        Seed the loader, and maybe the cache, with records loaded elsewhere.

        Soft-deleted records are skipped entirely. The cache is written when
        a positive `ttl` is given or an entry for the record already exists.
        """
        items = records if isinstance(records, (list, tuple)) else [records]

        for record in items:
            if self.descriptor.is_soft_deleted(record):
                self.metrics.record_skipped_soft_deleted()
                continue

            id_value = self.descriptor.key_of(record)
            self.loader.prime(id_value, record)

            key = self.cache_key(id_value)
            if _has_ttl(ttl):
                await self._cache_set(key, codec.dumps(self.repository.to_fields(record)), ttl)
            elif await self._cache_get(key) is not None:
                await self._cache_set(key, codec.dumps(self.repository.to_fields(record)), None)


def create_caching_methods(
    repository: Repository[T],
    cache: KeyValueCache,
    options: Optional[DataSourceOptions] = None,
) -> CachingMethods[T]:
    return CachingMethods(repository, cache, options)
