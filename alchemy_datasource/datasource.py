"""
SQLAlchemy Data Source

Purpose
-------
Per-entity façade combining the cache-aside read path with the mutation
coordinator. One instance serves one mapped class; `initialize()` binds it
to a request context and a key-value cache, after which reads are batched
and cached and every write re-primes or evicts the affected entries.

Responsibilities
----------------
- Validate the entity once at construction (mapped class, single primary key)
- Guard every data method behind the READY state
- Query helpers (`find_many_by_query`, `find_many_where`) that prime results
- Writes (`create_one`, `update_one`, `update_one_partial`, `delete_one`)
  that keep loader memo and cache consistent with the store

Write consistency
-----------------
- create / update: persist, re-read the canonical row, prime it
- delete (soft or hard): remove, then evict from loader and cache
- neither update writes the primary key or the soft-delete column
- a soft-deleted row stays deleted; updates to it raise RecordNotFoundError

Usage Example
-------------
>>> users = SQLAlchemyDataSource(User)
>>> users.initialize(context=request, cache=RedisCache.from_url())
>>> user = await users.create_one({"email": "a@x.com"}, ttl=60)
>>> same = await users.find_one_by_id(user.id)
"""

from __future__ import annotations

from enum import Enum
from typing import (
    Any,
    Callable,
    Generic,
    List,
    Mapping,
    Optional,
    Sequence,
    Set,
    Type,
    TypeVar,
    Union,
)

from alchemy_datasource.caching import CachingMethods, DataSourceOptions, create_caching_methods
from alchemy_datasource.core.cache.adapter import InMemoryLRUCache, KeyValueCache
from alchemy_datasource.core.cache.metrics import CacheMetrics
from alchemy_datasource.core.exceptions import (
    ConfigurationError,
    DataSourceNotInitializedError,
    MissingKeyError,
    RecordNotFoundError,
)
from alchemy_datasource.core.logging.logger import LogContext, get_logger
from alchemy_datasource.loader import ID, BatchLoader
from alchemy_datasource.repository import EntityDescriptor, Repository

T = TypeVar("T")
C = TypeVar("C")

QueryFn = Callable[[Any], Any]


class DataSourceState(str, Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"


class SQLAlchemyDataSource(Generic[T, C]):
    """
    Cached, batched access to one SQLAlchemy entity.

    Type Parameters:
        T: The mapped entity class
        C: The request context type passed to `initialize()`
    """

    def __init__(self, model_class: Type[T], options: Optional[DataSourceOptions] = None) -> None:
        """
        Args:
            model_class: SQLAlchemy mapped class with a single primary key
            options: Per-instance overrides

        Raises:
            ConfigurationError: If `model_class` is not mapped or has a
                composite primary key
        """
        self.options = options or DataSourceOptions()
        self.log = self.options.logger or get_logger(__name__)

        self._repository: Repository[T] = Repository(
            model_class,
            session_factory=self.options.session_factory,
            logger=self.options.logger,
        )
        self._descriptor = self._repository.describe()
        self._state = DataSourceState.UNINITIALIZED
        self._context: Optional[C] = None
        self._methods: Optional[CachingMethods[T]] = None

        self.log.info(
            "SQLAlchemyDataSource started",
            extra={"entity": self._descriptor.entity},
        )

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def initialize(self, context: Optional[C] = None, cache: Optional[KeyValueCache] = None) -> None:
        """
        Bind the data source to a context and cache and make it READY.

        Calling it again (e.g. once per request) starts a fresh loader memo.
        """
        self._context = context
        self._methods = create_caching_methods(
            self._repository,
            cache if cache is not None else InMemoryLRUCache(),
            self.options,
        )
        self._state = DataSourceState.READY

        self.log.debug(
            "SQLAlchemyDataSource initialized",
            extra={
                "entity": self._descriptor.entity,
                "cache": type(self._methods.cache).__name__,
            },
        )

    def _ready(self) -> CachingMethods[T]:
        if self._state is not DataSourceState.READY or self._methods is None:
            raise DataSourceNotInitializedError(self._descriptor.entity)
        return self._methods

    @property
    def state(self) -> DataSourceState:
        return self._state

    @property
    def is_initialized(self) -> bool:
        return self._state is DataSourceState.READY

    @property
    def context(self) -> Optional[C]:
        return self._context

    @property
    def repository(self) -> Repository[T]:
        return self._repository

    @property
    def descriptor(self) -> EntityDescriptor:
        return self._descriptor

    @property
    def loader(self) -> BatchLoader[ID, T]:
        return self._ready().loader

    @property
    def cache(self) -> KeyValueCache:
        return self._ready().cache

    @property
    def cache_prefix(self) -> str:
        return self._ready().cache_prefix

    @property
    def metrics(self) -> CacheMetrics:
        return self._ready().metrics

    # =========================================================================
    # CACHED READS
    # =========================================================================

    async def find_one_by_id(self, id_value: ID, ttl: Optional[int] = None) -> T:
        return await self._ready().find_one_by_id(id_value, ttl)

    async def find_many_by_ids(
        self,
        ids: Sequence[ID],
        ttl: Optional[int] = None,
    ) -> List[Union[T, RecordNotFoundError]]:
        return await self._ready().find_many_by_ids(ids, ttl)

    async def delete_from_cache_by_id(self, id_value: ID) -> None:
        await self._ready().delete_from_cache_by_id(id_value)

    async def prime_loader(self, records: Union[T, Sequence[T]], ttl: Optional[int] = None) -> None:
        await self._ready().prime_loader(records, ttl)

    # =========================================================================
    # QUERIES
    # =========================================================================

    async def find_many_by_query(
        self,
        query_fn: QueryFn,
        ttl: Optional[int] = None,
        with_deleted: bool = False,
    ) -> List[T]:
        """
        Run an ad hoc query and prime its results.

        `query_fn` receives a `Select` of the entity (soft-deleted rows
        filtered out unless `with_deleted`) and returns the refined `Select`.
        """
        methods = self._ready()
        stmt = query_fn(self._repository.query(with_deleted=with_deleted))
        records = await self._repository.execute(stmt)
        await methods.prime_loader(records, ttl)

        self.log.info(
            f"find_many_by_query complete. rows: {len(records)}",
            extra={"entity": self._descriptor.entity, "row_count": len(records)},
        )
        return records

    async def find_many_where(
        self,
        *conditions: Any,
        ttl: Optional[int] = None,
        order_by: Optional[Any] = None,
        with_deleted: bool = False,
        limit: Optional[int] = None,
        **filters: Any,
    ) -> List[T]:
        """
        Find records by SQLAlchemy conditions and equality filters, then prime
        them.

        Example:
            >>> await users.find_many_where(User.email != "a@x.com", order_by="name")
            >>> await users.find_many_where(email="a@x.com", ttl=5)
        """
        methods = self._ready()
        records = await self._repository.find_many_where(
            *conditions,
            order_by=order_by,
            with_deleted=with_deleted,
            limit=limit,
            **filters,
        )
        await methods.prime_loader(records, ttl)
        return records

    # =========================================================================
    # MUTATIONS
    # =========================================================================

    async def create_one(self, data: Union[Mapping[str, Any], T], ttl: Optional[int] = None) -> T:
        """
        Persist a new record and prime it.

        Input that already carries a primary-key value is treated as an
        update of that row.
        """
        methods = self._ready()
        pk = self._descriptor.primary_key

        if isinstance(data, Mapping):
            if data.get(pk) is not None:
                return await self.update_one(self._repository.from_fields(data), ttl)
            instance = self._repository.create(data)
        else:
            if self._descriptor.key_of(data) is not None:
                return await self.update_one(data, ttl)
            instance = data

        async with LogContext(entity=self._descriptor.entity, operation="create_one"):
            saved = await self._repository.save(instance)
            await methods.prime_loader(saved, ttl)
            self.log.debug(
                "Record created",
                extra={"id": str(self._descriptor.key_of(saved))},
            )
        return saved

    async def update_one(self, record: T, ttl: Optional[int] = None) -> T:
        """
        Write `record`'s loaded column values to its row and prime the
        re-read result.

        The primary key, the soft-delete column and columns maintained by the
        ORM on update are never taken from `record`.

        Raises:
            MissingKeyError: If `record` has no primary-key value
            RecordNotFoundError: If no live row has the record's id
        """
        methods = self._ready()
        id_value = self._descriptor.key_of(record)
        if id_value is None:
            raise MissingKeyError(self._descriptor.entity, self._descriptor.primary_key)

        protected = self._protected_fields() | set(self._repository.onupdate_column_names)
        values = {
            k: v for k, v in self._repository.to_fields(record).items() if k not in protected
        }
        return await self._write_and_prime(methods, id_value, values, ttl, "update_one")

    async def update_one_partial(self, id_value: ID, data: Mapping[str, Any]) -> T:
        """
        Apply a partial update to the row `id_value` and prime the result.

        Primary-key and soft-delete values in `data` are dropped; ids are
        immutable and deletion goes through `delete_one`.

        Raises:
            RecordNotFoundError: If no live row has this id
        """
        methods = self._ready()
        protected = self._protected_fields()
        values = {k: v for k, v in data.items() if k not in protected}

        self.log.debug(
            f"Updating record {id_value}",
            extra={
                "entity": self._descriptor.entity,
                "id": str(id_value),
                "fields": sorted(values.keys()),
            },
        )
        return await self._write_and_prime(methods, id_value, values, None, "update_one_partial")

    def _protected_fields(self) -> Set[str]:
        protected = {self._descriptor.primary_key}
        if self._descriptor.soft_delete is not None:
            protected.add(self._descriptor.soft_delete)
        return protected

    async def _write_and_prime(
        self,
        methods: CachingMethods[T],
        id_value: ID,
        values: Mapping[str, Any],
        ttl: Optional[int],
        operation: str,
    ) -> T:
        async with LogContext(entity=self._descriptor.entity, operation=operation):
            if values and await self._repository.update(id_value, values) == 0:
                raise RecordNotFoundError(self._descriptor.entity, id_value)

            updated = await self._repository.get(id_value)
            if updated is None:
                raise RecordNotFoundError(self._descriptor.entity, id_value)

            await methods.prime_loader(updated, ttl)
        return updated

    async def delete_one(self, id_value: ID, hard: bool = False) -> T:
        """
        Delete a record and evict it from loader and cache.

        Soft delete (the default) populates the soft-delete column; `hard`
        removes the row.

        Raises:
            ConfigurationError: Soft delete on an entity without a soft-delete column
            RecordNotFoundError: If no live record has this id
        """
        methods = self._ready()
        if not hard and self._descriptor.soft_delete is None:
            raise ConfigurationError(
                self._repository.name,
                "soft delete requires a soft-delete column; pass hard=True",
            )

        self.log.info(
            f"Deleting id: {id_value!r}",
            extra={"entity": self._descriptor.entity, "hard": hard},
        )

        async with LogContext(entity=self._descriptor.entity, operation="delete_one"):
            record = await self._repository.get(id_value)
            if record is None:
                raise RecordNotFoundError(self._descriptor.entity, id_value)

            if hard:
                result = await self._repository.remove(record)
            else:
                result = await self._repository.soft_remove(record)

            await methods.delete_from_cache_by_id(id_value)
        return result
