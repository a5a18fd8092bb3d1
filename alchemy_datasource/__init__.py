"""
alchemy-datasource: cached, batched per-entity data sources for SQLAlchemy.

Point lookups issued in the same event-loop iteration collapse into one
multi-get, records are cached across requests in a key-value cache, and
writes keep both layers consistent with the store.

>>> users = SQLAlchemyDataSource(User)
>>> users.initialize(cache=RedisCache.from_url())
>>> await users.find_many_by_ids([1, 2, 3], ttl=60)
"""

from __future__ import annotations

from alchemy_datasource.caching import CachingMethods, DataSourceOptions, create_caching_methods
from alchemy_datasource.core import (
    Base,
    CacheError,
    CacheMetrics,
    Config,
    ConfigurationError,
    DatabaseService,
    DataSourceException,
    DataSourceNotInitializedError,
    IdMixin,
    InMemoryLRUCache,
    KeyValueCache,
    LoaderContractError,
    MissingKeyError,
    RecordNotFoundError,
    RedisCache,
    SoftDeleteMixin,
    TimestampMixin,
)
from alchemy_datasource.datasource import DataSourceState, SQLAlchemyDataSource
from alchemy_datasource.loader import ID, BatchLoader, order_records, stringify_id
from alchemy_datasource.repository import EntityDescriptor, Repository

__version__ = "0.1.0"

__all__ = [
    # Data source
    "SQLAlchemyDataSource",
    "DataSourceState",
    "DataSourceOptions",
    "CachingMethods",
    "create_caching_methods",
    # Loader
    "BatchLoader",
    "order_records",
    "stringify_id",
    "ID",
    # Store
    "Repository",
    "EntityDescriptor",
    "DatabaseService",
    "Base",
    "IdMixin",
    "TimestampMixin",
    "SoftDeleteMixin",
    # Cache
    "KeyValueCache",
    "InMemoryLRUCache",
    "RedisCache",
    "CacheMetrics",
    "Config",
    # Exceptions
    "DataSourceException",
    "ConfigurationError",
    "DataSourceNotInitializedError",
    "RecordNotFoundError",
    "MissingKeyError",
    "LoaderContractError",
    "CacheError",
]
