"""
Core infrastructure layer for alchemy-datasource.

Purpose
-------
Provide a single import surface for the infrastructure subsystems the data
source is built on:

- Configuration (Config, Environment)
- Database subsystem (DatabaseService, declarative base and mixins)
- Cache adapters (KeyValueCache, InMemoryLRUCache, RedisCache, CacheMetrics)
- Logging (structured logging, logger factory, log context)
- Exceptions (DataSourceException hierarchy)

Design Decisions
----------------
- This module is intentionally thin: no logic, no configuration, no I/O.
- Public API is explicit via __all__.
"""

from __future__ import annotations

from alchemy_datasource.core.cache import (
    CacheMetrics,
    InMemoryLRUCache,
    KeyValueCache,
    RedisCache,
)
from alchemy_datasource.core.config import Config, Environment
from alchemy_datasource.core.database import (
    Base,
    DatabaseService,
    IdMixin,
    SoftDeleteMixin,
    TimestampMixin,
)
from alchemy_datasource.core.exceptions import (
    CacheError,
    ConfigurationError,
    DataSourceException,
    DataSourceNotInitializedError,
    ErrorSeverity,
    LoaderContractError,
    MissingKeyError,
    RecordNotFoundError,
)
from alchemy_datasource.core.logging import LogContext, get_logger, setup_logging

__all__ = [
    # Configuration
    "Config",
    "Environment",
    # Database
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
    # Logging
    "setup_logging",
    "get_logger",
    "LogContext",
    # Exceptions
    "DataSourceException",
    "ConfigurationError",
    "DataSourceNotInitializedError",
    "RecordNotFoundError",
    "MissingKeyError",
    "LoaderContractError",
    "CacheError",
    "ErrorSeverity",
]
