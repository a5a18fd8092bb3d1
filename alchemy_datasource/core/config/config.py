"""
Static configuration management for alchemy-datasource.

Purpose
-------
Provides centralized static configuration loaded from environment variables
with sensible defaults, type validation, and bounds checking. Values are read
once at import time; `reload_safe_configs()` re-reads the settings that are
safe to change at runtime.

Responsibilities
----------------
- Load configuration from environment variables with .env support
- Provide type-safe access to all static configuration values
- Validate settings and fall back to defaults on bad input
- Track which values came from the environment versus defaults

Non-Responsibilities
--------------------
- Per-data-source overrides (handled by `DataSourceOptions`)
- Secrets management (use environment variables)

Environment Variables
---------------------
- ENVIRONMENT: development | testing | staging | production
- LOG_LEVEL / LOG_JSON: logging behaviour
- DATABASE_URL: SQLAlchemy async URL (default: in-memory SQLite)
- DATABASE_ECHO / DATABASE_POOL_SIZE / DATABASE_MAX_OVERFLOW / DATABASE_POOL_RECYCLE
- REDIS_URL / REDIS_SOCKET_TIMEOUT / REDIS_MAX_CONNECTIONS
- CACHE_NAMESPACE: prefix of every cache key (default: "sqlalchemy")
- CACHE_MAX_SIZE: capacity of the in-process LRU cache (default: 10000)
- CACHE_FAIL_OPEN: serve from the store when the cache is down (default: true)
- LOADER_MAX_BATCH_SIZE: max ids per batched fetch, 0 for unlimited
"""

import logging
import os
from enum import Enum
from typing import Any, Dict, Optional

from dotenv import load_dotenv

load_dotenv()


class Environment(Enum):
    """Deployment environment types."""

    DEVELOPMENT = "development"
    TESTING = "testing"
    STAGING = "staging"
    PRODUCTION = "production"

    @classmethod
    def from_string(cls, value: str) -> "Environment":
        """
        Parse environment string safely with fallback.

        Example
        -------
        >>> Environment.from_string("production") == Environment.PRODUCTION
        True
        >>> Environment.from_string("invalid") == Environment.DEVELOPMENT
        True
        """
        try:
            return cls(value.lower())
        except ValueError:
            logging.warning(
                f"Unknown environment '{value}', defaulting to development"
            )
            return cls.DEVELOPMENT


class _ConfigLoadMetrics:
    """Tracks which configuration values came from environment variables."""

    def __init__(self) -> None:
        self.env_vars_loaded: Dict[str, bool] = {}
        self.validation_errors: Dict[str, str] = {}
        self.defaults_used: Dict[str, Any] = {}

    def record_env_load(self, key: str, from_env: bool, default: Any) -> None:
        self.env_vars_loaded[key] = from_env
        if not from_env:
            self.defaults_used[key] = default

    def record_validation_error(self, key: str, error: str) -> None:
        self.validation_errors[key] = error

    def get_summary(self) -> Dict[str, Any]:
        return {
            "total_configs": len(self.env_vars_loaded),
            "from_environment": sum(1 for v in self.env_vars_loaded.values() if v),
            "from_defaults": sum(1 for v in self.env_vars_loaded.values() if not v),
            "validation_errors": len(self.validation_errors),
            "defaults_used": list(self.defaults_used.keys()),
        }


class Config:
    """
    Centralized static configuration.

    Usage
    -----
    >>> Config.CACHE_NAMESPACE
    'sqlalchemy'
    >>> if Config.is_production():
    ...     logger.info("Running in production mode")
    """

    _metrics: Optional[_ConfigLoadMetrics] = None
    _validated: bool = False

    # Environment
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    LOG_JSON: Optional[bool] = None

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///:memory:"
    DATABASE_ECHO: bool = False
    DATABASE_POOL_SIZE: int = 5
    DATABASE_MAX_OVERFLOW: int = 10
    DATABASE_POOL_RECYCLE: int = 1800

    # Redis
    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_SOCKET_TIMEOUT: int = 5
    REDIS_MAX_CONNECTIONS: int = 50

    # Cache / loader
    CACHE_NAMESPACE: str = "sqlalchemy"
    CACHE_MAX_SIZE: int = 10_000
    CACHE_FAIL_OPEN: bool = True
    LOADER_MAX_BATCH_SIZE: int = 0

    @classmethod
    def _init_metrics(cls) -> None:
        if cls._metrics is None:
            cls._metrics = _ConfigLoadMetrics()

    @classmethod
    def _safe_int(
        cls,
        key: str,
        default: int,
        min_val: Optional[int] = None,
        max_val: Optional[int] = None,
    ) -> int:
        """
        Safely parse integer from environment with validation.

        Example
        -------
        >>> Config._safe_int("CACHE_MAX_SIZE", 10_000, min_val=1)
        10000
        """
        cls._init_metrics()
        assert cls._metrics is not None

        raw_value = os.getenv(key)
        if raw_value is None:
            cls._metrics.record_env_load(key, False, default)
            return default

        try:
            value = int(raw_value)
        except ValueError:
            error = f"{key}='{raw_value}' is not a valid integer, using default {default}"
            logging.warning(error)
            cls._metrics.record_validation_error(key, error)
            return default

        if min_val is not None and value < min_val:
            error = f"{key}={value} is below minimum {min_val}, using default {default}"
            logging.warning(error)
            cls._metrics.record_validation_error(key, error)
            return default

        if max_val is not None and value > max_val:
            error = f"{key}={value} exceeds maximum {max_val}, using default {default}"
            logging.warning(error)
            cls._metrics.record_validation_error(key, error)
            return default

        cls._metrics.record_env_load(key, True, default)
        return value

    @classmethod
    def _safe_bool(cls, key: str, default: bool) -> bool:
        """
        Safely parse boolean from environment.

        Recognizes: true/false, yes/no, 1/0, on/off (case-insensitive).
        """
        cls._init_metrics()
        assert cls._metrics is not None

        raw_value = os.getenv(key)
        if raw_value is None:
            cls._metrics.record_env_load(key, False, default)
            return default

        normalized = raw_value.strip().lower()
        if normalized in ("true", "yes", "1", "on"):
            cls._metrics.record_env_load(key, True, default)
            return True
        if normalized in ("false", "no", "0", "off"):
            cls._metrics.record_env_load(key, True, default)
            return False

        error = f"{key}='{raw_value}' is not a valid boolean, using default {default}"
        logging.warning(error)
        cls._metrics.record_validation_error(key, error)
        return default

    @classmethod
    def _safe_optional_bool(cls, key: str) -> Optional[bool]:
        if os.getenv(key) is None:
            return None
        return cls._safe_bool(key, False)

    @classmethod
    def _safe_str(cls, key: str, default: str) -> str:
        cls._init_metrics()
        assert cls._metrics is not None

        raw_value = os.getenv(key)
        if raw_value is None or not raw_value.strip():
            cls._metrics.record_env_load(key, False, default)
            return default

        cls._metrics.record_env_load(key, True, default)
        return raw_value.strip()

    @classmethod
    def load(cls) -> None:
        """Read every setting from the environment."""
        cls._metrics = _ConfigLoadMetrics()

        cls.ENVIRONMENT = Environment.from_string(
            cls._safe_str("ENVIRONMENT", "development")
        ).value
        cls.LOG_LEVEL = cls._safe_str("LOG_LEVEL", "INFO")
        cls.LOG_JSON = cls._safe_optional_bool("LOG_JSON")

        cls.DATABASE_URL = cls._safe_str("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
        cls.DATABASE_ECHO = cls._safe_bool("DATABASE_ECHO", False)
        cls.DATABASE_POOL_SIZE = cls._safe_int("DATABASE_POOL_SIZE", 5, min_val=1, max_val=200)
        cls.DATABASE_MAX_OVERFLOW = cls._safe_int("DATABASE_MAX_OVERFLOW", 10, min_val=0)
        cls.DATABASE_POOL_RECYCLE = cls._safe_int("DATABASE_POOL_RECYCLE", 1800, min_val=-1)

        cls.REDIS_URL = cls._safe_str("REDIS_URL", "redis://localhost:6379/0")
        cls.REDIS_SOCKET_TIMEOUT = cls._safe_int("REDIS_SOCKET_TIMEOUT", 5, min_val=1)
        cls.REDIS_MAX_CONNECTIONS = cls._safe_int("REDIS_MAX_CONNECTIONS", 50, min_val=1)

        cls.CACHE_NAMESPACE = cls._safe_str("CACHE_NAMESPACE", "sqlalchemy")
        cls.CACHE_MAX_SIZE = cls._safe_int("CACHE_MAX_SIZE", 10_000, min_val=1)
        cls.CACHE_FAIL_OPEN = cls._safe_bool("CACHE_FAIL_OPEN", True)
        cls.LOADER_MAX_BATCH_SIZE = cls._safe_int("LOADER_MAX_BATCH_SIZE", 0, min_val=0)

    @classmethod
    def validate(cls) -> None:
        """Load and sanity-check the configuration. Idempotent."""
        logger = logging.getLogger(__name__)

        cls.load()

        valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if cls.LOG_LEVEL.upper() not in valid_log_levels:
            logger.warning(f"Invalid LOG_LEVEL '{cls.LOG_LEVEL}', using INFO")
            cls.LOG_LEVEL = "INFO"

        if ":" in cls.CACHE_NAMESPACE:
            logger.warning(
                f"CACHE_NAMESPACE '{cls.CACHE_NAMESPACE}' contains ':', using 'sqlalchemy'"
            )
            cls.CACHE_NAMESPACE = "sqlalchemy"

        cls._validated = True

        if cls._metrics and cls._metrics.validation_errors:
            logger.warning(f"Configuration warnings: {cls._metrics.validation_errors}")

    @classmethod
    def is_production(cls) -> bool:
        return cls.ENVIRONMENT.lower() == "production"

    @classmethod
    def is_development(cls) -> bool:
        return cls.ENVIRONMENT.lower() == "development"

    @classmethod
    def is_testing(cls) -> bool:
        return cls.ENVIRONMENT.lower() == "testing"

    @classmethod
    def get_metrics(cls) -> Optional[_ConfigLoadMetrics]:
        """Get configuration loading metrics."""
        return cls._metrics

    @classmethod
    def get_config_summary(cls) -> Dict[str, Any]:
        """
        Get non-sensitive configuration summary for debugging.

        Example
        -------
        >>> Config.get_config_summary()["cache_namespace"]
        'sqlalchemy'
        """
        return {
            "environment": cls.ENVIRONMENT,
            "log_level": cls.LOG_LEVEL,
            "database_url_scheme": cls.DATABASE_URL.split(":", 1)[0],
            "database_pool_size": cls.DATABASE_POOL_SIZE,
            "redis_max_connections": cls.REDIS_MAX_CONNECTIONS,
            "cache_namespace": cls.CACHE_NAMESPACE,
            "cache_max_size": cls.CACHE_MAX_SIZE,
            "cache_fail_open": cls.CACHE_FAIL_OPEN,
            "loader_max_batch_size": cls.LOADER_MAX_BATCH_SIZE,
        }

    @classmethod
    def reload_safe_configs(cls) -> None:
        """
        Reload configuration values that can change without a restart.

        Does NOT reload database or Redis connection settings.
        """
        logger = logging.getLogger(__name__)
        logger.info("Reloading safe configuration values...")

        cls.LOG_LEVEL = cls._safe_str("LOG_LEVEL", cls.LOG_LEVEL)
        cls.CACHE_FAIL_OPEN = cls._safe_bool("CACHE_FAIL_OPEN", cls.CACHE_FAIL_OPEN)
        cls.LOADER_MAX_BATCH_SIZE = cls._safe_int(
            "LOADER_MAX_BATCH_SIZE", cls.LOADER_MAX_BATCH_SIZE, min_val=0
        )

        logger.info("Safe configuration values reloaded successfully")


# Auto-validate on import
Config.validate()
