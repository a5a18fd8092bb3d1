"""
Configuration for alchemy-datasource.

Static settings are read from environment variables (with `.env` support)
into the `Config` class at import time. Per-instance overrides are passed to
a data source through `DataSourceOptions`.

Usage
-----
>>> from alchemy_datasource.core.config import Config
>>> Config.CACHE_FAIL_OPEN
True
"""

from alchemy_datasource.core.config.config import Config, Environment

__all__ = [
    "Config",
    "Environment",
]
