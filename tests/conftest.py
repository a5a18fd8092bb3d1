"""
Pytest Configuration and Fixtures for alchemy-datasource Tests
==============================================================

Purpose
-------
Centralized fixtures for the test suite: an in-memory SQLite database
behind DatabaseService, a fresh cache per test, data sources bound to the
test entities and a mocked Redis client.

Architecture Notes
------------------
- Unit tests use mocks and in-process objects (fast, isolated)
- Integration tests run against `sqlite+aiosqlite:///:memory:`; the engine
  uses StaticPool so every session sees the same database
- Each integration test gets a clean database: the engine is created and
  disposed per test
"""

from __future__ import annotations

import os
from typing import AsyncGenerator

import pytest
import pytest_asyncio

from alchemy_datasource import (
    DatabaseService,
    InMemoryLRUCache,
    Repository,
    SQLAlchemyDataSource,
)
from alchemy_datasource.core.config.config import Config
from alchemy_datasource.core.database.base import Base
from alchemy_datasource.core.logging.logger import clear_log_context, get_logger
from tests.entities import TagEntity, UserEntity

logger = get_logger(__name__)

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# ============================================================================
# PYTEST CONFIGURATION
# ============================================================================


def pytest_configure(config):
    """Configure test environment."""
    os.environ["ENVIRONMENT"] = "testing"
    os.environ["LOG_LEVEL"] = "DEBUG"
    Config.validate()


@pytest.fixture(autouse=True)
def _reset_log_context():
    yield
    clear_log_context()


# ============================================================================
# DATABASE FIXTURES (Integration Tests)
# ============================================================================


@pytest_asyncio.fixture
async def database() -> AsyncGenerator[type[DatabaseService], None]:
    """
    Initialize DatabaseService against a fresh in-memory database.

    Scope: function (clean slate per test)
    """
    await DatabaseService.initialize(TEST_DATABASE_URL)
    async with DatabaseService.engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield DatabaseService

    await DatabaseService.shutdown()


@pytest.fixture
def user_store(database) -> Repository[UserEntity]:
    """Direct store access that bypasses loader and cache."""
    return Repository(UserEntity)


@pytest.fixture
def tag_store(database) -> Repository[TagEntity]:
    return Repository(TagEntity)


# ============================================================================
# DATA SOURCE FIXTURES
# ============================================================================


@pytest.fixture
def cache() -> InMemoryLRUCache:
    return InMemoryLRUCache()


@pytest.fixture
def user_source(database, cache) -> SQLAlchemyDataSource[UserEntity, None]:
    """UserEntity data source initialized with the per-test cache."""
    source: SQLAlchemyDataSource[UserEntity, None] = SQLAlchemyDataSource(UserEntity)
    source.initialize(context=None, cache=cache)
    return source


@pytest.fixture
def tag_source(database, cache) -> SQLAlchemyDataSource[TagEntity, None]:
    source: SQLAlchemyDataSource[TagEntity, None] = SQLAlchemyDataSource(TagEntity)
    source.initialize(context=None, cache=cache)
    return source


# ============================================================================
# MOCK FIXTURES (Unit Tests)
# ============================================================================


@pytest.fixture
def mock_redis_client(mocker):
    """
    Mock redis.asyncio client.

    Scope: function
    Uses: RedisCache unit tests
    """
    client = mocker.MagicMock()
    client.get = mocker.AsyncMock(return_value=None)
    client.set = mocker.AsyncMock(return_value=True)
    client.delete = mocker.AsyncMock(return_value=1)
    client.aclose = mocker.AsyncMock()
    return client

