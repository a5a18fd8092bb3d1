"""
Integration Tests for DatabaseService
=====================================

Purpose
-------
Test the engine/session lifecycle against in-memory SQLite: initialization,
session and transaction helpers, health checks and shutdown.

Testing Strategy
----------------
- Uses the `database` fixture (fresh in-memory database per test)
- Transaction tests observe committed state from a second session
"""

import pytest
from sqlalchemy import select, text
from sqlalchemy.pool import StaticPool

from alchemy_datasource.core.database.service import (
    DatabaseNotInitializedError,
    DatabaseService,
)
from tests.entities import UserEntity


# ============================================================================
# LIFECYCLE TESTS
# ============================================================================


@pytest.mark.integration
@pytest.mark.asyncio
class TestDatabaseLifecycle:
    async def test_memory_database_uses_static_pool(self, database):
        assert isinstance(database.engine().pool, StaticPool)

    async def test_initialize_is_idempotent(self, database):
        engine = database.engine()

        await DatabaseService.initialize()

        assert database.engine() is engine

    async def test_use_before_initialize_raises(self):
        assert not DatabaseService.is_initialized()

        with pytest.raises(DatabaseNotInitializedError):
            DatabaseService.session_factory()

    async def test_shutdown_is_safe_to_repeat(self, database):
        await DatabaseService.shutdown()
        await DatabaseService.shutdown()

        assert not DatabaseService.is_initialized()


# ============================================================================
# SESSION / TRANSACTION TESTS
# ============================================================================


@pytest.mark.integration
@pytest.mark.asyncio
class TestDatabaseSessions:
    async def test_database_connection(self, database):
        async with database.get_session() as session:
            result = await session.execute(text("SELECT 1 AS value"))
            row = result.fetchone()

        assert row is not None
        assert row.value == 1

    async def test_transaction_commit(self, database):
        async with database.get_transaction() as session:
            session.add(UserEntity(email="commit@test.com"))

        async with database.get_session() as session:
            emails = (await session.scalars(select(UserEntity.email))).all()

        assert emails == ["commit@test.com"]

    async def test_transaction_rollback_on_error(self, database):
        with pytest.raises(RuntimeError):
            async with database.get_transaction() as session:
                session.add(UserEntity(email="rollback@test.com"))
                await session.flush()
                raise RuntimeError("abort")

        async with database.get_session() as session:
            emails = (await session.scalars(select(UserEntity.email))).all()

        assert emails == []


# ============================================================================
# HEALTH CHECK TESTS
# ============================================================================


@pytest.mark.integration
@pytest.mark.asyncio
class TestDatabaseHealth:
    async def test_health_check_passes(self, database):
        assert await database.health_check() is True

    async def test_health_check_false_when_not_initialized(self):
        assert await DatabaseService.health_check() is False
