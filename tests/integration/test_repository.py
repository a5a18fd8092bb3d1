"""
Integration Tests for Repository
================================

Purpose
-------
Verify the record store contract the data source depends on: multi-get,
query passthrough, writes, soft/hard deletes, metadata discovery and field
mapping.
"""

import pytest
from sqlalchemy import func, select

from alchemy_datasource.core.database.base import utcnow
from alchemy_datasource.core.exceptions import ConfigurationError
from alchemy_datasource.repository import EntityDescriptor, Repository
from tests.entities import MembershipEntity, NotMapped, TagEntity, UserEntity


# ============================================================================
# METADATA
# ============================================================================


@pytest.mark.integration
class TestRepositoryMetadata:
    def test_describe_user_entity(self):
        descriptor = Repository(UserEntity).describe()

        assert descriptor == EntityDescriptor(
            entity="users", primary_key="id", soft_delete="deleted_at"
        )

    def test_entity_without_soft_delete(self):
        descriptor = Repository(TagEntity).describe()

        assert descriptor.primary_key == "slug"
        assert descriptor.soft_delete is None
        assert descriptor.is_soft_deleted(TagEntity(slug="x")) is False

    def test_composite_key_detected(self):
        repository = Repository(MembershipEntity)

        assert repository.has_multiple_primary_keys
        with pytest.raises(ConfigurationError):
            repository.describe()

    def test_unmapped_class_rejected(self):
        with pytest.raises(ConfigurationError):
            Repository(NotMapped)

    def test_descriptor_accessors(self):
        descriptor = Repository(UserEntity).describe()
        live = UserEntity(id=3, deleted_at=None)
        gone = UserEntity(id=4, deleted_at=utcnow())

        assert descriptor.key_of(live) == 3
        assert descriptor.is_soft_deleted(live) is False
        assert descriptor.is_soft_deleted(gone) is True


# ============================================================================
# READS
# ============================================================================


@pytest.mark.integration
@pytest.mark.asyncio
class TestRepositoryReads:
    async def test_get_many_returns_found_rows(self, user_store):
        a = await user_store.save(user_store.create({"email": "a@test.com"}))
        b = await user_store.save(user_store.create({"email": "b@test.com"}))

        rows = await user_store.get_many([b.id, a.id, 999])

        assert sorted(r.id for r in rows) == sorted([a.id, b.id])

    async def test_get_many_empty_input(self, user_store):
        assert await user_store.get_many([]) == []

    async def test_soft_deleted_rows_hidden_unless_requested(self, user_store):
        gone = await user_store.save(
            user_store.create({"email": "gone@test.com", "deleted_at": utcnow()})
        )

        assert await user_store.get(gone.id) is None
        assert await user_store.get_many([gone.id]) == []
        assert await user_store.find_one_where(email="gone@test.com") is None
        assert (await user_store.get(gone.id, with_deleted=True)).id == gone.id

    async def test_find_one_where(self, user_store):
        await user_store.save(user_store.create({"email": "a@test.com", "name": "A"}))

        found = await user_store.find_one_where(UserEntity.name == "A")

        assert found.email == "a@test.com"

    async def test_query_and_execute(self, user_store):
        for name in ("b", "a"):
            await user_store.save(user_store.create({"name": name}))

        rows = await user_store.execute(user_store.query().order_by(UserEntity.name))

        assert [r.name for r in rows] == ["a", "b"]

    async def test_order_by_expression_and_sequence(self, user_store):
        for name, email in (("x", "2@test.com"), ("x", "1@test.com"), ("a", "3@test.com")):
            await user_store.save(user_store.create({"name": name, "email": email}))

        rows = await user_store.find_many_where(order_by=["-name", UserEntity.email.asc()])

        assert [r.email for r in rows] == ["1@test.com", "2@test.com", "3@test.com"]


# ============================================================================
# WRITES
# ============================================================================


@pytest.mark.integration
@pytest.mark.asyncio
class TestRepositoryWrites:
    async def test_save_assigns_generated_values(self, user_store):
        saved = await user_store.save(user_store.create({"email": "a@test.com"}))

        assert saved.id is not None
        assert saved.created_at is not None

    async def test_save_existing_merges(self, user_store):
        saved = await user_store.save(user_store.create({"email": "a@test.com"}))
        saved.email = "b@test.com"

        merged = await user_store.save(saved)

        assert merged.id == saved.id
        assert (await user_store.get(saved.id)).email == "b@test.com"

    async def test_update_returns_rowcount(self, user_store):
        saved = await user_store.save(user_store.create({"email": "a@test.com"}))

        assert await user_store.update(saved.id, {"name": "N"}) == 1
        assert await user_store.update(saved.id + 100, {"name": "N"}) == 0

    async def test_update_bumps_updated_at(self, user_store):
        saved = await user_store.save(user_store.create({"email": "a@test.com"}))

        await user_store.update(saved.id, {"name": "N"})

        assert (await user_store.get(saved.id)).updated_at >= saved.updated_at

    async def test_soft_remove_sets_marker(self, user_store):
        saved = await user_store.save(user_store.create({"email": "a@test.com"}))

        removed = await user_store.soft_remove(saved)

        assert removed.deleted_at is not None
        assert await user_store.get(saved.id) is None

    async def test_update_skips_soft_deleted_rows(self, user_store):
        saved = await user_store.save(user_store.create({"email": "a@test.com"}))
        await user_store.soft_remove(saved)

        assert await user_store.update(saved.id, {"deleted_at": None}) == 0
        assert await user_store.get(saved.id) is None

    async def test_update_with_deleted_reaches_soft_deleted_rows(self, user_store):
        saved = await user_store.save(user_store.create({"email": "a@test.com"}))
        await user_store.soft_remove(saved)

        assert await user_store.update(saved.id, {"name": "N"}, with_deleted=True) == 1
        assert (await user_store.get(saved.id, with_deleted=True)).name == "N"

    async def test_onupdate_columns(self, user_store, tag_store):
        assert user_store.onupdate_column_names == ["updated_at"]
        assert tag_store.onupdate_column_names == []

    async def test_soft_remove_requires_column(self, tag_store):
        tag = await tag_store.save(tag_store.create({"slug": "py"}))

        with pytest.raises(ConfigurationError):
            await tag_store.soft_remove(tag)

    async def test_remove_deletes_row(self, user_store):
        saved = await user_store.save(user_store.create({"email": "a@test.com"}))

        await user_store.remove(saved)

        rows = await user_store.execute(
            user_store.query(with_deleted=True).where(UserEntity.id == saved.id)
        )
        assert rows == []


# ============================================================================
# FIELD MAPPING
# ============================================================================


@pytest.mark.integration
@pytest.mark.asyncio
class TestFieldMapping:
    async def test_to_fields_covers_all_columns(self, user_store):
        saved = await user_store.save(user_store.create({"email": "a@test.com"}))

        fields = user_store.to_fields(saved)

        assert set(fields) == {"id", "name", "email", "created_at", "updated_at", "deleted_at"}

    async def test_from_fields_ignores_unknown_keys(self, user_store):
        record = user_store.from_fields({"id": 5, "email": "a@test.com", "unknown": 1})

        assert isinstance(record, UserEntity)
        assert record.id == 5
        assert user_store.to_fields(record) == {"id": 5, "email": "a@test.com"}

    async def test_count_through_query(self, user_store, database):
        await user_store.save(user_store.create({"email": "a@test.com"}))

        async with database.get_session() as session:
            total = await session.scalar(select(func.count()).select_from(UserEntity))

        assert total == 1
