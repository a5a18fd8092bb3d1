"""
Record Store Repository

Purpose
-------
Type-safe, generic repository over one SQLAlchemy mapped class. It is the
record store the data source batches and caches in front of: point and
multi-get lookups, ad hoc queries, instantiate/save/update, hard and soft
delete, plus entity metadata (primary key and soft-delete column).

Design Notes
------------
- Each call runs in its own session from an `async_sessionmaker` created
  with `expire_on_commit=False`, so returned records are detached but fully
  loaded.
- Soft-deleted rows (soft-delete column populated) are excluded from every
  read unless `with_deleted=True` is passed.
- Entity metadata is resolved once into an `EntityDescriptor`; callers use
  its accessors instead of looking attributes up by name at call time.

What this class does NOT do:
- Cache or batch anything
- Wrap SQLAlchemy errors (they propagate unchanged)

Usage
-----
    users = Repository(User)

    user = await users.get(1)
    active = await users.find_many_where(User.email.like("%@x.com"), order_by="email")
    await users.soft_remove(user)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import (
    TYPE_CHECKING,
    Any,
    Dict,
    Generic,
    List,
    Mapping,
    Optional,
    Sequence,
    Type,
    TypeVar,
    Union,
)

from sqlalchemy import delete as sa_delete
from sqlalchemy import inspect as sa_inspect
from sqlalchemy import select
from sqlalchemy import update as sa_update
from sqlalchemy.exc import NoInspectionAvailable
from sqlalchemy.orm import Mapper

from alchemy_datasource.core.database.base import SOFT_DELETE_INFO_KEY, utcnow
from alchemy_datasource.core.database.service import DatabaseService
from alchemy_datasource.core.exceptions import ConfigurationError
from alchemy_datasource.core.logging.logger import get_logger

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy import ColumnElement, Select
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

T = TypeVar("T")

OrderBy = Union[str, Any, Sequence[Union[str, Any]]]


@dataclass(frozen=True)
class EntityDescriptor:
    """
    Capability descriptor for one entity type.

    Attributes:
        entity: Table name, used in cache keys and log fields
        primary_key: Attribute name of the single primary-key column
        soft_delete: Attribute name of the soft-delete column, if any
    """

    entity: str
    primary_key: str
    soft_delete: Optional[str] = None

    def key_of(self, record: Any) -> Any:
        return getattr(record, self.primary_key, None)

    def is_soft_deleted(self, record: Any) -> bool:
        if self.soft_delete is None:
            return False
        return getattr(record, self.soft_delete, None) is not None


class Repository(Generic[T]):
    """
    Generic repository for one mapped entity.

    Type Parameters:
        T: The SQLAlchemy model class this repository manages
    """

    def __init__(
        self,
        model_class: Type[T],
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        logger: Optional[Logger] = None,
    ) -> None:
        """
        Initialize repository with model class and optional session factory.

        Args:
            model_class: The SQLAlchemy mapped class
            session_factory: Session factory; defaults to DatabaseService's
            logger: Structured logger instance

        Raises:
            ConfigurationError: If `model_class` is not a mapped class
        """
        name = getattr(model_class, "__name__", repr(model_class))
        try:
            mapper = sa_inspect(model_class)
        except NoInspectionAvailable as exc:
            raise ConfigurationError(name, "not a SQLAlchemy mapped class") from exc
        if not isinstance(mapper, Mapper):
            raise ConfigurationError(name, "not a SQLAlchemy mapped class")

        self.model_class = model_class
        self.mapper: Mapper[Any] = mapper
        self.log = logger or get_logger(__name__)
        self._session_factory = session_factory

    # =========================================================================
    # METADATA
    # =========================================================================

    @property
    def name(self) -> str:
        return self.model_class.__name__

    @property
    def table_name(self) -> str:
        return self.mapper.local_table.name  # type: ignore[attr-defined]

    @property
    def primary_key_names(self) -> List[str]:
        return [self.mapper.get_property_by_column(col).key for col in self.mapper.primary_key]

    @property
    def has_multiple_primary_keys(self) -> bool:
        return len(self.mapper.primary_key) > 1

    @property
    def soft_delete_name(self) -> Optional[str]:
        for prop in self.mapper.column_attrs:
            if any(col.info.get(SOFT_DELETE_INFO_KEY) for col in prop.columns):
                return prop.key
        return None

    @property
    def column_names(self) -> List[str]:
        return [prop.key for prop in self.mapper.column_attrs]

    @property
    def onupdate_column_names(self) -> List[str]:
        """Columns whose value the ORM sets itself on every UPDATE."""
        return [
            prop.key
            for prop in self.mapper.column_attrs
            if any(getattr(col, "onupdate", None) is not None for col in prop.columns)
        ]

    def describe(self) -> EntityDescriptor:
        """
        Resolve the entity's capability descriptor.

        Raises:
            ConfigurationError: If the entity declares more than one primary key
        """
        if self.has_multiple_primary_keys:
            raise ConfigurationError(
                self.name,
                "entities with multiple primary keys are not supported",
            )
        return EntityDescriptor(
            entity=self.table_name,
            primary_key=self.primary_key_names[0],
            soft_delete=self.soft_delete_name,
        )

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        return self._session_factory or DatabaseService.session_factory()

    def _pk_attr(self) -> Any:
        return getattr(self.model_class, self.primary_key_names[0])

    def _require_soft_delete(self) -> str:
        soft_delete = self.soft_delete_name
        if soft_delete is None:
            raise ConfigurationError(
                self.name,
                "soft delete requires a column tagged info={'soft_delete': True}",
            )
        return soft_delete

    def _exclude_deleted(self, stmt: Any, with_deleted: bool) -> Any:
        soft_delete = self.soft_delete_name
        if soft_delete is None or with_deleted:
            return stmt
        return stmt.where(getattr(self.model_class, soft_delete).is_(None))

    def _order_clauses(self, order_by: OrderBy) -> List[Any]:
        items = order_by if isinstance(order_by, (list, tuple)) else [order_by]
        clauses: List[Any] = []
        for item in items:
            if isinstance(item, str):
                descending = item.startswith("-")
                column = getattr(self.model_class, item.lstrip("-"))
                clauses.append(column.desc() if descending else column.asc())
            else:
                clauses.append(item)
        return clauses

    # =========================================================================
    # READS
    # =========================================================================

    def query(self, with_deleted: bool = False) -> Select[Any]:
        """Query-builder entry point: a SELECT of this entity."""
        return self._exclude_deleted(select(self.model_class), with_deleted)

    async def execute(self, stmt: Select[Any]) -> List[T]:
        """Run a SELECT built from `query()` and return the entities."""
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            instances = list(result.scalars().all())

        self.log.debug(
            f"Repository.execute: {self.name}",
            extra={"model": self.name, "found_count": len(instances)},
        )
        return instances

    async def get(self, id_value: Any, with_deleted: bool = False) -> Optional[T]:
        """
        Get a single record by primary key.

        Returns:
            Model instance or None if not found (or soft-deleted)
        """
        stmt = self._exclude_deleted(
            select(self.model_class).where(self._pk_attr() == id_value),
            with_deleted,
        )
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            instance = result.scalar_one_or_none()

        self.log.debug(
            f"Repository.get: {self.name}",
            extra={"model": self.name, "id": str(id_value), "found": instance is not None},
        )
        return instance

    async def get_many(self, id_values: Sequence[Any], with_deleted: bool = False) -> List[T]:
        """
        Get multiple records by primary key in one query.

        Returns:
            Model instances in database order; may be fewer than requested
        """
        if not id_values:
            return []

        stmt = self._exclude_deleted(
            select(self.model_class).where(self._pk_attr().in_(list(id_values))),
            with_deleted,
        )
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            instances = list(result.scalars().all())

        self.log.debug(
            f"Repository.get_many: {self.name}",
            extra={
                "model": self.name,
                "requested_count": len(id_values),
                "found_count": len(instances),
            },
        )
        return instances

    async def find_one_where(
        self,
        *conditions: ColumnElement[bool],
        with_deleted: bool = False,
        **filters: Any,
    ) -> Optional[T]:
        """Find the first record matching conditions and equality filters."""
        stmt = self._exclude_deleted(
            select(self.model_class).where(*conditions).filter_by(**filters),
            with_deleted,
        )
        async with self.session_factory() as session:
            result = await session.execute(stmt.limit(1))
            instance = result.scalars().first()

        self.log.debug(
            f"Repository.find_one_where: {self.name}",
            extra={"model": self.name, "found": instance is not None},
        )
        return instance

    async def find_many_where(
        self,
        *conditions: ColumnElement[bool],
        order_by: Optional[OrderBy] = None,
        with_deleted: bool = False,
        limit: Optional[int] = None,
        **filters: Any,
    ) -> List[T]:
        """
        Find multiple records matching conditions.

        Args:
            *conditions: SQLAlchemy filter conditions
            order_by: Attribute name ("-name" for descending), column
                expression, or a sequence of either
            with_deleted: Include soft-deleted rows
            limit: Optional maximum number of results
            **filters: Equality filters by attribute name

        Returns:
            List of model instances
        """
        stmt = self._exclude_deleted(
            select(self.model_class).where(*conditions).filter_by(**filters),
            with_deleted,
        )
        if order_by is not None:
            stmt = stmt.order_by(*self._order_clauses(order_by))
        if limit is not None:
            stmt = stmt.limit(limit)

        async with self.session_factory() as session:
            result = await session.execute(stmt)
            instances = list(result.scalars().all())

        self.log.debug(
            f"Repository.find_many_where: {self.name}",
            extra={
                "model": self.name,
                "found_count": len(instances),
                "with_deleted": with_deleted,
                "limit": limit,
            },
        )
        return instances

    # =========================================================================
    # WRITES
    # =========================================================================

    def create(self, fields: Mapping[str, Any]) -> T:
        """Instantiate a transient entity from column values (no I/O)."""
        return self.model_class(**dict(fields))

    async def save(self, instance: T) -> T:
        """
        Persist an entity: insert when it has no primary key, merge otherwise.

        Returns:
            The persisted instance, refreshed with database-generated values
        """
        is_new = getattr(instance, self.primary_key_names[0], None) is None

        async with self.session_factory() as session:
            async with session.begin():
                if is_new:
                    session.add(instance)
                    persisted = instance
                else:
                    persisted = await session.merge(instance)
                await session.flush()
                await session.refresh(persisted)

        self.log.debug(
            f"Repository.save: {self.name}",
            extra={"model": self.name, "inserted": is_new},
        )
        return persisted

    async def update(
        self,
        id_value: Any,
        values: Mapping[str, Any],
        with_deleted: bool = False,
    ) -> int:
        """
        Update columns of the row with the given primary key.

        Soft-deleted rows are left untouched unless `with_deleted=True`.

        Returns:
            Number of rows matched (0 or 1)
        """
        stmt = self._exclude_deleted(
            sa_update(self.model_class).where(self._pk_attr() == id_value),
            with_deleted,
        )
        stmt = stmt.values(**dict(values)).execution_options(synchronize_session=False)
        async with self.session_factory() as session:
            async with session.begin():
                result = await session.execute(stmt)
                rowcount = result.rowcount or 0

        self.log.debug(
            f"Repository.update: {self.name}",
            extra={
                "model": self.name,
                "id": str(id_value),
                "fields": sorted(values.keys()),
                "rowcount": rowcount,
            },
        )
        return rowcount

    async def remove(self, instance: T) -> T:
        """Physically delete the row backing `instance`."""
        id_value = getattr(instance, self.primary_key_names[0])
        stmt = sa_delete(self.model_class).where(self._pk_attr() == id_value)
        async with self.session_factory() as session:
            async with session.begin():
                await session.execute(stmt)

        self.log.debug(
            f"Repository.remove: {self.name}",
            extra={"model": self.name, "id": str(id_value)},
        )
        return instance

    async def soft_remove(self, instance: T) -> T:
        """
        Mark the row backing `instance` as deleted via its soft-delete column.

        Returns:
            The row as stored after the update (soft-delete field populated)

        Raises:
            ConfigurationError: If the entity has no soft-delete column
        """
        soft_delete = self._require_soft_delete()
        id_value = getattr(instance, self.primary_key_names[0])

        await self.update(id_value, {soft_delete: utcnow()})
        stored = await self.get(id_value, with_deleted=True)

        self.log.debug(
            f"Repository.soft_remove: {self.name}",
            extra={"model": self.name, "id": str(id_value)},
        )
        return stored if stored is not None else instance

    # =========================================================================
    # FIELD MAPPING
    # =========================================================================

    def to_fields(self, record: T) -> Dict[str, Any]:
        """Loaded column values of `record`, keyed by attribute name."""
        loaded = sa_inspect(record).dict
        return {key: loaded[key] for key in self.column_names if key in loaded}

    def from_fields(self, fields: Mapping[str, Any]) -> T:
        """Rebuild a transient entity from column values, ignoring unknown keys."""
        columns = set(self.column_names)
        return self.create({key: value for key, value in fields.items() if key in columns})
