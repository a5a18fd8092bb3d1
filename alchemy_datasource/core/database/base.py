"""
Declarative base and column mixins for entities served by a data source.

Usage
-----
    class User(Base, IdMixin, TimestampMixin, SoftDeleteMixin):
        __tablename__ = "users"

        email: Mapped[Optional[str]] = mapped_column(String(255))

`SoftDeleteMixin.deleted_at` is tagged with `info={"soft_delete": True}`;
the repository looks for that tag to discover an entity's soft-delete
column, so a custom column can opt in the same way.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime
from sqlalchemy.ext.asyncio import AsyncAttrs
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

SOFT_DELETE_INFO_KEY = "soft_delete"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(AsyncAttrs, DeclarativeBase):
    """Declarative base for all mapped entities."""


class IdMixin:
    """Auto-incrementing integer primary key."""

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)


class TimestampMixin:
    """Creation and last-update audit timestamps, set on the Python side."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )


class SoftDeleteMixin:
    """Logical deletion marker; NULL means the row is live."""

    deleted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        default=None,
        index=True,
        info={SOFT_DELETE_INFO_KEY: True},
    )
