"""
Database infrastructure: declarative base, column mixins and the engine /
session lifecycle service.
"""

from alchemy_datasource.core.database.base import (
    Base,
    IdMixin,
    SoftDeleteMixin,
    TimestampMixin,
    utcnow,
)
from alchemy_datasource.core.database.service import (
    DatabaseInitializationError,
    DatabaseNotInitializedError,
    DatabaseService,
)

__all__ = [
    "Base",
    "IdMixin",
    "TimestampMixin",
    "SoftDeleteMixin",
    "utcnow",
    "DatabaseService",
    "DatabaseInitializationError",
    "DatabaseNotInitializedError",
]
