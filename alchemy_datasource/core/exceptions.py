"""
Exception hierarchy for alchemy-datasource.

Purpose
-------
Define the structured exceptions raised by the cached data-source layer:
misconfiguration of an entity, use before initialization, per-key and
whole-operation not-found conditions, loader contract violations and
cache adapter failures.

Design Notes
------------
- All exceptions inherit from `DataSourceException`.
- Each exception carries:
  - `message`: human-readable description
  - `details`: additional structured context (dict)
  - `severity`: `ErrorSeverity` value for logging/alerting
  - `is_retryable`: whether the operation can be retried
  - `error_code`: short, stable identifier for programmatic use
- Store (SQLAlchemy) errors are never wrapped; they reach the caller as-is.
- `RecordNotFoundError` instances double as the per-key "not found" value
  returned positionally by batched lookups.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorSeverity(Enum):
    """Error severity levels for logging and alerting."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class DataSourceException(Exception):
    """
    Base exception for all data-source errors.

    Args:
        message: Human-readable error message
        details: Additional structured data about the error
        severity: Error severity level for logging handlers
        is_retryable: Whether the operation can be retried
        error_code: Optional code for programmatic handling

    Example:
        >>> raise DataSourceException(
        ...     "Loader dispatch failed",
        ...     {"entity": "users"}
        ... )
    """

    DEFAULT_SEVERITY: ErrorSeverity = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE: bool = False

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        severity: Optional[ErrorSeverity] = None,
        is_retryable: Optional[bool] = None,
        error_code: Optional[str] = None,
    ) -> None:
        self.message: str = message
        self.details: Dict[str, Any] = details or {}
        self.severity: ErrorSeverity = severity or self.DEFAULT_SEVERITY
        self.is_retryable: bool = (
            is_retryable if is_retryable is not None else self.DEFAULT_RETRYABLE
        )
        self.error_code: str = error_code or self.__class__.__name__
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "severity": self.severity.value,
            "is_retryable": self.is_retryable,
        }

    def __str__(self) -> str:
        details_str = f" | Details: {self.details}" if self.details else ""
        return f"[{self.error_code}] {self.message}{details_str}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"details={self.details!r}, "
            f"severity={self.severity.value!r}, "
            f"is_retryable={self.is_retryable!r}"
            ")"
        )


class ConfigurationError(DataSourceException):
    """
    Raised when an entity or data source is configured in a way the layer
    cannot support (not a mapped class, composite primary key, soft delete
    requested on an entity without a soft-delete column).

    Args:
        subject: The entity or setting that is misconfigured
        message: Description of the configuration problem
    """

    DEFAULT_SEVERITY = ErrorSeverity.CRITICAL
    DEFAULT_RETRYABLE = False

    def __init__(self, subject: str, message: str) -> None:
        self.subject = subject
        super().__init__(
            f"Configuration error for {subject}: {message}",
            details={"subject": subject, "message": message},
            error_code="CONFIG_ERROR",
        )


class DataSourceNotInitializedError(DataSourceException):
    """Raised when a data method is called before `initialize()`."""

    DEFAULT_SEVERITY = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE = False

    def __init__(self, entity: str) -> None:
        self.entity = entity
        super().__init__(
            "DataSource not initialized",
            details={"entity": entity},
            error_code="NOT_INITIALIZED",
        )


class RecordNotFoundError(DataSourceException):
    """
    Raised (or returned positionally) when no live record exists for an id.

    Args:
        entity: Name of the entity (table) that was queried
        record_id: The identifier that could not be resolved
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    DEFAULT_RETRYABLE = False

    def __init__(self, entity: str, record_id: Any) -> None:
        self.entity = entity
        self.record_id = record_id
        super().__init__(
            f"Could not find {entity} with id {record_id!r}",
            details={"entity": entity, "id": str(record_id)},
            error_code="RECORD_NOT_FOUND",
        )


class MissingKeyError(DataSourceException):
    """
    Raised by the default key extraction when a record has no value for its
    key attribute. Pass a key function when loading by an alternate key.
    """

    DEFAULT_SEVERITY = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE = False

    def __init__(self, entity: str, key_attr: str) -> None:
        self.entity = entity
        self.key_attr = key_attr
        super().__init__(
            f"Could not find ID for {entity} record; if using an alternate key, "
            "pass in a key function",
            details={"entity": entity, "key_attr": key_attr},
            error_code="MISSING_KEY",
        )


class LoaderContractError(DataSourceException):
    """Raised when a batch function returns the wrong number of results."""

    DEFAULT_SEVERITY = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE = False

    def __init__(self, loader: str, expected: int, received: int) -> None:
        self.expected = expected
        self.received = received
        super().__init__(
            f"Batch function of loader '{loader}' must return a list of the same "
            f"length as its keys (expected {expected}, received {received})",
            details={"loader": loader, "expected": expected, "received": received},
            error_code="LOADER_CONTRACT",
        )


class CacheError(DataSourceException):
    """
    Raised when cache adapter operations fail.

    Args:
        operation: Description of the cache operation that failed
        cache_key: The cache key involved in the failure
        original_error: The underlying exception (if any)
    """

    DEFAULT_SEVERITY = ErrorSeverity.WARNING
    DEFAULT_RETRYABLE = True

    def __init__(
        self,
        operation: str,
        cache_key: str,
        original_error: Optional[Exception] = None,
    ) -> None:
        self.operation = operation
        self.cache_key = cache_key
        self.original_error = original_error
        error_msg = str(original_error) if original_error else "Cache operation failed"
        super().__init__(
            f"Cache error during {operation} for key '{cache_key}': {error_msg}",
            details={
                "operation": operation,
                "cache_key": cache_key,
                "error": error_msg,
                "error_type": (
                    type(original_error).__name__ if original_error else None
                ),
            },
            error_code="CACHE_ERROR",
        )


def is_transient_error(exc: Exception) -> bool:
    """Check if an exception represents a transient error that can be retried."""
    if isinstance(exc, DataSourceException):
        return exc.is_retryable
    return False


def get_error_severity(exc: Exception) -> ErrorSeverity:
    """Get the severity level of an exception for logging."""
    if isinstance(exc, DataSourceException):
        return exc.severity
    return ErrorSeverity.ERROR
