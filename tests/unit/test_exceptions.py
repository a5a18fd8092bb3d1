"""Unit tests for the exception hierarchy."""

import pytest

from alchemy_datasource.core.exceptions import (
    CacheError,
    ConfigurationError,
    DataSourceException,
    DataSourceNotInitializedError,
    ErrorSeverity,
    LoaderContractError,
    MissingKeyError,
    RecordNotFoundError,
    get_error_severity,
    is_transient_error,
)


@pytest.mark.unit
class TestExceptionHierarchy:
    @pytest.mark.parametrize(
        "exc",
        [
            ConfigurationError("users", "bad"),
            DataSourceNotInitializedError("users"),
            RecordNotFoundError("users", 1),
            MissingKeyError("users", "id"),
            LoaderContractError("users", 2, 1),
            CacheError("GET", "k"),
        ],
    )
    def test_all_inherit_from_base(self, exc):
        assert isinstance(exc, DataSourceException)

    def test_not_initialized_message(self):
        exc = DataSourceNotInitializedError("users")

        assert exc.message == "DataSource not initialized"
        assert exc.error_code == "NOT_INITIALIZED"

    def test_record_not_found_carries_entity_and_id(self):
        exc = RecordNotFoundError("users", 42)

        assert exc.entity == "users"
        assert exc.record_id == 42
        assert exc.details == {"entity": "users", "id": "42"}

    def test_to_dict(self):
        data = ConfigurationError("users", "composite key").to_dict()

        assert data["error_type"] == "ConfigurationError"
        assert data["error_code"] == "CONFIG_ERROR"
        assert data["severity"] == "critical"
        assert data["is_retryable"] is False

    def test_str_includes_code_and_details(self):
        text = str(MissingKeyError("users", "id"))

        assert text.startswith("[MISSING_KEY]")
        assert "key_attr" in text

    def test_cache_error_wraps_original(self):
        original = OSError("reset by peer")

        exc = CacheError("SET", "sqlalchemy:users:1", original)

        assert exc.original_error is original
        assert exc.details["error_type"] == "OSError"
        assert "reset by peer" in exc.message


@pytest.mark.unit
class TestErrorHelpers:
    def test_cache_errors_are_transient(self):
        assert is_transient_error(CacheError("GET", "k")) is True

    def test_not_found_is_not_transient(self):
        assert is_transient_error(RecordNotFoundError("users", 1)) is False

    def test_foreign_exceptions_are_not_transient(self):
        assert is_transient_error(ValueError()) is False

    def test_severity_lookup(self):
        assert get_error_severity(RecordNotFoundError("users", 1)) is ErrorSeverity.INFO
        assert get_error_severity(ValueError()) is ErrorSeverity.ERROR
