"""
Unit tests for the cache record codec.

Values JSON cannot carry natively must come back as the same Python type.
"""

import json
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from enum import Enum
from uuid import UUID

import pytest

from alchemy_datasource.core.cache import codec


class Color(Enum):
    RED = "red"


@pytest.mark.unit
class TestCodecRoundTrip:
    def test_record_fields_survive_round_trip(self):
        """Date-typed and identifier-typed fields keep their types."""
        # Arrange
        fields = {
            "id": UUID("0b7e2f4a-1c2d-4e5f-8a9b-0c1d2e3f4a5b"),
            "email": "a@x.com",
            "name": None,
            "created_at": datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc),
            "birthday": date(1990, 2, 3),
            "balance": Decimal("10.50"),
            "active": True,
            "visits": 3,
        }

        # Act
        decoded = codec.loads(codec.dumps(fields))

        # Assert
        assert decoded == fields
        assert isinstance(decoded["created_at"], datetime)
        assert decoded["created_at"].tzinfo is not None
        assert isinstance(decoded["id"], UUID)

    def test_naive_datetime_stays_naive(self):
        value = datetime(2024, 1, 1, 8, 0, 0, 123456)

        decoded = codec.loads(codec.dumps({"at": value}))

        assert decoded["at"] == value
        assert decoded["at"].tzinfo is None

    def test_less_common_types(self):
        fields = {
            "opens": time(9, 15),
            "duration": timedelta(hours=1, seconds=5),
            "avatar": b"\x00\x01binary",
        }

        assert codec.loads(codec.dumps(fields)) == fields

    def test_enum_written_as_value(self):
        text = codec.dumps({"color": Color.RED})

        assert codec.loads(text) == {"color": "red"}

    def test_tagged_values_are_single_key_objects(self):
        text = codec.dumps({"day": date(2024, 1, 2)})

        assert json.loads(text) == {"day": {"$dateOnly": "2024-01-02"}}

    def test_plain_nested_objects_are_untouched(self):
        fields = {"meta": {"a": 1, "b": [1, 2]}}

        assert codec.loads(codec.dumps(fields)) == fields

    def test_bytes_input_accepted(self):
        assert codec.loads(codec.dumps({"a": 1}).encode("utf-8")) == {"a": 1}

    def test_unsupported_type_raises(self):
        with pytest.raises(TypeError):
            codec.dumps({"value": object()})
