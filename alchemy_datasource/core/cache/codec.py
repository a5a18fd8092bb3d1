"""
Record serialization codec for the external cache.

Records are flattened to a mapping of column values and written as JSON.
Values JSON cannot represent natively are wrapped in a single-key tagged
object so they come back as the same Python type after a cache round trip:

    datetime  -> {"$date": "2024-01-01T12:00:00+00:00"}
    date      -> {"$dateOnly": "2024-01-01"}
    time      -> {"$time": "12:00:00"}
    UUID      -> {"$uuid": "0b7e..."}
    Decimal   -> {"$decimal": "10.50"}
    bytes     -> {"$binary": "<base64>"}
    timedelta -> {"$timedelta": 3600.0}

Enum members are written as their value; the mapped column type turns the
value back into the member when the row is next read from the database.
"""

from __future__ import annotations

import base64
import json
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Dict, Mapping
from uuid import UUID

_DECODERS: Dict[str, Callable[[Any], Any]] = {
    "$date": datetime.fromisoformat,
    "$dateOnly": date.fromisoformat,
    "$time": time.fromisoformat,
    "$uuid": UUID,
    "$decimal": Decimal,
    "$binary": base64.b64decode,
    "$timedelta": lambda seconds: timedelta(seconds=seconds),
}


def _encode_value(value: Any) -> Any:
    # datetime is a subclass of date; check it first.
    if isinstance(value, datetime):
        return {"$date": value.isoformat()}
    if isinstance(value, date):
        return {"$dateOnly": value.isoformat()}
    if isinstance(value, time):
        return {"$time": value.isoformat()}
    if isinstance(value, UUID):
        return {"$uuid": str(value)}
    if isinstance(value, Decimal):
        return {"$decimal": str(value)}
    if isinstance(value, (bytes, bytearray, memoryview)):
        return {"$binary": base64.b64encode(bytes(value)).decode("ascii")}
    if isinstance(value, timedelta):
        return {"$timedelta": value.total_seconds()}
    if isinstance(value, Enum):
        return value.value
    raise TypeError(f"Object of type {type(value).__name__} is not cache-serializable")


def _decode_object(obj: Dict[str, Any]) -> Any:
    if len(obj) == 1:
        (tag, payload), = obj.items()
        decoder = _DECODERS.get(tag)
        if decoder is not None:
            return decoder(payload)
    return obj


def dumps(fields: Mapping[str, Any]) -> str:
    """Serialize a mapping of column values to cache text."""
    return json.dumps(dict(fields), default=_encode_value, ensure_ascii=False)


def loads(text: str | bytes) -> Dict[str, Any]:
    """Deserialize cache text produced by `dumps` back to column values."""
    return json.loads(text, object_hook=_decode_object)
