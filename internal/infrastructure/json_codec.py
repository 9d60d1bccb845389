"""
JSON encoding shared by the storage and transport adapters.
"""
import json
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID


def json_default(value: Any) -> Any:
    """
    Encode values the json module does not handle natively.

    Args:
        value: Value to encode.

    Returns:
        JSON-compatible representation.

    Raises:
        TypeError: If the value cannot be represented.
    """
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (set, frozenset)):
        return sorted(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def dumps(data: Any) -> str:
    """Serialize data to a JSON string."""
    return json.dumps(data, default=json_default)


def loads_object(raw: Any) -> Any:
    """Decode a JSON column value; already-decoded values pass through."""
    if isinstance(raw, (str, bytes)):
        return json.loads(raw)
    return raw
