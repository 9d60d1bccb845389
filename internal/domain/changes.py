"""
Structural change detection between entity snapshots.

Snapshots are plain dictionaries. The diff maps each changed field to
``{"from": old, "to": new}``; a side that does not exist is ``UNDEFINED``.
"""
from datetime import datetime
from typing import Any, Iterable, Optional


class _Undefined:
    """Marker for a field that is absent from one side of a diff."""

    _instance = None

    def __new__(cls) -> "_Undefined":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "UNDEFINED"


UNDEFINED = _Undefined()

# Storage ids, version markers and bookkeeping timestamps never show up in a diff.
DEFAULT_EXCLUDED_FIELDS = frozenset({"id", "_id", "__v", "version", "created_at", "updated_at"})


def values_equal(a: Any, b: Any) -> bool:
    """
    Compare two snapshot values structurally.

    Booleans only equal booleans, datetimes compare by instant, sequences by
    length then element-wise, mappings by key set then per key.

    Args:
        a: First value.
        b: Second value.

    Returns:
        True if both values are considered equal.
    """
    if a is b:
        return True

    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a == b

    if isinstance(a, datetime) or isinstance(b, datetime):
        if not (isinstance(a, datetime) and isinstance(b, datetime)):
            return False
        return a.timestamp() == b.timestamp()

    if isinstance(a, (list, tuple)) or isinstance(b, (list, tuple)):
        if not (isinstance(a, (list, tuple)) and isinstance(b, (list, tuple))):
            return False
        if len(a) != len(b):
            return False
        return all(values_equal(x, y) for x, y in zip(a, b))

    if isinstance(a, dict) or isinstance(b, dict):
        if not (isinstance(a, dict) and isinstance(b, dict)):
            return False
        if set(a) != set(b):
            return False
        return all(values_equal(a[key], b[key]) for key in a)

    return a == b


def detect_changes(
    before: Optional[dict[str, Any]],
    after: Optional[dict[str, Any]],
    exclude_fields: Iterable[str] = (),
) -> dict[str, dict[str, Any]]:
    """
    Compute the field-level difference between two snapshots.

    Args:
        before: Snapshot before the mutation, or None.
        after: Snapshot after the mutation, or None.
        exclude_fields: Fields to ignore on top of DEFAULT_EXCLUDED_FIELDS.

    Returns:
        Mapping of field name to {"from": old, "to": new}.
    """
    before = before or {}
    after = after or {}
    excluded = DEFAULT_EXCLUDED_FIELDS | frozenset(exclude_fields)

    changes: dict[str, dict[str, Any]] = {}
    keys = list(after) + [key for key in before if key not in after]
    for key in keys:
        if key in excluded:
            continue

        old = before.get(key, UNDEFINED)
        new = after.get(key, UNDEFINED)
        if old is UNDEFINED or new is UNDEFINED or not values_equal(old, new):
            changes[key] = {"from": old, "to": new}

    return changes


def serialize_changes(changes: dict[str, dict[str, Any]]) -> dict[str, dict[str, Any]]:
    """Drop UNDEFINED sides so the diff can be stored as JSON."""
    return {
        name: {side: value for side, value in change.items() if value is not UNDEFINED}
        for name, change in changes.items()
    }


def _keep_key(key: Any, value: Any) -> bool:
    if callable(value):
        return False
    if isinstance(key, str) and key.startswith(("_", "$")):
        return key == "_id"
    return True


def sanitize_snapshot(value: Any) -> Any:
    """
    Remove callables and private keys from a snapshot, recursively.

    Keys starting with "_" or "$" are dropped, except "_id".

    Args:
        value: Snapshot (or nested value) to clean.

    Returns:
        Cleaned copy.
    """
    if isinstance(value, dict):
        return {
            key: sanitize_snapshot(item)
            for key, item in value.items()
            if _keep_key(key, item)
        }
    if isinstance(value, (list, tuple)):
        return [sanitize_snapshot(item) for item in value if not callable(item)]
    return value
