"""
Unit tests for snapshot change detection.
"""
from datetime import datetime, timedelta, timezone

from internal.domain.changes import (
    UNDEFINED,
    detect_changes,
    sanitize_snapshot,
    serialize_changes,
    values_equal,
)


class TestValuesEqual:
    """Tests for structural value comparison."""

    def test_bool_only_equals_bool(self):
        assert not values_equal(True, 1)
        assert not values_equal(0, False)
        assert values_equal(True, True)

    def test_datetimes_compare_by_instant(self):
        utc = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
        plus_two = utc.astimezone(timezone(timedelta(hours=2)))

        assert values_equal(utc, plus_two)
        assert not values_equal(utc, utc + timedelta(seconds=1))
        assert not values_equal(utc, utc.isoformat())

    def test_sequences(self):
        assert values_equal([1, 2], (1, 2))
        assert not values_equal([1, 2], [1, 2, 3])
        assert not values_equal([1, 2], [2, 1])

    def test_nested_mappings(self):
        assert values_equal({"a": {"b": [1]}}, {"a": {"b": [1]}})
        assert not values_equal({"a": 1}, {"a": 1, "b": 2})
        assert not values_equal({"a": 1}, [("a", 1)])

    def test_int_and_float(self):
        assert values_equal(1, 1.0)


class TestDetectChanges:
    """Tests for detect_changes."""

    def test_changed_field(self):
        changes = detect_changes({"name": "Milk"}, {"name": "Cream"})

        assert changes == {"name": {"from": "Milk", "to": "Cream"}}

    def test_unchanged_snapshot_has_no_changes(self):
        snapshot = {"name": "Milk", "net_weight": 1.0}

        assert detect_changes(snapshot, dict(snapshot)) == {}

    def test_added_and_removed_fields_use_undefined(self):
        changes = detect_changes({"old": 1}, {"new": 2})

        assert changes["new"] == {"from": UNDEFINED, "to": 2}
        assert changes["old"] == {"from": 1, "to": UNDEFINED}

    def test_keys_follow_after_then_before_order(self):
        changes = detect_changes({"z": 1, "a": 1}, {"b": 2, "a": 2})

        assert list(changes) == ["b", "a", "z"]

    def test_bookkeeping_fields_are_excluded(self):
        before = {"id": "1", "updated_at": 1, "created_at": 1, "version": 1, "name": "a"}
        after = {"id": "2", "updated_at": 2, "created_at": 2, "version": 2, "name": "a"}

        assert detect_changes(before, after) == {}

    def test_extra_exclusions(self):
        changes = detect_changes({"a": 1, "b": 1}, {"a": 2, "b": 2}, exclude_fields=["b"])

        assert list(changes) == ["a"]

    def test_none_snapshots(self):
        assert detect_changes(None, {"a": 1}) == {"a": {"from": UNDEFINED, "to": 1}}
        assert detect_changes(None, None) == {}

    def test_undefined_is_falsy_singleton(self):
        assert not UNDEFINED
        assert repr(UNDEFINED) == "UNDEFINED"
        assert type(UNDEFINED)() is UNDEFINED


class TestSerialization:
    """Tests for storage-ready diffs and snapshots."""

    def test_serialize_drops_undefined_sides(self):
        serialized = serialize_changes(detect_changes({"old": 1}, {"new": 2, "old": 3}))

        assert serialized == {"new": {"to": 2}, "old": {"from": 1, "to": 3}}

    def test_sanitize_drops_private_keys_and_callables(self):
        snapshot = {
            "_id": "1",
            "_internal": "x",
            "$meta": "y",
            "name": "Milk",
            "hook": lambda: None,
            "nested": {"_secret": 1, "ok": [1, {"$x": 2, "y": 3}]},
        }

        assert sanitize_snapshot(snapshot) == {
            "_id": "1",
            "name": "Milk",
            "nested": {"ok": [1, {"y": 3}]},
        }
