"""
tests/test_write_intents.py - Tests for the write-intent queue
"""

import pytest

from cyclesim.constants import PRIORITY_LOG, PRIORITY_REPLACE, PRIORITY_UPDATE
from cyclesim.errors import IntentValidationError
from cyclesim.write_intents import IntentKind, IntentQueue


class TestQueueing:
    """Bucket placement and defaults."""

    def test_buckets_and_priorities(self):
        """Each queue_* call lands in its bucket with the default priority."""
        q = IntentQueue()
        q.queue_replace("Snap", [["Key", "Value"]])
        q.queue_cell("Config", 2, 2, 5)
        q.queue_range("Map", 2, 6, [[1], [2]])
        q.queue_append("Digest", [1, 2, 3])
        q.queue_log("Seeds", [1, 42])

        assert [i.kind for i in q.replace_ops] == [IntentKind.REPLACE]
        assert [i.kind for i in q.updates] == [IntentKind.CELL, IntentKind.RANGE, IntentKind.APPEND]
        assert [i.kind for i in q.logs] == [IntentKind.APPEND]
        assert q.replace_ops[0].priority == PRIORITY_REPLACE
        assert q.updates[0].priority == PRIORITY_UPDATE
        assert q.logs[0].priority == PRIORITY_LOG
        assert q.total == 5
        assert len(q) == 5

    def test_cell_values_are_2d(self):
        """A cell intent wraps its value as [[value]]."""
        q = IntentQueue()
        intent = q.queue_cell("Config", 3, 2, "x")
        assert intent.values == [["x"]]
        assert intent.address.row == 3
        assert intent.address.col == 2

    def test_batch_append_keeps_rows(self):
        """queue_batch_append keeps one intent with all rows."""
        q = IntentQueue()
        intent = q.queue_batch_append("Events", [[1, "a"], [2, "b"]])
        assert intent.row_count == 2
        assert q.total == 1

    def test_log_default_domain(self):
        """Log intents default to the audit domain."""
        q = IntentQueue()
        assert q.queue_log("Seeds", [1]).domain == "audit"


class TestValidation:
    """Malformed intents."""

    def test_zero_based_address_rejected(self):
        """Row 0 is not a valid address; the intent is dropped and recorded."""
        q = IntentQueue()
        assert q.queue_cell("Config", 0, 1, "x") is None
        assert q.total == 0
        assert len(q.validation_errors) == 1

    def test_missing_destination_rejected(self):
        """An empty destination is rejected."""
        q = IntentQueue()
        assert q.queue_append("  ", [1]) is None
        assert "destination" in q.validation_errors[0]

    def test_strict_queue_raises(self):
        """A strict queue raises instead of recording."""
        q = IntentQueue(strict=True)
        with pytest.raises(IntentValidationError):
            q.queue_range("Map", 1, 0, [[1]])

    def test_empty_values_rejected(self):
        """Range, batch append and replace intents need at least one row."""
        q = IntentQueue()
        assert q.queue_range("Map", 2, 1, []) is None
        assert q.queue_batch_append("Digest", []) is None
        assert q.queue_replace("Snap", []) is None
        assert q.total == 0
        assert len(q.validation_errors) == 3
        assert all("has no values" in e for e in q.validation_errors)

    def test_replace_needs_header(self):
        """A replace whose first row is empty would drop the header."""
        q = IntentQueue()
        assert q.queue_replace("Snap", [[]]) is None
        assert "header" in q.validation_errors[0]

    def test_strict_queue_raises_on_empty_replace(self):
        """Strict mode raises before an empty replace can reach a bucket."""
        q = IntentQueue(strict=True)
        with pytest.raises(IntentValidationError, match="no values"):
            q.queue_replace("Snap", [])
        assert q.replace_ops == []


class TestIntrospection:
    """Summaries and filters."""

    def _queue(self):
        q = IntentQueue()
        q.queue_replace("Snap", [["Key", "Value"]], domain="snapshot")
        q.queue_append("Digest", [1], domain="digest")
        q.queue_append("Digest", [2], domain="digest")
        q.queue_log("Seeds", [1])
        return q

    def test_intents_for(self):
        """intents_for filters by destination across buckets."""
        q = self._queue()
        assert len(q.intents_for("Digest")) == 2
        assert q.intents_for("Nope") == []

    def test_counts_by_domain(self):
        """counts_by_domain groups every bucket."""
        assert self._queue().counts_by_domain() == {"snapshot": 1, "digest": 2, "audit": 1}

    def test_summary(self):
        """summary reports bucket sizes and groupings."""
        s = self._queue().summary()
        assert s["total_intents"] == 4
        assert s["replace_ops"] == 1
        assert s["updates"] == 2
        assert s["logs"] == 1
        assert s["by_destination"] == {"Snap": 1, "Digest": 2, "Seeds": 1}
        assert s["by_kind"] == {"replace": 1, "append": 3}

    def test_all_intents_order(self):
        """all_intents lists replaces, then updates, then logs."""
        kinds = [i.destination for i in self._queue().all_intents()]
        assert kinds == ["Snap", "Digest", "Digest", "Seeds"]

    def test_clear(self):
        """clear empties every bucket."""
        q = self._queue()
        q.clear()
        assert q.total == 0
        assert q.all_intents() == []
