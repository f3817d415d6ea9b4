"""
tests/test_executor.py - Tests for the persistence executor

Validates:
- replace -> updates -> logs ordering
- per-destination coalescing of appends, cells and ranges before appends
- dry-run and replay never touch the store
- strict vs. collecting failure handling
"""

import pytest

from ledger_store import InMemoryLedgerStore
from cyclesim.errors import ExecutionError
from cyclesim.executor import execute_persist_intents, group_by_destination, pad_rows
from cyclesim.types_config import MODE_DRY_RUN, MODE_STRICT, replay_mode


class FailingStore(InMemoryLedgerStore):
    """Fails every set_cell."""

    def set_cell(self, table, row, col, value):
        self.calls.append(("set_cell", table))
        raise RuntimeError("quota exceeded")


class TestPadRows:
    """Row padding."""

    def test_pads_to_widest(self):
        """Short rows are padded with empty strings."""
        assert pad_rows([[1], [1, 2, 3], []]) == [[1, "", ""], [1, 2, 3], ["", "", ""]]

    def test_empty(self):
        """No rows in, no rows out."""
        assert pad_rows([]) == []


class TestOrdering:
    """Bucket and destination ordering."""

    def test_replace_then_updates_then_logs(self, make_ctx):
        """Replaces run first and logs last, whatever the queue order."""
        ctx = make_ctx()
        ctx.persist.queue_log("Seeds", [1, 1, "x"])
        ctx.persist.queue_append("Digest", [1])
        ctx.persist.queue_replace("Snap", [["Key", "Value"], ["a", 1]])
        store = InMemoryLedgerStore()

        execute_persist_intents(ctx, store)

        assert store.write_calls == [
            ("replace_table", "Snap"),
            ("append_rows", "Digest"),
            ("append_rows", "Seeds"),
        ]

    def test_cells_then_ranges_then_appends_per_destination(self, make_ctx):
        """Within a destination, cells precede ranges which precede appends."""
        ctx = make_ctx()
        ctx.persist.queue_append("Map", ["x"])
        ctx.persist.queue_range("Map", 2, 1, [["r"]])
        ctx.persist.queue_cell("Map", 1, 1, "h")
        store = InMemoryLedgerStore()

        execute_persist_intents(ctx, store)

        assert store.write_calls == [
            ("set_cell", "Map"), ("set_range", "Map"), ("append_rows", "Map"),
        ]

    def test_destinations_in_first_seen_order(self, make_ctx):
        """Destinations flush in the order they were first queued."""
        ctx = make_ctx()
        ctx.persist.queue_append("B", [1])
        ctx.persist.queue_append("A", [1])
        ctx.persist.queue_append("B", [2])
        store = InMemoryLedgerStore()

        execute_persist_intents(ctx, store)

        assert store.write_calls == [("append_rows", "B"), ("append_rows", "A")]

    def test_priority_orders_within_bucket(self, make_ctx):
        """A lower priority value runs earlier."""
        ctx = make_ctx()
        ctx.persist.queue_append("Late", [1])
        ctx.persist.queue_append("Early", [1], priority=10)
        groups = group_by_destination(ctx.persist.updates)
        assert list(groups) == ["Early", "Late"]


class TestCoalescing:
    """Appends per destination collapse into one call."""

    def test_appends_coalesce_with_padding(self, make_ctx):
        """Three appends to one table become one padded append_rows call."""
        ctx = make_ctx()
        ctx.persist.queue_append("Digest", [1, 2])
        ctx.persist.queue_append("Digest", [3])
        ctx.persist.queue_batch_append("Digest", [[4, 5, 6], [7]])
        store = InMemoryLedgerStore({"Digest": [["A", "B", "C"]]})

        stats = execute_persist_intents(ctx, store)

        assert store.write_calls == [("append_rows", "Digest")]
        assert store.tables["Digest"][1:] == [
            [1, 2, ""], [3, "", ""], [4, 5, 6], [7, "", ""],
        ]
        assert stats.executed == 3
        assert stats.by_kind["append"] == 3
        assert stats.by_destination == {"Digest": 3}

    def test_header_row_one_for_replace(self, make_ctx):
        """A replace writes its first row as the header."""
        ctx = make_ctx()
        ctx.persist.queue_replace("Snap", [["Key", "Value"], ["cycle", 5, "extra"]])
        store = InMemoryLedgerStore()

        execute_persist_intents(ctx, store)

        table = store.read("Snap")
        assert table.header == ["Key", "Value", ""]
        assert table.rows == [["cycle", 5, "extra"]]

    def test_empty_replace_never_wipes_table(self, make_ctx):
        """An empty replace is rejected at queue time and the table keeps its header."""
        ctx = make_ctx()
        store = InMemoryLedgerStore({"Digest": [["Cycle", "X"], [1, 2]]})
        assert ctx.persist.queue_replace("Digest", []) is None

        execute_persist_intents(ctx, store)

        assert store.write_calls == []
        assert store.read("Digest").header == ["Cycle", "X"]
        assert store.read("Digest").rows == [[1, 2]]


class TestNoWriteModes:
    """Dry-run and replay."""

    @pytest.mark.parametrize("mode", [MODE_DRY_RUN, replay_mode(3)])
    def test_no_store_writes(self, make_ctx, mode):
        """No write operation reaches the store and the buckets survive."""
        ctx = make_ctx(cycle_id=3, mode=mode)
        ctx.persist.queue_replace("Snap", [["Key"]])
        ctx.persist.queue_cell("Config", 2, 2, 3)
        ctx.persist.queue_log("Seeds", [3])
        store = InMemoryLedgerStore()

        stats = execute_persist_intents(ctx, store)

        assert store.write_calls == []
        assert stats.executed == 0
        assert stats.skipped == 3
        assert ctx.persist.total == 3, "buckets kept for inspection"

    def test_dry_run_emits_intent_summary(self, make_ctx):
        """The dry run leaves an intent_summary receipt."""
        ctx = make_ctx(mode=MODE_DRY_RUN)
        ctx.persist.queue_append("Digest", [1])
        execute_persist_intents(ctx, InMemoryLedgerStore())

        receipt = ctx.audit["receipts"][-1]
        assert receipt["receipt_type"] == "intent_summary"
        assert receipt["mode"] == "dry-run"
        assert receipt["total_intents"] == 1
        assert receipt["by_destination"] == {"Digest": 1}


class TestFailures:
    """Collecting vs. strict failure handling."""

    def test_non_strict_collects_and_continues(self, make_ctx):
        """A failed cell is reported; later writes still happen and buckets clear."""
        ctx = make_ctx()
        ctx.persist.queue_cell("Config", 2, 2, 9)
        ctx.persist.queue_append("Digest", [1])
        store = FailingStore()

        stats = execute_persist_intents(ctx, store)

        assert len(stats.errors) == 1
        assert "quota exceeded" in stats.errors[0]
        assert ("append_rows", "Digest") in store.write_calls
        assert stats.executed == 1
        assert not stats.ok
        assert ctx.persist.total == 0

    def test_strict_raises_first_failure(self, make_ctx):
        """Strict mode aborts at the first failing write."""
        ctx = make_ctx(mode=MODE_STRICT)
        ctx.persist.queue_cell("Config", 2, 2, 9)
        ctx.persist.queue_append("Digest", [1])
        store = FailingStore()

        with pytest.raises(ExecutionError) as exc:
            execute_persist_intents(ctx, store)

        assert exc.value.destination == "Config"
        assert ("append_rows", "Digest") not in store.write_calls

    def test_execution_receipt(self, make_ctx):
        """A real flush leaves an execution receipt with the intents merkle root."""
        ctx = make_ctx()
        ctx.persist.queue_append("Digest", [1])
        execute_persist_intents(ctx, InMemoryLedgerStore())

        receipt = ctx.audit["receipts"][-1]
        assert receipt["receipt_type"] == "execution"
        assert ":" in receipt["intents_root"]
        assert receipt["executed"] == 1
