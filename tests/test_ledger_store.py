"""
tests/test_ledger_store.py - Tests for the ledger store boundary

Validates:
- 1-based addressing with the header in row 1
- the five table operations on both stores
- outage reporting through LedgerUnavailableError
"""

import json

import pytest

from ledger_store import (
    InMemoryLedgerStore,
    JsonLedgerStore,
    LedgerTable,
    LedgerUnavailableError,
)


@pytest.fixture(params=["memory", "json"])
def store(request, tmp_path):
    if request.param == "memory":
        return InMemoryLedgerStore()
    return JsonLedgerStore(tmp_path)


class TestLedgerTable:
    """LedgerTable view."""

    def test_records_keyed_by_header(self):
        """Short rows pad with None; blank headers are skipped."""
        t = LedgerTable("T", header=["A", "", "B"], rows=[[1, "x", 2], [3]])
        assert t.records() == [{"A": 1, "B": 2}, {"A": 3, "B": None}]

    def test_column_index_and_empty(self):
        """Header lookup is 0-based; an unknown column is None."""
        t = LedgerTable("T", header=["A", "B"])
        assert t.column_index("B") == 1
        assert t.column_index("C") is None
        assert not t.is_empty
        assert LedgerTable("T").is_empty


class TestOperations:
    """The five table operations, run against both stores."""

    def test_missing_table_reads_empty(self, store):
        """An unknown table is an empty table, not an error."""
        t = store.read("Nope")
        assert t.is_empty
        assert len(t) == 0

    def test_replace_then_append(self, store):
        """replace_table sets the header; append_rows adds data rows."""
        store.replace_table("T", [["Key", "Value"]])
        store.append_rows("T", [["a", 1], ["b", 2]])
        t = store.read("T")
        assert t.header == ["Key", "Value"]
        assert t.rows == [["a", 1], ["b", 2]]

    def test_set_cell_is_one_based(self, store):
        """Row 2 is the first data row."""
        store.replace_table("T", [["Key", "Value"], ["a", 1]])
        store.set_cell("T", 2, 2, 9)
        assert store.read("T").rows == [["a", 9]]

    def test_set_cell_grows_grid(self, store):
        """Writing past the edge pads with blanks."""
        store.replace_table("T", [["A"]])
        store.set_cell("T", 3, 2, "z")
        t = store.read("T")
        assert t.header == ["A", ""]
        assert t.rows == [["", ""], ["", "z"]]

    def test_set_range(self, store):
        """A 2D block lands at its top-left address."""
        store.replace_table("T", [["A", "B"], [0, 0], [0, 0]])
        store.set_range("T", 2, 2, [[5], [6]])
        assert store.read("T").rows == [[0, 5], [0, 6]]

    def test_bad_address(self, store):
        """Row and column 0 are rejected."""
        with pytest.raises(ValueError):
            store.set_cell("T", 0, 1, "x")


class TestInMemoryLedgerStore:
    """Call recording and outages."""

    def test_calls_recorded(self):
        """Reads and writes are logged; write_calls filters reads out."""
        store = InMemoryLedgerStore({"T": [["A"]]})
        store.read("T")
        store.append_rows("T", [[1]])
        assert store.calls == [("read", "T"), ("append_rows", "T")]
        assert store.write_calls == [("append_rows", "T")]

    def test_constructor_copies(self):
        """Seed grids are copied, not aliased."""
        grid = [["A"], [1]]
        store = InMemoryLedgerStore({"T": grid})
        store.append_rows("T", [[2]])
        assert grid == [["A"], [1]]

    def test_unavailable(self):
        """An unavailable store fails every operation."""
        store = InMemoryLedgerStore()
        store.available = False
        with pytest.raises(LedgerUnavailableError):
            store.ping()
        with pytest.raises(LedgerUnavailableError):
            store.read("T")


class TestJsonLedgerStore:
    """File layout and outages."""

    def test_file_layout(self, tmp_path):
        """Each table is one JSON file with its name and rows."""
        store = JsonLedgerStore(tmp_path)
        store.replace_table("World_Config", [["Key", "Value"], ["cycleCount", 3]])
        data = json.loads((tmp_path / "World_Config.json").read_text())
        assert data == {"table": "World_Config", "rows": [["Key", "Value"], ["cycleCount", 3]]}
        assert not (tmp_path / "World_Config.json.tmp").exists()

    def test_missing_directory(self, tmp_path):
        """A ledger directory that does not exist is an outage."""
        store = JsonLedgerStore(tmp_path / "missing")
        with pytest.raises(LedgerUnavailableError, match="not found"):
            store.ping()

    def test_corrupt_table(self, tmp_path):
        """A table file that is not JSON is reported as unavailable."""
        (tmp_path / "T.json").write_text("{not json")
        with pytest.raises(LedgerUnavailableError):
            JsonLedgerStore(tmp_path).read("T")
