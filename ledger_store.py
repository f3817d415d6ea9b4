"""
ledger_store.py - Ledger Store Boundary

The kernel persists through exactly five table operations:

    read(table)                          -> LedgerTable
    set_cell(table, row, col, value)
    set_range(table, row, col, values)
    append_rows(table, rows)
    replace_table(table, rows)

Rows and columns are 1-based and row 1 is the header row, so a table that
holds a header and three records spans rows 1..4. replace_table() treats the
first row it is given as the header.

Two stores ship with the kernel:
- InMemoryLedgerStore: dict-backed, records every call (tests, dry runs)
- JsonLedgerStore: one JSON file per table under a root directory
"""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from receipts import StopRule

__all__ = [
    "LedgerStore",
    "LedgerTable",
    "LedgerUnavailableError",
    "InMemoryLedgerStore",
    "JsonLedgerStore",
    "WRITE_OPERATIONS",
]

logger = logging.getLogger(__name__)

WRITE_OPERATIONS = ("set_cell", "set_range", "append_rows", "replace_table")

Grid = List[List[Any]]


class LedgerUnavailableError(StopRule):
    """The ledger store cannot be reached. Aborts a cycle before any phase runs."""
    pass


# =============================================================================
# TABLE VIEW
# =============================================================================

@dataclass
class LedgerTable:
    """Snapshot of a table: header plus data rows, with header-based lookup."""
    name: str
    header: List[str] = field(default_factory=list)
    rows: List[List[Any]] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.rows)

    @property
    def is_empty(self) -> bool:
        return not self.header and not self.rows

    def column_index(self, name: str) -> Optional[int]:
        """0-based index of a header name, or None."""
        try:
            return self.header.index(name)
        except ValueError:
            return None

    def records(self) -> List[Dict[str, Any]]:
        """Data rows as dicts keyed by header; short rows pad with None."""
        out = []
        for row in self.rows:
            out.append({
                key: (row[i] if i < len(row) else None)
                for i, key in enumerate(self.header)
                if key != ""
            })
        return out


# =============================================================================
# ABSTRACT STORE
# =============================================================================

class LedgerStore(ABC):
    """Abstract ledger store. Subclasses provide the five table operations."""

    def ping(self) -> None:
        """Raise LedgerUnavailableError if the store cannot be used."""
        return None

    @abstractmethod
    def read(self, table: str) -> LedgerTable:
        ...

    @abstractmethod
    def set_cell(self, table: str, row: int, col: int, value: Any) -> None:
        ...

    @abstractmethod
    def set_range(self, table: str, row: int, col: int, values: Sequence[Sequence[Any]]) -> None:
        ...

    @abstractmethod
    def append_rows(self, table: str, rows: Sequence[Sequence[Any]]) -> None:
        ...

    @abstractmethod
    def replace_table(self, table: str, rows: Sequence[Sequence[Any]]) -> None:
        ...


# =============================================================================
# GRID HELPERS
# =============================================================================

def _ensure_size(grid: Grid, n_rows: int, n_cols: int) -> None:
    while len(grid) < n_rows:
        grid.append([])
    for r in range(n_rows):
        row = grid[r]
        if len(row) < n_cols:
            row.extend([""] * (n_cols - len(row)))


def _check_address(row: int, col: int) -> None:
    if row < 1 or col < 1:
        raise ValueError(f"addresses are 1-based, got row={row} col={col}")


def _grid_to_table(name: str, grid: Grid) -> LedgerTable:
    if not grid:
        return LedgerTable(name=name)
    header = [str(h) if h is not None else "" for h in grid[0]]
    return LedgerTable(name=name, header=header, rows=[list(r) for r in grid[1:]])


class _GridLedgerStore(LedgerStore):
    """Implements the five operations on a list-of-rows grid per table."""

    def _load(self, table: str) -> Grid:
        raise NotImplementedError

    def _save(self, table: str, grid: Grid) -> None:
        raise NotImplementedError

    def read(self, table: str) -> LedgerTable:
        self.ping()
        return _grid_to_table(table, self._load(table))

    def set_cell(self, table: str, row: int, col: int, value: Any) -> None:
        self.ping()
        _check_address(row, col)
        grid = self._load(table)
        _ensure_size(grid, row, col)
        grid[row - 1][col - 1] = value
        self._save(table, grid)

    def set_range(self, table: str, row: int, col: int, values: Sequence[Sequence[Any]]) -> None:
        self.ping()
        _check_address(row, col)
        if not values:
            return
        width = max(len(v) for v in values)
        grid = self._load(table)
        _ensure_size(grid, row + len(values) - 1, col + width - 1)
        for r, line in enumerate(values):
            for c, value in enumerate(line):
                grid[row - 1 + r][col - 1 + c] = value
        self._save(table, grid)

    def append_rows(self, table: str, rows: Sequence[Sequence[Any]]) -> None:
        self.ping()
        if not rows:
            return
        grid = self._load(table)
        grid.extend(list(r) for r in rows)
        self._save(table, grid)

    def replace_table(self, table: str, rows: Sequence[Sequence[Any]]) -> None:
        self.ping()
        self._save(table, [list(r) for r in rows])


# =============================================================================
# IN-MEMORY STORE
# =============================================================================

class InMemoryLedgerStore(_GridLedgerStore):
    """
    Dict-backed store.

    Every operation is appended to `calls` as (operation, table) so callers can
    assert on store traffic. Set `available = False` to simulate an outage.
    """

    def __init__(self, tables: Optional[Dict[str, Grid]] = None):
        self.tables: Dict[str, Grid] = {
            name: [list(r) for r in grid] for name, grid in (tables or {}).items()
        }
        self.calls: List[Tuple[str, str]] = []
        self.available = True

    def ping(self) -> None:
        if not self.available:
            raise LedgerUnavailableError("in-memory ledger marked unavailable")

    @property
    def write_calls(self) -> List[Tuple[str, str]]:
        return [c for c in self.calls if c[0] in WRITE_OPERATIONS]

    def _load(self, table: str) -> Grid:
        return [list(r) for r in self.tables.get(table, [])]

    def _save(self, table: str, grid: Grid) -> None:
        self.tables[table] = grid

    def read(self, table: str) -> LedgerTable:
        self.calls.append(("read", table))
        return super().read(table)

    def set_cell(self, table: str, row: int, col: int, value: Any) -> None:
        self.calls.append(("set_cell", table))
        super().set_cell(table, row, col, value)

    def set_range(self, table: str, row: int, col: int, values: Sequence[Sequence[Any]]) -> None:
        self.calls.append(("set_range", table))
        super().set_range(table, row, col, values)

    def append_rows(self, table: str, rows: Sequence[Sequence[Any]]) -> None:
        self.calls.append(("append_rows", table))
        super().append_rows(table, rows)

    def replace_table(self, table: str, rows: Sequence[Sequence[Any]]) -> None:
        self.calls.append(("replace_table", table))
        super().replace_table(table, rows)


# =============================================================================
# JSON FILE STORE
# =============================================================================

class JsonLedgerStore(_GridLedgerStore):
    """
    One `<table>.json` file per table under `root`.

    Files hold {"table": name, "rows": [[...], ...]} with the header as the
    first row. Writes go through a temp file and an atomic rename.
    """

    def __init__(self, root):
        self.root = Path(root)

    def ping(self) -> None:
        if not self.root.is_dir():
            raise LedgerUnavailableError(f"ledger directory not found: {self.root}")

    def _path(self, table: str) -> Path:
        return self.root / f"{table}.json"

    def _load(self, table: str) -> Grid:
        path = self._path(table)
        if not path.exists():
            return []
        try:
            data = json.loads(path.read_text())
        except json.JSONDecodeError as e:
            raise LedgerUnavailableError(f"table {table} is not valid JSON: {e}") from e
        return [list(r) for r in data.get("rows", [])]

    def _save(self, table: str, grid: Grid) -> None:
        path = self._path(table)
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(json.dumps({"table": table, "rows": grid}, indent=1, default=str))
        tmp.replace(path)
        logger.debug("wrote %s (%d rows)", path, len(grid))
