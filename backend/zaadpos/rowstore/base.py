"""
Row Store Adapter contract.

The backing store only knows "append a row", "read a range", "overwrite a
row by number" and "delete a row range". There is no locking, no multi-row
transaction and no uniqueness: every read is a snapshot that may be stale by
the time the caller writes.

Addressing:
- row numbers are 1-based; row 1 holds the header, data starts at row 2
- delete_rows takes a zero-based half-open [start_index, end_index) range,
  so sheet row N is deleted with (N - 1, N)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Optional

from ..config import TableRef

FIRST_DATA_ROW = 2


class RowStore(ABC):
    """Uniform positional operations over named tables."""

    @abstractmethod
    def read_rows(self, table: TableRef, start_row: int = FIRST_DATA_ROW, width: int | None = None) -> list[list]:
        """Rows from start_row to the end of the table, trailing blanks trimmed."""

    @abstractmethod
    def read_row(self, table: TableRef, row_number: int) -> Optional[list]:
        """One row, or None when the row is empty or past the end."""

    @abstractmethod
    def append_row(self, table: TableRef, values: list) -> None:
        """Append after the last non-empty row."""

    @abstractmethod
    def update_row(self, table: TableRef, row_number: int, values: list) -> None:
        """Overwrite a row in place (last write wins)."""

    @abstractmethod
    def delete_rows(self, table: TableRef, start_index: int, end_index: int) -> None:
        """Delete [start_index, end_index) (zero-based); later rows shift up."""

    @abstractmethod
    def ensure_table(self, table: TableRef, headers: list[str]) -> None:
        """Create the table if missing and write the header row if it is empty."""

    @abstractmethod
    def ping(self, table: TableRef) -> None:
        """Raise UpstreamUnavailable if the store behind `table` cannot be reached."""


def find_row_index_by_key(rows: list[list], column: int, key: Any, first_row: int = FIRST_DATA_ROW) -> Optional[int]:
    """
    Sheet row number of the first row whose `column` equals `key`.

    Exact string comparison after stripping; returns None when not found.
    """
    wanted = str(key).strip()
    for i, row in enumerate(rows):
        if column < len(row) and str(row[column] if row[column] is not None else "").strip() == wanted:
            return first_row + i
    return None


def trim_row(row: list, width: int | None = None) -> list:
    """Cut to width and drop trailing empty cells, like a sheet range read."""
    out = list(row[:width] if width else row)
    while out and (out[-1] is None or out[-1] == ""):
        out.pop()
    return out
