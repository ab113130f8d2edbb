"""
Per-day invoice sequence.

Invoice numbers look like "<day> <month> <2-digit-year> <sequence>", e.g.
"10 1 24 3" for the third sale of 10 January 2024 in the configured zone.

DESIGN:
- One counter row per calendar day in the InvoiceCounters table holds the
  last number handed out. A number is reserved (counter written) before the
  sale row is appended, so a failed append leaves a gap, never a reuse.
- The first sale of a day seeds its counter from a scan of the sales table,
  which also covers rows written before counters existed. Later sales still
  take the highest number persisted for the day into account, so numbers
  issued while the counter was unreachable are never handed out again.
- If the counter table cannot be used, numbering falls back to the scan,
  and if the scan fails too, to 1: the sale goes through either way.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from ..config import EngineConfig, TableRef
from ..records import COUNTER_COLUMNS
from ..rowstore import FIRST_DATA_ROW, RowStore
from ..time_utils import day_key, invoice_day_prefix, normalize_date, parse_sheet_timestamp, to_utc_z, utcnow
from ..validation import UpstreamUnavailable, as_number

logger = logging.getLogger(__name__)


def format_invoice_no(prefix: str, sequence: int) -> str:
    return f"{prefix} {sequence}"


def parse_invoice_no(value: str) -> Optional[tuple[str, int]]:
    """("10 1 24", 3) for "10 1 24 3"; None for anything else."""
    parts = str(value or "").split()
    if len(parts) != 4 or not all(p.isdigit() for p in parts):
        return None
    return " ".join(parts[:3]), int(parts[3])


class SequenceGenerator:
    def __init__(self, store: RowStore, config: EngineConfig):
        self.store = store
        self.tz = config.timezone
        self.counters = config.invoice_counters

    def count_for_day(self, rows: list[list], key: str) -> int:
        """Rows whose timestamp falls on `key`; malformed timestamps are skipped."""
        count = 0
        for row in rows:
            dt = parse_sheet_timestamp(row[0] if row else None)
            if dt is None:
                continue
            try:
                if day_key(dt, self.tz) == key:
                    count += 1
            except (OverflowError, ValueError):
                continue
        return count

    @staticmethod
    def max_sequence_for_prefix(rows: list[list], prefix: str) -> int:
        best = 0
        for row in rows:
            parsed = parse_invoice_no(row[1]) if len(row) > 1 else None
            if parsed and parsed[0] == prefix:
                best = max(best, parsed[1])
        return best

    def next_sequence(self, table: TableRef, now: datetime) -> int:
        """
        count + 1 of the rows already on `now`'s calendar day.

        Also never below the highest persisted sequence for the day + 1, so a
        deleted row cannot make the next sale reuse a number. Falls back to 1
        when the scan fails.
        """
        try:
            rows = self.store.read_rows(table, width=2)
        except UpstreamUnavailable:
            logger.warning("Invoice sequence scan failed on %s; falling back to 1", table.tab, exc_info=True)
            return 1

        count = self.count_for_day(rows, day_key(now, self.tz))
        highest = self.max_sequence_for_prefix(rows, invoice_day_prefix(now, self.tz))
        return max(count, highest) + 1

    def highest_persisted(self, table: TableRef, now: datetime) -> int:
        """Highest sequence already stored for `now`'s day; 0 when the scan fails."""
        try:
            rows = self.store.read_rows(table, width=2)
        except UpstreamUnavailable:
            logger.warning("Invoice scan failed on %s; trusting the counter", table.tab, exc_info=True)
            return 0
        return self.max_sequence_for_prefix(rows, invoice_day_prefix(now, self.tz))

    def _find_counter(self, rows: list[list], key: str) -> Optional[int]:
        # Sheets may hand the day cell back as a serial date
        for i, row in enumerate(rows):
            if row and normalize_date(row[0]) == key:
                return FIRST_DATA_ROW + i
        return None

    def reserve(self, table: TableRef, now: datetime) -> int:
        """
        Reserve the next sequence for `now`'s day and persist it.

        Callers serialize this with the sales append (single writer).
        """
        key = day_key(now, self.tz)
        try:
            self.store.ensure_table(self.counters, COUNTER_COLUMNS)
            rows = self.store.read_rows(self.counters, width=len(COUNTER_COLUMNS))
            row_number = self._find_counter(rows, key)
            if row_number is None:
                sequence = self.next_sequence(table, now)
                self.store.append_row(self.counters, [key, sequence, to_utc_z(utcnow())])
            else:
                last = rows[row_number - FIRST_DATA_ROW]
                counted = int(as_number(last[1] if len(last) > 1 else 0, 0))
                sequence = max(counted, self.highest_persisted(table, now)) + 1
                self.store.update_row(self.counters, row_number, [key, sequence, to_utc_z(utcnow())])
        except UpstreamUnavailable:
            logger.warning("Invoice counter unavailable for %s; numbering from a scan", key, exc_info=True)
            return self.next_sequence(table, now)
        return sequence

    def next_invoice_no(self, table: TableRef, now: datetime) -> str:
        return format_invoice_no(invoice_day_prefix(now, self.tz), self.reserve(table, now))
