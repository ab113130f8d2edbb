"""
Day Session Manager - the cash-drawer open/close bracket around a calendar date.

WHY: Opening and closing counts are the anchors for cash accountability.
Both are append-only audit rows; neither is ever mutated or deleted.

DESIGN PRINCIPLES:
- At most one open record per date. The store has no unique constraint, so
  the check is a read before the append, serialized per date in-process.
- Close is accepted without a matching open (older data has orphaned
  closes). Orphaned or repeated closes come back as warnings; with
  CASH_CLOSE_STRICT a repeated close is a conflict instead.
- A lookup that times out is "unknown", never "not opened".
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from ..config import EngineConfig
from ..records import CASH_CLOSE_COLUMNS, CASH_OPEN_COLUMNS, DaySessionClose, DaySessionOpen
from ..rowstore import RowStore
from ..time_utils import epoch_ms, normalize_date, to_utc_z, utcnow
from ..validation import (
    ConflictError,
    PartialFailure,
    UpstreamUnavailable,
    ValidationError,
    employee_fields,
    require_non_negative,
    safe_list,
)
from .concurrency import KeyedLocks

logger = logging.getLogger(__name__)


@dataclass
class CloseResult:
    record: DaySessionClose
    warnings: list[PartialFailure] = field(default_factory=list)


def require_date(value) -> str:
    date = normalize_date(value)
    if not date:
        raise ValidationError("date is required (YYYY-MM-DD)")
    return date


class DaySessionManager:
    def __init__(self, store: RowStore, config: EngineConfig, locks: KeyedLocks):
        self.store = store
        self.open_table = config.cash_open
        self.close_table = config.cash_close
        self.close_strict = config.close_strict
        self.locks = locks

    def _opens(self) -> list[DaySessionOpen]:
        self.store.ensure_table(self.open_table, CASH_OPEN_COLUMNS)
        rows = self.store.read_rows(self.open_table, width=len(CASH_OPEN_COLUMNS))
        return [DaySessionOpen.from_row(r) for r in rows if r]

    def _closes(self) -> list[DaySessionClose]:
        self.store.ensure_table(self.close_table, CASH_CLOSE_COLUMNS)
        rows = self.store.read_rows(self.close_table, width=len(CASH_CLOSE_COLUMNS))
        return [DaySessionClose.from_row(r) for r in rows if r]

    def today(self, date: str) -> Optional[DaySessionOpen]:
        """Most recent open record for `date`, or None. Propagates UpstreamUnavailable."""
        found = None
        for rec in self._opens():
            if rec.date == date:
                found = rec
        return found

    def last_close(self, date: str) -> Optional[DaySessionClose]:
        found = None
        for rec in self._closes():
            if rec.date == date:
                found = rec
        return found

    def open_day(self, payload: dict) -> DaySessionOpen:
        """
        Open the cash day for payload["date"].

        Raises:
            ValidationError: bad date, negative amounts, missing till number
            ConflictError: an open record for the date already exists
        """
        date = require_date(payload.get("date"))
        opening_cash = require_non_negative(payload.get("openingCashTotal"), "openingCashTotal")

        till_no = str(payload.get("tillNo") or "").strip()
        if not till_no:
            raise ValidationError("tillNo is required")

        mpesa = require_non_negative(payload.get("mpesaWithdrawal"), "mpesaWithdrawal", default=0)
        employee_id, employee_name = employee_fields(payload.get("employee"))
        now = utcnow()

        with self.locks.hold(f"cash-open:{date}"):
            existing = self.today(date)
            if existing is not None:
                raise ConflictError(
                    "Day already opened for this date",
                    details={"openId": existing.open_id},
                )

            record = DaySessionOpen(
                date=date,
                open_id=str(payload.get("openId") or f"{date}-{epoch_ms(now)}"),
                opened_at=str(payload.get("openedAt") or to_utc_z(now)),
                employee_id=employee_id,
                employee_name=employee_name,
                till_no=till_no,
                mpesa_withdrawal=mpesa,
                opening_cash_total=opening_cash,
                cash_breakdown=safe_list(payload.get("cashBreakdown")),
            )
            self.store.append_row(self.open_table, record.to_row())

        logger.info("Cash day %s opened (%s) on till %s", date, record.open_id, till_no)
        return record

    def _audit_close(self, date: str, open_id: str) -> list[PartialFailure]:
        warnings: list[PartialFailure] = []
        opens = self._opens()
        if open_id:
            if not any(o.open_id == open_id for o in opens):
                warnings.append(PartialFailure("close-audit", f"No open record with openId {open_id}"))
        elif not any(o.date == date for o in opens):
            warnings.append(PartialFailure("close-audit", f"Day {date} was never opened"))

        if any(c.date == date and (not open_id or c.open_id == open_id) for c in self._closes()):
            if self.close_strict:
                raise ConflictError("Day already closed for this date", details={"date": date})
            warnings.append(PartialFailure("close-audit", f"Day {date} was already closed"))
        return warnings

    def close_day(self, payload: dict) -> CloseResult:
        date = require_date(payload.get("date"))
        closing_cash = require_non_negative(payload.get("closingCashTotal"), "closingCashTotal")
        employee_id, employee_name = employee_fields(payload.get("employee"))
        open_id = str(payload.get("openId") or "")

        with self.locks.hold(f"cash-close:{date}"):
            try:
                warnings = self._audit_close(date, open_id)
            except UpstreamUnavailable:
                if self.close_strict:
                    raise
                logger.warning("Could not verify close for %s", date, exc_info=True)
                warnings = [PartialFailure("close-audit", "Open/close history could not be verified")]

            record = DaySessionClose(
                date=date,
                open_id=open_id,
                closed_at=str(payload.get("closedAt") or to_utc_z(utcnow())),
                employee_id=employee_id,
                employee_name=employee_name,
                closing_cash_total=closing_cash,
                cash_breakdown=safe_list(payload.get("cashBreakdown")),
            )
            # the audit may have failed before the close tab was created
            self.store.ensure_table(self.close_table, CASH_CLOSE_COLUMNS)
            self.store.append_row(self.close_table, record.to_row())

        for w in warnings:
            logger.warning("Cash close %s: %s", date, w.message)
        logger.info("Cash day %s closed with %s", date, closing_cash)
        return CloseResult(record=record, warnings=warnings)
