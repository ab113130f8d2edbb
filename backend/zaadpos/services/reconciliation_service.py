"""
Cash reconciliation and manual withdrawals.

Expected balance per bucket (cash, till, withdrawal, send_money):

    expected = opening + sales in range by payment method - manual withdrawals

expectedTotal is the sum of the four buckets. The arithmetic is pure; the
summary builder only gathers its inputs and never writes.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Iterable, Optional

from ..config import EngineConfig
from ..records import WITHDRAWAL_COLUMNS, DaySessionClose, ManualWithdrawal, SaleRecord
from ..rowstore import RowStore, find_row_index_by_key
from ..time_utils import to_utc_z, utcnow
from ..validation import (
    PAYMENT_METHODS,
    NotFoundError,
    UpstreamUnavailable,
    ValidationError,
    as_number,
    normalize_payment_method,
    require_positive,
)
from .cash_service import DaySessionManager, require_date
from .concurrency import KeyedLocks
from .sales_service import SalesLedger

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Buckets:
    cash: float = 0
    till: float = 0
    withdrawal: float = 0
    send_money: float = 0

    @property
    def total(self):
        return as_number(self.cash + self.till + self.withdrawal + self.send_money)

    def __add__(self, other: "Buckets") -> "Buckets":
        return Buckets(*(as_number(a + b) for a, b in zip(self._values(), other._values())))

    def __sub__(self, other: "Buckets") -> "Buckets":
        return Buckets(*(as_number(a - b) for a, b in zip(self._values(), other._values())))

    def _values(self) -> tuple:
        return (self.cash, self.till, self.withdrawal, self.send_money)

    def to_dict(self) -> dict:
        return {
            "cash": as_number(self.cash),
            "till": as_number(self.till),
            "withdrawal": as_number(self.withdrawal),
            "sendMoney": as_number(self.send_money),
            "total": self.total,
        }


def _bucketize(pairs: Iterable[tuple[str, float]]) -> Buckets:
    sums = {m: 0 for m in PAYMENT_METHODS}
    for method, amount in pairs:
        if method in sums:
            sums[method] += as_number(amount, 0)
    return Buckets(**{m: as_number(v) for m, v in sums.items()})


def sales_by_method(sales: Iterable[SaleRecord]) -> Buckets:
    """Sales totals per bucket; unknown payment methods are left out."""
    return _bucketize((s.payment_method, s.total) for s in sales)


def withdrawals_by_source(withdrawals: Iterable[ManualWithdrawal]) -> Buckets:
    return _bucketize((w.source, w.amount) for w in withdrawals)


def expected_balances(opening: Buckets, sales: Buckets, withdrawals: Buckets) -> Buckets:
    return opening + sales - withdrawals


@dataclass
class DayOpening:
    """Opening values and where they came from: session | override | none | unknown."""
    buckets: Buckets = field(default_factory=Buckets)
    source: str = "none"


class WithdrawalBook:
    """Manual cash/till removals, one append-only row each; removal deletes the row."""

    def __init__(self, store: RowStore, config: EngineConfig, locks: KeyedLocks):
        self.store = store
        self.table = config.withdrawals
        self.locks = locks

    def _rows(self) -> list[list]:
        self.store.ensure_table(self.table, WITHDRAWAL_COLUMNS)
        return self.store.read_rows(self.table, width=len(WITHDRAWAL_COLUMNS))

    def for_day(self, date: str) -> list[ManualWithdrawal]:
        return [w for w in (ManualWithdrawal.from_row(r) for r in self._rows() if r) if w.date == date]

    def between(self, from_key: str, to_key: str) -> list[ManualWithdrawal]:
        return [
            w for w in (ManualWithdrawal.from_row(r) for r in self._rows() if r)
            if from_key <= w.date <= to_key
        ]

    def add(self, payload: dict) -> ManualWithdrawal:
        date = require_date(payload.get("date"))
        source = normalize_payment_method(payload.get("source"))
        amount = require_positive(payload.get("amount"), "amount")

        record = ManualWithdrawal(
            date=date,
            withdrawal_id=uuid.uuid4().hex[:12],
            recorded_at=to_utc_z(utcnow()),
            source=source,
            amount=amount,
            note=str(payload.get("note") or "").strip(),
        )
        self.store.ensure_table(self.table, WITHDRAWAL_COLUMNS)
        self.store.append_row(self.table, record.to_row())
        logger.info("Manual %s withdrawal of %s on %s", source, amount, date)
        return record

    def remove(self, withdrawal_id: str) -> None:
        withdrawal_id = str(withdrawal_id or "").strip()
        if not withdrawal_id:
            raise ValidationError("withdrawal id is required")
        with self.locks.hold(f"withdrawals:{self.table.key}"):
            row_number = find_row_index_by_key(self._rows(), 1, withdrawal_id)
            if row_number is None:
                raise NotFoundError("Withdrawal not found")
            self.store.delete_rows(self.table, row_number - 1, row_number)


def resolve_opening(sessions: DaySessionManager, date: str,
                    opening_cash=None, opening_till=None) -> DayOpening:
    """
    Opening balances for a day: the open record's openingCashTotal and
    mpesaWithdrawal (till float), with explicit overrides on top.

    A failed lookup yields source "unknown" so the caller never mistakes an
    unreachable store for a day that was not opened.
    """
    cash = as_number(opening_cash, None)
    till = as_number(opening_till, None)

    try:
        record = sessions.today(date)
    except UpstreamUnavailable:
        logger.warning("Day-open lookup for %s failed", date, exc_info=True)
        return DayOpening(Buckets(cash=cash or 0, till=till or 0), "unknown")

    if record is None:
        source = "override" if cash is not None or till is not None else "none"
        return DayOpening(Buckets(cash=cash or 0, till=till or 0), source)

    source = "override" if cash is not None or till is not None else "session"
    return DayOpening(
        Buckets(
            cash=record.opening_cash_total if cash is None else cash,
            till=record.mpesa_withdrawal if till is None else till,
        ),
        source,
    )


def build_summary(
    *,
    sessions: DaySessionManager,
    ledger: SalesLedger,
    withdrawals: WithdrawalBook,
    from_date,
    to_date=None,
    opening_cash=None,
    opening_till=None,
) -> dict:
    from_key = require_date(from_date)
    to_key = require_date(to_date) if to_date else from_key
    if to_key < from_key:
        raise ValidationError("to must not be before from")

    sales = ledger.sales_between(from_key, to_key)
    by_method = sales_by_method(sales)
    manual = withdrawals.between(from_key, to_key)
    manual_buckets = withdrawals_by_source(manual)

    summary = {
        "from": from_key,
        "to": to_key,
        "salesCount": len(sales),
        "totalSales": as_number(sum(as_number(s.total, 0) for s in sales)),
        "totalProfit": as_number(sum(as_number(s.profit, 0) for s in sales)),
        "salesByMethod": by_method.to_dict(),
        "withdrawals": [w.to_dict() for w in manual],
        "manualWithdrawals": manual_buckets.to_dict(),
        "singleDay": from_key == to_key,
    }
    if from_key != to_key:
        return summary

    opening = resolve_opening(sessions, from_key, opening_cash, opening_till)
    expected = expected_balances(opening.buckets, by_method, manual_buckets)
    summary.update({
        "opening": opening.buckets.to_dict(),
        "openingSource": opening.source,
        "expected": expected.to_dict(),
        "expectedTotal": expected.total,
    })

    close = _last_close_or_none(sessions, from_key)
    if close is not None:
        summary["closingCashTotal"] = close.closing_cash_total
        summary["variance"] = as_number(as_number(close.closing_cash_total, 0) - expected.cash)
    return summary


def _last_close_or_none(sessions: DaySessionManager, date: str) -> Optional[DaySessionClose]:
    try:
        return sessions.last_close(date)
    except UpstreamUnavailable:
        logger.warning("Day-close lookup for %s failed", date, exc_info=True)
        return None
