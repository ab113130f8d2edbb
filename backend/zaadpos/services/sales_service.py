"""
Sales Ledger - append-only record of completed, paid sales.

WHY: The sales table is the data of record for daily reports and cash
reconciliation. Rows are created once at payment time and never mutated or
deleted, so every correction happens elsewhere.

DESIGN:
- Invoice numbers come from the per-day SequenceGenerator; the scan and the
  append run under one single-writer key so two sales cannot mint the same
  number inside this process.
- Loyalty accrual is a secondary effect: its failure is logged and reported
  as a warning, never as a failed sale.
- Legacy rows without an invoice number get a display-only number at read
  time. It is never written back.
"""

from __future__ import annotations

import logging
import math
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from ..config import EngineConfig
from ..records import SALES_COLUMNS, SaleRecord, items_count
from ..rowstore import FIRST_DATA_ROW, RowStore
from ..time_utils import day_key, invoice_day_prefix, to_utc_z, utcnow
from ..validation import (
    PartialFailure,
    ValidationError,
    as_number,
    normalize_payment_method,
    parse_positive_int,
)
from .concurrency import KeyedLocks
from .loyalty_service import LoyaltyService, points_for_total
from .sequence_service import SequenceGenerator, format_invoice_no

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 5000


@dataclass
class SaleResult:
    invoice_no: str
    sale: SaleRecord
    points: int = 0
    warnings: list[PartialFailure] = field(default_factory=list)


def validate_items(items: Any) -> list[dict]:
    if not isinstance(items, list) or not items:
        raise ValidationError("Items are required")
    for it in items:
        if not isinstance(it, dict):
            raise ValidationError("Each item must be an object")
        qty = as_number(it.get("qty"), None)
        if qty is None or qty <= 0:
            raise ValidationError(f"Invalid quantity for item '{it.get('name', '')}'")
    return items


def compute_totals(items: list[dict], discount: Any = 0) -> dict:
    """
    Totals for a cart: total = max(0, subtotal - discount) and
    profit = sum((price - cost) * qty) - discount.
    """
    subtotal = sum(as_number(it.get("price"), 0) * as_number(it.get("qty"), 0) for it in items)
    margin = sum(
        (as_number(it.get("price"), 0) - as_number(it.get("cost"), 0)) * as_number(it.get("qty"), 0)
        for it in items
    )
    disc = as_number(discount, 0) or 0
    return {
        "subtotal": as_number(subtotal),
        "total": as_number(max(0, subtotal - disc)),
        "profit": as_number(margin - disc),
        "itemsCount": items_count(items),
    }


class SalesLedger:
    def __init__(
        self,
        store: RowStore,
        config: EngineConfig,
        sequence: SequenceGenerator,
        loyalty: LoyaltyService,
        locks: KeyedLocks,
    ):
        self.store = store
        self.table = config.sales
        self.tz = config.timezone
        self.sequence = sequence
        self.loyalty = loyalty
        self.locks = locks

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def append_sale(self, sale: SaleRecord, created_at: datetime) -> SaleRecord:
        """
        Mint the invoice number for created_at's day and append the row.

        Shared by POS sales and delivery payments.
        """
        with self.locks.hold(f"sales:{self.table.key}"):
            self.store.ensure_table(self.table, SALES_COLUMNS)
            sale.invoice_no = self.sequence.next_invoice_no(self.table, created_at)
            sale.created_at = to_utc_z(created_at)
            self.store.append_row(self.table, sale.to_row())

        logger.info("Sale %s recorded (%s, total %s)", sale.invoice_no, sale.payment_method, sale.total)
        return sale

    def accrue_points(self, phone: str, name_hint: str, total) -> tuple[int, Optional[PartialFailure]]:
        """Best-effort loyalty accrual after a sale exists."""
        points = points_for_total(total) if str(phone or "").strip() else 0
        if points <= 0:
            return 0, None
        try:
            self.loyalty.accrue(phone, name_hint, points)
        except Exception as exc:
            logger.warning("Loyalty accrual failed for %s", phone, exc_info=True)
            return 0, PartialFailure("loyalty", f"Points not added: {exc}")
        return points, None

    def record_sale(self, payload: dict) -> SaleResult:
        """
        Record a POS sale and return its invoice number.

        total/profit from the POS are kept when supplied; otherwise they are
        derived from the items and discount.
        """
        items = validate_items(payload.get("items"))
        payment_method = normalize_payment_method(payload.get("paymentMethod"))
        computed = compute_totals(items, payload.get("discount", 0))

        total = as_number(payload.get("total"), None)
        if total is None:
            total = computed["total"]
        if total < 0:
            raise ValidationError("total must be a non-negative number")
        profit = as_number(payload.get("profit"), None)
        if profit is None:
            profit = computed["profit"]

        sale = SaleRecord(
            created_at="",
            client_name=str(payload.get("clientName") or "").strip(),
            client_phone=str(payload.get("clientPhone") or "").strip(),
            payment_method=payment_method,
            items_count=computed["itemsCount"],
            total=total,
            profit=profit,
            items=items,
        )
        self.append_sale(sale, utcnow())

        result = SaleResult(invoice_no=sale.invoice_no, sale=sale)
        points, failure = self.accrue_points(sale.client_phone, sale.client_name, total)
        result.points = points
        if failure:
            result.warnings.append(failure)

        requested = as_number(payload.get("addPoints"), 0)
        if requested and sale.client_phone and requested != points_for_total(total):
            logger.warning(
                "Sale %s: POS asked for %s points, accrued %s from total %s",
                sale.invoice_no, requested, points_for_total(total), total,
            )
        return result

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _load(self) -> list[tuple[int, SaleRecord]]:
        self.store.ensure_table(self.table, SALES_COLUMNS)
        rows = self.store.read_rows(self.table, width=len(SALES_COLUMNS))
        return [
            (FIRST_DATA_ROW + i, SaleRecord.from_row(row))
            for i, row in enumerate(rows)
            if row
        ]

    def _local_day(self, dt: Optional[datetime]) -> Optional[str]:
        """Day key in the configured zone; None for a missing or out-of-range instant."""
        if dt is None:
            return None
        try:
            return day_key(dt, self.tz)
        except (OverflowError, ValueError):
            return None

    def _derive_display_numbers(self, entries: list[tuple[int, SaleRecord]]) -> set[int]:
        """
        Fill empty invoice numbers in place for display; returns the row
        numbers that got one.

        The number is the row's position within its day, bumped past any
        number already persisted for that day.
        """
        used = {sale.invoice_no for _, sale in entries if sale.invoice_no}
        per_day: Counter = Counter()
        generated: set[int] = set()

        for row_number, sale in entries:
            dt = sale.timestamp
            key = self._local_day(dt)
            if key is None:
                dt, key = None, ""
            per_day[key] += 1
            if sale.invoice_no or dt is None:
                continue
            prefix = invoice_day_prefix(dt, self.tz)
            n = per_day[key]
            while format_invoice_no(prefix, n) in used:
                n += 1
            sale.invoice_no = format_invoice_no(prefix, n)
            used.add(sale.invoice_no)
            generated.add(row_number)
        return generated

    def duplicate_invoice_numbers(self, entries: list[tuple[int, SaleRecord]] | None = None) -> dict[str, list[int]]:
        """Persisted invoice numbers that appear on more than one row."""
        if entries is None:
            entries = self._load()
        seen: dict[str, list[int]] = {}
        for row_number, sale in entries:
            if sale.invoice_no:
                seen.setdefault(sale.invoice_no, []).append(row_number)
        return {inv: rows for inv, rows in seen.items() if len(rows) > 1}

    def list_sales(self, q: str | None = None, page: Any = None, limit: Any = None) -> dict:
        page_n = parse_positive_int(page, "page", default=1)
        limit_n = min(parse_positive_int(limit, "limit", default=DEFAULT_PAGE_SIZE), MAX_PAGE_SIZE)

        entries = self._load()
        duplicates = self.duplicate_invoice_numbers(entries)
        if duplicates:
            logger.warning("Duplicate invoice numbers in %s: %s", self.table.tab, sorted(duplicates))
        generated = self._derive_display_numbers(entries)

        out = []
        for row_number, sale in entries:
            d = {"id": str(row_number), **sale.to_dict()}
            if row_number in generated:
                d["generatedInvoiceNo"] = True
            elif sale.invoice_no in duplicates:
                d["duplicateInvoiceNo"] = True
            out.append((sale.timestamp, d))

        needle = str(q or "").strip().lower()
        if needle:
            out = [
                (ts, d) for ts, d in out
                if needle in d["invoiceNo"].lower()
                or needle in d["clientName"].lower()
                or needle in d["clientPhone"].lower()
            ]

        # Newest first; unparseable timestamps sink to the end
        out.sort(key=lambda pair: pair[0].timestamp() if pair[0] else 0, reverse=True)

        count = len(out)
        start = (page_n - 1) * limit_n
        return {
            "rows": [d for _, d in out[start:start + limit_n]],
            "count": count,
            "total": count,
            "page": page_n,
            "limit": limit_n,
            "pageCount": max(1, math.ceil(count / limit_n)),
        }

    def sales_between(self, from_key: str, to_key: str) -> list[SaleRecord]:
        """Sales whose calendar day (configured zone) is within [from_key, to_key]."""
        out = []
        for _, sale in self._load():
            key = self._local_day(sale.timestamp)
            if key and from_key <= key <= to_key:
                out.append(sale)
        return out
