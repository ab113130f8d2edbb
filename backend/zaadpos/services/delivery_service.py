"""
Delivery orders and their conversion into sales.

WHY: A delivery order is money not yet received. It must not touch daily
sales or cash until the customer pays, and then it must land in the sales
ledger exactly once, dated on the payment day.

PAY SEQUENCE (store has no transactions):
1. read the delivery row
2. append the sale (fresh invoice number, payment-day timestamp)
3. accrue loyalty points (best-effort)
4. delete the delivery row

Step 2 always precedes step 4. If the delete fails the order is paid but
still listed: a visible duplicate, never a lost payment.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from ..config import EngineConfig
from ..records import DELIVERY_COLUMNS, DeliveryOrder, SaleRecord
from ..rowstore import FIRST_DATA_ROW, RowStore, find_row_index_by_key
from ..time_utils import epoch_ms, is_calendar_date, midday_utc, parse_iso_datetime, to_utc_z, utcnow
from ..validation import (
    ConflictError,
    NotFoundError,
    PartialFailure,
    ValidationError,
    as_number,
    normalize_payment_method,
)
from .concurrency import KeyedLocks
from .sales_service import SalesLedger, compute_totals, validate_items

logger = logging.getLogger(__name__)


@dataclass
class PaymentResult:
    sale: SaleRecord
    order: DeliveryOrder
    points: int = 0
    warnings: list[PartialFailure] = field(default_factory=list)


def parse_row_id(value: Any) -> int:
    s = str(value or "").strip()
    if not s.isdigit() or int(s) < FIRST_DATA_ROW:
        raise ValidationError("Invalid id")
    return int(s)


def payment_instant(payment_date: Any):
    """
    Mid-day UTC on the payment date, so a UI bucketing by local calendar day
    never shifts it to a neighbouring day; the current instant otherwise.
    """
    if is_calendar_date(payment_date):
        return parse_iso_datetime(midday_utc(str(payment_date).strip()))
    return utcnow()


class DeliveryService:
    def __init__(
        self,
        store: RowStore,
        config: EngineConfig,
        ledger: SalesLedger,
        locks: KeyedLocks,
    ):
        self.store = store
        self.table = config.delivery
        self.ledger = ledger
        self.locks = locks

    def _ensure(self) -> None:
        self.store.ensure_table(self.table, DELIVERY_COLUMNS)

    def list_orders(self) -> list[DeliveryOrder]:
        self._ensure()
        rows = self.store.read_rows(self.table, width=len(DELIVERY_COLUMNS))
        return [
            DeliveryOrder.from_row(r, FIRST_DATA_ROW + i)
            for i, r in enumerate(rows)
            if r
        ]

    def create_order(self, payload: dict) -> DeliveryOrder:
        items = validate_items(payload.get("items"))
        computed = compute_totals(items, payload.get("discount", 0))
        now = utcnow()

        total = as_number(payload.get("total"), None)
        profit = as_number(payload.get("profit"), None)
        order = DeliveryOrder(
            created_at=to_utc_z(now),
            order_no=str(payload.get("orderNo") or epoch_ms(now)),
            client_name=str(payload.get("clientName") or "").strip(),
            client_phone=str(payload.get("clientPhone") or "").strip(),
            items_count=computed["itemsCount"],
            total=computed["total"] if total is None else total,
            profit=computed["profit"] if profit is None else profit,
            items=items,
            note=str(payload.get("note") or ""),
        )

        self._ensure()
        self.store.append_row(self.table, order.to_row())
        logger.info("Delivery order %s created for %s", order.order_no, order.client_phone or order.client_name)
        return order

    def _locate_for_delete(self, order: DeliveryOrder, row_id: int) -> Optional[int]:
        """
        Row number currently holding `order`: the original position if it
        still matches, otherwise the first row with the same order number.
        """
        current = self.store.read_row(self.table, row_id)
        if current and DeliveryOrder.from_row(current).order_no == order.order_no:
            return row_id
        if not order.order_no:
            return None
        rows = self.store.read_rows(self.table, width=len(DELIVERY_COLUMNS))
        return find_row_index_by_key(rows, 1, order.order_no)

    def pay(self, row_id: Any, payment_method: Any = "cash", payment_date: Any = None,
            expected_order_no: Any = None) -> PaymentResult:
        """
        Convert the unpaid order at sheet row `row_id` into a sale.

        Raises:
            ValidationError: bad id or payment method
            NotFoundError: no order at that row
            ConflictError: the row holds a different order than the caller saw
        """
        row_number = parse_row_id(row_id)
        method = normalize_payment_method(payment_method)
        self._ensure()

        with self.locks.hold(f"delivery:{self.table.key}"):
            row = self.store.read_row(self.table, row_number)
            if not row:
                raise NotFoundError("Order not found")
            order = DeliveryOrder.from_row(row, row_number)

            expected = str(expected_order_no or "").strip()
            if expected and expected != order.order_no:
                raise ConflictError(
                    "Order list is out of date; reload and try again",
                    details={"orderNo": order.order_no},
                )

            sale = SaleRecord(
                created_at="",
                client_name=order.client_name,
                client_phone=order.client_phone,
                payment_method=method,
                items_count=order.items_count,
                total=order.total,
                profit=order.profit,
                items=order.items,
            )
            self.ledger.append_sale(sale, payment_instant(payment_date))
            result = PaymentResult(sale=sale, order=order)

            points, failure = self.ledger.accrue_points(
                order.client_phone, order.client_name or order.client_phone, order.total,
            )
            result.points = points
            if failure:
                result.warnings.append(failure)

            try:
                target = self._locate_for_delete(order, row_number)
                if target is None:
                    raise NotFoundError(f"Order {order.order_no} no longer in the delivery list")
                self.store.delete_rows(self.table, target - 1, target)
            except Exception as exc:
                logger.warning(
                    "Delivery %s paid as %s but its row was not removed",
                    order.order_no, sale.invoice_no, exc_info=True,
                )
                result.warnings.append(PartialFailure("delivery-cleanup", f"Delivery row not removed: {exc}"))

        logger.info("Delivery %s paid as sale %s", order.order_no, sale.invoice_no)
        return result
