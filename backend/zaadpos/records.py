"""
Positional row layouts for the backing tables.

Column order is part of the wire contract: rows are lists, not named
records, so every reader and writer goes through these classes.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Optional

from .time_utils import normalize_date, parse_sheet_timestamp, to_utc_z
from .validation import as_number, normalize_payment_method, safe_list


SALES_COLUMNS = [
    "CreatedAt", "InvoiceNo", "ClientName", "ClientPhone", "PaymentMethod",
    "ItemsCount", "Total", "Profit", "ItemsJSON",
]
DELIVERY_COLUMNS = [
    "CreatedAt", "OrderNo", "ClientName", "ClientPhone", "ItemsCount",
    "Total", "Profit", "ItemsJSON", "Note", "Status",
]
CASH_OPEN_COLUMNS = [
    "Date", "OpenId", "OpenedAt", "EmployeeId", "EmployeeName", "TillNo",
    "MpesaWithdrawal", "OpeningCashTotal", "CashBreakdownJSON",
]
CASH_CLOSE_COLUMNS = [
    "Date", "OpenId", "ClosedAt", "EmployeeId", "EmployeeName",
    "ClosingCashTotal", "CashBreakdownJSON",
]
CLIENT_COLUMNS = ["Phone", "Name", "Address", "Points", "Notes"]
WITHDRAWAL_COLUMNS = ["Date", "WithdrawalId", "RecordedAt", "Source", "Amount", "Note"]
COUNTER_COLUMNS = ["Date", "LastSequence", "UpdatedAt"]

DELIVERY_UNPAID = "UNPAID"


def _cell(row: list, i: int, default: Any = "") -> Any:
    if i < len(row) and row[i] is not None and row[i] != "":
        return row[i]
    return default


def _text(row: list, i: int) -> str:
    return str(_cell(row, i, ""))


def _date(row: list, i: int) -> str:
    # Sheets may turn a typed date into a serial day number
    raw = _cell(row, i, "")
    return normalize_date(raw) or str(raw)


def _timestamp_out(raw: Any) -> str:
    """ISO form of a timestamp cell; unparseable cells are passed through."""
    dt = parse_sheet_timestamp(raw)
    if dt is None:
        return str(raw or "")
    return to_utc_z(dt)


def items_count(items: list) -> int | float:
    return as_number(sum(as_number(it.get("qty"), 0) for it in items if isinstance(it, dict)), 0)


@dataclass
class SaleRecord:
    created_at: Any
    invoice_no: str = ""
    client_name: str = ""
    client_phone: str = ""
    payment_method: str = "cash"
    items_count: int | float = 0
    total: int | float = 0
    profit: int | float = 0
    items: list = field(default_factory=list)

    @classmethod
    def from_row(cls, row: list) -> "SaleRecord":
        return cls(
            created_at=_cell(row, 0, ""),
            invoice_no=_text(row, 1),
            client_name=_text(row, 2),
            client_phone=_text(row, 3),
            payment_method=normalize_payment_method(_cell(row, 4, ""), strict=False),
            items_count=as_number(_cell(row, 5, 0)),
            total=as_number(_cell(row, 6, 0)),
            profit=as_number(_cell(row, 7, 0)),
            items=safe_list(_cell(row, 8, "")),
        )

    def to_row(self) -> list:
        return [
            self.created_at,
            str(self.invoice_no or ""),
            str(self.client_name or ""),
            str(self.client_phone or ""),
            str(self.payment_method or "cash"),
            as_number(self.items_count),
            as_number(self.total),
            as_number(self.profit),
            json.dumps(self.items),
        ]

    @property
    def timestamp(self):
        return parse_sheet_timestamp(self.created_at)

    def to_dict(self) -> dict:
        return {
            "createdAt": _timestamp_out(self.created_at),
            "invoiceNo": self.invoice_no,
            # alias kept for older POS clients
            "invoiceNumber": self.invoice_no,
            "clientName": self.client_name,
            "clientPhone": self.client_phone,
            "paymentMethod": self.payment_method,
            "itemsCount": self.items_count,
            "total": self.total,
            "profit": self.profit,
            "items": self.items,
        }


@dataclass
class DeliveryOrder:
    created_at: Any
    order_no: str = ""
    client_name: str = ""
    client_phone: str = ""
    items_count: int | float = 0
    total: int | float = 0
    profit: int | float = 0
    items: list = field(default_factory=list)
    note: str = ""
    status: str = DELIVERY_UNPAID
    row_number: Optional[int] = None

    @classmethod
    def from_row(cls, row: list, row_number: int | None = None) -> "DeliveryOrder":
        return cls(
            created_at=_cell(row, 0, ""),
            order_no=_text(row, 1),
            client_name=_text(row, 2),
            client_phone=_text(row, 3),
            items_count=as_number(_cell(row, 4, 0)),
            total=as_number(_cell(row, 5, 0)),
            profit=as_number(_cell(row, 6, 0)),
            items=safe_list(_cell(row, 7, "")),
            note=_text(row, 8),
            status=_text(row, 9) or DELIVERY_UNPAID,
            row_number=row_number,
        )

    def to_row(self) -> list:
        return [
            self.created_at,
            str(self.order_no or ""),
            str(self.client_name or ""),
            str(self.client_phone or ""),
            as_number(self.items_count),
            as_number(self.total),
            as_number(self.profit),
            json.dumps(self.items),
            str(self.note or ""),
            self.status or DELIVERY_UNPAID,
        ]

    def to_dict(self) -> dict:
        return {
            # sheet row number (1-based)
            "id": str(self.row_number) if self.row_number is not None else "",
            "createdAt": _timestamp_out(self.created_at),
            "orderNo": self.order_no,
            "clientName": self.client_name,
            "clientPhone": self.client_phone,
            "itemsCount": self.items_count,
            "total": self.total,
            "profit": self.profit,
            "items": self.items,
            "note": self.note,
            "status": self.status,
        }


@dataclass
class DaySessionOpen:
    date: str
    open_id: str
    opened_at: str
    employee_id: str = ""
    employee_name: str = ""
    till_no: str = ""
    mpesa_withdrawal: int | float = 0
    opening_cash_total: int | float = 0
    cash_breakdown: list = field(default_factory=list)

    @classmethod
    def from_row(cls, row: list) -> "DaySessionOpen":
        return cls(
            date=_date(row, 0),
            open_id=_text(row, 1),
            opened_at=_text(row, 2),
            employee_id=_text(row, 3),
            employee_name=_text(row, 4),
            till_no=_text(row, 5),
            mpesa_withdrawal=as_number(_cell(row, 6, 0)),
            opening_cash_total=as_number(_cell(row, 7, 0)),
            cash_breakdown=safe_list(_cell(row, 8, "")),
        )

    def to_row(self) -> list:
        return [
            self.date,
            self.open_id,
            self.opened_at,
            self.employee_id,
            self.employee_name,
            self.till_no,
            as_number(self.mpesa_withdrawal),
            as_number(self.opening_cash_total),
            json.dumps(self.cash_breakdown),
        ]

    def to_dict(self) -> dict:
        return {
            "date": self.date,
            "openId": self.open_id,
            "openedAt": self.opened_at,
            "employeeId": self.employee_id,
            "employeeName": self.employee_name,
            "tillNo": self.till_no,
            "mpesaWithdrawal": self.mpesa_withdrawal,
            "openingCashTotal": self.opening_cash_total,
            "cashBreakdown": self.cash_breakdown,
        }


@dataclass
class DaySessionClose:
    date: str
    open_id: str
    closed_at: str
    employee_id: str = ""
    employee_name: str = ""
    closing_cash_total: int | float = 0
    cash_breakdown: list = field(default_factory=list)

    @classmethod
    def from_row(cls, row: list) -> "DaySessionClose":
        return cls(
            date=_date(row, 0),
            open_id=_text(row, 1),
            closed_at=_text(row, 2),
            employee_id=_text(row, 3),
            employee_name=_text(row, 4),
            closing_cash_total=as_number(_cell(row, 5, 0)),
            cash_breakdown=safe_list(_cell(row, 6, "")),
        )

    def to_row(self) -> list:
        return [
            self.date,
            self.open_id,
            self.closed_at,
            self.employee_id,
            self.employee_name,
            as_number(self.closing_cash_total),
            json.dumps(self.cash_breakdown),
        ]

    def to_dict(self) -> dict:
        return {
            "date": self.date,
            "openId": self.open_id,
            "closedAt": self.closed_at,
            "employeeId": self.employee_id,
            "employeeName": self.employee_name,
            "closingCashTotal": self.closing_cash_total,
            "cashBreakdown": self.cash_breakdown,
        }


@dataclass
class LoyaltyAccount:
    phone: str
    name: str = ""
    address: str = ""
    points: int = 0
    notes: str = ""

    @classmethod
    def from_row(cls, row: list) -> "LoyaltyAccount":
        points = as_number(_cell(row, 3, 0), 0)
        return cls(
            phone=_text(row, 0),
            name=_text(row, 1),
            address=_text(row, 2),
            points=int(points),
            notes=_text(row, 4),
        )

    def to_row(self) -> list:
        return [str(self.phone), self.name, self.address, int(self.points), self.notes]

    def to_dict(self) -> dict:
        return {
            "phone": self.phone,
            "name": self.name,
            "address": self.address,
            "points": self.points,
            "notes": self.notes,
        }


@dataclass
class ManualWithdrawal:
    date: str
    withdrawal_id: str
    recorded_at: str
    source: str
    amount: int | float
    note: str = ""

    @classmethod
    def from_row(cls, row: list) -> "ManualWithdrawal":
        return cls(
            date=_date(row, 0),
            withdrawal_id=_text(row, 1),
            recorded_at=_text(row, 2),
            source=normalize_payment_method(_cell(row, 3, ""), strict=False),
            amount=as_number(_cell(row, 4, 0)),
            note=_text(row, 5),
        )

    def to_row(self) -> list:
        return [
            self.date,
            self.withdrawal_id,
            self.recorded_at,
            self.source,
            as_number(self.amount),
            self.note,
        ]

    def to_dict(self) -> dict:
        return {
            "date": self.date,
            "id": self.withdrawal_id,
            "time": self.recorded_at,
            "source": self.source,
            "amount": self.amount,
            "note": self.note,
        }
