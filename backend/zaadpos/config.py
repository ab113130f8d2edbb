# backend/zaadpos/config.py
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping
from zoneinfo import ZoneInfo


def _env_bool(name: str, default: bool) -> bool:
    raw = (os.environ.get(name) or "").strip().lower()
    if not raw:
        return default
    return raw in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = (os.environ.get(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _split_csv(raw: str, *, default: list[str]) -> list[str]:
    parts = [p.strip() for p in (raw or "").split(",")]
    return [p for p in parts if p] or default


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # Backing store for the positional tables: "sql" (local) or "sheets"
    ROW_STORE_BACKEND = os.environ.get("ROW_STORE_BACKEND", "sql").strip().lower()

    # Only used by the "sql" backend
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///zaadpos.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    APP_TIMEZONE = os.environ.get("APP_TIMEZONE", "Africa/Nairobi")

    # Google service account (sheets backend)
    GOOGLE_CLIENT_EMAIL = os.environ.get("GOOGLE_CLIENT_EMAIL", "")
    GOOGLE_PRIVATE_KEY = os.environ.get("GOOGLE_PRIVATE_KEY", "")

    SHEETS_SPREADSHEET_ID = os.environ.get("SHEETS_SPREADSHEET_ID", "")
    SHEET_SALES_ID = os.environ.get("SHEET_SALES_ID", "")
    SHEET_CASH_ID = os.environ.get("SHEET_CASH_ID", "")
    SHEET_CLIENTS_ID = os.environ.get("SHEET_CLIENTS_ID", "")

    SHEET_SALES_TAB = os.environ.get("SHEET_SALES_TAB", "Sales")
    SHEET_DELIVERY_TAB = os.environ.get("SHEET_DELIVERY_TAB", "Delivery")
    SHEET_CASH_OPEN_TAB = os.environ.get("SHEET_CASH_OPEN_TAB", "CashOpen")
    SHEET_CASH_CLOSE_TAB = os.environ.get("SHEET_CASH_CLOSE_TAB", "CashClose")
    SHEET_CLIENTS_TAB = os.environ.get("SHEET_CLIENTS_TAB", "Clients")
    SHEET_WITHDRAWALS_TAB = os.environ.get("SHEET_WITHDRAWALS_TAB", "Withdrawals")
    SHEET_COUNTERS_TAB = os.environ.get("SHEET_COUNTERS_TAB", "InvoiceCounters")

    STORE_TIMEOUT_SECONDS = _env_int("STORE_TIMEOUT_SECONDS", 10)
    STORE_READ_ATTEMPTS = _env_int("STORE_READ_ATTEMPTS", 3)

    # Reject a second close for the same date instead of warning
    CASH_CLOSE_STRICT = _env_bool("CASH_CLOSE_STRICT", False)
    # In-process serialization of read-compute-write sequences.
    # Only correct with a single service instance.
    SINGLE_WRITER = _env_bool("SINGLE_WRITER", True)

    CORS_ORIGINS = _split_csv(
        os.environ.get("CORS_ORIGINS", ""),
        default=["http://localhost:5173", "http://127.0.0.1:5173"],
    )


@dataclass(frozen=True)
class TableRef:
    """A positional table: one tab inside one spreadsheet."""
    spreadsheet_id: str
    tab: str

    @property
    def key(self) -> str:
        return f"{self.spreadsheet_id}/{self.tab}" if self.spreadsheet_id else self.tab


@dataclass(frozen=True)
class EngineConfig:
    """
    Resolved once at app creation and handed to each engine component.

    Spreadsheet ids fall back to SHEETS_SPREADSHEET_ID; the delivery
    and invoice counter tabs live in the sales spreadsheet and withdrawals in
    the cash spreadsheet.
    """
    timezone: ZoneInfo
    sales: TableRef
    delivery: TableRef
    cash_open: TableRef
    cash_close: TableRef
    clients: TableRef
    withdrawals: TableRef
    invoice_counters: TableRef
    store_timeout: float = 10.0
    read_attempts: int = 3
    close_strict: bool = False
    single_writer: bool = True

    @classmethod
    def from_mapping(cls, cfg: Mapping) -> "EngineConfig":
        default_id = str(cfg.get("SHEETS_SPREADSHEET_ID") or "")
        sales_id = str(cfg.get("SHEET_SALES_ID") or default_id)
        cash_id = str(cfg.get("SHEET_CASH_ID") or default_id)
        clients_id = str(cfg.get("SHEET_CLIENTS_ID") or default_id)

        return cls(
            timezone=ZoneInfo(cfg.get("APP_TIMEZONE") or "Africa/Nairobi"),
            sales=TableRef(sales_id, cfg.get("SHEET_SALES_TAB") or "Sales"),
            delivery=TableRef(sales_id, cfg.get("SHEET_DELIVERY_TAB") or "Delivery"),
            cash_open=TableRef(cash_id, cfg.get("SHEET_CASH_OPEN_TAB") or "CashOpen"),
            cash_close=TableRef(cash_id, cfg.get("SHEET_CASH_CLOSE_TAB") or "CashClose"),
            clients=TableRef(clients_id, cfg.get("SHEET_CLIENTS_TAB") or "Clients"),
            withdrawals=TableRef(cash_id, cfg.get("SHEET_WITHDRAWALS_TAB") or "Withdrawals"),
            invoice_counters=TableRef(sales_id, cfg.get("SHEET_COUNTERS_TAB") or "InvoiceCounters"),
            store_timeout=float(cfg.get("STORE_TIMEOUT_SECONDS") or 10),
            read_attempts=max(1, int(cfg.get("STORE_READ_ATTEMPTS") or 1)),
            close_strict=bool(cfg.get("CASH_CLOSE_STRICT", False)),
            single_writer=bool(cfg.get("SINGLE_WRITER", True)),
        )
