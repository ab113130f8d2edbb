"""
Loyalty accrual: 1 point per 100 of sale total, keyed by client phone.

Points are added when a sale is finalized (POS sale or delivery payment),
never when a delivery order is placed.
"""

from __future__ import annotations

import logging
import math
from typing import Optional

from ..config import EngineConfig
from ..records import CLIENT_COLUMNS, LoyaltyAccount
from ..rowstore import FIRST_DATA_ROW, RowStore, find_row_index_by_key
from ..validation import as_number
from .concurrency import KeyedLocks

logger = logging.getLogger(__name__)

POINTS_PER_UNIT = 100


def points_for_total(total) -> int:
    n = as_number(total, 0)
    if n <= 0:
        return 0
    return int(math.floor(n / POINTS_PER_UNIT))


class LoyaltyService:
    def __init__(self, store: RowStore, config: EngineConfig, locks: KeyedLocks):
        self.store = store
        self.table = config.clients
        self.locks = locks

    def _rows(self) -> list[list]:
        self.store.ensure_table(self.table, CLIENT_COLUMNS)
        return self.store.read_rows(self.table, width=len(CLIENT_COLUMNS))

    def find(self, phone: str) -> Optional[LoyaltyAccount]:
        phone = str(phone or "").strip()
        if not phone:
            return None
        rows = self._rows()
        row_number = find_row_index_by_key(rows, 0, phone)
        if row_number is None:
            return None
        return LoyaltyAccount.from_row(rows[row_number - FIRST_DATA_ROW])

    def accrue(self, phone: str, name_hint: str, points_delta) -> Optional[LoyaltyAccount]:
        """
        Add points to the client's balance, creating the client on first use.

        No-op (returns None) for an empty phone or a non-positive delta.
        Read-modify-write; serialized per phone when single-writer is on.
        """
        phone = str(phone or "").strip()
        delta = int(as_number(points_delta, 0))
        if not phone or delta <= 0:
            return None

        with self.locks.hold(f"loyalty:{phone}"):
            rows = self._rows()
            row_number = find_row_index_by_key(rows, 0, phone)

            if row_number is not None:
                account = LoyaltyAccount.from_row(rows[row_number - FIRST_DATA_ROW])
                account.phone = account.phone or phone
                account.name = account.name or str(name_hint or phone)
                account.points = max(0, account.points + delta)
                self.store.update_row(self.table, row_number, account.to_row())
            else:
                account = LoyaltyAccount(phone=phone, name=str(name_hint or phone), points=delta)
                self.store.append_row(self.table, account.to_row())

        logger.info("Loyalty +%s points for %s (balance %s)", delta, phone, account.points)
        return account
