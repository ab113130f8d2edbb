"""
Local row store on Flask-SQLAlchemy.

Emulates spreadsheet semantics on the `sheet_rows` table so the engine runs
unchanged against a local database in development and tests.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import func, update
from sqlalchemy.exc import OperationalError

from ..config import TableRef
from ..extensions import db
from ..models import SheetRow
from ..services.concurrency import KeyedLocks, run_with_retry
from ..validation import UpstreamUnavailable
from .base import FIRST_DATA_ROW, RowStore, trim_row


class SqlRowStore(RowStore):
    """
    Writes to one sheet are serialized in-process: positions are derived from
    the current maximum, so two concurrent appends would otherwise share one.
    """

    def __init__(self, *, read_attempts: int = 3):
        self.read_attempts = read_attempts
        self._sheet_locks = KeyedLocks()

    def _read(self, func_):
        def _op():
            try:
                return func_()
            except OperationalError as exc:
                db.session.rollback()
                raise UpstreamUnavailable("Row store unavailable") from exc
        return run_with_retry(_op, attempts=self.read_attempts)

    def _write(self, table: TableRef, func_):
        with self._sheet_locks.hold(table.key):
            try:
                func_()
                db.session.commit()
            except OperationalError as exc:
                db.session.rollback()
                raise UpstreamUnavailable("Row store unavailable") from exc

    def _last_position(self, sheet: str) -> int:
        last = (
            db.session.query(func.max(SheetRow.position))
            .filter(SheetRow.sheet == sheet)
            .scalar()
        )
        return last or 0

    def read_rows(self, table: TableRef, start_row: int = FIRST_DATA_ROW, width: int | None = None) -> list[list]:
        def _op():
            rows = (
                db.session.query(SheetRow)
                .filter(SheetRow.sheet == table.key, SheetRow.position >= start_row)
                .order_by(SheetRow.position)
                .all()
            )
            if not rows:
                return []
            # Dense result: gaps in positions read back as empty rows
            out: list[list] = [[] for _ in range(rows[-1].position - start_row + 1)]
            for r in rows:
                out[r.position - start_row] = trim_row(r.values, width)
            while out and not out[-1]:
                out.pop()
            return out
        return self._read(_op)

    def read_row(self, table: TableRef, row_number: int) -> Optional[list]:
        def _op():
            r = (
                db.session.query(SheetRow)
                .filter_by(sheet=table.key, position=row_number)
                .first()
            )
            values = trim_row(r.values) if r else []
            return values or None
        return self._read(_op)

    def append_row(self, table: TableRef, values: list) -> None:
        def _op():
            position = max(self._last_position(table.key), 1) + 1
            row = SheetRow(sheet=table.key, position=position)
            row.values = values
            db.session.add(row)
        self._write(table, _op)

    def update_row(self, table: TableRef, row_number: int, values: list) -> None:
        def _op():
            r = (
                db.session.query(SheetRow)
                .filter_by(sheet=table.key, position=row_number)
                .first()
            )
            if r is None:
                r = SheetRow(sheet=table.key, position=row_number)
                db.session.add(r)
            r.values = values
        self._write(table, _op)

    def delete_rows(self, table: TableRef, start_index: int, end_index: int) -> None:
        if end_index <= start_index:
            return
        first, last = start_index + 1, end_index  # 1-based inclusive
        count = end_index - start_index

        def _op():
            db.session.query(SheetRow).filter(
                SheetRow.sheet == table.key,
                SheetRow.position >= first,
                SheetRow.position <= last,
            ).delete(synchronize_session=False)
            db.session.execute(
                update(SheetRow)
                .where(SheetRow.sheet == table.key, SheetRow.position > last)
                .values(position=SheetRow.position - count)
            )
        self._write(table, _op)

    def ensure_table(self, table: TableRef, headers: list[str]) -> None:
        def _op():
            head = (
                db.session.query(SheetRow)
                .filter_by(sheet=table.key, position=1)
                .first()
            )
            if head is None:
                head = SheetRow(sheet=table.key, position=1)
                db.session.add(head)
            if not any(str(v or "").strip() for v in head.values):
                head.values = headers
        self._write(table, _op)

    def ping(self, table: TableRef) -> None:
        self._read(lambda: db.session.query(func.count(SheetRow.id)).scalar())
