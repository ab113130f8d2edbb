from __future__ import annotations

import json

from .extensions import db
from .time_utils import to_utc_z


class SheetRow(db.Model):
    """
    One positional row of a spreadsheet-like table.

    WHY: The local backend mirrors the spreadsheet contract exactly: rows are
    addressed by 1-based position (row 1 is the header), deleting rows shifts
    later rows up, and there are no per-column constraints.

    No unique constraint on (sheet, position): SQLite checks uniqueness row by
    row during the shifting UPDATE.
    """
    __tablename__ = "sheet_rows"
    __table_args__ = (
        db.Index("ix_sheet_rows_sheet_position", "sheet", "position"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sheet = db.Column(db.String(255), nullable=False)
    position = db.Column(db.Integer, nullable=False)
    values_json = db.Column(db.Text, nullable=False, default="[]")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    @property
    def values(self) -> list:
        try:
            parsed = json.loads(self.values_json or "[]")
        except ValueError:
            return []
        return parsed if isinstance(parsed, list) else []

    @values.setter
    def values(self, row: list) -> None:
        self.values_json = json.dumps(list(row))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sheet": self.sheet,
            "position": self.position,
            "values": self.values,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


__all__ = ["SheetRow"]
