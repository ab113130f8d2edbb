"""
Google Sheets row store.

One tab per table. Reads use UNFORMATTED_VALUE so numbers and date serials
come back raw; writes use USER_ENTERED like the POS always has.
"""

from __future__ import annotations

import threading
from typing import Optional

import httplib2
from google.oauth2 import service_account
from google_auth_httplib2 import AuthorizedHttp
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from ..config import TableRef
from ..services.concurrency import run_with_retry
from ..validation import UpstreamUnavailable, ValidationError
from .base import FIRST_DATA_ROW, RowStore, trim_row

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]
TOKEN_URI = "https://oauth2.googleapis.com/token"
LAST_COLUMN = "ZZ"


def column_letter(n: int) -> str:
    """1 -> A, 26 -> Z, 27 -> AA."""
    letters = ""
    while n > 0:
        n, rem = divmod(n - 1, 26)
        letters = chr(65 + rem) + letters
    return letters


def a1(tab: str, cells: str) -> str:
    return "'" + tab.replace("'", "''") + "'!" + cells


def load_credentials(client_email: str, private_key: str):
    # Hosting panels store the key with literal "\n"
    key = str(private_key or "").replace("\\n", "\n").strip()
    if not client_email or not key:
        raise RuntimeError(
            "Missing Google Sheets env vars: GOOGLE_CLIENT_EMAIL / GOOGLE_PRIVATE_KEY"
        )
    return service_account.Credentials.from_service_account_info(
        {
            "type": "service_account",
            "client_email": client_email,
            "private_key": key,
            "token_uri": TOKEN_URI,
        },
        scopes=SCOPES,
    )


class SheetsRowStore(RowStore):
    def __init__(self, credentials, *, timeout: float = 10.0, read_attempts: int = 3):
        self.credentials = credentials
        self.timeout = timeout
        self.read_attempts = read_attempts
        # httplib2 connections are not thread-safe
        self._local = threading.local()
        self._ensured: set[str] = set()
        self._sheet_ids: dict[str, int] = {}

    def _service(self):
        svc = getattr(self._local, "service", None)
        if svc is None:
            http = AuthorizedHttp(self.credentials, http=httplib2.Http(timeout=self.timeout))
            svc = build("sheets", "v4", http=http, cache_discovery=False)
            self._local.service = svc
        return svc

    @staticmethod
    def _require_id(table: TableRef) -> str:
        if not table.spreadsheet_id:
            raise ValidationError(f"Missing spreadsheet id for table '{table.tab}' (SHEET_*_ID or SHEETS_SPREADSHEET_ID)")
        return table.spreadsheet_id

    def _call(self, request):
        try:
            return request.execute(num_retries=0)
        except HttpError as exc:
            raise UpstreamUnavailable(f"Sheets API error ({exc.resp.status})") from exc
        except (TimeoutError, OSError, httplib2.HttpLib2Error) as exc:
            raise UpstreamUnavailable("Sheets API unreachable") from exc

    def _get_values(self, table: TableRef, cells: str) -> list[list]:
        spreadsheet_id = self._require_id(table)

        def _op():
            resp = self._call(
                self._service().spreadsheets().values().get(
                    spreadsheetId=spreadsheet_id,
                    range=a1(table.tab, cells),
                    valueRenderOption="UNFORMATTED_VALUE",
                )
            )
            return resp.get("values", []) or []

        return run_with_retry(_op, attempts=self.read_attempts)

    def read_rows(self, table: TableRef, start_row: int = FIRST_DATA_ROW, width: int | None = None) -> list[list]:
        last = column_letter(width) if width else LAST_COLUMN
        return [trim_row(r) for r in self._get_values(table, f"A{start_row}:{last}")]

    def read_row(self, table: TableRef, row_number: int) -> Optional[list]:
        values = self._get_values(table, f"A{row_number}:{LAST_COLUMN}{row_number}")
        row = trim_row(values[0]) if values else []
        return row or None

    def append_row(self, table: TableRef, values: list) -> None:
        self._call(
            self._service().spreadsheets().values().append(
                spreadsheetId=self._require_id(table),
                range=a1(table.tab, f"A:{column_letter(max(len(values), 1))}"),
                valueInputOption="USER_ENTERED",
                insertDataOption="INSERT_ROWS",
                body={"values": [values]},
            )
        )

    def update_row(self, table: TableRef, row_number: int, values: list) -> None:
        last = column_letter(max(len(values), 1))
        self._call(
            self._service().spreadsheets().values().update(
                spreadsheetId=self._require_id(table),
                range=a1(table.tab, f"A{row_number}:{last}{row_number}"),
                valueInputOption="USER_ENTERED",
                body={"values": [values]},
            )
        )

    def _tab_ids(self, spreadsheet_id: str) -> dict[str, int]:
        meta = run_with_retry(
            lambda: self._call(
                self._service().spreadsheets().get(
                    spreadsheetId=spreadsheet_id,
                    fields="sheets.properties(sheetId,title)",
                )
            ),
            attempts=self.read_attempts,
        )
        return {
            s["properties"]["title"]: s["properties"]["sheetId"]
            for s in meta.get("sheets", [])
            if "properties" in s
        }

    def _sheet_id(self, table: TableRef) -> int:
        if table.key not in self._sheet_ids:
            tabs = self._tab_ids(self._require_id(table))
            if table.tab not in tabs:
                raise UpstreamUnavailable(f"Tab '{table.tab}' missing")
            self._sheet_ids[table.key] = tabs[table.tab]
        return self._sheet_ids[table.key]

    def delete_rows(self, table: TableRef, start_index: int, end_index: int) -> None:
        if end_index <= start_index:
            return
        self._call(
            self._service().spreadsheets().batchUpdate(
                spreadsheetId=self._require_id(table),
                body={
                    "requests": [
                        {
                            "deleteDimension": {
                                "range": {
                                    "sheetId": self._sheet_id(table),
                                    "dimension": "ROWS",
                                    "startIndex": start_index,
                                    "endIndex": end_index,
                                }
                            }
                        }
                    ]
                },
            )
        )

    def ensure_table(self, table: TableRef, headers: list[str]) -> None:
        if table.key in self._ensured:
            return
        spreadsheet_id = self._require_id(table)
        tabs = self._tab_ids(spreadsheet_id)
        if table.tab not in tabs:
            self._call(
                self._service().spreadsheets().batchUpdate(
                    spreadsheetId=spreadsheet_id,
                    body={"requests": [{"addSheet": {"properties": {"title": table.tab}}}]},
                )
            )
        head = self._get_values(table, f"A1:{column_letter(len(headers))}1")
        row = head[0] if head else []
        if not any(str(v or "").strip() for v in row):
            self.update_row(table, 1, list(headers))
        self._ensured.add(table.key)

    def ping(self, table: TableRef) -> None:
        self._tab_ids(self._require_id(table))
