"""
Pytest fixtures for zaadpos backend tests.

Provides the Flask app on an in-memory SQLite row store, a test client, and
an in-memory FakeRowStore for engine tests that need slow reads or injected
store failures.
"""

import threading
import time

import pytest

from zaadpos import create_app
from zaadpos.config import EngineConfig
from zaadpos.engine import Engine
from zaadpos.extensions import db
from zaadpos.models import SheetRow
from zaadpos.rowstore import RowStore
from zaadpos.rowstore.base import FIRST_DATA_ROW, trim_row
from zaadpos.validation import UpstreamUnavailable


TEST_CONFIG = {
    'TESTING': True,
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    'ROW_STORE_BACKEND': 'sql',
    'APP_TIMEZONE': 'Africa/Nairobi',
    'CASH_CLOSE_STRICT': False,
    'SINGLE_WRITER': True,
    'STORE_READ_ATTEMPTS': 1,
}


class FakeRowStore(RowStore):
    """
    In-memory row store with the same positional semantics as a sheet.

    - read_delay: seconds to sleep after taking a read snapshot, to widen
      read-then-write windows in concurrency tests
    - fail(op, table_tab=None, exc=None): make an operation raise
    - calls: ordered log of (operation, tab) for writes
    - strict_tabs: like a spreadsheet without the tab, reads and writes on a
      table that was never passed to ensure_table raise
    """

    def __init__(self, read_delay: float = 0.0, strict_tabs: bool = False):
        self.sheets: dict[str, list[list]] = {}
        self.read_delay = read_delay
        self.failures: dict[tuple, Exception] = {}
        self.calls: list[tuple[str, str]] = []
        self.strict_tabs = strict_tabs
        self.ensured: set[str] = set()
        self._mutex = threading.Lock()

    def fail(self, op: str, table_tab: str | None = None, exc: Exception | None = None):
        self.failures[(op, table_tab)] = exc or UpstreamUnavailable(f"{op} failed (injected)")

    def heal(self):
        self.failures.clear()

    def _check(self, op: str, table):
        exc = self.failures.get((op, table.tab)) or self.failures.get((op, None))
        if exc is not None:
            raise exc
        if self.strict_tabs and op not in ("ensure_table", "ping") and table.key not in self.ensured:
            raise UpstreamUnavailable(f"Unable to parse range: {table.tab}")

    def _sheet(self, table) -> list[list]:
        # index 0 is the header row (sheet row 1)
        return self.sheets.setdefault(table.key, [[]])

    def data(self, table) -> list[list]:
        """Data rows as stored, for assertions."""
        with self._mutex:
            return [list(r) for r in self._sheet(table)[1:] if r]

    def read_rows(self, table, start_row=FIRST_DATA_ROW, width=None):
        self._check("read_rows", table)
        with self._mutex:
            snapshot = [list(r) for r in self._sheet(table)[start_row - 1:]]
        if self.read_delay:
            time.sleep(self.read_delay)
        out = [trim_row(r, width) for r in snapshot]
        while out and not out[-1]:
            out.pop()
        return out

    def read_row(self, table, row_number):
        self._check("read_row", table)
        with self._mutex:
            rows = self._sheet(table)
            if row_number - 1 < len(rows):
                return trim_row(rows[row_number - 1]) or None
        return None

    def append_row(self, table, values):
        self._check("append_row", table)
        with self._mutex:
            rows = self._sheet(table)
            while len(rows) > 1 and not rows[-1]:
                rows.pop()
            rows.append(list(values))
            self.calls.append(("append_row", table.tab))

    def update_row(self, table, row_number, values):
        self._check("update_row", table)
        with self._mutex:
            rows = self._sheet(table)
            while len(rows) < row_number:
                rows.append([])
            rows[row_number - 1] = list(values)
            self.calls.append(("update_row", table.tab))

    def delete_rows(self, table, start_index, end_index):
        self._check("delete_rows", table)
        with self._mutex:
            del self._sheet(table)[start_index:end_index]
            self.calls.append(("delete_rows", table.tab))

    def ensure_table(self, table, headers):
        self._check("ensure_table", table)
        with self._mutex:
            rows = self._sheet(table)
            if not rows[0]:
                rows[0] = list(headers)
            self.ensured.add(table.key)

    def ping(self, table):
        self._check("ping", table)


def build_engine(store: RowStore, **overrides) -> Engine:
    cfg = dict(TEST_CONFIG)
    cfg.update(overrides)
    return Engine.build(EngineConfig.from_mapping(cfg), store)


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TEST_CONFIG)

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app, db_session):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Empty sheet_rows for each test."""
    with app.app_context():
        db.session.query(SheetRow).delete()
        db.session.commit()

        yield db.session

        db.session.rollback()


@pytest.fixture(scope='function')
def fake_store():
    return FakeRowStore()


@pytest.fixture(scope='function')
def engine(fake_store):
    """Engine wired to an in-memory FakeRowStore."""
    return build_engine(fake_store)


@pytest.fixture(scope='function')
def bread_sale():
    return {
        'clientName': 'Amina',
        'clientPhone': '',
        'paymentMethod': 'cash',
        'items': [{'name': 'Bread', 'qty': 2, 'price': 50, 'cost': 20}],
    }


@pytest.fixture(scope='function')
def make_engine():
    """Factory: make_engine(store=None, **config_overrides) -> (engine, store)."""
    def _make(store=None, **overrides):
        store = store or FakeRowStore()
        return build_engine(store, **overrides), store
    return _make


@pytest.fixture(scope='function')
def slow_store():
    return FakeRowStore(read_delay=0.05)


@pytest.fixture(scope='function')
def fresh_store():
    """A store whose tabs do not exist until ensure_table creates them."""
    return FakeRowStore(strict_tabs=True)
