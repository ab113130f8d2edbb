# Overview: Pytest coverage for the ledger CLI commands.

from zaadpos.config import TableRef


class TestLedgerCommands:
    def test_init_tables_writes_headers(self, app, db_session):
        runner = app.test_cli_runner()

        result = runner.invoke(args=["ledger", "init-tables"])

        assert result.exit_code == 0, result.output
        assert "DONE" in result.output
        engine = app.extensions["zaadpos"]
        assert engine.store.read_row(engine.config.sales, 1)[:2] == ["CreatedAt", "InvoiceNo"]
        assert engine.store.read_row(engine.config.withdrawals, 1)[0] == "Date"

    def test_audit_invoices_clean(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["ledger", "audit-invoices"])
        assert "No duplicate" in result.output

    def test_audit_invoices_reports_duplicates(self, app, db_session):
        engine = app.extensions["zaadpos"]
        sales = engine.config.sales
        assert isinstance(sales, TableRef)
        for _ in range(2):
            engine.store.append_row(sales, ["2024-01-10T09:00:00.000Z", "10 1 24 1"])

        result = app.test_cli_runner().invoke(args=["ledger", "audit-invoices"])

        assert "10 1 24 1: rows 2, 3" in result.output
