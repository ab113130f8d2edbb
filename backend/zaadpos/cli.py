# Overview: Flask CLI commands for table bootstrap and ledger inspection.

# backend/zaadpos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# Local database (ROW_STORE_BACKEND=sql):
# - python -m flask db upgrade
#   Create the sheet_rows table.
#
# Ledger bootstrap/inspection:
# - python -m flask ledger init-tables
#   Create missing tabs and write header rows for every table (idempotent).
# - python -m flask ledger audit-invoices
#   List invoice numbers that appear on more than one sales row.

import click
from flask.cli import with_appcontext

from .engine import get_engine
from .records import (
    CASH_CLOSE_COLUMNS,
    CASH_OPEN_COLUMNS,
    CLIENT_COLUMNS,
    COUNTER_COLUMNS,
    DELIVERY_COLUMNS,
    SALES_COLUMNS,
    WITHDRAWAL_COLUMNS,
)
from .validation import UpstreamUnavailable, ValidationError


@click.group('ledger')
def ledger_group():
    """Sales ledger and cash table commands."""


@ledger_group.command('init-tables')
@with_appcontext
def init_tables():
    """
    Ensure every backing table exists with its header row.

    Existing headers and data are never touched.
    """
    engine = get_engine()
    cfg = engine.config
    tables = [
        (cfg.sales, SALES_COLUMNS),
        (cfg.delivery, DELIVERY_COLUMNS),
        (cfg.cash_open, CASH_OPEN_COLUMNS),
        (cfg.cash_close, CASH_CLOSE_COLUMNS),
        (cfg.clients, CLIENT_COLUMNS),
        (cfg.withdrawals, WITHDRAWAL_COLUMNS),
        (cfg.invoice_counters, COUNTER_COLUMNS),
    ]

    failed = 0
    for table, columns in tables:
        try:
            engine.store.ensure_table(table, columns)
            click.echo(f"PASS {table.tab} ({len(columns)} columns)")
        except (UpstreamUnavailable, ValidationError) as e:
            failed += 1
            click.echo(f"FAIL {table.tab}: {e}", err=True)

    if failed:
        raise click.ClickException(f"{failed} table(s) could not be initialized")
    click.echo("DONE All tables ready")


@ledger_group.command('audit-invoices')
@with_appcontext
def audit_invoices():
    """
    Report persisted invoice numbers shared by more than one sales row.

    Duplicates come from concurrent writers the single-writer lock cannot
    see (a second instance, or a manual edit). Nothing is rewritten.
    """
    engine = get_engine()
    try:
        duplicates = engine.ledger.duplicate_invoice_numbers()
    except UpstreamUnavailable as e:
        raise click.ClickException(f"Sales table unavailable: {e}")

    if not duplicates:
        click.echo("PASS No duplicate invoice numbers")
        return

    click.echo(f"WARN {len(duplicates)} duplicate invoice number(s):")
    for invoice_no in sorted(duplicates):
        rows = ", ".join(str(r) for r in duplicates[invoice_no])
        click.echo(f"  {invoice_no}: rows {rows}")


def register_commands(app):
    """Register CLI commands with Flask app."""
    app.cli.add_command(ledger_group)
