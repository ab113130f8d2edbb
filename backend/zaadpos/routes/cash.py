# Overview: Flask API routes for the cash day (open/close/today), manual withdrawals and reconciliation.

# backend/zaadpos/routes/cash.py
"""
Cash Day API Routes

DESIGN:
- Day lifecycle: open -> close, append-only rows in CashOpen / CashClose
- A second open for the same date is a 409 carrying the existing openId
- Close succeeds with warnings for orphaned or repeated closes
- Summary is read-only: opening + sales by method - manual withdrawals
"""

from flask import Blueprint, current_app, jsonify, request

from ..engine import get_engine
from ..services.cash_service import require_date
from ..services.reconciliation_service import build_summary
from ..time_utils import today_key
from .common import DOMAIN_ERRORS, domain_error, with_warnings


cash_bp = Blueprint("cash", __name__, url_prefix="/api/cash")


@cash_bp.get("/today")
def today_route():
    """
    Open record for a date (default: today in the configured zone).

    Response: {"ok": true, "found": false} or {"ok": true, "found": true, "row": {...}}
    """
    try:
        engine = get_engine()
        date = request.args.get("date")
        date = require_date(date) if date else today_key(engine.config.timezone)

        record = engine.sessions.today(date)
        if record is None:
            return jsonify({"ok": True, "found": False}), 200
        return jsonify({"ok": True, "found": True, "row": record.to_dict()}), 200

    except DOMAIN_ERRORS as e:
        return domain_error(e)
    except Exception:
        current_app.logger.exception("Failed to read cash open")
        return jsonify({"error": "Internal server error"}), 500


@cash_bp.post("/open")
def open_day_route():
    """
    Start the cash day.

    Request body:
    {
        "date": "2024-01-10",
        "openingCashTotal": 1000,
        "tillNo": "T1",
        "mpesaWithdrawal": 0,
        "cashBreakdown": [{"denom": 1000, "count": 1, "amount": 1000}],
        "employee": {"id": "E1", "name": "Amina"},
        "openId": "optional",
        "openedAt": "optional ISO timestamp"
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        record = get_engine().sessions.open_day(data)
        return jsonify({"ok": True, "openId": record.open_id}), 200

    except DOMAIN_ERRORS as e:
        return domain_error(e)
    except Exception:
        current_app.logger.exception("Failed to open cash day")
        return jsonify({"error": "Internal server error"}), 500


@cash_bp.post("/close")
def close_day_route():
    try:
        data = request.get_json(silent=True) or {}
        result = get_engine().sessions.close_day(data)
        return jsonify(with_warnings({"ok": True}, result.warnings)), 200

    except DOMAIN_ERRORS as e:
        return domain_error(e)
    except Exception:
        current_app.logger.exception("Failed to close cash day")
        return jsonify({"error": "Internal server error"}), 500


@cash_bp.get("/withdrawals")
def list_withdrawals_route():
    try:
        engine = get_engine()
        date = request.args.get("date")
        date = require_date(date) if date else today_key(engine.config.timezone)
        rows = engine.withdrawals.for_day(date)
        return jsonify({"rows": [w.to_dict() for w in rows], "total": len(rows)}), 200

    except DOMAIN_ERRORS as e:
        return domain_error(e)
    except Exception:
        current_app.logger.exception("Failed to read withdrawals")
        return jsonify({"error": "Internal server error"}), 500


@cash_bp.post("/withdrawals")
def add_withdrawal_route():
    """
    Record a manual withdrawal.

    Request body: {"date": "2024-01-10", "source": "cash", "amount": 200, "note": "supplier"}
    """
    try:
        data = request.get_json(silent=True) or {}
        record = get_engine().withdrawals.add(data)
        return jsonify({"ok": True, "withdrawal": record.to_dict()}), 201

    except DOMAIN_ERRORS as e:
        return domain_error(e)
    except Exception:
        current_app.logger.exception("Failed to record withdrawal")
        return jsonify({"error": "Internal server error"}), 500


@cash_bp.delete("/withdrawals/<withdrawal_id>")
def remove_withdrawal_route(withdrawal_id: str):
    try:
        get_engine().withdrawals.remove(withdrawal_id)
        return jsonify({"ok": True}), 200

    except DOMAIN_ERRORS as e:
        return domain_error(e)
    except Exception:
        current_app.logger.exception("Failed to remove withdrawal")
        return jsonify({"error": "Internal server error"}), 500


@cash_bp.get("/summary")
def summary_route():
    """
    Sales by payment method for [from, to] and, for a single day, the
    expected cash/till/withdrawal/send-money balances.

    Query: from, to (default: from), openingCash, openingTill (overrides)
    """
    try:
        engine = get_engine()
        from_date = request.args.get("from") or today_key(engine.config.timezone)
        summary = build_summary(
            sessions=engine.sessions,
            ledger=engine.ledger,
            withdrawals=engine.withdrawals,
            from_date=from_date,
            to_date=request.args.get("to"),
            opening_cash=request.args.get("openingCash"),
            opening_till=request.args.get("openingTill"),
        )
        return jsonify(summary), 200

    except DOMAIN_ERRORS as e:
        return domain_error(e)
    except Exception:
        current_app.logger.exception("Failed to build cash summary")
        return jsonify({"error": "Internal server error"}), 500
