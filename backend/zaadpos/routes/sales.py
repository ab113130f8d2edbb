# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/zaadpos/routes/sales.py
"""Sales ledger API routes"""

from flask import Blueprint, current_app, jsonify, request

from ..engine import get_engine
from .common import DOMAIN_ERRORS, domain_error, with_warnings


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.get("")
@sales_bp.get("/")
def list_sales_route():
    """
    Paginated sales, newest first.

    Query: page (default 1), limit (default 50), q (invoice / client name / phone)
    """
    try:
        result = get_engine().ledger.list_sales(
            q=request.args.get("q"),
            page=request.args.get("page"),
            limit=request.args.get("limit"),
        )
        return jsonify(result), 200

    except DOMAIN_ERRORS as e:
        return domain_error(e)
    except Exception:
        current_app.logger.exception("Failed to read sales")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.post("")
@sales_bp.post("/")
@sales_bp.post("/google")
def record_sale_route():
    """
    Record a paid POS sale. The invoice number is generated here.

    Request body:
    {
        "clientName": "Amina",
        "clientPhone": "0712345678",
        "paymentMethod": "cash",
        "items": [{"name": "Bread", "qty": 2, "price": 50, "cost": 20}],
        "total": 100,
        "profit": 60,
        "addPoints": 1
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        result = get_engine().ledger.record_sale(data)
        body = {
            "ok": True,
            "invoiceNo": result.invoice_no,
            "invoiceNumber": result.invoice_no,
            "points": result.points,
        }
        return jsonify(with_warnings(body, result.warnings)), 200

    except DOMAIN_ERRORS as e:
        return domain_error(e)
    except Exception:
        current_app.logger.exception("Failed to record sale")
        return jsonify({"error": "Internal server error"}), 500
