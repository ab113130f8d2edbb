# Overview: Flask API routes for unpaid delivery orders and their payment.

# backend/zaadpos/routes/delivery.py
"""
Delivery API Routes

Orders wait in the Delivery table until paid. Paying appends the sale
(dated on the payment day) and then removes the delivery row; ids are sheet
row numbers, so pass the orderNo you saw to guard against a shifted list.
"""

from flask import Blueprint, current_app, jsonify, request

from ..engine import get_engine
from .common import DOMAIN_ERRORS, domain_error, with_warnings


delivery_bp = Blueprint("delivery", __name__, url_prefix="/api/delivery")


@delivery_bp.get("")
@delivery_bp.get("/")
def list_delivery_route():
    try:
        orders = get_engine().delivery.list_orders()
        return jsonify({"rows": [o.to_dict() for o in orders], "total": len(orders)}), 200

    except DOMAIN_ERRORS as e:
        return domain_error(e)
    except Exception:
        current_app.logger.exception("Failed to read delivery orders")
        return jsonify({"error": "Internal server error"}), 500


@delivery_bp.post("")
@delivery_bp.post("/")
def create_delivery_route():
    """
    Place an unpaid delivery order. No points are added until payment.

    Request body: {orderNo?, clientName, clientPhone, items[], total, profit, note}
    """
    try:
        data = request.get_json(silent=True) or {}
        order = get_engine().delivery.create_order(data)
        return jsonify({"ok": True, "orderNo": order.order_no}), 200

    except DOMAIN_ERRORS as e:
        return domain_error(e)
    except Exception:
        current_app.logger.exception("Failed to create delivery order")
        return jsonify({"error": "Internal server error"}), 500


@delivery_bp.post("/<row_id>/pay")
def pay_delivery_route(row_id: str):
    """
    Mark a delivery order as paid.

    Request body: {"paymentMethod": "till", "paymentDate": "2024-01-10", "orderNo": "optional guard"}
    """
    try:
        data = request.get_json(silent=True) or {}
        result = get_engine().delivery.pay(
            row_id,
            payment_method=data.get("paymentMethod") or "cash",
            payment_date=data.get("paymentDate"),
            expected_order_no=data.get("orderNo"),
        )
        body = {"ok": True, "invoiceNo": result.sale.invoice_no, "points": result.points}
        return jsonify(with_warnings(body, result.warnings)), 200

    except DOMAIN_ERRORS as e:
        return domain_error(e)
    except Exception:
        current_app.logger.exception("Failed to mark delivery as paid")
        return jsonify({"error": "Internal server error"}), 500
