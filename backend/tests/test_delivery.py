# Overview: Pytest coverage for delivery orders and their payment.

"""
Delivery Payment Tests

SCENARIO: An unpaid delivery order is paid on a given date.
EXPECTED:
- the sale is appended before the delivery row is removed
- the sale is dated mid-day UTC on the payment date and numbered for that day
- a failed removal leaves the order listed and returns a warning
- a stale row id is caught by the orderNo guard
"""

import pytest

from zaadpos.services.delivery_service import parse_row_id
from zaadpos.validation import ConflictError, NotFoundError, UpstreamUnavailable, ValidationError


def order_payload(order_no="ORD-1", phone="0712345678", total=250):
    return {
        "orderNo": order_no,
        "clientName": "Amina",
        "clientPhone": phone,
        "items": [{"name": "Rice", "qty": 1, "price": total, "cost": total - 50}],
        "total": total,
        "profit": 50,
        "note": "Gate B",
    }


class TestCreateOrder:
    def test_created_order_is_listed_unpaid(self, engine, fake_store):
        order = engine.delivery.create_order(order_payload())

        listed = engine.delivery.list_orders()
        assert [o.to_dict()["id"] for o in listed] == ["2"]
        assert listed[0].order_no == order.order_no == "ORD-1"
        assert listed[0].status == "UNPAID"
        assert listed[0].note == "Gate B"
        # no sale and no points until payment
        assert fake_store.data(engine.config.sales) == []
        assert fake_store.data(engine.config.clients) == []

    def test_order_number_defaults_to_epoch_millis(self, engine):
        order = engine.delivery.create_order({**order_payload(), "orderNo": ""})
        assert order.order_no.isdigit() and len(order.order_no) >= 13

    def test_items_are_required(self, engine):
        with pytest.raises(ValidationError, match="Items are required"):
            engine.delivery.create_order({**order_payload(), "items": []})


class TestPayOrder:
    def test_pay_moves_order_into_sales(self, engine, fake_store):
        engine.delivery.create_order(order_payload())

        result = engine.delivery.pay("2", payment_method="till", payment_date="2024-01-10")

        assert result.warnings == []
        assert result.sale.invoice_no == "10 1 24 1"
        assert result.sale.created_at == "2024-01-10T12:00:00.000Z"
        assert result.sale.payment_method == "till"
        assert result.sale.total == 250
        assert result.points == 2
        assert engine.delivery.list_orders() == []
        assert engine.loyalty.find("0712345678").points == 2

        sale_row = fake_store.data(engine.config.sales)[0]
        assert sale_row[2:5] == ["Amina", "0712345678", "till"]

    def test_sale_is_appended_before_row_is_deleted(self, engine, fake_store):
        engine.delivery.create_order(order_payload())
        fake_store.calls.clear()

        engine.delivery.pay("2", payment_date="2024-01-10")

        calls = fake_store.calls
        assert calls.index(("append_row", "Sales")) < calls.index(("delete_rows", "Delivery"))

    def test_failed_removal_keeps_sale_and_warns(self, engine, fake_store):
        engine.delivery.create_order(order_payload())
        fake_store.fail("delete_rows", "Delivery")

        result = engine.delivery.pay("2", payment_date="2024-01-10")

        assert len(fake_store.data(engine.config.sales)) == 1
        assert [w.step for w in result.warnings] == ["delivery-cleanup"]
        assert len(engine.delivery.list_orders()) == 1

    def test_failed_sale_append_leaves_order_in_place(self, engine, fake_store):
        engine.delivery.create_order(order_payload())
        fake_store.fail("append_row", "Sales")

        with pytest.raises(UpstreamUnavailable):
            engine.delivery.pay("2", payment_date="2024-01-10")

        assert len(engine.delivery.list_orders()) == 1

    def test_delivery_sale_follows_existing_numbers_on_payment_day(self, engine, fake_store):
        fake_store.append_row(engine.config.sales, ["2024-01-10T08:00:00.000Z", "10 1 24 1"])
        engine.delivery.create_order(order_payload())

        result = engine.delivery.pay("2", payment_date="2024-01-10")

        assert result.sale.invoice_no == "10 1 24 2"

    def test_missing_row_is_not_found(self, engine):
        engine.delivery.create_order(order_payload())
        with pytest.raises(NotFoundError):
            engine.delivery.pay("5", payment_date="2024-01-10")

    def test_order_guard_rejects_shifted_row(self, engine, fake_store):
        engine.delivery.create_order(order_payload("ORD-1"))
        engine.delivery.create_order(order_payload("ORD-2"))

        with pytest.raises(ConflictError) as exc:
            engine.delivery.pay("2", payment_date="2024-01-10", expected_order_no="ORD-2")

        assert exc.value.details == {"orderNo": "ORD-1"}
        assert fake_store.data(engine.config.sales) == []

    def test_row_is_relocated_if_it_moved_during_payment(self, engine, fake_store, monkeypatch):
        engine.delivery.create_order(order_payload("ORD-1"))
        engine.delivery.create_order(order_payload("ORD-2"))
        delivery = engine.config.delivery
        original = engine.ledger.accrue_points

        def accrue_and_shift(*args, **kwargs):
            # another till removes ORD-1, so ORD-2 moves from row 3 to row 2
            fake_store.delete_rows(delivery, 1, 2)
            return original(*args, **kwargs)

        monkeypatch.setattr(engine.ledger, "accrue_points", accrue_and_shift)

        engine.delivery.pay("3", payment_date="2024-01-10", expected_order_no="ORD-2")

        assert engine.delivery.list_orders() == []

    def test_no_phone_means_no_points(self, engine, fake_store):
        engine.delivery.create_order(order_payload(phone=""))
        result = engine.delivery.pay("2", payment_date="2024-01-10")

        assert result.points == 0
        assert fake_store.data(engine.config.clients) == []

    def test_without_payment_date_uses_now(self, engine):
        engine.delivery.create_order(order_payload())
        result = engine.delivery.pay("2", payment_date=None)
        assert result.sale.created_at.endswith("Z")
        assert result.sale.created_at != "2024-01-10T12:00:00.000Z"


class TestRowIds:
    @pytest.mark.parametrize("value", ["", "abc", "1", "0", "-3", None, "2.5"])
    def test_invalid_ids(self, value):
        with pytest.raises(ValidationError, match="Invalid id"):
            parse_row_id(value)

    def test_valid_id(self):
        assert parse_row_id(" 7 ") == 7
