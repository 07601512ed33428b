"""
Sale posting and voiding tests.

Covers the stock movement, the per-line cost snapshot and the guarantee
that a failed posting leaves no partial effects.
"""

from decimal import Decimal

import pytest

from onestop.errors import ConflictError, NotFoundError, ValidationError
from onestop.extensions import db
from onestop.models import Product, Sale, SaleItem
from onestop.services import products_service, sales_service


def _sale_payload(product_id, quantity="2.5", price="12.50", **extra):
    subtotal = str(Decimal(quantity) * Decimal(price))
    payload = {
        "items": [{
            "product_id": product_id,
            "name": "Beyaz Peynir",
            "quantity": quantity,
            "price": price,
            "subtotal": subtotal,
        }],
        "subtotal": subtotal,
        "total": subtotal,
        "payment_method": "cash",
    }
    payload.update(extra)
    return payload


def _stock(product_id) -> Decimal:
    db.session.expire_all()
    return db.session.get(Product, product_id).stock


class TestPostSale:
    def test_post_decrements_stock_and_snapshots_cost(self, user_a, product_a):
        sale = sales_service.post_sale(user_a.id, _sale_payload(product_a.id))

        assert sale.status == "completed"
        assert sale.total == Decimal("31.25")
        assert _stock(product_a.id) == Decimal("7.500")

        [line] = sale.line_items
        assert line.product_id == product_a.id
        assert line.quantity == Decimal("2.500")
        assert line.cost == Decimal("8.00")

    def test_cost_snapshot_ignores_later_cost_edits(self, user_a, product_a):
        sale = sales_service.post_sale(user_a.id, _sale_payload(product_a.id))
        sale_id = sale.id

        products_service.update_product(user_a.id, product_a.id, {"cost": "9.75"})

        db.session.expire_all()
        line = db.session.query(SaleItem).filter_by(sale_id=sale_id).one()
        assert line.cost == Decimal("8.00")

    def test_unresolved_product_is_recorded_with_zero_cost(self, user_a, product_a):
        payload = _sale_payload(product_a.id)
        payload["items"].append({"product_id": 424242, "name": "Poşet", "quantity": 1, "price": "0.25"})
        payload["items"].append({"quantity": 1, "price": "5"})

        sale = sales_service.post_sale(user_a.id, payload)

        lines = sale.line_items
        assert len(lines) == 3
        assert lines[1].product_id is None
        assert lines[1].cost == Decimal("0.00")
        assert lines[1].product_name == "Poşet"
        assert lines[2].product_name == sales_service.UNKNOWN_ITEM_NAME
        assert lines[2].subtotal == Decimal("5.00")
        assert _stock(product_a.id) == Decimal("7.500")

    def test_other_owners_product_is_not_touched(self, user_a, product_b):
        sale = sales_service.post_sale(user_a.id, _sale_payload(product_b.id, quantity="3"))
        assert sale.line_items[0].product_id is None
        assert _stock(product_b.id) == Decimal("50.000")

    def test_multi_line_sale_moves_stock_per_product(self, user_a, product_a, db_session):
        second = Product(owner_id=user_a.id, name="Zeytin", price=Decimal("4.00"), cost=Decimal("2.50"),
                         stock=Decimal("3.000"))
        db_session.add(second)
        db_session.commit()

        sale = sales_service.post_sale(user_a.id, {
            "items": [
                {"product_id": product_a.id, "name": "Beyaz Peynir", "quantity": "1.25", "price": "12.50",
                 "subtotal": "15.63"},
                {"product_id": second.id, "name": "Zeytin", "quantity": "4", "price": "4.00", "subtotal": "16.00"},
                {"product_id": product_a.id, "name": "Beyaz Peynir", "quantity": "0.75", "price": "12.50",
                 "subtotal": "9.38"},
            ],
            "subtotal": "41.01",
            "total": "41.01",
        })

        assert len(sale.line_items) == 3
        assert sum(line.subtotal for line in sale.line_items) == sale.subtotal
        assert _stock(product_a.id) == Decimal("8.000")
        assert _stock(second.id) == Decimal("-1.000")

    def test_stock_may_go_negative(self, user_a, product_a):
        sales_service.post_sale(user_a.id, _sale_payload(product_a.id, quantity="12"))
        assert _stock(product_a.id) == Decimal("-2.000")

    def test_defaults_for_optional_money_fields(self, user_a, product_a):
        payload = _sale_payload(product_a.id)
        del payload["subtotal"]
        sale = sales_service.post_sale(user_a.id, payload)
        assert sale.subtotal == Decimal("31.25")
        assert sale.amount_paid == Decimal("31.25")
        assert sale.discount == Decimal("0.00")

    def test_failure_mid_posting_leaves_nothing_behind(self, user_a, product_a, monkeypatch):
        def _broken_line(**kwargs):
            raise RuntimeError("line insert failed")

        monkeypatch.setattr(sales_service, "SaleItem", _broken_line)

        with pytest.raises(RuntimeError):
            sales_service.post_sale(user_a.id, _sale_payload(product_a.id))

        assert _stock(product_a.id) == Decimal("10.000")
        assert db.session.query(Sale).count() == 0

    @pytest.mark.parametrize("payload, message", [
        ({"total": 10}, "Items are required"),
        ({"items": [], "total": 10}, "Items are required"),
        ({"items": [{"name": "x", "quantity": 1, "price": 1}]}, "Valid total is required"),
        ({"items": [{"name": "x", "quantity": 1, "price": 1}], "total": 0}, "Valid total is required"),
    ])
    def test_invalid_payloads(self, user_a, payload, message):
        with pytest.raises(ValidationError) as exc:
            sales_service.post_sale(user_a.id, payload)
        assert exc.value.message == message
        assert db.session.query(Sale).count() == 0

    @pytest.mark.parametrize("quantity", ["0", "-1", "0.0004"])
    def test_non_positive_quantity_rejected(self, user_a, product_a, quantity):
        with pytest.raises(ValidationError) as exc:
            sales_service.post_sale(user_a.id, _sale_payload(product_a.id, quantity=quantity))
        assert exc.value.message == "items[0].quantity must be greater than 0"
        assert db.session.query(Sale).count() == 0
        assert _stock(product_a.id) == Decimal("10.000")


class TestVoidSale:
    def test_void_restores_stock(self, user_a, product_a):
        sale = sales_service.post_sale(user_a.id, _sale_payload(product_a.id))
        assert _stock(product_a.id) == Decimal("7.500")

        voided = sales_service.void_sale(user_a.id, sale.id)

        assert voided.status == "voided"
        assert voided.voided_at is not None
        assert _stock(product_a.id) == Decimal("10.000")

    def test_second_void_conflicts_and_restores_nothing(self, user_a, product_a):
        sale = sales_service.post_sale(user_a.id, _sale_payload(product_a.id))
        sale_id = sale.id
        sales_service.void_sale(user_a.id, sale_id)

        with pytest.raises(ConflictError):
            sales_service.void_sale(user_a.id, sale_id)
        assert _stock(product_a.id) == Decimal("10.000")

    def test_void_skips_lines_without_product(self, user_a, product_a):
        payload = _sale_payload(product_a.id)
        payload["items"].append({"name": "Poşet", "quantity": 1, "price": "0.25"})
        sale = sales_service.post_sale(user_a.id, payload)

        sales_service.void_sale(user_a.id, sale.id)
        assert _stock(product_a.id) == Decimal("10.000")

    def test_other_owner_cannot_void(self, user_a, user_b, product_a):
        sale = sales_service.post_sale(user_a.id, _sale_payload(product_a.id))
        with pytest.raises(NotFoundError):
            sales_service.void_sale(user_b.id, sale.id)
        assert _stock(product_a.id) == Decimal("7.500")


class TestSalesReads:
    def test_summary_excludes_voided_sales(self, user_a, product_a):
        kept = sales_service.post_sale(user_a.id, _sale_payload(product_a.id, quantity="1"))
        card = sales_service.post_sale(
            user_a.id, _sale_payload(product_a.id, quantity="2", payment_method="card")
        )
        voided = sales_service.post_sale(user_a.id, _sale_payload(product_a.id, quantity="1"))
        sales_service.void_sale(user_a.id, voided.id)

        summary = sales_service.sales_summary(user_a.id)

        assert summary["total_transactions"] == 2
        assert summary["total_sales"] == "37.50"
        assert summary["cash_sales"] == "12.50"
        assert summary["card_sales"] == "25.00"
        assert summary["voided_transactions"] == 1
        assert kept.id != card.id

    def test_list_is_owner_scoped(self, user_a, user_b, product_a):
        sales_service.post_sale(user_a.id, _sale_payload(product_a.id))

        assert sales_service.list_sales(user_a.id, limit=10, offset=0)["total"] == 1
        assert sales_service.list_sales(user_b.id, limit=10, offset=0)["total"] == 0
