# Overview: Service-layer operations for sales; posting, voiding and sale reads.

"""
Sales service.

A sale is posted in one atomic unit: header row, stock decrement for every
referenced product and one SaleItem per line with the product's cost
captured at that moment. Voiding restores the stock and keeps the sale row.

Stock is allowed to go negative; there is no availability pre-check.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import case, func

from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Product, Sale, SaleItem
from ..models.sales import SALE_COMPLETED, SALE_VOIDED
from ..money import ZERO, as_decimal, quantize_money, quantize_qty, to_money_str
from ..time_utils import utcnow
from ..validation import parse_date, parse_decimal, parse_int
from .concurrency import begin_write, lock_for_update, run_with_retry

UNKNOWN_ITEM_NAME = "Unknown Item"


def _validate_item(raw, index: int) -> dict:
    if not isinstance(raw, dict):
        raise ValidationError(f"items[{index}] must be an object")

    field = f"items[{index}]"
    quantity = parse_decimal(raw.get("quantity"), f"{field}.quantity", default=None)
    if quantity is None:
        quantity = as_decimal(1)
    quantity = quantize_qty(quantity)
    if quantity <= 0:
        raise ValidationError(f"{field}.quantity must be greater than 0")

    price = parse_decimal(raw.get("price"), f"{field}.price", default=ZERO, non_negative=True)
    subtotal = parse_decimal(raw.get("subtotal"), f"{field}.subtotal", default=None)
    if subtotal is None:
        subtotal = price * quantity

    name = raw.get("name")
    name = str(name).strip() if name is not None else ""

    return {
        "product_id": parse_int(raw.get("product_id"), f"{field}.product_id"),
        "name": name[:255] or UNKNOWN_ITEM_NAME,
        "quantity": quantity,
        "price": quantize_money(price),
        "subtotal": quantize_money(subtotal),
    }


def validate_sale_payload(payload: dict) -> dict:
    """
    Normalize a POST /sales body. Raises ValidationError before any
    transaction is opened.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    items = payload.get("items")
    if not isinstance(items, list) or not items:
        raise ValidationError("Items are required")

    total = parse_decimal(payload.get("total"), "total")
    if total is None or total <= 0:
        raise ValidationError("Valid total is required")

    lines = [_validate_item(raw, i) for i, raw in enumerate(items)]

    subtotal = parse_decimal(payload.get("subtotal"), "subtotal", default=total)
    amount_paid = parse_decimal(payload.get("amount_paid"), "amount_paid", default=total)

    payment_method = payload.get("payment_method") or "cash"
    if not isinstance(payment_method, str) or len(payment_method) > 50:
        raise ValidationError("payment_method must be a short string")

    notes = payload.get("notes")
    if notes is not None:
        notes = str(notes).strip() or None

    return {
        "items": items,
        "lines": lines,
        "subtotal": quantize_money(subtotal),
        "discount": quantize_money(parse_decimal(payload.get("discount"), "discount", default=ZERO)),
        "tax": quantize_money(parse_decimal(payload.get("tax"), "tax", default=ZERO)),
        "total": quantize_money(total),
        "payment_method": payment_method,
        "amount_paid": quantize_money(amount_paid),
        "change_amount": quantize_money(
            parse_decimal(payload.get("change_amount"), "change_amount", default=ZERO)
        ),
        "notes": notes,
        "cashier_id": parse_int(payload.get("cashier_id"), "cashier_id"),
    }


def _lock_products(owner_id: int, product_ids) -> dict[int, Product]:
    """
    Lock the owner's referenced products in ascending id order.

    A consistent lock order keeps two sales that share products from
    deadlocking each other.
    """
    ids = sorted({pid for pid in product_ids if pid is not None})
    if not ids:
        return {}
    rows = lock_for_update(
        db.session.query(Product)
        .filter(Product.owner_id == owner_id, Product.id.in_(ids))
        .order_by(Product.id.asc())
    ).all()
    return {p.id: p for p in rows}


def post_sale(owner_id: int, payload: dict) -> Sale:
    """
    Post a sale: header, stock decrements and cost-snapshotted line items.

    Lines are processed in input order. A line whose product does not
    resolve for this owner is still recorded, with cost 0 and no stock
    movement.
    """
    data = validate_sale_payload(payload)

    def _op():
        begin_write()

        sale = Sale(
            owner_id=owner_id,
            items=data["items"],
            subtotal=data["subtotal"],
            discount=data["discount"],
            tax=data["tax"],
            total=data["total"],
            payment_method=data["payment_method"],
            amount_paid=data["amount_paid"],
            change_amount=data["change_amount"],
            status=SALE_COMPLETED,
            notes=data["notes"],
            cashier_id=data["cashier_id"],
        )
        db.session.add(sale)
        db.session.flush()

        products = _lock_products(owner_id, (line["product_id"] for line in data["lines"]))

        for line in data["lines"]:
            product = products.get(line["product_id"])
            cost = ZERO
            if product is not None:
                product.stock = quantize_qty(as_decimal(product.stock) - line["quantity"])
                cost = quantize_money(product.cost)

            db.session.add(SaleItem(
                sale_id=sale.id,
                product_id=product.id if product is not None else None,
                product_name=line["name"],
                quantity=line["quantity"],
                unit_price=line["price"],
                cost=cost,
                subtotal=line["subtotal"],
            ))

        db.session.commit()
        current_app.logger.info(
            "Posted sale %s for owner %s: %d line(s), total %s",
            sale.id, owner_id, len(data["lines"]), to_money_str(sale.total),
        )
        return sale

    return run_with_retry(_op)


def void_sale(owner_id: int, sale_id: int) -> Sale:
    """
    Void a completed sale and restore stock for its line items.

    Only completed -> voided is legal: a second void raises ConflictError
    and restores nothing. Lines whose product has since been removed are
    skipped.
    """
    def _op():
        begin_write()
        sale = lock_for_update(
            db.session.query(Sale).filter_by(id=sale_id, owner_id=owner_id)
        ).first()
        if not sale:
            raise NotFoundError("Transaction not found")

        if not sale.can_transition_to(SALE_VOIDED):
            raise ConflictError(
                f"Sale is already {sale.status}",
                details={"sale_id": sale.id, "status": sale.status},
            )

        products = _lock_products(owner_id, (line.product_id for line in sale.line_items))
        for line in sale.line_items:
            product = products.get(line.product_id)
            if product is None:
                continue
            product.stock = quantize_qty(as_decimal(product.stock) + as_decimal(line.quantity))

        sale.status = SALE_VOIDED
        sale.voided_at = utcnow()

        db.session.commit()
        current_app.logger.info("Voided sale %s for owner %s", sale.id, owner_id)
        return sale

    return run_with_retry(_op)


# =============================================================================
# Reads
# =============================================================================

def _date_bounds(query, column, start_date, end_date):
    start = parse_date(start_date, "startDate")
    end = parse_date(end_date, "endDate")
    if start:
        query = query.filter(func.date(column) >= start.isoformat())
    if end:
        query = query.filter(func.date(column) <= end.isoformat())
    return query


def list_sales(owner_id: int, *, limit: int, offset: int, start_date=None, end_date=None) -> dict:
    query = db.session.query(Sale).filter(Sale.owner_id == owner_id)
    query = _date_bounds(query, Sale.created_at, start_date, end_date)

    total = query.count()
    rows = query.order_by(Sale.created_at.desc(), Sale.id.desc()).limit(limit).offset(offset).all()
    return {
        "data": [s.to_dict() for s in rows],
        "total": total,
        "limit": limit,
        "offset": offset,
    }


def get_sale(owner_id: int, sale_id: int) -> Sale:
    sale = db.session.query(Sale).filter_by(id=sale_id, owner_id=owner_id).first()
    if not sale:
        raise NotFoundError("Transaction not found")
    return sale


def sales_summary(owner_id: int, start_date=None, end_date=None) -> dict:
    """Totals over non-voided sales, split by payment method, plus the voided count."""
    def _by_method(method: str):
        return func.coalesce(func.sum(case((Sale.payment_method == method, Sale.total), else_=0)), 0)

    base = db.session.query(Sale).filter(Sale.owner_id == owner_id)
    base = _date_bounds(base, Sale.created_at, start_date, end_date)

    active = base.filter(Sale.status != SALE_VOIDED).with_entities(
        func.count(Sale.id),
        func.coalesce(func.sum(Sale.total), 0),
        _by_method("cash"),
        _by_method("card"),
        _by_method("credit"),
    ).one()
    voided = base.filter(Sale.status == SALE_VOIDED).count()

    count, total, cash, card, credit = active
    total = quantize_money(total)
    average = quantize_money(total / count) if count else quantize_money(ZERO)

    return {
        "total_transactions": count,
        "total_sales": str(total),
        "average_transaction": str(average),
        "cash_sales": to_money_str(cash),
        "card_sales": to_money_str(card),
        "credit_sales": to_money_str(credit),
        "voided_transactions": voided,
    }
