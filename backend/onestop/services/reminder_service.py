# Overview: Service-layer operations for payment reminders; builds Turkish debt reminder texts.

"""
Payment reminders for store credit customers.

Messages are prepared, not delivered: the response carries the generated
text for the cashier to send from their own messaging app.
"""

from __future__ import annotations

from decimal import Decimal

from flask import current_app
from sqlalchemy import and_

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import CreditCustomer, CreditLedgerEntry
from ..models.credit import ENTRY_CREDIT
from ..money import ZERO, as_decimal, quantize_money, to_money_str
from ..validation import parse_decimal, parse_int
from .credit_service import recent_entries

RECENT_ENTRY_COUNT = 5

ENTRY_LABELS = {ENTRY_CREDIT: "Alışveriş"}
PAYMENT_LABEL = "Ödeme"


def format_currency(amount, symbol: str | None = None) -> str:
    """tr-TR currency format: 1234.5 -> "₺1.234,50"."""
    if symbol is None:
        symbol = current_app.config.get("CURRENCY_SYMBOL", "₺")
    value = quantize_money(amount)
    sign = "-" if value < 0 else ""
    grouped = f"{abs(value):,.2f}"
    grouped = grouped.replace(",", "_").replace(".", ",").replace("_", ".")
    return f"{sign}{symbol}{grouped}"


def format_date(dt) -> str:
    return dt.strftime("%d.%m.%Y") if dt else ""


def build_message(customer: CreditCustomer, entries: list[CreditLedgerEntry]) -> str:
    lines = [
        f"Merhaba {customer.name},",
        "",
        f"Mevcut borcunuz: {format_currency(customer.current_balance)}",
        "",
    ]
    if entries:
        lines.append("Son işlemler:")
        for entry in entries[:RECENT_ENTRY_COUNT]:
            label = ENTRY_LABELS.get(entry.type, PAYMENT_LABEL)
            lines.append(f"- {format_date(entry.created_at)}: {label} {format_currency(entry.amount)}")
    lines.append("")
    lines.append("Teşekkür ederiz.")
    return "\n".join(lines)


def _prepared(customer: CreditCustomer) -> dict:
    entries = recent_entries(customer.owner_id, customer.id, limit=RECENT_ENTRY_COUNT)
    return {
        "customer_id": customer.id,
        "customer_name": customer.name,
        "phone": customer.phone,
        "current_balance": to_money_str(customer.current_balance),
        "generated_message": build_message(customer, entries),
    }


def prepare_reminder(owner_id: int, customer_id: int) -> dict:
    customer = db.session.query(CreditCustomer).filter_by(
        id=customer_id, owner_id=owner_id, is_active=True
    ).first()
    if not customer:
        raise NotFoundError("Customer not found")
    if not customer.phone:
        raise ValidationError("Customer does not have a phone number")

    result = _prepared(customer)
    current_app.logger.info("Prepared payment reminder for credit customer %s", customer.id)
    return result


def prepare_bulk_reminders(owner_id: int, payload: dict) -> dict:
    """
    Reminders for customers picked by customer_ids, or else by a minimum
    balance (min_credit_amount). Only active customers with a phone qualify.
    """
    payload = payload or {}
    query = db.session.query(CreditCustomer).filter(
        CreditCustomer.owner_id == owner_id,
        CreditCustomer.is_active.is_(True),
        and_(CreditCustomer.phone.isnot(None), CreditCustomer.phone != ""),
    )

    customer_ids = payload.get("customer_ids")
    if isinstance(customer_ids, list) and customer_ids:
        ids = [parse_int(cid, "customer_ids") for cid in customer_ids]
        query = query.filter(CreditCustomer.id.in_(ids))
    else:
        min_amount = parse_decimal(payload.get("min_credit_amount"), "min_credit_amount")
        if min_amount:
            query = query.filter(CreditCustomer.current_balance >= min_amount)

    customers = query.order_by(CreditCustomer.current_balance.desc(), CreditCustomer.id.asc()).all()
    if not customers:
        raise NotFoundError("No customers found matching the criteria")

    results = []
    outstanding: Decimal = ZERO
    for customer in customers:
        outstanding += as_decimal(customer.current_balance)
        item = _prepared(customer)
        item["status"] = "prepared"
        results.append(item)

    current_app.logger.info("Prepared %d payment reminders for owner %s", len(results), owner_id)
    return {
        "success": True,
        "message": f"Reminders prepared for {len(results)} customers",
        "total_customers": len(results),
        "total_outstanding": to_money_str(outstanding),
        "results": results,
    }
